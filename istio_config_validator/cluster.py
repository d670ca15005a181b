"""
从 Kubernetes 集群读取 Istio 自定义资源

只负责获取和转换，校验仍然离线完成。
"""
import logging
from typing import Iterable, List, Optional, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from istio_config_validator.errors import ConfigLoadError
from istio_config_validator.loader import config_from_manifest
from istio_config_validator.registry import ISTIO_CONFIG_TYPES, Config, ProtoSchema

logger = logging.getLogger(__name__)


def crd_plural(schema: ProtoSchema) -> str:
    """CRD 的资源名是去掉连字符的复数名，如 virtual-services -> virtualservices"""
    return schema.plural.replace("-", "")


class ClusterSource:
    """
    集群配置源

    使用 CustomObjectsApi 逐类列出 CRD 对象。某类资源获取失败时记录日志并跳过，
    不影响其他类型。
    """

    def __init__(self,
                 kubeconfig: Optional[str] = None,
                 context: Optional[str] = None,
                 api: Optional[client.CustomObjectsApi] = None,
                 schemas: Iterable[ProtoSchema] = ISTIO_CONFIG_TYPES):
        self.kubeconfig = kubeconfig
        self.context = context
        self.schemas = list(schemas)
        self.k8s_client = api
        self.load_errors: List[Tuple[str, str]] = []

    def _ensure_client(self) -> client.CustomObjectsApi:
        if self.k8s_client is None:
            try:
                config.load_kube_config(config_file=self.kubeconfig, context=self.context)
            except config.ConfigException as e:
                raise ConfigLoadError(f"无法加载 kubeconfig: {e}") from e
            self.k8s_client = client.CustomObjectsApi()
            logger.info("已从 kubeconfig 初始化 Kubernetes 客户端")
        return self.k8s_client

    def list_configs(self, default_namespace: str = "default") -> List[Config]:
        """列出全部已知类型的配置对象"""
        api = self._ensure_client()
        configs: List[Config] = []
        self.load_errors = []
        for schema in self.schemas:
            plural = crd_plural(schema)
            try:
                response = api.list_cluster_custom_object(
                    group=schema.api_group,
                    version=schema.version,
                    plural=plural,
                )
            except ApiException as e:
                # 集群中未安装该 CRD 时返回 404
                if e.status == 404:
                    logger.debug(f"集群中没有 {schema.api_group}/{plural}")
                else:
                    logger.error(f"获取 {schema.api_group}/{plural} 失败: {e.reason}")
                continue

            items = response.get('items', [])
            logger.info(f"获取到 {len(items)} 个 {plural}")
            for item in items:
                item.setdefault('kind', schema.kind.value)
                metadata = item.get('metadata', {})
                source = f"cluster:{plural}/{metadata.get('namespace', '')}/{metadata.get('name', '')}"
                try:
                    configs.append(config_from_manifest(item, source, default_namespace))
                except ConfigLoadError as e:
                    logger.error(f"无法转换 {source}: {e}")
                    self.load_errors.append((source, str(e)))
        return configs
