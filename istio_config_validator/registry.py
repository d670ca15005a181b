"""
资源类型注册表与校验分发

每种资源类型对应一个 ProtoSchema（类型名、复数名、API 组、版本、消息名、消息类、校验函数），
validate_config 根据 Config 上显式携带的 kind 找到对应的校验函数。
"""
import logging
from dataclasses import dataclass, is_dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, List, Optional

from istio_config_validator.errors import (
    DuplicateError,
    FormatError,
    ShapeError,
    ValidationError,
    append_errors,
)
from istio_config_validator.models import authn, mesh, mixer, networking, rbac, routing
from istio_config_validator.validation import (
    mesh as mesh_validation,
    mixer as mixer_validation,
    networking as networking_validation,
    routing as routing_validation,
    security as security_validation,
)
from istio_config_validator.validation.primitives import is_dns1123_label

logger = logging.getLogger(__name__)

# 校验函数签名：(name, namespace, msg) -> 错误或 None
Validator = Callable[[str, str, Any], Optional[ValidationError]]


class ResourceKind(Enum):
    """资源类型，值为清单中的 kind"""
    ROUTE_RULE = "RouteRule"
    INGRESS_RULE = "IngressRule"
    EGRESS_RULE = "EgressRule"
    DESTINATION_POLICY = "DestinationPolicy"
    GATEWAY = "Gateway"
    DESTINATION_RULE = "DestinationRule"
    VIRTUAL_SERVICE = "VirtualService"
    SERVICE_ENTRY = "ServiceEntry"
    HTTP_API_SPEC = "HTTPAPISpec"
    HTTP_API_SPEC_BINDING = "HTTPAPISpecBinding"
    QUOTA_SPEC = "QuotaSpec"
    QUOTA_SPEC_BINDING = "QuotaSpecBinding"
    AUTHENTICATION_POLICY = "Policy"
    AUTHENTICATION_MESH_POLICY = "MeshPolicy"
    SERVICE_ROLE = "ServiceRole"
    SERVICE_ROLE_BINDING = "ServiceRoleBinding"
    RBAC_CONFIG = "RbacConfig"
    MESH_CONFIG = "MeshConfig"
    PROXY_CONFIG = "ProxyConfig"
    MIXER_ATTRIBUTES = "Attributes"


@dataclass(frozen=True)
class ProtoSchema:
    """一种资源类型的描述"""
    kind: ResourceKind
    type: str  # 短类型名，DNS-1123 标签
    plural: str
    group: str
    version: str
    message_name: str
    message_class: type
    validate: Validator
    cluster_scoped: bool = False

    @property
    def api_group(self) -> str:
        """完整 API 组，如 networking.istio.io"""
        return f"{self.group}.istio.io" if self.group else "istio.io"

    @property
    def api_version(self) -> str:
        return f"{self.api_group}/{self.version}"


class ConfigDescriptor(tuple):
    """ProtoSchema 的有序集合"""

    def types(self) -> List[str]:
        return [schema.type for schema in self]

    def get_by_type(self, name: str) -> Optional[ProtoSchema]:
        for schema in self:
            if schema.type == name:
                return schema
        return None

    def get_by_kind(self, kind: ResourceKind) -> Optional[ProtoSchema]:
        for schema in self:
            if schema.kind is kind:
                return schema
        return None

    def validate(self) -> Optional[ValidationError]:
        """
        检查描述表自身的一致性

        类型名和复数名必须是 DNS-1123 标签，消息名能对应到消息类，
        类型名不能重复，同一作用域内消息名不能重复。
        """
        errs = None
        types = set()
        messages = set()
        cluster_messages = set()
        for schema in self:
            if not is_dns1123_label(schema.type):
                errs = append_errors(errs, FormatError(f"invalid type: {schema.type!r}"))
            if not is_dns1123_label(schema.plural):
                errs = append_errors(errs, FormatError(f"invalid plural: {schema.type!r}"))
            if not _message_resolvable(schema):
                errs = append_errors(errs, FormatError(
                    f"cannot discover proto message type: {schema.message_name!r}"))
            if schema.type in types:
                errs = append_errors(errs, DuplicateError(f"duplicate type: {schema.type!r}"))
            types.add(schema.type)
            scope = cluster_messages if schema.cluster_scoped else messages
            if schema.message_name in scope:
                errs = append_errors(errs, DuplicateError(f"duplicate message type: {schema.message_name!r}"))
            scope.add(schema.message_name)
        return errs


def _message_resolvable(schema: ProtoSchema) -> bool:
    return (is_dataclass(schema.message_class)
            and schema.message_name.rsplit(".", 1)[-1] == schema.message_class.__name__)


# v1alpha1 路由规则
ROUTE_RULE = ProtoSchema(
    kind=ResourceKind.ROUTE_RULE,
    type="route-rule",
    plural="route-rules",
    group="config",
    version="v1alpha2",
    message_name="istio.routing.v1alpha1.RouteRule",
    message_class=routing.RouteRule,
    validate=routing_validation.validate_route_rule,
)

INGRESS_RULE = ProtoSchema(
    kind=ResourceKind.INGRESS_RULE,
    type="ingress-rule",
    plural="ingress-rules",
    group="config",
    version="v1alpha2",
    message_name="istio.routing.v1alpha1.IngressRule",
    message_class=routing.IngressRule,
    validate=routing_validation.validate_ingress_rule,
)

EGRESS_RULE = ProtoSchema(
    kind=ResourceKind.EGRESS_RULE,
    type="egress-rule",
    plural="egress-rules",
    group="config",
    version="v1alpha2",
    message_name="istio.routing.v1alpha1.EgressRule",
    message_class=routing.EgressRule,
    validate=routing_validation.validate_egress_rule,
)

DESTINATION_POLICY = ProtoSchema(
    kind=ResourceKind.DESTINATION_POLICY,
    type="destination-policy",
    plural="destination-policies",
    group="config",
    version="v1alpha2",
    message_name="istio.routing.v1alpha1.DestinationPolicy",
    message_class=routing.DestinationPolicy,
    validate=routing_validation.validate_destination_policy,
)

# v1alpha3 网络
VIRTUAL_SERVICE = ProtoSchema(
    kind=ResourceKind.VIRTUAL_SERVICE,
    type="virtual-service",
    plural="virtual-services",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.VirtualService",
    message_class=networking.VirtualService,
    validate=networking_validation.validate_virtual_service,
)

GATEWAY = ProtoSchema(
    kind=ResourceKind.GATEWAY,
    type="gateway",
    plural="gateways",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.Gateway",
    message_class=networking.Gateway,
    validate=networking_validation.validate_gateway,
)

SERVICE_ENTRY = ProtoSchema(
    kind=ResourceKind.SERVICE_ENTRY,
    type="service-entry",
    plural="service-entries",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.ServiceEntry",
    message_class=networking.ServiceEntry,
    validate=networking_validation.validate_service_entry,
)

DESTINATION_RULE = ProtoSchema(
    kind=ResourceKind.DESTINATION_RULE,
    type="destination-rule",
    plural="destination-rules",
    group="networking",
    version="v1alpha3",
    message_name="istio.networking.v1alpha3.DestinationRule",
    message_class=networking.DestinationRule,
    validate=networking_validation.validate_destination_rule,
)

# Mixer 客户端配置
HTTP_API_SPEC = ProtoSchema(
    kind=ResourceKind.HTTP_API_SPEC,
    type="http-api-spec",
    plural="http-api-specs",
    group="config",
    version="v1alpha2",
    message_name="istio.mixer.v1.config.client.HTTPAPISpec",
    message_class=mixer.HTTPAPISpec,
    validate=mixer_validation.validate_http_api_spec,
)

HTTP_API_SPEC_BINDING = ProtoSchema(
    kind=ResourceKind.HTTP_API_SPEC_BINDING,
    type="http-api-spec-binding",
    plural="http-api-spec-bindings",
    group="config",
    version="v1alpha2",
    message_name="istio.mixer.v1.config.client.HTTPAPISpecBinding",
    message_class=mixer.HTTPAPISpecBinding,
    validate=mixer_validation.validate_http_api_spec_binding,
)

QUOTA_SPEC = ProtoSchema(
    kind=ResourceKind.QUOTA_SPEC,
    type="quota-spec",
    plural="quota-specs",
    group="config",
    version="v1alpha2",
    message_name="istio.mixer.v1.config.client.QuotaSpec",
    message_class=mixer.QuotaSpec,
    validate=mixer_validation.validate_quota_spec,
)

QUOTA_SPEC_BINDING = ProtoSchema(
    kind=ResourceKind.QUOTA_SPEC_BINDING,
    type="quota-spec-binding",
    plural="quota-spec-bindings",
    group="config",
    version="v1alpha2",
    message_name="istio.mixer.v1.config.client.QuotaSpecBinding",
    message_class=mixer.QuotaSpecBinding,
    validate=mixer_validation.validate_quota_spec_binding,
)

# 认证与 RBAC
AUTHENTICATION_POLICY = ProtoSchema(
    kind=ResourceKind.AUTHENTICATION_POLICY,
    type="policy",
    plural="policies",
    group="authentication",
    version="v1alpha1",
    message_name="istio.authentication.v1alpha1.Policy",
    message_class=authn.Policy,
    validate=security_validation.validate_authentication_policy,
)

AUTHENTICATION_MESH_POLICY = ProtoSchema(
    kind=ResourceKind.AUTHENTICATION_MESH_POLICY,
    type="mesh-policy",
    plural="mesh-policies",
    group="authentication",
    version="v1alpha1",
    message_name="istio.authentication.v1alpha1.Policy",
    message_class=authn.Policy,
    validate=security_validation.validate_authentication_policy,
    cluster_scoped=True,
)

SERVICE_ROLE = ProtoSchema(
    kind=ResourceKind.SERVICE_ROLE,
    type="service-role",
    plural="service-roles",
    group="rbac",
    version="v1alpha1",
    message_name="istio.rbac.v1alpha1.ServiceRole",
    message_class=rbac.ServiceRole,
    validate=security_validation.validate_service_role,
)

SERVICE_ROLE_BINDING = ProtoSchema(
    kind=ResourceKind.SERVICE_ROLE_BINDING,
    type="service-role-binding",
    plural="service-role-bindings",
    group="rbac",
    version="v1alpha1",
    message_name="istio.rbac.v1alpha1.ServiceRoleBinding",
    message_class=rbac.ServiceRoleBinding,
    validate=security_validation.validate_service_role_binding,
)

RBAC_CONFIG = ProtoSchema(
    kind=ResourceKind.RBAC_CONFIG,
    type="rbac-config",
    plural="rbac-configs",
    group="rbac",
    version="v1alpha1",
    message_name="istio.rbac.v1alpha1.RbacConfig",
    message_class=rbac.RbacConfig,
    validate=security_validation.validate_rbac_config,
)

# 集群中以 CRD 形式存在的全部资源
ISTIO_CONFIG_TYPES = ConfigDescriptor((
    ROUTE_RULE,
    INGRESS_RULE,
    EGRESS_RULE,
    DESTINATION_POLICY,
    VIRTUAL_SERVICE,
    GATEWAY,
    SERVICE_ENTRY,
    DESTINATION_RULE,
    HTTP_API_SPEC,
    HTTP_API_SPEC_BINDING,
    QUOTA_SPEC,
    QUOTA_SPEC_BINDING,
    AUTHENTICATION_POLICY,
    AUTHENTICATION_MESH_POLICY,
    SERVICE_ROLE,
    SERVICE_ROLE_BINDING,
    RBAC_CONFIG,
))


def _ignore_name(validator: Callable[[Any], Optional[ValidationError]]) -> Validator:
    """网格配置、代理配置和属性列表不是命名资源，校验时忽略名称与命名空间"""
    def wrapped(name: str, namespace: str, msg: Any) -> Optional[ValidationError]:
        return validator(msg)
    wrapped.__name__ = validator.__name__
    return wrapped


# 资源类型 -> 消息类
MESSAGE_CLASSES = MappingProxyType({
    **{schema.kind: schema.message_class for schema in ISTIO_CONFIG_TYPES},
    ResourceKind.MESH_CONFIG: mesh.MeshConfig,
    ResourceKind.PROXY_CONFIG: mesh.ProxyConfig,
    ResourceKind.MIXER_ATTRIBUTES: mixer.Attributes,
})

# 资源类型 -> 校验函数，覆盖全部 ResourceKind
VALIDATORS = MappingProxyType({
    **{schema.kind: schema.validate for schema in ISTIO_CONFIG_TYPES},
    ResourceKind.MESH_CONFIG: _ignore_name(mesh_validation.validate_mesh_config),
    ResourceKind.PROXY_CONFIG: _ignore_name(mesh_validation.validate_proxy_config),
    ResourceKind.MIXER_ATTRIBUTES: _ignore_name(mixer_validation.validate_mixer_attributes),
})


@dataclass
class Config:
    """带显式类型标签的配置对象"""
    kind: ResourceKind
    name: str = ""
    namespace: str = ""
    spec: Any = None
    source: str = ""  # 来源（文件路径或集群），仅用于报告

    @property
    def key(self) -> str:
        if self.namespace:
            return f"{self.kind.value}/{self.namespace}/{self.name}"
        return f"{self.kind.value}/{self.name}"


def parse_kind(kind: str) -> Optional[ResourceKind]:
    """清单中的 kind 转为 ResourceKind，未知时返回 None"""
    try:
        return ResourceKind(kind)
    except ValueError:
        return None


def validate_config(config: Config) -> Optional[ValidationError]:
    """根据 kind 调用对应的校验函数"""
    validator = VALIDATORS.get(config.kind)
    if validator is None:
        return ShapeError(f"unrecognized config kind {config.kind!r}")
    logger.debug(f"校验 {config.key}，校验函数: {validator.__name__}")
    return validator(config.name, config.namespace, config.spec)
