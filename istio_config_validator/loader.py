"""
把 YAML 清单转换为类型化的配置对象

清单格式与 kubectl 相同：kind、metadata.name、metadata.namespace、spec。
字段名同时接受 camelCase 和 snake_case，oneof 字段通过兄弟键名识别。
"""
import logging
import os
import re
import typing
from dataclasses import fields, is_dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

import yaml

from istio_config_validator.errors import ConfigLoadError
from istio_config_validator.models.common import Duration, Hostname, OneofValue, Timestamp
from istio_config_validator.models.mesh import MeshConfig, ProxyConfig, default_mesh_config, default_proxy_config
from istio_config_validator.registry import (
    ISTIO_CONFIG_TYPES,
    MESSAGE_CLASSES,
    Config,
    ResourceKind,
    parse_kind,
)

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")

_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def camel_case(name: str) -> str:
    """snake_case 转 camelCase，如 http_req_timeout -> httpReqTimeout"""
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)


def _lookup(data: Dict[str, Any], name: str) -> Any:
    """按 snake_case 或 camelCase 取值，不存在时返回 KeyError"""
    if name in data:
        return data[name]
    camel = camel_case(name)
    if camel in data:
        return data[camel]
    raise KeyError(name)


def _seconds_and_nanos(value: Dict[str, Any], what: str) -> Tuple[int, int]:
    try:
        return int(value.get("seconds", 0)), int(value.get("nanos", 0))
    except (TypeError, ValueError) as e:
        raise ConfigLoadError(f"invalid {what} {value!r}") from e


def parse_duration(value: Any) -> Duration:
    """
    时长可以是 "1.5s" 形式的字符串、{seconds, nanos} 映射或秒数

    Raises:
        ConfigLoadError: 无法解析
    """
    if isinstance(value, Duration):
        return value
    if isinstance(value, str):
        try:
            return Duration.parse(value)
        except ValueError as e:
            raise ConfigLoadError(str(e)) from e
    if isinstance(value, dict):
        seconds, nanos = _seconds_and_nanos(value, "duration")
        return Duration(seconds=seconds, nanos=nanos)
    if isinstance(value, int) and not isinstance(value, bool):
        return Duration(seconds=value)
    raise ConfigLoadError(f"invalid duration {value!r}")


def parse_timestamp(value: Any) -> Timestamp:
    """时间戳可以是 RFC 3339 字符串或 {seconds, nanos} 映射"""
    if isinstance(value, Timestamp):
        return value
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return Timestamp(seconds=int(moment.timestamp()), nanos=moment.microsecond * 1000)
    if isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ConfigLoadError(f"invalid timestamp {value!r}") from e
        return parse_timestamp(moment)
    if isinstance(value, dict):
        seconds, nanos = _seconds_and_nanos(value, "timestamp")
        return Timestamp(seconds=seconds, nanos=nanos)
    raise ConfigLoadError(f"invalid timestamp {value!r}")


def _parse_enum(enum_cls: type, value: Any) -> Any:
    # 未知枚举名原样保留，由校验函数报告
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls[str(value)]
    except KeyError:
        pass
    for member in enum_cls:
        if member.value == value:
            return member
    logger.debug(f"未知的 {enum_cls.__name__} 取值: {value!r}")
    return value


def _convert(hint: Any, value: Any) -> Any:
    """按类型注解转换一个 YAML 值"""
    if value is None:
        return None

    origin = typing.get_origin(hint)
    args = typing.get_args(hint)
    if origin is typing.Union:
        inner = [a for a in args if a is not type(None)]
        return _convert(inner[0], value) if len(inner) == 1 else value
    if origin in (list, List):
        if not isinstance(value, list):
            raise ConfigLoadError(f"expected a list, got {value!r}")
        return [_convert(args[0] if args else Any, v) for v in value]
    if origin in (dict, Dict):
        if not isinstance(value, dict):
            raise ConfigLoadError(f"expected a mapping, got {value!r}")
        value_hint = args[1] if len(args) == 2 else Any
        return {str(k): _convert(value_hint, v) for k, v in value.items()}

    if hint is Duration:
        return parse_duration(value)
    if hint is Timestamp:
        return parse_timestamp(value)
    if hint is Hostname:
        return Hostname(str(value))
    if isinstance(hint, type) and issubclass(hint, Enum):
        return _parse_enum(hint, value)
    if isinstance(hint, type) and is_dataclass(hint):
        return build_message(hint, value)
    if hint is bool:
        if not isinstance(value, bool):
            raise ConfigLoadError(f"expected a boolean, got {value!r}")
        return value
    if hint in (int, float):
        if isinstance(value, bool):
            raise ConfigLoadError(f"expected a number, got {value!r}")
        try:
            return hint(value)
        except (TypeError, ValueError) as e:
            raise ConfigLoadError(f"expected a number, got {value!r}") from e
    if hint is str:
        if isinstance(value, (dict, list)):
            raise ConfigLoadError(f"expected a string, got {value!r}")
        return str(value)
    return value


def _build_variant(variant: type, value: Any) -> Any:
    if issubclass(variant, OneofValue):
        hint = typing.get_type_hints(variant).get("value", Any)
        return variant(_convert(hint, value))
    return _convert(variant, value if value is not None else {})


def build_message(cls: type, data: Any, base: Any = None) -> Any:
    """
    把映射转换为 cls 对应的 dataclass 树

    Args:
        cls: 目标 dataclass
        data: YAML 解析出的映射
        base: 可选的默认对象，data 中出现的字段覆盖它，嵌套消息逐层合并

    Raises:
        ConfigLoadError: 结构或取值不合法
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigLoadError(f"{cls.__name__}: expected a mapping, got {type(data).__name__}")

    hints = typing.get_type_hints(cls)
    values: Dict[str, Any] = {}
    for f in fields(cls):
        variants = f.metadata.get("oneof")
        if variants:
            chosen = []
            for key, variant in variants.items():
                try:
                    chosen.append((key, _build_variant(variant, _lookup(data, key))))
                except KeyError:
                    continue
            if len(chosen) > 1:
                keys = ", ".join(k for k, _ in chosen)
                raise ConfigLoadError(f"{cls.__name__}: only one of {keys} may be set")
            if chosen:
                values[f.name] = chosen[0][1]
            continue

        try:
            raw = _lookup(data, f.name)
        except KeyError:
            continue
        current = getattr(base, f.name, None) if base is not None else None
        hint = hints[f.name]
        target = _unwrap_optional(hint)
        if current is not None and is_dataclass(current) and isinstance(raw, dict) and is_dataclass(target):
            values[f.name] = build_message(target, raw, base=current)
        else:
            try:
                values[f.name] = _convert(hint, raw)
            except ConfigLoadError as e:
                raise ConfigLoadError(f"{cls.__name__}.{f.name}: {e}") from e

    if base is not None:
        return replace(base, **values)
    return cls(**values)


def _unwrap_optional(hint: Any) -> Any:
    if typing.get_origin(hint) is typing.Union:
        inner = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(inner) == 1:
            return inner[0]
    return hint


def config_from_manifest(doc: Any, source: str = "", default_namespace: str = "default") -> Config:
    """
    单个清单文档转为 Config

    集群级资源的命名空间总是为空。
    """
    if not isinstance(doc, dict):
        raise ConfigLoadError(f"{source}: manifest must be a mapping, got {type(doc).__name__}")
    kind_name = doc.get("kind")
    kind = parse_kind(str(kind_name)) if kind_name else None
    if kind is None:
        raise ConfigLoadError(f"{source}: unknown config kind {kind_name!r}")

    metadata = doc.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ConfigLoadError(f"{source}: metadata must be a mapping, got {type(metadata).__name__}")
    schema = ISTIO_CONFIG_TYPES.get_by_kind(kind)
    cluster_scoped = schema is None or schema.cluster_scoped
    namespace = "" if cluster_scoped else (metadata.get("namespace") or default_namespace)

    try:
        spec = build_message(MESSAGE_CLASSES[kind], doc.get("spec"))
    except ConfigLoadError as e:
        raise ConfigLoadError(f"{source}: {kind.value} {metadata.get('name', '')!r}: {e}") from e
    return Config(kind=kind, name=str(metadata.get("name", "")), namespace=namespace, spec=spec, source=source)


def load_configs_from_string(text: str, source: str = "<string>",
                             default_namespace: str = "default",
                             skip_unknown_kinds: bool = False) -> List[Config]:
    """
    解析多文档 YAML，空文档跳过

    Args:
        skip_unknown_kinds: 为 True 时未知 kind 的文档记录警告后跳过
    """
    try:
        docs = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"{source}: invalid YAML: {e}") from e

    configs = []
    for index, doc in enumerate(docs):
        if doc is None:
            continue
        if skip_unknown_kinds and isinstance(doc, dict) and parse_kind(str(doc.get("kind"))) is None:
            logger.warning(f"{source}[{index}]: 跳过未知类型 {doc.get('kind')!r}")
            continue
        configs.append(config_from_manifest(doc, f"{source}[{index}]", default_namespace))
    logger.info(f"从 {source} 加载了 {len(configs)} 个配置对象")
    return configs


def load_configs_from_file(path: str, default_namespace: str = "default",
                           skip_unknown_kinds: bool = False) -> List[Config]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise ConfigLoadError(f"无法读取文件 {path}: {e}") from e
    return load_configs_from_string(text, source=path, default_namespace=default_namespace,
                                    skip_unknown_kinds=skip_unknown_kinds)


def iter_yaml_files(directory: str) -> Iterator[str]:
    """递归列出目录下的 YAML 文件，按路径排序"""
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            if name.endswith(YAML_SUFFIXES):
                yield os.path.join(root, name)


def load_configs_from_dir(directory: str, default_namespace: str = "default",
                          skip_unknown_kinds: bool = False) -> List[Config]:
    configs = []
    for path in iter_yaml_files(directory):
        configs.extend(load_configs_from_file(path, default_namespace, skip_unknown_kinds))
    return configs


def _load_yaml_mapping(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigLoadError(f"无法读取文件 {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"{path}: invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(f"{path}: expected a mapping")
    return data


def _mesh_config_from_mapping(data: Any) -> MeshConfig:
    mesh = build_message(MeshConfig, data, base=default_mesh_config())
    if mesh.default_config is None:
        mesh = replace(mesh, default_config=default_proxy_config())
    return mesh


def apply_mesh_config(text: str) -> MeshConfig:
    """把 YAML 覆盖到默认网格配置上；defaultConfig 缺失时使用默认代理配置"""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"invalid YAML: {e}") from e
    return _mesh_config_from_mapping(data)


def load_mesh_config(path: str) -> MeshConfig:
    mesh = _mesh_config_from_mapping(_load_yaml_mapping(path))
    logger.info(f"已加载网格配置: {path}")
    return mesh


def load_proxy_config(path: str) -> ProxyConfig:
    """把 YAML 覆盖到默认代理配置上"""
    data = _load_yaml_mapping(path)
    config = build_message(ProxyConfig, data, base=default_proxy_config())
    logger.info(f"已加载代理配置: {path}")
    return config


def mesh_config_as_config(mesh: MeshConfig, source: str = "") -> Config:
    return Config(kind=ResourceKind.MESH_CONFIG, name="mesh", spec=mesh, source=source)


def proxy_config_as_config(proxy: ProxyConfig, source: str = "") -> Config:
    return Config(kind=ResourceKind.PROXY_CONFIG, name="proxy", spec=proxy, source=source)
