"""
Mixer 客户端配置模型（属性、HTTPAPISpec、QuotaSpec 及其绑定）
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from istio_config_validator.models.common import (
    Duration,
    OneofValue,
    StringMatch,
    Timestamp,
    oneof,
)


# 属性值的各个变体
class StringValue(OneofValue):
    pass


class Int64Value(OneofValue):
    pass


class DoubleValue(OneofValue):
    pass


class BoolValue(OneofValue):
    pass


class BytesValue(OneofValue):
    pass


@dataclass(frozen=True)
class TimestampValue(OneofValue):
    value: Optional[Timestamp] = None


@dataclass(frozen=True)
class DurationValue(OneofValue):
    value: Optional[Duration] = None


@dataclass
class StringMap:
    entries: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class StringMapValue(OneofValue):
    value: Optional[StringMap] = None


@dataclass
class AttributeValue:
    value: Optional[OneofValue] = oneof(
        string_value=StringValue,
        int64_value=Int64Value,
        double_value=DoubleValue,
        bool_value=BoolValue,
        bytes_value=BytesValue,
        timestamp_value=TimestampValue,
        duration_value=DurationValue,
        string_map_value=StringMapValue,
    )


@dataclass
class Attributes:
    """属性名 -> 属性值"""
    attributes: Dict[str, AttributeValue] = field(default_factory=dict)


class UriTemplate(OneofValue):
    """URI 模板，如 /books/{id}"""


class Regex(OneofValue):
    """正则表达式"""


@dataclass
class HTTPAPISpecPattern:
    attributes: Optional[Attributes] = None
    http_method: str = ""
    pattern: Optional[OneofValue] = oneof(uri_template=UriTemplate, regex=Regex)


class QueryKey(OneofValue):
    """从查询参数读取 API key"""


class HeaderKey(OneofValue):
    """从请求头读取 API key"""


class CookieKey(OneofValue):
    """从 cookie 读取 API key"""


@dataclass
class APIKey:
    key: Optional[OneofValue] = oneof(query=QueryKey, header=HeaderKey, cookie=CookieKey)


@dataclass
class HTTPAPISpec:
    attributes: Optional[Attributes] = None
    patterns: List[HTTPAPISpecPattern] = field(default_factory=list)
    api_keys: List[APIKey] = field(default_factory=list)


@dataclass
class IstioService:
    """Mixer 侧的服务引用，字段与 v1alpha1 IstioService 相同"""
    name: str = ""
    namespace: str = ""
    domain: str = ""
    service: str = ""
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class HTTPAPISpecReference:
    name: str = ""
    namespace: str = ""


@dataclass
class HTTPAPISpecBinding:
    services: List[IstioService] = field(default_factory=list)
    api_specs: List[HTTPAPISpecReference] = field(default_factory=list)


@dataclass
class AttributeMatch:
    """属性名 -> 字符串匹配"""
    clause: Dict[str, StringMatch] = field(default_factory=dict)


@dataclass
class Quota:
    quota: str = ""
    charge: int = 0


@dataclass
class QuotaRule:
    match: List[AttributeMatch] = field(default_factory=list)
    quotas: List[Quota] = field(default_factory=list)


@dataclass
class QuotaSpec:
    rules: List[QuotaRule] = field(default_factory=list)


@dataclass
class QuotaSpecReference:
    name: str = ""
    namespace: str = ""


@dataclass
class QuotaSpecBinding:
    services: List[IstioService] = field(default_factory=list)
    quota_specs: List[QuotaSpecReference] = field(default_factory=list)
