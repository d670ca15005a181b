"""
Mixer 客户端配置校验：属性列表、HTTPAPISpec、QuotaSpec 及其绑定
"""
from typing import Optional

from istio_config_validator.errors import (
    FormatError,
    MissingFieldError,
    RangeError,
    ShapeError,
    ValidationError,
    append_errors,
)
from istio_config_validator.models.common import ExactMatch, PrefixMatch, RegexMatch
from istio_config_validator.models import mixer
from istio_config_validator.models import routing
from istio_config_validator.validation.primitives import duration_nanos, is_dns1123_label
from istio_config_validator.validation.routing import validate_istio_service


def mixer_to_routing_service(svc: mixer.IstioService) -> routing.IstioService:
    """Mixer 侧的服务引用转换为路由侧的同名结构"""
    return routing.IstioService(
        name=svc.name,
        namespace=svc.namespace,
        domain=svc.domain,
        service=svc.service,
        labels=dict(svc.labels),
    )


def validate_mixer_attributes(msg: object) -> Optional[ValidationError]:
    """属性列表不能为空；字符串、字节、映射类型的值不能为空，时长和时间戳必须可解码"""
    if not isinstance(msg, mixer.Attributes):
        return ShapeError("cannot cast to attributes")
    if not msg.attributes:
        return MissingFieldError("list of attributes is nil/empty")

    errs = None
    for key, attr in msg.attributes.items():
        val = attr.value
        if isinstance(val, mixer.StringValue):
            if not val.value:
                errs = append_errors(errs, MissingFieldError(f"string attribute for {key!r} should not be empty"))
        elif isinstance(val, mixer.DurationValue):
            if val.value is None:
                errs = append_errors(errs, MissingFieldError(f"duration attribute for {key!r} should not be nil"))
            try:
                duration_nanos(val.value)
            except ValueError as e:
                errs = append_errors(errs, FormatError(str(e)))
        elif isinstance(val, mixer.BytesValue):
            if not val.value:
                errs = append_errors(errs, MissingFieldError(f"bytes attribute for {key!r} should not be empty"))
        elif isinstance(val, mixer.TimestampValue):
            if val.value is None:
                errs = append_errors(errs, MissingFieldError(f"timestamp attribute for {key!r} should not be nil"))
                errs = append_errors(errs, FormatError("timestamp: nil Timestamp"))
            else:
                try:
                    val.value.check()
                except ValueError as e:
                    errs = append_errors(errs, FormatError(str(e)))
        elif isinstance(val, mixer.StringMapValue):
            if val.value is None or val.value.entries is None:
                errs = append_errors(errs, MissingFieldError(f"stringmap attribute for {key!r} should not be nil"))
    return errs


def validate_http_api_spec(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """至少一个请求模式，每个模式的方法和模板不能为空；API key 位置不能为空"""
    if not isinstance(msg, mixer.HTTPAPISpec):
        return ShapeError("cannot cast to HTTPAPISpec")

    errs = None
    # 顶层属性可选
    if msg.attributes is not None:
        errs = append_errors(errs, validate_mixer_attributes(msg.attributes))
    if not msg.patterns:
        errs = append_errors(errs, MissingFieldError("at least one pattern must be specified"))
    for pattern in msg.patterns:
        if pattern.attributes is not None:
            errs = append_errors(errs, validate_mixer_attributes(pattern.attributes))
        if not pattern.http_method:
            errs = append_errors(errs, MissingFieldError("http_method cannot be empty"))
        if isinstance(pattern.pattern, mixer.UriTemplate):
            if not pattern.pattern.value:
                errs = append_errors(errs, MissingFieldError("uri_template cannot be empty"))
        elif isinstance(pattern.pattern, mixer.Regex):
            if not pattern.pattern.value:
                errs = append_errors(errs, MissingFieldError("regex cannot be empty"))
        elif pattern.pattern is not None:
            errs = append_errors(errs, FormatError(f"unrecognized pattern {pattern.pattern!r}"))

    for api_key in msg.api_keys:
        key = api_key.key
        if isinstance(key, mixer.QueryKey):
            if not key.value:
                errs = append_errors(errs, MissingFieldError("query cannot be empty"))
        elif isinstance(key, mixer.HeaderKey):
            if not key.value:
                errs = append_errors(errs, MissingFieldError("header cannot be empty"))
        elif isinstance(key, mixer.CookieKey):
            if not key.value:
                errs = append_errors(errs, MissingFieldError("cookie cannot be empty"))
        elif key is not None:
            errs = append_errors(errs, FormatError(f"unrecognized api key {key!r}"))
    return errs


def _validate_spec_reference(ref, kind: str) -> Optional[ValidationError]:
    errs = None
    if not ref.name:
        errs = append_errors(errs, MissingFieldError(f"name is mandatory for {kind}"))
    if ref.namespace and not is_dns1123_label(ref.namespace):
        errs = append_errors(errs, FormatError(f"namespace {ref.namespace!r} must be a valid label"))
    return errs


def validate_http_api_spec_binding(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    if not isinstance(msg, mixer.HTTPAPISpecBinding):
        return ShapeError("cannot cast to HTTPAPISpecBinding")

    errs = None
    if not msg.services:
        errs = append_errors(errs, MissingFieldError("at least one service must be specified"))
    for service in msg.services:
        errs = append_errors(errs, validate_istio_service(mixer_to_routing_service(service)))
    if not msg.api_specs:
        errs = append_errors(errs, MissingFieldError("at least one spec must be specified"))
    for spec in msg.api_specs:
        errs = append_errors(errs, _validate_spec_reference(spec, "HTTPAPISpecReference"))
    return errs


def validate_quota_spec(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """每条规则至少一个配额；匹配值不能为空；配额名非空且扣减量为正"""
    if not isinstance(msg, mixer.QuotaSpec):
        return ShapeError("cannot cast to QuotaSpec")

    errs = None
    if not msg.rules:
        errs = append_errors(errs, MissingFieldError("a least one rule must be specified"))
    for rule in msg.rules:
        for match in rule.match:
            for attr_name, clause in match.clause.items():
                m = clause.match_type
                if isinstance(m, ExactMatch):
                    if not m.value:
                        errs = append_errors(errs, MissingFieldError(
                            f"StringMatch_Exact for attribute {attr_name!r} cannot be empty"))
                elif isinstance(m, PrefixMatch):
                    if not m.value:
                        errs = append_errors(errs, MissingFieldError(
                            f"StringMatch_Prefix for attribute {attr_name!r} cannot be empty"))
                elif isinstance(m, RegexMatch):
                    if not m.value:
                        errs = append_errors(errs, MissingFieldError(
                            f"StringMatch_Regex for attribute {attr_name!r} cannot be empty"))
                elif m is not None:
                    errs = append_errors(errs, FormatError(
                        f"unrecognized string match for attribute {attr_name!r}"))
        if not rule.quotas:
            errs = append_errors(errs, MissingFieldError("a least one quota must be specified"))
        for quota in rule.quotas:
            if not quota.quota:
                errs = append_errors(errs, MissingFieldError("quota name cannot be empty"))
            if quota.charge <= 0:
                errs = append_errors(errs, RangeError("quota charge amount must be positive"))
    return errs


def validate_quota_spec_binding(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    if not isinstance(msg, mixer.QuotaSpecBinding):
        return ShapeError("cannot cast to QuotaSpecBinding")

    errs = None
    if not msg.services:
        errs = append_errors(errs, MissingFieldError("at least one service must be specified"))
    for service in msg.services:
        errs = append_errors(errs, validate_istio_service(mixer_to_routing_service(service)))
    if not msg.quota_specs:
        errs = append_errors(errs, MissingFieldError("at least one spec must be specified"))
    for spec in msg.quota_specs:
        errs = append_errors(errs, _validate_spec_reference(spec, "QuotaSpecReference"))
    return errs
