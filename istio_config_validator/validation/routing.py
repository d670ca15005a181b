"""
v1alpha1 路由资源校验：RouteRule、IngressRule、EgressRule、DestinationPolicy
"""
from typing import List, Optional

from istio_config_validator.errors import (
    ConflictError,
    DuplicateError,
    FormatError,
    MissingFieldError,
    RangeError,
    ShapeError,
    UnsupportedError,
    ValidationError,
    append_errors,
    prefix_error,
)
from istio_config_validator.models.common import (
    ExactMatch,
    ExponentialDelay,
    FixedDelay,
    GrpcStatus,
    Http2Error,
    HttpStatus,
    PrefixMatch,
    RegexMatch,
    StringMatch,
    parse_protocol,
)
from istio_config_validator.models.routing import (
    CircuitBreaker,
    DestinationPolicy,
    DestinationWeight,
    EgressRule,
    EgressRulePort,
    FaultAbort,
    FaultDelay,
    HTTPFaultInjection,
    HTTPRetry,
    HTTPTimeout,
    IngressRule,
    IstioService,
    L4FaultInjection,
    L4MatchAttributes,
    LoadBalancing,
    MatchCondition,
    RouteRule,
    Terminate,
    Throttle,
)
from istio_config_validator.validation.primitives import (
    EGRESS_SUPPORTED_PROTOCOLS,
    EGRESS_SUPPORTED_TCP_PROTOCOLS,
    SUPPORTED_HTTP_METHODS,
    egress_supported_protocols,
    egress_supported_tcp_protocols,
    is_dns1123_label,
    validate_cidr,
    validate_duration,
    validate_float_percent,
    validate_fqdn,
    validate_http_header_name,
    validate_labels,
    validate_percent,
    validate_port,
    validate_subnet,
)

# 请求路径的特殊匹配头
HEADER_URI = "uri"


def validate_istio_service(svc: IstioService) -> Optional[ValidationError]:
    """校验服务引用：name 与 service 必须且只能设置一个"""
    errs = None
    if not svc.name and not svc.service:
        errs = append_errors(errs, MissingFieldError("name or service is mandatory for a service reference"))
    elif svc.service and svc.name:
        errs = append_errors(errs, ConflictError("specify either name or service, not both"))
    elif svc.service:
        errs = append_errors(errs, validate_egress_rule_service(svc.service))
        if svc.namespace:
            errs = append_errors(errs, ConflictError("namespace is not valid when service is provided"))
        if svc.domain:
            errs = append_errors(errs, ConflictError("domain is not valid when service is provided"))
    elif not is_dns1123_label(svc.name):
        errs = append_errors(errs, FormatError(f"name {svc.name!r} must be a valid label"))

    if svc.namespace and not is_dns1123_label(svc.namespace):
        errs = append_errors(errs, FormatError(f"namespace {svc.namespace!r} must be a valid label"))
    if svc.domain:
        errs = append_errors(errs, validate_fqdn(svc.domain))
    return append_errors(errs, validate_labels(svc.labels))


def validate_string_match(match: StringMatch) -> Optional[ValidationError]:
    """匹配方式只能是 exact、prefix、regex 之一"""
    if isinstance(match.match_type, (ExactMatch, PrefixMatch, RegexMatch)):
        return None
    return FormatError(f"unrecognized string match {match!r}")


def validate_l4_match_attributes(attrs: L4MatchAttributes) -> Optional[ValidationError]:
    errs = None
    for subnet in attrs.source_subnet:
        errs = append_errors(errs, validate_subnet(subnet))
    for subnet in attrs.destination_subnet:
        errs = append_errors(errs, validate_subnet(subnet))
    return errs


def validate_match_condition(mc: MatchCondition) -> Optional[ValidationError]:
    errs = None
    if mc.source is not None:
        errs = append_errors(errs, validate_istio_service(mc.source))
    if mc.tcp is not None:
        errs = append_errors(errs, validate_l4_match_attributes(mc.tcp))
    if mc.udp is not None:
        errs = append_errors(errs, validate_l4_match_attributes(mc.udp),
                             UnsupportedError("UDP protocol not supported yet"))

    if mc.request is not None:
        for name, value in mc.request.headers.items():
            errs = append_errors(
                errs,
                prefix_error(validate_http_header_name(name), f"header name {name!r} invalid: "),
                prefix_error(validate_string_match(value), f"header {name!r} value invalid: "),
            )
            # 绝对路径不能为空
            if name == HEADER_URI:
                m = value.match_type
                if isinstance(m, ExactMatch) and not m.value:
                    errs = append_errors(errs, FormatError(f"exact header value for {HEADER_URI!r} must be non-empty"))
                elif isinstance(m, PrefixMatch) and not m.value:
                    errs = append_errors(errs, FormatError(f"prefix header value for {HEADER_URI!r} must be non-empty"))
                elif isinstance(m, RegexMatch) and not m.value:
                    errs = append_errors(errs, FormatError(f"regex header value for {HEADER_URI!r} must be non-empty"))
    return errs


def validate_destination_weight(dw: DestinationWeight) -> Optional[ValidationError]:
    return append_errors(validate_labels(dw.labels),
                         prefix_error(validate_percent(dw.weight), "weight invalid: "))


def validate_weights(routes: List[DestinationWeight]) -> Optional[ValidationError]:
    """
    目标权重之和必须恰好为 100

    只有一个目标且权重为 0 时视为 100。
    """
    total = sum(dw.weight for dw in routes)
    if len(routes) == 1 and total == 0:
        return None
    if total != 100:
        return RangeError(f"route weights total {total} (must total 100)")
    return None


def validate_http_timeout(timeout: HTTPTimeout) -> Optional[ValidationError]:
    simple = timeout.timeout_policy
    if simple is None:
        return None
    return prefix_error(validate_duration(simple.timeout), "httpTimeout invalid: ")


def validate_http_retries(retry: HTTPRetry) -> Optional[ValidationError]:
    simple = retry.retry_policy
    if simple is None:
        return None
    errs = None
    if simple.attempts < 0:
        errs = append_errors(errs, RangeError("attempts must be in range [0..]"))
    return append_errors(errs, prefix_error(validate_duration(simple.per_try_timeout), "perTryTimeout invalid: "))


def validate_delay(delay: FaultDelay) -> Optional[ValidationError]:
    """延迟注入：百分比合法；固定延迟必须是合法时长；指数延迟尚未支持"""
    errs = prefix_error(validate_float_percent(delay.percent), "percent invalid: ")
    kind = delay.http_delay_type
    fixed = kind.value if isinstance(kind, FixedDelay) else None
    errs = append_errors(errs, prefix_error(validate_duration(fixed), "fixedDelay invalid:"))
    if isinstance(kind, ExponentialDelay):
        errs = append_errors(errs,
                             prefix_error(validate_duration(kind.value), "exponentialDelay invalid: "),
                             UnsupportedError("exponentialDelay not supported yet"))
    elif kind is not None and not isinstance(kind, FixedDelay):
        errs = append_errors(errs, FormatError(f"unrecognized delay type {kind!r}"))
    return errs


def validate_abort_http_status(status: int) -> Optional[ValidationError]:
    if status < 0 or status > 600:
        return RangeError(f"invalid abort http status {status}")
    return None


def validate_abort(abort: FaultAbort) -> Optional[ValidationError]:
    errs = prefix_error(validate_float_percent(abort.percent), "percent invalid: ")
    error_type = abort.error_type
    if isinstance(error_type, GrpcStatus):
        errs = append_errors(errs, UnsupportedError("gRPC fault injection not supported yet"))
    elif isinstance(error_type, Http2Error):
        pass
    elif isinstance(error_type, HttpStatus):
        errs = append_errors(errs, validate_abort_http_status(int(error_type.value or 0)))
    elif error_type is not None:
        errs = append_errors(errs, FormatError(f"unrecognized abort error type {error_type!r}"))
    return errs


def validate_http_fault(fault: HTTPFaultInjection) -> Optional[ValidationError]:
    errs = None
    if fault.delay is not None:
        errs = append_errors(errs, validate_delay(fault.delay))
    if fault.abort is not None:
        errs = append_errors(errs, validate_abort(fault.abort))
    return errs


def validate_terminate(terminate: Terminate) -> Optional[ValidationError]:
    return prefix_error(validate_float_percent(terminate.percent), "terminate percent invalid: ")


def validate_throttle(throttle: Throttle) -> Optional[ValidationError]:
    errs = prefix_error(validate_float_percent(throttle.percent), "throttle percent invalid: ")
    if throttle.downstream_limit_bps < 0:
        errs = append_errors(errs, RangeError("downstreamLimitBps invalid"))
    if throttle.upstream_limit_bps < 0:
        errs = append_errors(errs, RangeError("upstreamLimitBps invalid"))
    if validate_duration(throttle.throttle_after_period) is not None:
        errs = append_errors(errs, FormatError("throttleAfterPeriod invalid"))
    if throttle.throttle_after_bytes < 0:
        errs = append_errors(errs, RangeError("throttleAfterBytes invalid"))
    return errs


def validate_l4_fault(fault: L4FaultInjection) -> Optional[ValidationError]:
    errs = None
    if fault.terminate is not None:
        errs = append_errors(errs, validate_terminate(fault.terminate),
                             UnsupportedError("the terminate fault not supported yet"))
    if fault.throttle is not None:
        errs = append_errors(errs, validate_throttle(fault.throttle))
    return errs


def validate_load_balancing(lb: LoadBalancing) -> Optional[ValidationError]:
    # 策略目前只是一个名字，不做进一步校验
    if lb.lb_policy is None:
        return MissingFieldError("must set load balancing if specified")
    return None


def validate_circuit_breaker(cb: CircuitBreaker) -> Optional[ValidationError]:
    simple = cb.cb_policy
    if simple is None:
        return None
    errs = None
    if simple.max_connections < 0:
        errs = append_errors(errs, RangeError("circuitBreak maxConnections must be in range [0..]"))
    if simple.http_max_pending_requests < 0:
        errs = append_errors(errs, RangeError("circuitBreaker maxPendingRequests must be in range [0..]"))
    if simple.http_max_requests < 0:
        errs = append_errors(errs, RangeError("circuitBreaker maxRequests must be in range [0..]"))
    if validate_duration(simple.sleep_window) is not None:
        errs = append_errors(errs, RangeError("circuitBreaker sleepWindow must be in range [0..]"))
    if simple.http_consecutive_errors < 0:
        errs = append_errors(errs, RangeError("circuitBreaker httpConsecutiveErrors must be in range [0..]"))
    if validate_duration(simple.http_detection_interval) is not None:
        errs = append_errors(errs, RangeError("circuitBreaker httpDetectionInterval must be in range [0..]"))
    if simple.http_max_requests_per_connection < 0:
        errs = append_errors(errs, RangeError("circuitBreaker httpMaxRequestsPerConnection must be in range [0..]"))
    return append_errors(errs, prefix_error(validate_percent(simple.http_max_ejection_percent),
                                            "circuitBreaker httpMaxEjectionPercent invalid: "))


def validate_route_rule(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """校验 v1alpha1 路由规则"""
    if not isinstance(msg, RouteRule):
        return ShapeError("cannot cast to routing rule")
    value = msg

    errs = None
    if value.destination is None:
        errs = append_errors(errs, MissingFieldError("route rule must have a destination service"))
    else:
        errs = append_errors(errs, validate_istio_service(value.destination))
        if value.destination.labels:
            errs = append_errors(errs, ConflictError("route rule destination labels must be empty"))

    # precedence 可以是任意整数
    if value.match is not None:
        errs = append_errors(errs, validate_match_condition(value.match))

    if value.rewrite is not None and not value.rewrite.uri and not value.rewrite.authority:
        errs = append_errors(errs, MissingFieldError("rewrite must specify path, host, or both"))

    if value.redirect is not None:
        if value.route:
            errs = append_errors(errs, ConflictError("rule cannot contain both route and redirect"))
        if value.http_fault is not None:
            errs = append_errors(errs, ConflictError("rule cannot contain both fault and redirect"))
        if not value.redirect.authority and not value.redirect.uri:
            errs = append_errors(errs, MissingFieldError("redirect must specify path, host, or both"))
        if value.websocket_upgrade:
            errs = append_errors(errs, ConflictError("WebSocket upgrade is not allowed on redirect rules"))
        if value.rewrite is not None:
            errs = append_errors(errs, ConflictError("rule cannot contain both rewrite and redirect"))

    if value.route:
        for dest_weight in value.route:
            errs = append_errors(errs, validate_destination_weight(dest_weight))
        errs = append_errors(errs, validate_weights(value.route))

    if value.mirror is not None:
        errs = append_errors(errs, validate_istio_service(value.mirror))

    for header, header_value in value.append_headers.items():
        errs = append_errors(errs, validate_http_header_name(header))
        if not header_value:
            errs = append_errors(errs, FormatError(f"appended header {header!r} must have a non-empty value"))

    cors = value.cors_policy
    if cors is not None:
        if cors.max_age is not None:
            errs = append_errors(errs, validate_duration(cors.max_age))
            if cors.max_age.nanos > 0:
                errs = append_errors(errs, FormatError("max_age duration is accurate only to seconds precision"))
        for header in cors.allow_headers:
            errs = append_errors(errs, validate_http_header_name(header))
        for header in cors.expose_headers:
            errs = append_errors(errs, validate_http_header_name(header))
        for method in cors.allow_methods:
            if method not in SUPPORTED_HTTP_METHODS:
                errs = append_errors(errs, FormatError(f"{method!r} is not a supported HTTP method"))

    if value.http_req_timeout is not None:
        errs = append_errors(errs, validate_http_timeout(value.http_req_timeout))
    if value.http_req_retries is not None:
        errs = append_errors(errs, validate_http_retries(value.http_req_retries))
    if value.http_fault is not None:
        errs = append_errors(errs, validate_http_fault(value.http_fault))
    if value.l4_fault is not None:
        errs = append_errors(errs, validate_l4_fault(value.l4_fault),
                             UnsupportedError("L4 faults are not implemented"))
    return errs


def validate_ingress_rule(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """校验 v1alpha1 入口规则（目前只检查目标服务）"""
    if not isinstance(msg, IngressRule):
        return ShapeError("cannot cast to ingress rule")

    if msg.destination is None:
        return MissingFieldError("ingress rule must have a destination service")
    errs = validate_istio_service(msg.destination)
    if msg.destination.labels:
        errs = append_errors(errs, ConflictError("ingress rule destination labels must be empty"))
    return errs


def validate_egress_rule_domain(domain: str) -> Optional[ValidationError]:
    """
    出口规则域名，语义同 Envoy 虚拟主机的 domain

    支持 "*.foo.com"、"*-bar.foo.com" 形式的通配，以及匹配任意主机的单独 "*"。
    通配符不匹配空串，例如 "*-bar.foo.com" 匹配 "baz-bar.foo.com" 但不匹配 "-bar.foo.com"。
    """
    if not domain:
        return FormatError("domain must not be empty string")
    if domain[0] == "*":
        domain = domain[1:]
        if not domain:
            return None
        if domain[0] in (".", "-"):
            domain = domain[1:]
    return validate_fqdn(domain)


def validate_egress_rule_service(service: str) -> Optional[ValidationError]:
    """出口规则的 service 字段是域名或 CIDR"""
    if service.count("/") == 1:
        return validate_cidr(service)
    return validate_egress_rule_domain(service)


def validate_egress_rule_destination(destination: Optional[IstioService]) -> Optional[ValidationError]:
    """出口规则的目标只允许设置 service 字段"""
    if destination is None:
        return MissingFieldError("destination of egress rule must have destination field")
    errs = None
    if destination.name:
        errs = append_errors(errs, ConflictError("destination of egress rule must not have name field"))
    if destination.namespace:
        errs = append_errors(errs, ConflictError("destination of egress rule must not have namespace field"))
    if destination.domain:
        errs = append_errors(errs, ConflictError("destination of egress rule must not have domain field"))
    if destination.labels:
        errs = append_errors(errs, ConflictError("destination of egress rule must not have labels field"))
    return append_errors(errs, validate_egress_rule_service(destination.service))


def validate_egress_rule_port(port: EgressRulePort) -> Optional[ValidationError]:
    err = validate_port(port.port)
    if err is not None:
        return err
    if parse_protocol(port.protocol) not in EGRESS_SUPPORTED_PROTOCOLS:
        return UnsupportedError("egress rule support is available only for the following protocols: "
                                f"{egress_supported_protocols()}")
    return None


def validate_egress_rule(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """校验 v1alpha1 出口规则"""
    if not isinstance(msg, EgressRule):
        return ShapeError("cannot cast to egress rule")
    rule = msg
    destination = rule.destination

    errs = validate_egress_rule_destination(destination)
    if not rule.ports:
        errs = append_errors(errs, MissingFieldError("egress rule must have a ports list"))

    cidr_destination = destination is not None and destination.service.count("/") == 1

    seen = set()
    for port in rule.ports:
        if port.port in seen:
            errs = append_errors(errs, DuplicateError(f"duplicate port: {port.port}"))
        seen.add(port.port)
        errs = append_errors(errs, validate_egress_rule_port(port))

        if cidr_destination and parse_protocol(port.protocol) not in EGRESS_SUPPORTED_TCP_PROTOCOLS:
            errs = append_errors(errs, UnsupportedError(
                "Only the following protocols can be defined for CIDR destination service notation: "
                f"{egress_supported_tcp_protocols()}. This rule - port: {port.port} protocol: {port.protocol} "
                f"destination.service: {destination.service}"))

    if rule.use_egress_proxy:
        errs = append_errors(errs, UnsupportedError("directing traffic through egress proxy is not implemented yet"))
    return errs


def validate_destination_policy(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """校验 v1alpha1 目标策略"""
    if not isinstance(msg, DestinationPolicy):
        return ShapeError("cannot cast to destination policy")
    policy = msg

    errs = None
    if policy.destination is None:
        errs = append_errors(errs, MissingFieldError("destination is required in the destination policy"))
    else:
        errs = append_errors(errs, validate_istio_service(policy.destination))
    if policy.source is not None:
        errs = append_errors(errs, validate_istio_service(policy.source))
    if policy.load_balancing is not None:
        errs = append_errors(errs, validate_load_balancing(policy.load_balancing))
    if policy.circuit_breaker is not None:
        errs = append_errors(errs, validate_circuit_breaker(policy.circuit_breaker))
    return errs
