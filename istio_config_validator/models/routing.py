"""
v1alpha1 路由资源模型（RouteRule / IngressRule / EgressRule / DestinationPolicy）
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from istio_config_validator.models.common import (
    CorsPolicy,
    Duration,
    ExponentialDelay,
    FixedDelay,
    GrpcStatus,
    Http2Error,
    HttpStatus,
    OneofValue,
    PortName,
    PortNumber,
    StringMatch,
    oneof,
)


@dataclass
class IstioService:
    """服务引用：name 与 service 二选一"""
    name: str = ""  # 短名称
    namespace: str = ""  # 命名空间
    domain: str = ""  # 域名后缀
    service: str = ""  # 完整服务名（域名或 CIDR）
    labels: Dict[str, str] = field(default_factory=dict)  # 版本标签


@dataclass
class L4MatchAttributes:
    """四层匹配属性"""
    source_subnet: List[str] = field(default_factory=list)
    destination_subnet: List[str] = field(default_factory=list)


@dataclass
class MatchRequest:
    """七层请求匹配"""
    headers: Dict[str, StringMatch] = field(default_factory=dict)


@dataclass
class MatchCondition:
    """路由规则的匹配条件"""
    source: Optional[IstioService] = None
    tcp: Optional[L4MatchAttributes] = None
    udp: Optional[L4MatchAttributes] = None
    request: Optional[MatchRequest] = None


@dataclass
class DestinationWeight:
    """带权重的目标版本"""
    destination: Optional[IstioService] = None
    labels: Dict[str, str] = field(default_factory=dict)
    weight: int = 0


@dataclass
class HTTPRedirect:
    uri: str = ""
    authority: str = ""


@dataclass
class HTTPRewrite:
    uri: str = ""
    authority: str = ""


@dataclass
class SimpleTimeoutPolicy:
    """简单超时策略"""
    timeout: Optional[Duration] = None
    override_header_name: str = ""


@dataclass
class HTTPTimeout:
    timeout_policy: Optional[SimpleTimeoutPolicy] = oneof(simple_timeout=SimpleTimeoutPolicy)


@dataclass
class SimpleRetryPolicy:
    """简单重试策略"""
    attempts: int = 0
    per_try_timeout: Optional[Duration] = None
    override_header_name: str = ""


@dataclass
class HTTPRetry:
    retry_policy: Optional[SimpleRetryPolicy] = oneof(simple_retry=SimpleRetryPolicy)


@dataclass
class FaultDelay:
    """HTTP 延迟注入，百分比为浮点数"""
    percent: float = 0.0
    http_delay_type: Optional[OneofValue] = oneof(fixed_delay=FixedDelay, exponential_delay=ExponentialDelay)
    override_header_name: str = ""


@dataclass
class FaultAbort:
    """HTTP 中止注入"""
    percent: float = 0.0
    error_type: Optional[OneofValue] = oneof(http_status=HttpStatus, grpc_status=GrpcStatus, http2_error=Http2Error)
    override_header_name: str = ""


@dataclass
class HTTPFaultInjection:
    delay: Optional[FaultDelay] = None
    abort: Optional[FaultAbort] = None


@dataclass(frozen=True)
class ThrottleAfterPeriod(OneofValue):
    """经过一段时间后开始限速"""
    value: Optional[Duration] = None


class ThrottleAfterBytes(OneofValue):
    """传输一定字节后开始限速"""


@dataclass
class Throttle:
    """四层限速注入"""
    percent: float = 0.0
    downstream_limit_bps: int = 0
    upstream_limit_bps: int = 0
    throttle_after: Optional[OneofValue] = oneof(throttle_after_period=ThrottleAfterPeriod,
                                                 throttle_after_bytes=ThrottleAfterBytes)

    @property
    def throttle_after_period(self) -> Optional[Duration]:
        if isinstance(self.throttle_after, ThrottleAfterPeriod):
            return self.throttle_after.value
        return None

    @property
    def throttle_after_bytes(self) -> float:
        if isinstance(self.throttle_after, ThrottleAfterBytes):
            return float(self.throttle_after.value or 0)
        return 0.0


@dataclass
class Terminate:
    """四层连接终止注入"""
    percent: float = 0.0


@dataclass
class L4FaultInjection:
    throttle: Optional[Throttle] = None
    terminate: Optional[Terminate] = None


@dataclass
class RouteRule:
    """v1alpha1 路由规则"""
    destination: Optional[IstioService] = None
    precedence: int = 0
    match: Optional[MatchCondition] = None
    route: List[DestinationWeight] = field(default_factory=list)
    redirect: Optional[HTTPRedirect] = None
    rewrite: Optional[HTTPRewrite] = None
    websocket_upgrade: bool = False
    http_req_timeout: Optional[HTTPTimeout] = None
    http_req_retries: Optional[HTTPRetry] = None
    http_fault: Optional[HTTPFaultInjection] = None
    l4_fault: Optional[L4FaultInjection] = None
    mirror: Optional[IstioService] = None
    cors_policy: Optional[CorsPolicy] = None
    append_headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class IngressRule:
    """v1alpha1 入口规则"""
    port: int = 0
    tls_secret: str = ""
    precedence: int = 0
    match: Optional[MatchCondition] = None
    destination: Optional[IstioService] = None
    destination_port: Optional[OneofValue] = oneof(destination_port=PortNumber,
                                                   destination_port_name=PortName)


@dataclass
class EgressRulePort:
    """出口规则端口"""
    port: int = 0
    protocol: str = ""


@dataclass
class EgressRule:
    """v1alpha1 出口规则"""
    destination: Optional[IstioService] = None
    ports: List[EgressRulePort] = field(default_factory=list)
    use_egress_proxy: bool = False


class SimpleLbPolicy(Enum):
    """内置负载均衡策略"""
    ROUND_ROBIN = "ROUND_ROBIN"
    LEAST_CONN = "LEAST_CONN"
    RANDOM = "RANDOM"


@dataclass(frozen=True)
class LbPolicyName(OneofValue):
    """内置策略名"""
    value: Optional[SimpleLbPolicy] = None


class CustomLbPolicy(OneofValue):
    """自定义策略名"""


@dataclass
class LoadBalancing:
    lb_policy: Optional[OneofValue] = oneof(name=LbPolicyName, custom=CustomLbPolicy)


@dataclass
class SimpleCircuitBreakerPolicy:
    """简单熔断策略"""
    max_connections: int = 0
    http_max_pending_requests: int = 0
    http_max_requests: int = 0
    sleep_window: Optional[Duration] = None
    http_consecutive_errors: int = 0
    http_detection_interval: Optional[Duration] = None
    http_max_requests_per_connection: int = 0
    http_max_ejection_percent: int = 0
    http_max_retries: int = 0


@dataclass
class CircuitBreaker:
    cb_policy: Optional[SimpleCircuitBreakerPolicy] = oneof(simple_cb=SimpleCircuitBreakerPolicy)


@dataclass
class DestinationPolicy:
    """v1alpha1 目标策略"""
    destination: Optional[IstioService] = None
    source: Optional[IstioService] = None
    load_balancing: Optional[LoadBalancing] = None
    circuit_breaker: Optional[CircuitBreaker] = None
