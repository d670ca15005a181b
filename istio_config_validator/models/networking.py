"""
v1alpha3 网络资源模型（Gateway / DestinationRule / VirtualService / ServiceEntry）
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
    PortSelector,
    StringMatch,
    oneof,
)

# 绑定到网格内所有 sidecar 的保留网关名
MESH_GATEWAY = "mesh"


@dataclass
class Port:
    """服务端口"""
    number: int = 0  # 端口号
    protocol: str = ""  # 协议名
    name: str = ""  # 端口名


class ServerTLSMode(Enum):
    """网关服务器 TLS 模式"""
    PASSTHROUGH = "PASSTHROUGH"
    SIMPLE = "SIMPLE"
    MUTUAL = "MUTUAL"


@dataclass
class ServerTLSOptions:
    https_redirect: bool = False
    mode: ServerTLSMode = ServerTLSMode.PASSTHROUGH
    server_certificate: str = ""
    private_key: str = ""
    ca_certificates: str = ""
    subject_alt_names: List[str] = field(default_factory=list)


@dataclass
class Server:
    """网关上的一个监听服务器"""
    port: Optional[Port] = None
    hosts: List[str] = field(default_factory=list)
    tls: Optional[ServerTLSOptions] = None


@dataclass
class Gateway:
    servers: List[Server] = field(default_factory=list)
    selector: Dict[str, str] = field(default_factory=dict)


class SimpleLB(Enum):
    ROUND_ROBIN = "ROUND_ROBIN"
    LEAST_CONN = "LEAST_CONN"
    RANDOM = "RANDOM"
    PASSTHROUGH = "PASSTHROUGH"


@dataclass(frozen=True)
class SimpleLoadBalancer(OneofValue):
    """内置负载均衡算法"""
    value: Optional[SimpleLB] = None


@dataclass
class ConsistentHashLB:
    """一致性哈希负载均衡"""
    http_header: str = ""
    minimum_ring_size: int = 0


@dataclass
class LoadBalancerSettings:
    lb_policy: Optional[object] = oneof(simple=SimpleLoadBalancer, consistent_hash=ConsistentHashLB)


@dataclass
class TCPSettings:
    max_connections: int = 0
    connect_timeout: Optional[Duration] = None


@dataclass
class HTTPSettings:
    http1_max_pending_requests: int = 0
    http2_max_requests: int = 0
    max_requests_per_connection: int = 0
    max_retries: int = 0


@dataclass
class ConnectionPoolSettings:
    tcp: Optional[TCPSettings] = None
    http: Optional[HTTPSettings] = None


@dataclass
class OutlierDetection:
    consecutive_errors: int = 0
    interval: Optional[Duration] = None
    base_ejection_time: Optional[Duration] = None
    max_ejection_percent: int = 0


class TLSSettingsMode(Enum):
    """上游连接 TLS 模式"""
    DISABLE = "DISABLE"
    SIMPLE = "SIMPLE"
    MUTUAL = "MUTUAL"
    ISTIO_MUTUAL = "ISTIO_MUTUAL"


@dataclass
class TLSSettings:
    mode: TLSSettingsMode = TLSSettingsMode.DISABLE
    client_certificate: str = ""
    private_key: str = ""
    ca_certificates: str = ""
    subject_alt_names: List[str] = field(default_factory=list)
    sni: str = ""


@dataclass
class TrafficPolicy:
    load_balancer: Optional[LoadBalancerSettings] = None
    connection_pool: Optional[ConnectionPoolSettings] = None
    outlier_detection: Optional[OutlierDetection] = None
    tls: Optional[TLSSettings] = None


@dataclass
class Subset:
    """服务子集"""
    name: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    traffic_policy: Optional[TrafficPolicy] = None


@dataclass
class DestinationRule:
    host: str = ""
    traffic_policy: Optional[TrafficPolicy] = None
    subsets: List[Subset] = field(default_factory=list)


@dataclass
class Destination:
    """路由目标"""
    host: str = ""
    subset: str = ""
    port: Optional[PortSelector] = None


@dataclass
class DestinationWeight:
    destination: Optional[Destination] = None
    weight: int = 0


@dataclass
class HTTPMatchRequest:
    uri: Optional[StringMatch] = None
    scheme: Optional[StringMatch] = None
    method: Optional[StringMatch] = None
    authority: Optional[StringMatch] = None
    headers: Dict[str, StringMatch] = field(default_factory=dict)
    port: int = 0
    source_labels: Dict[str, str] = field(default_factory=dict)
    gateways: List[str] = field(default_factory=list)


@dataclass
class HTTPRedirect:
    uri: str = ""
    authority: str = ""


@dataclass
class HTTPRewrite:
    uri: str = ""
    authority: str = ""


@dataclass
class HTTPRetry:
    attempts: int = 0
    per_try_timeout: Optional[Duration] = None


@dataclass
class FaultDelay:
    """HTTP 延迟注入，百分比为整数"""
    percent: int = 0
    http_delay_type: Optional[OneofValue] = oneof(fixed_delay=FixedDelay, exponential_delay=ExponentialDelay)


@dataclass
class FaultAbort:
    percent: int = 0
    error_type: Optional[OneofValue] = oneof(http_status=HttpStatus, grpc_status=GrpcStatus, http2_error=Http2Error)


@dataclass
class HTTPFaultInjection:
    delay: Optional[FaultDelay] = None
    abort: Optional[FaultAbort] = None


@dataclass
class HTTPRoute:
    match: List[HTTPMatchRequest] = field(default_factory=list)
    route: List[DestinationWeight] = field(default_factory=list)
    redirect: Optional[HTTPRedirect] = None
    rewrite: Optional[HTTPRewrite] = None
    websocket_upgrade: bool = False
    timeout: Optional[Duration] = None
    retries: Optional[HTTPRetry] = None
    fault: Optional[HTTPFaultInjection] = None
    mirror: Optional[Destination] = None
    cors_policy: Optional[CorsPolicy] = None
    append_headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class L4MatchAttributes:
    destination_subnets: List[str] = field(default_factory=list)
    port: int = 0
    source_subnet: str = ""
    source_labels: Dict[str, str] = field(default_factory=dict)
    gateways: List[str] = field(default_factory=list)


@dataclass
class TCPRoute:
    match: List[L4MatchAttributes] = field(default_factory=list)
    route: List[DestinationWeight] = field(default_factory=list)


@dataclass
class VirtualService:
    hosts: List[str] = field(default_factory=list)
    gateways: List[str] = field(default_factory=list)
    http: List[HTTPRoute] = field(default_factory=list)
    tcp: List[TCPRoute] = field(default_factory=list)


class ServiceEntryLocation(Enum):
    MESH_EXTERNAL = "MESH_EXTERNAL"
    MESH_INTERNAL = "MESH_INTERNAL"


class Resolution(Enum):
    """服务条目的端点发现方式"""
    NONE = "NONE"
    STATIC = "STATIC"
    DNS = "DNS"


@dataclass
class ServiceEntryEndpoint:
    """服务条目端点"""
    address: str = ""  # IPv4、FQDN 或 unix:// 路径
    ports: Dict[str, int] = field(default_factory=dict)  # 端口名 -> 端口号
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class ServiceEntry:
    hosts: List[str] = field(default_factory=list)
    addresses: List[str] = field(default_factory=list)
    ports: List[Port] = field(default_factory=list)
    location: ServiceEntryLocation = ServiceEntryLocation.MESH_EXTERNAL
    resolution: Resolution = Resolution.NONE
    endpoints: List[ServiceEntryEndpoint] = field(default_factory=list)
