"""
v1alpha3 网络资源校验：Gateway、DestinationRule、VirtualService、ServiceEntry
"""
from typing import Optional

from istio_config_validator.errors import (
    ConflictError,
    DuplicateError,
    FormatError,
    MissingFieldError,
    ModeError,
    RangeError,
    ShapeError,
    UnsupportedError,
    ValidationError,
    append_errors,
)
from istio_config_validator.models.common import (
    ExponentialDelay,
    FixedDelay,
    GrpcStatus,
    Http2Error,
    Hostname,
    HttpStatus,
    Protocol,
    parse_protocol,
)
from istio_config_validator.models.networking import (
    MESH_GATEWAY,
    ConnectionPoolSettings,
    ConsistentHashLB,
    CorsPolicy,
    Destination,
    DestinationRule,
    FaultAbort,
    FaultDelay,
    Gateway,
    HTTPFaultInjection,
    HTTPRedirect,
    HTTPRetry,
    HTTPRewrite,
    HTTPRoute,
    LoadBalancerSettings,
    OutlierDetection,
    Port,
    Resolution,
    Server,
    ServerTLSMode,
    ServerTLSOptions,
    ServiceEntry,
    SimpleLB,
    SimpleLoadBalancer,
    Subset,
    TLSSettings,
    TLSSettingsMode,
    TrafficPolicy,
    VirtualService,
)
from istio_config_validator.validation.primitives import (
    UNIX_ADDRESS_PREFIX,
    is_dns1123_label,
    validate_cidr,
    validate_duration,
    validate_fqdn,
    validate_host,
    validate_http_header_name,
    validate_http_method,
    validate_ipv4_address,
    validate_labels,
    validate_percent,
    validate_port,
    validate_port_name,
    validate_port_selector,
    validate_protocol,
    validate_subset_name,
    validate_unix_address,
    validate_wildcard_domain,
)


def validate_gateway(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """校验网关：至少一个服务器，服务器端口名全局唯一"""
    if not isinstance(msg, Gateway):
        return ShapeError(f"cannot cast to gateway: {msg!r}")

    errs = None
    if not msg.servers:
        errs = append_errors(errs, MissingFieldError("gateway must have at least one server"))
    else:
        for server in msg.servers:
            errs = append_errors(errs, validate_server(server))

    port_names = set()
    for server in msg.servers:
        if server.port is None:
            continue
        if server.port.name in port_names:
            errs = append_errors(errs, DuplicateError(
                f"port names in servers must be unique: duplicate name {server.port.name}"))
        port_names.add(server.port.name)
    return errs


def validate_server(server: Server) -> Optional[ValidationError]:
    errs = None
    if not server.hosts:
        errs = append_errors(errs, MissingFieldError("server config must contain at least one host"))
    else:
        for host in server.hosts:
            errs = append_errors(errs, validate_host(host))
    return append_errors(errs, validate_tls_options(server.tls), validate_server_port(server.port))


def validate_server_port(port: Optional[Port]) -> Optional[ValidationError]:
    if port is None:
        return MissingFieldError("port is required")
    errs = None
    if parse_protocol(port.protocol) is Protocol.UNSUPPORTED:
        errs = append_errors(errs, FormatError(
            f"invalid protocol {port.protocol!r}, supported protocols are HTTP, HTTP2, GRPC, MONGO, REDIS, TCP"))
    if port.number > 0:
        errs = append_errors(errs, validate_port(port.number))
    if not port.name:
        errs = append_errors(errs, MissingFieldError(f"port name must be set: {port}"))
    return errs


def validate_tls_options(tls: Optional[ServerTLSOptions]) -> Optional[ValidationError]:
    """SIMPLE 需要服务器证书，MUTUAL 还需要客户端 CA"""
    if tls is None:
        return None
    errs = None
    if tls.mode is ServerTLSMode.SIMPLE:
        if not tls.server_certificate:
            errs = append_errors(errs, ModeError("SIMPLE TLS requires a server certificate"))
    elif tls.mode is ServerTLSMode.MUTUAL:
        if not tls.server_certificate:
            errs = append_errors(errs, ModeError("MUTUAL TLS requires a server certificate"))
        if not tls.ca_certificates:
            errs = append_errors(errs, ModeError("MUTUAL TLS requires a client CA bundle"))
    elif not isinstance(tls.mode, ServerTLSMode):
        errs = append_errors(errs, FormatError(f"unrecognized TLS mode {tls.mode!r}"))
    return errs


def validate_destination_rule(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    if not isinstance(msg, DestinationRule):
        return ShapeError("cannot cast to destination rule")

    errs = append_errors(validate_host(msg.host), validate_traffic_policy(msg.traffic_policy))
    for subset in msg.subsets:
        errs = append_errors(errs, validate_subset(subset))
    return errs


def validate_traffic_policy(policy: Optional[TrafficPolicy]) -> Optional[ValidationError]:
    if policy is None:
        return None
    if (policy.outlier_detection is None and policy.connection_pool is None
            and policy.load_balancer is None and policy.tls is None):
        return MissingFieldError("traffic policy must have at least one field")
    return append_errors(validate_outlier_detection(policy.outlier_detection),
                         validate_connection_pool(policy.connection_pool),
                         validate_load_balancer(policy.load_balancer),
                         validate_tls(policy.tls))


def validate_outlier_detection(outlier: Optional[OutlierDetection]) -> Optional[ValidationError]:
    if outlier is None:
        return None
    errs = None
    if outlier.base_ejection_time is not None:
        errs = append_errors(errs, validate_duration(outlier.base_ejection_time))
    if outlier.consecutive_errors < 0:
        errs = append_errors(errs, RangeError("outlier detection consecutive errors cannot be negative"))
    if outlier.interval is not None:
        errs = append_errors(errs, validate_duration(outlier.interval))
    return append_errors(errs, validate_percent(outlier.max_ejection_percent))


def validate_connection_pool(settings: Optional[ConnectionPoolSettings]) -> Optional[ValidationError]:
    if settings is None:
        return None
    if settings.http is None and settings.tcp is None:
        return MissingFieldError("connection pool must have at least one field")

    errs = None
    http = settings.http
    if http is not None:
        if http.http1_max_pending_requests < 0:
            errs = append_errors(errs, RangeError("http1 max pending requests must be non-negative"))
        if http.http2_max_requests < 0:
            errs = append_errors(errs, RangeError("http2 max requests must be non-negative"))
        if http.max_requests_per_connection < 0:
            errs = append_errors(errs, RangeError("max requests per connection must be non-negative"))
        if http.max_retries < 0:
            errs = append_errors(errs, RangeError("max retries must be non-negative"))

    tcp = settings.tcp
    if tcp is not None:
        if tcp.max_connections < 0:
            errs = append_errors(errs, RangeError("max connections must be non-negative"))
        if tcp.connect_timeout is not None:
            errs = append_errors(errs, validate_duration(tcp.connect_timeout))
    return errs


def validate_load_balancer(settings: Optional[LoadBalancerSettings]) -> Optional[ValidationError]:
    """内置算法总是合法；一致性哈希暂不做进一步检查"""
    if settings is None:
        return None
    policy = settings.lb_policy
    if isinstance(policy, SimpleLoadBalancer):
        if not isinstance(policy.value, SimpleLB):
            return FormatError(f"unrecognized simple load balancer {policy.value!r}")
        return None
    if policy is None or isinstance(policy, ConsistentHashLB):
        return None
    return FormatError(f"unrecognized load balancer policy {policy!r}")


def validate_tls(settings: Optional[TLSSettings]) -> Optional[ValidationError]:
    if settings is None:
        return None
    errs = None
    if settings.mode is TLSSettingsMode.MUTUAL:
        if not settings.client_certificate:
            errs = append_errors(errs, ModeError("client certificate required for mutual tls"))
        if not settings.private_key:
            errs = append_errors(errs, ModeError("private key required for mutual tls"))
    elif not isinstance(settings.mode, TLSSettingsMode):
        errs = append_errors(errs, FormatError(f"unrecognized TLS mode {settings.mode!r}"))
    return errs


def validate_subset(subset: Subset) -> Optional[ValidationError]:
    return append_errors(validate_subset_name(subset.name),
                         validate_labels(subset.labels),
                         validate_traffic_policy(subset.traffic_policy))


def validate_virtual_service(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """
    校验虚拟服务

    未指定网关或显式包含 "mesh" 时，规则作用于网格内 sidecar，此时不允许单独的 "*" 主机。
    主机之间（含通配重叠）不得重复。
    """
    if not isinstance(msg, VirtualService):
        return ShapeError("cannot cast to virtual service")

    errs = None
    applies_to_mesh = not msg.gateways
    for gateway in msg.gateways:
        if not is_dns1123_label(gateway):
            errs = append_errors(errs, FormatError(f"gateway is not a valid DNS1123 label: {gateway}"))
        if gateway == MESH_GATEWAY:
            applies_to_mesh = True

    if not msg.hosts:
        errs = append_errors(errs, MissingFieldError("virtual service must have at least one host"))

    all_hosts_valid = True
    for host in msg.hosts:
        err = validate_host(host)
        if err is not None:
            errs = append_errors(errs, err)
            all_hosts_valid = False
        elif applies_to_mesh and host == "*":
            errs = append_errors(errs, ConflictError(
                "wildcard host * is not allowed for virtual services bound to the mesh gateway"))
            all_hosts_valid = False

    # 字面重复与通配重叠（如 *.foo.com 与 *.com）都算重复
    if all_hosts_valid:
        hosts = [Hostname(h) for h in msg.hosts]
        for i, host_i in enumerate(hosts):
            for host_j in hosts[i + 1:]:
                if host_i.matches(host_j):
                    errs = append_errors(errs, DuplicateError(
                        f"duplicate hosts in virtual service: {host_i} & {host_j}"))

    if not msg.http and not msg.tcp:
        errs = append_errors(errs, MissingFieldError("http or tcp must be provided in virtual service"))
    for http_route in msg.http:
        errs = append_errors(errs, validate_http_route(http_route))
    # TODO: TCP 路由目前只检查存在性，目标与匹配条件尚未校验
    return errs


def validate_http_route(http: HTTPRoute) -> Optional[ValidationError]:
    """
    校验单条 HTTP 路由

    redirect 与 route、fault、rewrite、websocket 升级互斥；
    每个目标权重在 0..100，且有多个目标时总和不超过 100。
    """
    errs = None
    if http.redirect is not None:
        if http.route:
            errs = append_errors(errs, ConflictError("HTTP route cannot contain both route and redirect"))
        if http.fault is not None:
            errs = append_errors(errs, ConflictError("HTTP route cannot contain both fault and redirect"))
        if http.rewrite is not None:
            errs = append_errors(errs, ConflictError("HTTP route rule cannot contain both rewrite and redirect"))
        if http.websocket_upgrade:
            errs = append_errors(errs, ConflictError("WebSocket upgrade is not allowed on redirect rules"))
    elif not http.route:
        errs = append_errors(errs, MissingFieldError("HTTP route or redirect is required"))

    for header, value in http.append_headers.items():
        errs = append_errors(errs, validate_http_header_name(header))
        if not value:
            errs = append_errors(errs, FormatError(f"appended header {header!r} must have a non-empty value"))
    errs = append_errors(errs, validate_cors_policy(http.cors_policy))
    errs = append_errors(errs, validate_http_fault_injection(http.fault))

    for match in http.match:
        for header in match.headers:
            errs = append_errors(errs, validate_http_header_name(header))
        if match.port:
            errs = append_errors(errs, validate_port(match.port))
        errs = append_errors(errs, validate_labels(match.source_labels))

    errs = append_errors(errs,
                         validate_destination(http.mirror),
                         validate_http_redirect(http.redirect),
                         validate_http_retry(http.retries),
                         validate_http_rewrite(http.rewrite))

    total_weight = 0
    for route in http.route:
        if route.destination is None:
            errs = append_errors(errs, MissingFieldError("destination is required"))
        errs = append_errors(errs, validate_destination(route.destination), validate_percent(route.weight))
        total_weight += route.weight
    if len(http.route) > 1 and total_weight > 100:
        errs = append_errors(errs, RangeError(f"total destination weight {total_weight} > 100"))

    if http.timeout is not None:
        errs = append_errors(errs, validate_duration(http.timeout))
    return errs


def validate_cors_policy(policy: Optional[CorsPolicy]) -> Optional[ValidationError]:
    if policy is None:
        return None
    errs = None
    for method in policy.allow_methods:
        errs = append_errors(errs, validate_http_method(method))
    for header in policy.allow_headers:
        errs = append_errors(errs, validate_http_header_name(header))
    for header in policy.expose_headers:
        errs = append_errors(errs, validate_http_header_name(header))
    if policy.max_age is not None:
        errs = append_errors(errs, validate_duration(policy.max_age))
        if policy.max_age.nanos > 0:
            errs = append_errors(errs, FormatError("max_age duration is accurate only to seconds precision"))
    return errs


def validate_http_fault_injection(fault: Optional[HTTPFaultInjection]) -> Optional[ValidationError]:
    if fault is None:
        return None
    errs = None
    if fault.abort is None and fault.delay is None:
        errs = append_errors(errs, MissingFieldError("HTTP fault injection must have an abort and/or a delay"))
    return append_errors(errs,
                         validate_http_fault_injection_abort(fault.abort),
                         validate_http_fault_injection_delay(fault.delay))


def validate_http_fault_injection_abort(abort: Optional[FaultAbort]) -> Optional[ValidationError]:
    if abort is None:
        return None
    errs = validate_percent(abort.percent)
    error_type = abort.error_type
    if isinstance(error_type, GrpcStatus):
        errs = append_errors(errs, UnsupportedError("gRPC abort fault injection not supported yet"))
    elif isinstance(error_type, Http2Error):
        errs = append_errors(errs, UnsupportedError("HTTP/2 abort fault injection not supported yet"))
    elif isinstance(error_type, HttpStatus):
        errs = append_errors(errs, validate_http_status(int(error_type.value or 0)))
    elif error_type is not None:
        errs = append_errors(errs, FormatError(f"unrecognized abort error type {error_type!r}"))
    return errs


def validate_http_status(status: int) -> Optional[ValidationError]:
    if status < 0 or status > 600:
        return RangeError(f"HTTP status {status} is not in range 0-600")
    return None


def validate_http_fault_injection_delay(delay: Optional[FaultDelay]) -> Optional[ValidationError]:
    if delay is None:
        return None
    errs = validate_percent(delay.percent)
    kind = delay.http_delay_type
    if isinstance(kind, FixedDelay):
        errs = append_errors(errs, validate_duration(kind.value))
    elif isinstance(kind, ExponentialDelay):
        errs = append_errors(errs, validate_duration(kind.value),
                             UnsupportedError("exponentialDelay not supported yet"))
    elif kind is not None:
        errs = append_errors(errs, FormatError(f"unrecognized delay type {kind!r}"))
    return errs


def validate_destination(destination: Optional[Destination]) -> Optional[ValidationError]:
    if destination is None:
        return None
    errs = validate_host(destination.host)
    if destination.subset:
        errs = append_errors(errs, validate_subset_name(destination.subset))
    if destination.port is not None:
        errs = append_errors(errs, validate_port_selector(destination.port))
    return errs


def validate_http_retry(retries: Optional[HTTPRetry]) -> Optional[ValidationError]:
    if retries is None:
        return None
    errs = None
    if retries.attempts <= 0:
        errs = append_errors(errs, RangeError("attempts must be positive"))
    if retries.per_try_timeout is not None:
        errs = append_errors(errs, validate_duration(retries.per_try_timeout))
    return errs


def validate_http_redirect(redirect: Optional[HTTPRedirect]) -> Optional[ValidationError]:
    if redirect is not None and not redirect.uri and not redirect.authority:
        return MissingFieldError("redirect must specify URI, authority, or both")
    return None


def validate_http_rewrite(rewrite: Optional[HTTPRewrite]) -> Optional[ValidationError]:
    if rewrite is not None and not rewrite.uri and not rewrite.authority:
        return MissingFieldError("rewrite must specify URI, authority, or both")
    return None


def validate_service_entry(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """
    校验服务条目

    端点是否合法取决于解析模式：
      - NONE: 不允许提供端点
      - STATIC: 必须提供端点；unix:// 端点要求恰好一个服务端口且自身不带端口，
        其余端点为 IPv4 地址，端口名必须是服务条目声明过的
      - DNS: 端点地址必须是 FQDN；没有端点时每个 host 都必须是 FQDN
    """
    if not isinstance(msg, ServiceEntry):
        return ShapeError("cannot cast to service entry")
    entry = msg

    errs = None
    if not entry.hosts:
        errs = append_errors(errs, MissingFieldError("service entry must have at least one host"))
    for host in entry.hosts:
        # 不允许全通配和短名
        if host == "*" or "." not in host:
            errs = append_errors(errs, FormatError(f"invalid host {host}"))
        else:
            errs = append_errors(errs, validate_wildcard_domain(host))
    for address in entry.addresses:
        errs = append_errors(errs, validate_cidr(address))

    port_numbers = set()
    port_names = set()
    for port in entry.ports:
        if port.name in port_names:
            errs = append_errors(errs, DuplicateError(f"service entry port name {port.name!r} already defined"))
        port_names.add(port.name)
        if port.number in port_numbers:
            errs = append_errors(errs, DuplicateError(f"service entry port {port.number} already defined"))
        port_numbers.add(port.number)

    resolution = entry.resolution
    if resolution is Resolution.NONE:
        if entry.endpoints:
            errs = append_errors(errs, ModeError("no endpoints should be provided for discovery type none"))
    elif resolution is Resolution.STATIC:
        if not entry.endpoints:
            errs = append_errors(errs, ModeError(
                "endpoints must be provided if service entry discovery mode is static"))
        unix_endpoint = False
        for endpoint in entry.endpoints:
            addr = endpoint.address
            if addr.startswith(UNIX_ADDRESS_PREFIX):
                unix_endpoint = True
                errs = append_errors(errs, validate_unix_address(addr[len(UNIX_ADDRESS_PREFIX):]))
                if endpoint.ports:
                    errs = append_errors(errs, ModeError(f"unix endpoint {addr} must not include ports"))
            else:
                errs = append_errors(errs, validate_ipv4_address(addr))
                for port_name, port in endpoint.ports.items():
                    if port_name not in port_names:
                        errs = append_errors(errs, ModeError(
                            f"endpoint port {port} is not defined by the service entry"))
            errs = append_errors(errs, validate_labels(endpoint.labels))
        if unix_endpoint and len(entry.ports) != 1:
            errs = append_errors(errs, ModeError("exactly 1 service port required for unix endpoints"))
    elif resolution is Resolution.DNS:
        if not entry.endpoints:
            for host in entry.hosts:
                if validate_fqdn(host) is not None:
                    errs = append_errors(errs, ModeError(
                        "hosts must be FQDN if no endpoints are provided for discovery mode DNS"))
        for endpoint in entry.endpoints:
            errs = append_errors(errs, validate_fqdn(endpoint.address), validate_labels(endpoint.labels))
            for port_name, port in endpoint.ports.items():
                if port_name not in port_names:
                    errs = append_errors(errs, ModeError(
                        f"endpoint port {port} is not defined by the service entry"))
                errs = append_errors(errs, validate_port_name(port_name), validate_port(port))
    else:
        errs = append_errors(errs, FormatError(f"unsupported resolution type {resolution}"))

    for port in entry.ports:
        errs = append_errors(errs,
                             validate_port_name(port.name),
                             validate_protocol(port.protocol),
                             validate_port(port.number))
    return errs
