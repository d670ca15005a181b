"""
基础校验函数

每个函数只检查一个标量（或很小的固定结构），合法时返回 None，否则返回描述性的 ValidationError。
全部为纯函数，不修改输入、不做 I/O。
"""
import ipaddress
import posixpath
import re
from typing import Dict, NamedTuple, Optional, Tuple, Union
from urllib.parse import urlsplit

from istio_config_validator.errors import (
    ConflictError,
    FormatError,
    MissingFieldError,
    RangeError,
    ValidationError,
    append_errors,
    prefix_error,
)
from istio_config_validator.models.common import (
    HOUR,
    MILLISECOND,
    MINUTE,
    SECOND,
    Duration,
    PortSelector,
    Protocol,
    format_nanos,
    parse_protocol,
)

DNS1123_LABEL_MAX_LENGTH = 63
DOMAIN_MAX_LENGTH = 255

_DNS1123_LABEL_FMT = r"[a-zA-Z0-9]([-a-zA-Z0-9]*[a-zA-Z0-9])?"
# 通配前缀：单独的 "*"，以 "*-" 开头的普通标签，或普通标签
_WILDCARD_PREFIX = r"\*|(\*-)?(" + _DNS1123_LABEL_FMT + ")"
# TODO: 标签键值可以改用 k8s 的 qualified name 严格语法
_QUALIFIED_NAME_FMT = r"[-A-Za-z0-9_./]*"

_DNS1123_LABEL_RE = re.compile(_DNS1123_LABEL_FMT)
_WILDCARD_PREFIX_RE = re.compile(_WILDCARD_PREFIX)
_TAG_RE = re.compile(_QUALIFIED_NAME_FMT)
_PORT_NUMBER_RE = re.compile(r"[+-]?[0-9]+")

# 时长字段的取值窗口
DISCOVERY_REFRESH_DELAY_MIN = SECOND
DISCOVERY_REFRESH_DELAY_MAX = 10 * MINUTE
CONNECT_TIMEOUT_MIN = MILLISECOND
CONNECT_TIMEOUT_MAX = 30 * SECOND
DRAIN_TIME_MAX = HOUR
PARENT_SHUTDOWN_TIME_MAX = HOUR

UNIX_ADDRESS_PREFIX = "unix://"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

SUPPORTED_HTTP_METHODS = frozenset([
    "GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "CONNECT", "OPTIONS", "TRACE",
])

# 出口规则支持的协议，以及 CIDR 目标可用的 TCP 类协议
EGRESS_SUPPORTED_PROTOCOLS = (
    Protocol.HTTP, Protocol.HTTP2, Protocol.GRPC, Protocol.HTTPS, Protocol.TCP, Protocol.MONGO,
)
EGRESS_SUPPORTED_TCP_PROTOCOLS = (Protocol.HTTPS, Protocol.TCP, Protocol.MONGO)


def validate_port(port: int) -> Optional[ValidationError]:
    """端口号必须在 1..65535"""
    if 1 <= port <= 65535:
        return None
    return RangeError(f"port number {port} must be in the range 1..65535")


def is_dns1123_label(value: str) -> bool:
    """是否为 RFC 1123 定义的 DNS 标签"""
    return len(value) <= DNS1123_LABEL_MAX_LENGTH and _DNS1123_LABEL_RE.fullmatch(value) is not None


def is_wildcard_dns1123_label(value: str) -> bool:
    """同 is_dns1123_label，但允许单独的 '*' 及 '*-foo' 形式的通配标签"""
    return len(value) <= DNS1123_LABEL_MAX_LENGTH and _WILDCARD_PREFIX_RE.fullmatch(value) is not None


def _check_dns1123_preconditions(name: str) -> Optional[ValidationError]:
    if len(name) > DOMAIN_MAX_LENGTH:
        return FormatError(f"domain name {name!r} too long (max {DOMAIN_MAX_LENGTH})")
    if not name:
        return FormatError("empty domain name not allowed")
    return None


def _validate_dns1123_labels(domain: str) -> Optional[ValidationError]:
    for label in domain.split("."):
        if not is_dns1123_label(label):
            return FormatError(f"domain name {domain!r} invalid (label {label!r} invalid)")
    return None


def validate_fqdn(fqdn: str) -> Optional[ValidationError]:
    """校验完全限定域名"""
    return append_errors(_check_dns1123_preconditions(fqdn), _validate_dns1123_labels(fqdn))


def validate_wildcard_domain(domain: str) -> Optional[ValidationError]:
    """校验域名，仅允许第一个标签为通配标签"""
    err = _check_dns1123_preconditions(domain)
    if err is not None:
        return err
    first, dot, rest = domain.partition(".")
    if not is_wildcard_dns1123_label(first):
        return FormatError(f"domain name {domain!r} invalid (label {first!r} invalid)")
    if dot:
        return _validate_dns1123_labels(rest)
    return None


def validate_labels(labels: Optional[Dict[str, str]]) -> Optional[ValidationError]:
    """标签的键和值都必须满足 qualified name 语法"""
    errs = None
    for key, value in (labels or {}).items():
        if _TAG_RE.fullmatch(key) is None:
            errs = append_errors(errs, FormatError(f"invalid tag key: {key!r}"))
        if _TAG_RE.fullmatch(value or "") is None:
            errs = append_errors(errs, FormatError(f"invalid tag value: {value!r}"))
    return errs


def validate_http_header_name(name: str) -> Optional[ValidationError]:
    """请求头名不能为空且必须小写"""
    if not name:
        return FormatError("header name cannot be empty")
    if name.lower() != name:
        return FormatError("must be in lower case")
    return None


def validate_http_method(method: str) -> Optional[ValidationError]:
    if method not in SUPPORTED_HTTP_METHODS:
        return FormatError(f"{method!r} is not a supported HTTP method")
    return None


def validate_percent(value: int) -> Optional[ValidationError]:
    if value < 0 or value > 100:
        return RangeError(f"percentage {value} is not in range 0..100")
    return None


def validate_float_percent(value: float) -> Optional[ValidationError]:
    if value < 0.0 or value > 100.0:
        return RangeError(f"percentage {value} is not in range 0..100")
    return None


def _parse_ip(addr: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(addr)
    except ValueError:
        return None


def _is_ipv4(ip: IPAddress) -> bool:
    # IPv4 映射的 IPv6 地址也视为 IPv4
    return ip.version == 4 or getattr(ip, "ipv4_mapped", None) is not None


def validate_cidr(cidr: str) -> Optional[ValidationError]:
    """校验 a.b.c.d/xx 形式的 CIDR，只支持 IPv4"""
    addr, sep, prefix = cidr.partition("/")
    ip = _parse_ip(addr) if sep else None
    if ip is None or not prefix.isdigit() or not prefix.isascii() or int(prefix) > ip.max_prefixlen:
        return FormatError(f"{cidr} is not a valid CIDR block")
    if not _is_ipv4(ip):
        return FormatError(f"{cidr} is not a valid IPv4 address")
    return None


def validate_ipv4_address(addr: str) -> Optional[ValidationError]:
    """校验点分十进制 IPv4 地址"""
    ip = _parse_ip(addr)
    if ip is None:
        return FormatError(f"{addr} is not a valid IP")
    if not _is_ipv4(ip):
        return FormatError(f"{addr} is not a valid IPv4 address")
    return None


def validate_ipv4_subnet(subnet: str) -> Optional[ValidationError]:
    """恰好包含一个 '/' 时按 CIDR 校验，否则按 IPv4 地址校验"""
    if subnet.count("/") == 1:
        return validate_cidr(subnet)
    return validate_ipv4_address(subnet)


def validate_subnet(subnet: str) -> Optional[ValidationError]:
    # 目前只支持 IPv4
    return validate_ipv4_subnet(subnet)


def validate_host(host: str) -> Optional[ValidationError]:
    """主机既可以是通配域名也可以是 IPv4 子网；两者都不满足时同时报告两个错误"""
    err = validate_wildcard_domain(host)
    if err is None:
        return None
    err2 = validate_ipv4_subnet(host)
    if err2 is None:
        return None
    return append_errors(err, err2)


def validate_unix_address(addr: str) -> Optional[ValidationError]:
    """Unix 域套接字路径必须为绝对路径（统一使用 '/' 分隔，不依赖运行平台）"""
    if not addr:
        return FormatError("unix address must not be empty")
    if not posixpath.isabs(addr):
        return FormatError(f"{addr} is not an absolute path")
    return None


def validate_subset_name(name: str) -> Optional[ValidationError]:
    if not name:
        return MissingFieldError("subset name cannot be empty")
    if not is_dns1123_label(name):
        return FormatError(f"subnet name is invalid: {name}")
    return None


def validate_port_name(name: str) -> Optional[ValidationError]:
    if not is_dns1123_label(name):
        return FormatError(f"invalid port name: {name}")
    return None


def validate_protocol(protocol: str) -> Optional[ValidationError]:
    if parse_protocol(protocol) is Protocol.UNSUPPORTED:
        return FormatError(f"unsupported protocol: {protocol}")
    return None


def validate_port_selector(selector: Optional[PortSelector]) -> Optional[ValidationError]:
    """端口选择器是端口名或端口号之一"""
    if selector is None:
        return None
    name = selector.name
    number = selector.number
    if not name and number == 0:
        # 未设置与零值无法区分，两个错误都报告
        return append_errors(validate_subset_name(name), validate_port(number))
    if number != 0:
        return validate_port(number)
    return validate_subset_name(name)


def duration_nanos(duration: Optional[Duration]) -> int:
    """
    把线上时长解码为纳秒

    Raises:
        ValueError: 时长为空或编码非法
    """
    if duration is None:
        raise ValueError("duration: nil Duration")
    return duration.to_nanos()


def validate_duration(duration: Optional[Duration]) -> Optional[ValidationError]:
    """时长必须可解码、不小于 1ms 且精确到毫秒"""
    try:
        ns = duration_nanos(duration)
    except ValueError as e:
        return FormatError(str(e))
    if ns < MILLISECOND:
        return RangeError("duration must be greater than 1ms")
    if ns % MILLISECOND != 0:
        return FormatError("only durations to ms precision are supported")
    return None


def validate_duration_range(ns: int, min_ns: int, max_ns: int) -> Optional[ValidationError]:
    if ns > max_ns or ns < min_ns:
        return RangeError(f"time {format_nanos(ns)} must be >{format_nanos(min_ns)} and <{format_nanos(max_ns)}")
    return None


def validate_refresh_delay(refresh: Optional[Duration]) -> Optional[ValidationError]:
    """服务发现刷新间隔必须在 [1s, 10m]"""
    err = validate_duration(refresh)
    if err is not None:
        return err
    return validate_duration_range(duration_nanos(refresh), DISCOVERY_REFRESH_DELAY_MIN, DISCOVERY_REFRESH_DELAY_MAX)


def validate_connect_timeout(timeout: Optional[Duration]) -> Optional[ValidationError]:
    """连接超时必须在 [1ms, 30s]"""
    err = validate_duration(timeout)
    if err is not None:
        return err
    return validate_duration_range(duration_nanos(timeout), CONNECT_TIMEOUT_MIN, CONNECT_TIMEOUT_MAX)


def validate_parent_and_drain(drain_time: Optional[Duration],
                              parent_shutdown: Optional[Duration]) -> Optional[ValidationError]:
    """
    校验排空时长和父进程关闭时长

    两者都必须精确到秒、不超过 1 小时，且父进程关闭时长严格大于排空时长。
    """
    errs = append_errors(
        prefix_error(validate_duration(drain_time), "invalid drain duration:"),
        prefix_error(validate_duration(parent_shutdown), "invalid parent shutdown duration:"),
    )
    if errs is not None:
        return errs

    drain = duration_nanos(drain_time)
    parent = duration_nanos(parent_shutdown)

    if drain % SECOND != 0:
        errs = append_errors(errs, FormatError("drain time only supports durations to seconds precision"))
    if parent % SECOND != 0:
        errs = append_errors(errs, FormatError("parent shutdown time only supports durations to seconds precision"))
    if parent <= drain:
        errs = append_errors(errs, ConflictError(
            f"parent shutdown time {format_nanos(parent)} must be greater than drain time {format_nanos(drain)}"))
    if drain > DRAIN_TIME_MAX:
        errs = append_errors(errs, RangeError(
            f"drain time {format_nanos(drain)} must be <{format_nanos(DRAIN_TIME_MAX)}"))
    if parent > PARENT_SHUTDOWN_TIME_MAX:
        errs = append_errors(errs, RangeError(
            f"parent shutdown time {format_nanos(parent)} must be <{format_nanos(PARENT_SHUTDOWN_TIME_MAX)}"))
    return errs


def split_host_port(host_port: str) -> Tuple[str, str]:
    """
    拆分 host:port，支持 [ipv6]:port

    Raises:
        ValueError: 缺少端口或冒号过多
    """
    if host_port.startswith("["):
        end = host_port.find("]")
        if end < 0:
            raise ValueError(f"address {host_port}: missing ']' in address")
        host, rest = host_port[1:end], host_port[end + 1:]
        if not rest.startswith(":"):
            raise ValueError(f"address {host_port}: missing port in address")
        return host, rest[1:]
    idx = host_port.rfind(":")
    if idx < 0:
        raise ValueError(f"address {host_port}: missing port in address")
    host, port = host_port[:idx], host_port[idx + 1:]
    if ":" in host:
        raise ValueError(f"address {host_port}: too many colons in address")
    return host, port


def validate_proxy_address(host_addr: str) -> Optional[ValidationError]:
    """代理地址为 host:port，端口为合法数字，主机为 FQDN 或 IP"""
    try:
        host, port_text = split_host_port(host_addr)
    except ValueError as e:
        return FormatError(f"unable to split {host_addr!r}: {e}")
    if _PORT_NUMBER_RE.fullmatch(port_text) is None:
        return FormatError(f"port ({port_text}) is not a number")
    err = validate_port(int(port_text))
    if err is not None:
        return err
    if validate_fqdn(host) is not None and _parse_ip(host) is None:
        return FormatError(f"{host!r} is not a valid hostname or an IP address")
    return None


class JwksURI(NamedTuple):
    """解析后的 JWKS 地址"""
    host: str
    port: int
    use_ssl: bool


def parse_jwks_uri(jwks_uri: str) -> JwksURI:
    """
    解析 JWKS URI，只支持 http（默认 80）和 https（默认 443）

    Raises:
        ValueError: URI 非法或协议不受支持
    """
    parts = urlsplit(jwks_uri)
    if parts.scheme == "http":
        use_ssl, port = False, 80
    elif parts.scheme == "https":
        use_ssl, port = True, 443
    else:
        raise ValueError(f"URI scheme {parts.scheme!r} is not supported")
    if parts.port is not None:
        port = parts.port
    return JwksURI(host=parts.hostname or "", port=port, use_ssl=use_ssl)


def egress_supported_protocols() -> str:
    return ",".join(p.value for p in EGRESS_SUPPORTED_PROTOCOLS)


def egress_supported_tcp_protocols() -> str:
    return ",".join(p.value for p in EGRESS_SUPPORTED_TCP_PROTOCOLS)

