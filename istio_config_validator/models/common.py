"""
各类资源共用的基础类型：时长、时间戳、协议、主机名、oneof 变体
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Optional

NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

# protobuf Duration 允许的秒数范围（约 ±10000 年）
_MAX_DURATION_SECONDS = 315576000000
# 原生时长以 int64 纳秒表示
_MIN_NANOS = -(1 << 63)
_MAX_NANOS = (1 << 63) - 1

# 0001-01-01T00:00:00Z 与 10000-01-01T00:00:00Z 的 Unix 秒
_MIN_TIMESTAMP_SECONDS = -62135596800
_MAX_TIMESTAMP_SECONDS = 253402300800

_DURATION_UNITS = MappingProxyType({
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
})
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def oneof(**variants: type) -> Any:
    """
    声明 oneof 字段

    关键字为 YAML/JSON 中的兄弟键名（snake_case），值为对应的变体类型。
    字段本身保存被选中的变体实例，未设置时为 None。
    """
    return field(default=None, metadata={"oneof": variants})


@dataclass(frozen=True)
class OneofValue:
    """标量 oneof 变体的基类，值保存在 value 中"""
    value: Any = None


def format_nanos(ns: int) -> str:
    """按 Go time.Duration 的习惯格式化纳秒数，如 1h0m0s、1.5ms"""
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < SECOND:
        if u < MICROSECOND:
            return f"{sign}{u}ns"
        if u < MILLISECOND:
            return f"{sign}{_fraction(u, MICROSECOND)}µs"
        return f"{sign}{_fraction(u, MILLISECOND)}ms"
    hours, rest = divmod(u, HOUR)
    minutes, rest = divmod(rest, MINUTE)
    out = f"{_fraction(rest, SECOND)}s"
    if hours:
        out = f"{hours}h{minutes}m{out}"
    elif minutes:
        out = f"{minutes}m{out}"
    return sign + out


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    width = len(str(unit)) - 1
    return f"{whole}.{str(frac).rjust(width, '0').rstrip('0')}"


@dataclass(frozen=True)
class Duration:
    """protobuf Duration 的线上表示：秒 + 纳秒，两者符号一致"""
    seconds: int = 0
    nanos: int = 0

    @classmethod
    def from_nanos(cls, ns: int) -> "Duration":
        seconds = abs(ns) // SECOND
        nanos = abs(ns) % SECOND
        if ns < 0:
            return cls(-seconds, -nanos)
        return cls(seconds, nanos)

    @classmethod
    def parse(cls, text: str) -> "Duration":
        """
        解析时长字符串，支持 "1.5s"、"100ms"、"1h2m3s" 等写法

        Raises:
            ValueError: 无法解析时
        """
        s = text.strip()
        sign = 1
        if s[:1] in ("+", "-"):
            sign = -1 if s[0] == "-" else 1
            s = s[1:]
        if s == "0":
            return cls()
        if not s:
            raise ValueError(f"invalid duration {text!r}")
        total = 0
        pos = 0
        while pos < len(s):
            m = _DURATION_PART.match(s, pos)
            if m is None:
                raise ValueError(f"invalid duration {text!r}")
            number, unit = m.groups()
            whole, _, frac = number.partition(".")
            scale = _DURATION_UNITS[unit]
            total += int(whole or "0") * scale
            if frac:
                total += int(frac) * scale // (10 ** len(frac))
            pos = m.end()
        return cls.from_nanos(sign * total)

    def to_nanos(self) -> int:
        """
        解码为原生时长（纳秒）

        Raises:
            ValueError: 秒/纳秒越界、符号不一致或超出 int64 纳秒范围
        """
        if self.seconds < -_MAX_DURATION_SECONDS or self.seconds > _MAX_DURATION_SECONDS:
            raise ValueError(f"duration: {self}: seconds out of range")
        if self.nanos <= -SECOND or self.nanos >= SECOND:
            raise ValueError(f"duration: {self}: nanos out of range")
        if (self.seconds < 0 < self.nanos) or (self.nanos < 0 < self.seconds):
            raise ValueError(f"duration: {self}: seconds and nanos have different signs")
        ns = self.seconds * SECOND + self.nanos
        if ns < _MIN_NANOS or ns > _MAX_NANOS:
            raise ValueError(f"duration: {self} is out of range for time.Duration")
        return ns

    def __str__(self) -> str:
        return f"seconds:{self.seconds} nanos:{self.nanos}"


@dataclass(frozen=True)
class Timestamp:
    """protobuf Timestamp：Unix 秒 + 非负纳秒"""
    seconds: int = 0
    nanos: int = 0

    def check(self) -> None:
        if self.seconds < _MIN_TIMESTAMP_SECONDS:
            raise ValueError(f"timestamp: {self} before 0001-01-01")
        if self.seconds >= _MAX_TIMESTAMP_SECONDS:
            raise ValueError(f"timestamp: {self} after 10000-01-01")
        if self.nanos < 0 or self.nanos >= SECOND:
            raise ValueError(f"timestamp: {self}: nanos not in range [0, 1e9)")

    def __str__(self) -> str:
        return f"seconds:{self.seconds} nanos:{self.nanos}"


class Protocol(Enum):
    """服务端口协议"""
    GRPC = "GRPC"
    HTTP = "HTTP"
    HTTP2 = "HTTP2"
    HTTPS = "HTTPS"
    TCP = "TCP"
    UDP = "UDP"
    MONGO = "Mongo"
    REDIS = "Redis"
    UNSUPPORTED = "UnsupportedProtocol"

    def is_http(self) -> bool:
        return self in (Protocol.HTTP, Protocol.HTTP2, Protocol.GRPC)

    def is_tcp(self) -> bool:
        return self in (Protocol.TCP, Protocol.HTTPS, Protocol.MONGO, Protocol.REDIS)


# 协议名（小写）到协议的只读映射
PROTOCOL_NAMES = MappingProxyType({
    "tcp": Protocol.TCP,
    "udp": Protocol.UDP,
    "grpc": Protocol.GRPC,
    "http": Protocol.HTTP,
    "http2": Protocol.HTTP2,
    "https": Protocol.HTTPS,
    "mongo": Protocol.MONGO,
    "redis": Protocol.REDIS,
})


def parse_protocol(name: str) -> Protocol:
    """协议名不区分大小写，未知协议返回 Protocol.UNSUPPORTED"""
    return PROTOCOL_NAMES.get((name or "").lower(), Protocol.UNSUPPORTED)


class Hostname(str):
    """主机名，可带首标签通配符"""

    def matches(self, other: str) -> bool:
        """
        判断两个主机名是否重叠

        *.foo.com 与 bar.foo.com 匹配；两个通配主机名中较短的后缀被较长的包含即匹配。
        """
        if not self and not other:
            return True
        if not self or not other:
            return False
        h_wild = self[0] == "*"
        o_wild = other[0] == "*"
        if h_wild and not o_wild:
            return other.endswith(self[1:])
        if o_wild and not h_wild:
            return self.endswith(other[1:])
        if h_wild and o_wild:
            if len(self) < len(other):
                return other[1:].endswith(self[1:])
            return self[1:].endswith(other[1:])
        return str(self) == str(other)


# StringMatch 的三种匹配方式
class ExactMatch(OneofValue):
    """精确匹配"""


class PrefixMatch(OneofValue):
    """前缀匹配"""


class RegexMatch(OneofValue):
    """正则匹配"""


@dataclass
class StringMatch:
    """字符串匹配条件，match_type 为 Exact/Prefix/Regex 之一"""
    match_type: Optional[OneofValue] = oneof(exact=ExactMatch, prefix=PrefixMatch, regex=RegexMatch)


# 端口选择器：端口号或端口名
class PortNumber(OneofValue):
    """按端口号选择"""


class PortName(OneofValue):
    """按端口名选择"""


@dataclass
class PortSelector:
    """端口选择器"""
    port: Optional[OneofValue] = oneof(number=PortNumber, name=PortName)

    @property
    def number(self) -> int:
        return int(self.port.value or 0) if isinstance(self.port, PortNumber) else 0

    @property
    def name(self) -> str:
        return str(self.port.value or "") if isinstance(self.port, PortName) else ""


# 故障注入延迟/中止的变体（v1alpha1 与 v1alpha3 共用）
@dataclass(frozen=True)
class FixedDelay(OneofValue):
    """固定延迟"""
    value: Optional[Duration] = None


@dataclass(frozen=True)
class ExponentialDelay(OneofValue):
    """指数延迟（尚未支持）"""
    value: Optional[Duration] = None


class HttpStatus(OneofValue):
    """以 HTTP 状态码中止"""


class GrpcStatus(OneofValue):
    """以 gRPC 状态中止（尚未支持）"""


class Http2Error(OneofValue):
    """以 HTTP/2 错误中止（尚未支持）"""


@dataclass
class CorsPolicy:
    """跨域策略"""
    allow_origin: List[str] = field(default_factory=list)
    allow_methods: List[str] = field(default_factory=list)
    allow_headers: List[str] = field(default_factory=list)
    expose_headers: List[str] = field(default_factory=list)
    max_age: Optional[Duration] = None
    allow_credentials: Optional[bool] = None


Labels = Dict[str, str]
