"""
配置资源数据模型
"""

from .common import (
    Duration,
    Timestamp,
    Protocol,
    Hostname,
    OneofValue,
    StringMatch,
    ExactMatch,
    PrefixMatch,
    RegexMatch,
    PortSelector,
    PortNumber,
    PortName,
    FixedDelay,
    ExponentialDelay,
    HttpStatus,
    GrpcStatus,
    Http2Error,
    CorsPolicy,
    parse_protocol,
    format_nanos,
)

from .mesh import (
    MeshConfig,
    ProxyConfig,
    AuthPolicy,
    default_mesh_config,
    default_proxy_config,
)

__all__ = [
    # 基础类型
    'Duration',
    'Timestamp',
    'Protocol',
    'Hostname',
    'OneofValue',
    'StringMatch',
    'ExactMatch',
    'PrefixMatch',
    'RegexMatch',
    'PortSelector',
    'PortNumber',
    'PortName',
    'FixedDelay',
    'ExponentialDelay',
    'HttpStatus',
    'GrpcStatus',
    'Http2Error',
    'CorsPolicy',
    'parse_protocol',
    'format_nanos',

    # 网格配置
    'MeshConfig',
    'ProxyConfig',
    'AuthPolicy',
    'default_mesh_config',
    'default_proxy_config',
]
