"""
Istio 配置校验

在配置进入控制平面之前检查其内部一致性与语义合法性。
"""

from .errors import (
    ValidationError,
    MultiError,
    ConfigLoadError,
    append_errors,
    error_messages,
)
from .registry import (
    ResourceKind,
    ProtoSchema,
    ConfigDescriptor,
    Config,
    ISTIO_CONFIG_TYPES,
    validate_config,
)

__version__ = "0.1.0"

__all__ = [
    'ValidationError',
    'MultiError',
    'ConfigLoadError',
    'append_errors',
    'error_messages',
    'ResourceKind',
    'ProtoSchema',
    'ConfigDescriptor',
    'Config',
    'ISTIO_CONFIG_TYPES',
    'validate_config',
]
