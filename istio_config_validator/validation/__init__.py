"""
各类配置资源的校验函数
"""

from .primitives import (
    validate_port,
    validate_fqdn,
    validate_wildcard_domain,
    validate_labels,
    validate_duration,
    validate_proxy_address,
    parse_jwks_uri,
)
from .routing import (
    validate_route_rule,
    validate_ingress_rule,
    validate_egress_rule,
    validate_destination_policy,
)
from .networking import (
    validate_gateway,
    validate_destination_rule,
    validate_virtual_service,
    validate_service_entry,
)
from .mesh import validate_mesh_config, validate_proxy_config
from .mixer import (
    validate_mixer_attributes,
    validate_http_api_spec,
    validate_http_api_spec_binding,
    validate_quota_spec,
    validate_quota_spec_binding,
)
from .security import (
    validate_authentication_policy,
    validate_service_role,
    validate_service_role_binding,
    validate_rbac_config,
)
from .service import (
    validate_service,
    validate_service_instance,
    validate_network_endpoint_address,
)

__all__ = [
    # 基础校验
    'validate_port',
    'validate_fqdn',
    'validate_wildcard_domain',
    'validate_labels',
    'validate_duration',
    'validate_proxy_address',
    'parse_jwks_uri',

    # v1alpha1 路由
    'validate_route_rule',
    'validate_ingress_rule',
    'validate_egress_rule',
    'validate_destination_policy',

    # v1alpha3 网络
    'validate_gateway',
    'validate_destination_rule',
    'validate_virtual_service',
    'validate_service_entry',

    # 网格配置
    'validate_mesh_config',
    'validate_proxy_config',

    # Mixer
    'validate_mixer_attributes',
    'validate_http_api_spec',
    'validate_http_api_spec_binding',
    'validate_quota_spec',
    'validate_quota_spec_binding',

    # 安全
    'validate_authentication_policy',
    'validate_service_role',
    'validate_service_role_binding',
    'validate_rbac_config',

    # 服务注册表
    'validate_service',
    'validate_service_instance',
    'validate_network_endpoint_address',
]
