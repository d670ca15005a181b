"""
网格全局配置与代理配置模型，以及控制平面使用的默认值
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from istio_config_validator.models.common import Duration


class AuthPolicy(Enum):
    """网格内服务间认证策略"""
    NONE = "NONE"
    MUTUAL_TLS = "MUTUAL_TLS"


class IngressControllerMode(Enum):
    OFF = "OFF"
    DEFAULT = "DEFAULT"
    STRICT = "STRICT"


@dataclass
class ProxyConfig:
    """sidecar 代理配置"""
    config_path: str = ""
    binary_path: str = ""
    service_cluster: str = ""
    drain_duration: Optional[Duration] = None
    parent_shutdown_duration: Optional[Duration] = None
    discovery_address: str = ""
    discovery_refresh_delay: Optional[Duration] = None
    zipkin_address: str = ""
    connect_timeout: Optional[Duration] = None
    statsd_udp_address: str = ""
    proxy_admin_port: int = 0
    availability_zone: str = ""
    control_plane_auth_policy: AuthPolicy = AuthPolicy.NONE
    custom_config_file: str = ""
    stat_name_length: int = 0
    concurrency: int = 0


@dataclass
class MeshConfig:
    """网格全局配置"""
    mixer_check_server: str = ""
    mixer_report_server: str = ""
    disable_policy_checks: bool = False
    proxy_listen_port: int = 0
    proxy_http_port: int = 0
    connect_timeout: Optional[Duration] = None
    ingress_class: str = ""
    ingress_service: str = ""
    ingress_controller_mode: IngressControllerMode = IngressControllerMode.OFF
    auth_policy: AuthPolicy = AuthPolicy.NONE
    rds_refresh_delay: Optional[Duration] = None
    enable_tracing: bool = False
    access_log_file: str = ""
    default_config: Optional[ProxyConfig] = None


def default_proxy_config() -> ProxyConfig:
    """控制平面内置的默认代理配置"""
    return ProxyConfig(
        config_path="/etc/istio/proxy",
        binary_path="/usr/local/bin/envoy",
        service_cluster="istio-proxy",
        drain_duration=Duration(seconds=2),
        parent_shutdown_duration=Duration(seconds=3),
        discovery_address="istio-pilot:15007",
        discovery_refresh_delay=Duration(seconds=1),
        zipkin_address="",
        connect_timeout=Duration(seconds=1),
        statsd_udp_address="",
        proxy_admin_port=15000,
        control_plane_auth_policy=AuthPolicy.NONE,
        custom_config_file="",
        concurrency=0,
    )


def default_mesh_config() -> MeshConfig:
    """控制平面内置的默认网格配置"""
    return MeshConfig(
        mixer_check_server="",
        mixer_report_server="",
        disable_policy_checks=False,
        proxy_listen_port=15001,
        connect_timeout=Duration(seconds=1),
        ingress_class="istio",
        ingress_service="istio-ingress",
        ingress_controller_mode=IngressControllerMode.STRICT,
        auth_policy=AuthPolicy.NONE,
        rds_refresh_delay=Duration(seconds=1),
        enable_tracing=True,
        access_log_file="/dev/stdout",
        default_config=default_proxy_config(),
    )
