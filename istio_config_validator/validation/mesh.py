"""
网格全局配置与代理配置校验
"""
from typing import Optional

from istio_config_validator.errors import (
    FormatError,
    MissingFieldError,
    ShapeError,
    ValidationError,
    append_errors,
    prefix_error,
)
from istio_config_validator.models.mesh import AuthPolicy, MeshConfig, ProxyConfig
from istio_config_validator.validation.primitives import (
    validate_connect_timeout,
    validate_parent_and_drain,
    validate_port,
    validate_proxy_address,
    validate_refresh_delay,
)


def validate_mesh_config(mesh: object) -> Optional[ValidationError]:
    """校验网格全局配置，默认代理配置一并校验"""
    if not isinstance(mesh, MeshConfig):
        return ShapeError("cannot cast to mesh config")

    errs = None
    if mesh.mixer_check_server:
        errs = append_errors(errs, prefix_error(validate_proxy_address(mesh.mixer_check_server),
                                                "invalid Policy Check Server address:"))
    if mesh.mixer_report_server:
        errs = append_errors(errs, prefix_error(validate_proxy_address(mesh.mixer_report_server),
                                                "invalid Telemetry Server address:"))

    errs = append_errors(errs,
                         prefix_error(validate_port(mesh.proxy_listen_port), "invalid proxy listen port:"),
                         prefix_error(validate_connect_timeout(mesh.connect_timeout), "invalid connect timeout:"))

    if not isinstance(mesh.auth_policy, AuthPolicy):
        errs = append_errors(errs, FormatError(f"unrecognized auth policy {str(mesh.auth_policy)!r}"))

    errs = append_errors(errs, prefix_error(validate_refresh_delay(mesh.rds_refresh_delay), "invalid refresh delay:"))

    if mesh.default_config is None:
        errs = append_errors(errs, MissingFieldError("missing default config"))
    else:
        errs = append_errors(errs, validate_proxy_config(mesh.default_config))
    return errs


def validate_proxy_config(config: object) -> Optional[ValidationError]:
    """
    校验代理配置

    发现服务地址必填（双向 TLS 依赖 CDS）；其余地址只在设置时校验。
    """
    if not isinstance(config, ProxyConfig):
        return ShapeError("cannot cast to proxy config")

    errs = None
    if not config.config_path:
        errs = append_errors(errs, MissingFieldError("config path must be set"))
    if not config.binary_path:
        errs = append_errors(errs, MissingFieldError("binary path must be set"))
    if not config.service_cluster:
        errs = append_errors(errs, MissingFieldError("service cluster must be set"))

    errs = append_errors(
        errs,
        prefix_error(validate_parent_and_drain(config.drain_duration, config.parent_shutdown_duration),
                     "invalid parent and drain time combination"),
        prefix_error(validate_refresh_delay(config.discovery_refresh_delay), "invalid refresh delay:"),
    )

    if not config.discovery_address:
        errs = append_errors(errs, MissingFieldError("discovery address must be set to the proxy discovery service"))
    else:
        errs = append_errors(errs, prefix_error(validate_proxy_address(config.discovery_address),
                                                "invalid discovery address:"))

    if config.zipkin_address:
        errs = append_errors(errs, prefix_error(validate_proxy_address(config.zipkin_address),
                                                "invalid zipkin address:"))

    errs = append_errors(errs, prefix_error(validate_connect_timeout(config.connect_timeout),
                                            "invalid connect timeout:"))

    if config.statsd_udp_address:
        errs = append_errors(errs, prefix_error(validate_proxy_address(config.statsd_udp_address),
                                                f"invalid statsd udp address {config.statsd_udp_address!r}:"))

    errs = append_errors(errs, prefix_error(validate_port(config.proxy_admin_port), "invalid proxy admin port:"))

    if not isinstance(config.control_plane_auth_policy, AuthPolicy):
        errs = append_errors(errs, FormatError(
            f"unrecognized control plane auth policy {str(config.control_plane_auth_policy)!r}"))
    return errs
