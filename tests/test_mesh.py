from dataclasses import replace

from istio_config_validator.errors import MissingFieldError, ShapeError, error_messages
from istio_config_validator.models.common import Duration
from istio_config_validator.models.mesh import (
    AuthPolicy,
    MeshConfig,
    ProxyConfig,
    default_mesh_config,
    default_proxy_config,
)
from istio_config_validator.validation.mesh import validate_mesh_config, validate_proxy_config


def test_defaults_are_valid():
    assert validate_mesh_config(default_mesh_config()) is None
    assert validate_proxy_config(default_proxy_config()) is None


def test_wrong_shapes():
    assert isinstance(validate_mesh_config(default_proxy_config()), ShapeError)
    assert isinstance(validate_proxy_config(default_mesh_config()), ShapeError)


def test_empty_mesh_config():
    assert error_messages(validate_mesh_config(MeshConfig())) == [
        "invalid proxy listen port:port number 0 must be in the range 1..65535",
        "invalid connect timeout:duration: nil Duration",
        "invalid refresh delay:duration: nil Duration",
        "missing default config",
    ]


def test_mixer_addresses():
    mesh = replace(default_mesh_config(), mixer_check_server="istio-policy", mixer_report_server="istio-telemetry:x")
    assert error_messages(validate_mesh_config(mesh)) == [
        "invalid Policy Check Server address:unable to split 'istio-policy': "
        "address istio-policy: missing port in address",
        "invalid Telemetry Server address:port (x) is not a number",
    ]

    mesh = replace(default_mesh_config(), mixer_check_server="istio-policy.istio-system:9091")
    assert validate_mesh_config(mesh) is None


def test_unknown_auth_policy_is_reported():
    mesh = replace(default_mesh_config(), auth_policy="PERMISSIVE")
    assert error_messages(validate_mesh_config(mesh)) == ["unrecognized auth policy 'PERMISSIVE'"]


def test_mesh_timeouts():
    mesh = replace(default_mesh_config(), connect_timeout=Duration(seconds=31), rds_refresh_delay=Duration(seconds=601))
    assert error_messages(validate_mesh_config(mesh)) == [
        "invalid connect timeout:time 31s must be >1ms and <30s",
        "invalid refresh delay:time 10m1s must be >1s and <10m0s",
    ]


def test_default_config_errors_bubble_up():
    mesh = replace(default_mesh_config(), default_config=replace(default_proxy_config(), proxy_admin_port=0))
    assert error_messages(validate_mesh_config(mesh)) == [
        "invalid proxy admin port:port number 0 must be in the range 1..65535",
    ]


def test_proxy_required_fields():
    proxy = replace(default_proxy_config(), config_path="", binary_path="", service_cluster="", discovery_address="")
    err = validate_proxy_config(proxy)
    assert error_messages(err) == [
        "config path must be set",
        "binary path must be set",
        "service cluster must be set",
        "discovery address must be set to the proxy discovery service",
    ]
    assert all(isinstance(e, MissingFieldError) for e in err.errors)


def test_proxy_drain_and_parent():
    proxy = replace(default_proxy_config(), drain_duration=Duration(seconds=5), parent_shutdown_duration=Duration(seconds=3))
    assert error_messages(validate_proxy_config(proxy)) == [
        "invalid parent and drain time combinationparent shutdown time 3s must be greater than drain time 5s",
    ]


def test_proxy_optional_addresses():
    proxy = replace(default_proxy_config(), zipkin_address="zipkin.istio-system:9411",
                    statsd_udp_address="statsd:9125")
    assert validate_proxy_config(proxy) is None

    proxy = replace(default_proxy_config(), zipkin_address="zipkin", statsd_udp_address="statsd:abc")
    assert error_messages(validate_proxy_config(proxy)) == [
        "invalid zipkin address:unable to split 'zipkin': address zipkin: missing port in address",
        "invalid statsd udp address 'statsd:abc':port (abc) is not a number",
    ]


def test_proxy_control_plane_auth_policy():
    proxy = replace(default_proxy_config(), control_plane_auth_policy=AuthPolicy.MUTUAL_TLS)
    assert validate_proxy_config(proxy) is None

    proxy = replace(default_proxy_config(), control_plane_auth_policy="SOMETIMES")
    assert error_messages(validate_proxy_config(proxy)) == [
        "unrecognized control plane auth policy 'SOMETIMES'",
    ]


def test_empty_proxy_config_reports_everything():
    msgs = error_messages(validate_proxy_config(ProxyConfig()))
    assert "config path must be set" in msgs
    assert "invalid parent and drain time combinationinvalid drain duration:duration: nil Duration" in msgs
    assert "invalid refresh delay:duration: nil Duration" in msgs
    assert "invalid connect timeout:duration: nil Duration" in msgs
    assert msgs[-1] == "invalid proxy admin port:port number 0 must be in the range 1..65535"
