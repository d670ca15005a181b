from dataclasses import replace

import pytest

from istio_config_validator.errors import ShapeError, error_messages
from istio_config_validator.models import mesh, networking, rbac
from istio_config_validator.registry import (
    GATEWAY,
    ISTIO_CONFIG_TYPES,
    MESSAGE_CLASSES,
    VALIDATORS,
    VIRTUAL_SERVICE,
    Config,
    ConfigDescriptor,
    ResourceKind,
    parse_kind,
    validate_config,
)


def test_builtin_descriptor_is_consistent():
    assert ISTIO_CONFIG_TYPES.validate() is None
    assert len(ISTIO_CONFIG_TYPES) == 17


def test_every_kind_has_a_validator_and_message_class():
    for kind in ResourceKind:
        assert kind in VALIDATORS
        assert kind in MESSAGE_CLASSES


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        VALIDATORS[ResourceKind.GATEWAY] = None


def test_lookup():
    assert ISTIO_CONFIG_TYPES.get_by_type("virtual-service") is VIRTUAL_SERVICE
    assert ISTIO_CONFIG_TYPES.get_by_type("no-such-type") is None
    assert ISTIO_CONFIG_TYPES.get_by_kind(ResourceKind.GATEWAY) is GATEWAY
    assert ISTIO_CONFIG_TYPES.get_by_kind(ResourceKind.MESH_CONFIG) is None
    assert "route-rule" in ISTIO_CONFIG_TYPES.types()


def test_api_version():
    assert VIRTUAL_SERVICE.api_group == "networking.istio.io"
    assert VIRTUAL_SERVICE.api_version == "networking.istio.io/v1alpha3"
    route_rule = ISTIO_CONFIG_TYPES.get_by_kind(ResourceKind.ROUTE_RULE)
    assert route_rule.api_version == "config.istio.io/v1alpha2"


def test_descriptor_detects_duplicates():
    descriptor = ConfigDescriptor((GATEWAY, GATEWAY))
    assert error_messages(descriptor.validate()) == [
        "duplicate type: 'gateway'",
        "duplicate message type: 'istio.networking.v1alpha3.Gateway'",
    ]


def test_mesh_policy_shares_message_with_namespace_policy():
    # 作用域不同，消息名可以相同
    mesh_policy = ISTIO_CONFIG_TYPES.get_by_kind(ResourceKind.AUTHENTICATION_MESH_POLICY)
    policy = ISTIO_CONFIG_TYPES.get_by_kind(ResourceKind.AUTHENTICATION_POLICY)
    assert mesh_policy.message_name == policy.message_name
    assert mesh_policy.cluster_scoped and not policy.cluster_scoped
    assert ConfigDescriptor((policy, mesh_policy)).validate() is None


def test_descriptor_detects_invalid_names_and_messages():
    bad = replace(GATEWAY, type="Bad_Type", plural="Bad_Plural", message_name="istio.networking.v1alpha3.Nope")
    assert error_messages(ConfigDescriptor((bad,)).validate()) == [
        "invalid type: 'Bad_Type'",
        "invalid plural: 'Bad_Type'",
        "cannot discover proto message type: 'istio.networking.v1alpha3.Nope'",
    ]


@pytest.mark.parametrize(
    "text, kind",
    [("VirtualService", ResourceKind.VIRTUAL_SERVICE), ("MeshPolicy", ResourceKind.AUTHENTICATION_MESH_POLICY),
     ("Policy", ResourceKind.AUTHENTICATION_POLICY), ("Deployment", None)],
)
def test_parse_kind(text, kind):
    assert parse_kind(text) is kind


def test_config_key():
    assert Config(ResourceKind.GATEWAY, "gw", "default").key == "Gateway/default/gw"
    assert Config(ResourceKind.MESH_CONFIG, "mesh").key == "MeshConfig/mesh"


class TestValidateConfig:

    def test_dispatches_by_kind(self):
        gw = networking.Gateway()
        cfg = Config(ResourceKind.GATEWAY, "gw", "default", gw)
        assert error_messages(validate_config(cfg)) == ["gateway must have at least one server"]

    def test_kind_and_spec_mismatch_is_shape_error(self):
        cfg = Config(ResourceKind.GATEWAY, "gw", "default", networking.VirtualService())
        assert isinstance(validate_config(cfg), ShapeError)

    def test_mesh_config_ignores_name(self):
        cfg = Config(ResourceKind.MESH_CONFIG, "mesh", "", mesh.default_mesh_config())
        assert validate_config(cfg) is None
        assert VALIDATORS[ResourceKind.MESH_CONFIG].__name__ == "validate_mesh_config"

    def test_namespace_is_forwarded(self):
        cfg = Config(ResourceKind.RBAC_CONFIG, "default", "", rbac.RbacConfig(mode=rbac.RbacMode.ON))
        assert validate_config(cfg) is None

    def test_unknown_kind(self):
        err = validate_config(Config("Deployment", "d", "default"))
        assert isinstance(err, ShapeError)
        assert err.message == "unrecognized config kind 'Deployment'"
