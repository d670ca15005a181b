import pytest

from istio_config_validator.errors import DuplicateError, ShapeError, UnsupportedError, error_messages
from istio_config_validator.models.authn import (
    Jwt,
    MutualTls,
    OriginAuthenticationMethod,
    PeerAuthenticationMethod,
    Policy,
    TargetSelector,
)
from istio_config_validator.models.common import PortNumber, PortSelector
from istio_config_validator.models.rbac import (
    AccessRule,
    Constraint,
    RbacConfig,
    RbacMode,
    RoleRef,
    ServiceRole,
    ServiceRoleBinding,
    Subject,
)
from istio_config_validator.validation.security import (
    validate_authentication_policy,
    validate_jwt,
    validate_rbac_config,
    validate_service_role,
    validate_service_role_binding,
)


def jwt(issuer="https://secure.example.com", **kw):
    return Jwt(issuer=issuer, **kw)


class TestAuthenticationPolicy:

    def test_namespace_default_policy(self):
        policy = Policy(peers=[PeerAuthenticationMethod(MutualTls())])
        assert validate_authentication_policy("default", "bookinfo", policy) is None

    def test_targeted_policy(self):
        policy = Policy(
            targets=[TargetSelector(name="reviews", ports=[PortSelector(PortNumber(9080))])],
            origins=[OriginAuthenticationMethod(jwt=jwt(jwks_uri="https://example.com/.well-known/jwks.json"))],
        )
        assert validate_authentication_policy("reviews-jwt", "bookinfo", policy) is None

    def test_name_and_targets_must_agree(self):
        assert error_messages(validate_authentication_policy("custom", "bookinfo", Policy())) == [
            "authentication policy with no target rules  must be named 'default', found 'custom'",
        ]
        policy = Policy(targets=[TargetSelector(name="reviews")])
        assert error_messages(validate_authentication_policy("default", "bookinfo", policy)) == [
            "authentication policy with name 'default' must not have any target rules",
        ]

    def test_cluster_scoped(self):
        assert validate_authentication_policy("default", "", Policy()) is None
        policy = Policy(targets=[TargetSelector(name="reviews")])
        assert error_messages(validate_authentication_policy("mesh", "", policy)) == [
            "cluster-scoped authentication policy name must be 'default', found 'mesh'",
            "cluster-scoped authentication policy must not have targets",
        ]

    def test_bad_target(self):
        policy = Policy(targets=[TargetSelector(name="reviews.bookinfo", ports=[PortSelector()])])
        assert error_messages(validate_authentication_policy("t", "bookinfo", policy)) == [
            "target name 'reviews.bookinfo' must be a valid label",
            "subset name cannot be empty",
            "port number 0 must be in the range 1..65535",
        ]

    def test_duplicate_issuers_across_peers_and_origins(self):
        policy = Policy(
            peers=[PeerAuthenticationMethod(jwt()), PeerAuthenticationMethod(jwt())],
            origins=[OriginAuthenticationMethod(jwt=jwt()), OriginAuthenticationMethod()],
        )
        err = validate_authentication_policy("default", "bookinfo", policy)
        assert error_messages(err) == [
            "jwt with issuer 'https://secure.example.com' already defined",
            "jwt with issuer 'https://secure.example.com' already defined",
            "origin authentication method must set jwt",
        ]
        assert isinstance(err.errors[0], DuplicateError)

    def test_wrong_shape(self):
        assert isinstance(validate_authentication_policy("default", "ns", ServiceRole()), ShapeError)


@pytest.mark.parametrize(
    "token, expected",
    [
        (jwt(), []),
        (jwt(issuer=""), ["issuer must be set"]),
        (jwt(audiences=["bookstore", ""]), ["audience must be non-empty string"]),
        (jwt(jwks_uri="ftp://example.com/keys"), ["URI scheme 'ftp' is not supported"]),
        (jwt(jwt_headers=[""], jwt_params=[""]),
         ["location header must be non-empty string", "location query must be non-empty string"]),
    ],
)
def test_validate_jwt(token, expected):
    assert error_messages(validate_jwt(token)) == expected


class TestServiceRole:

    def test_valid(self):
        role = ServiceRole(rules=[AccessRule(services=["*"], methods=["GET"],
                                             constraints=[Constraint(key="destination.labels[version]",
                                                                     values=["v1"])])])
        assert validate_service_role("r", "default", role) is None

    def test_errors(self):
        assert error_messages(validate_service_role("r", "default", ServiceRole())) == [
            "at least 1 rule must be specified",
        ]
        role = ServiceRole(rules=[AccessRule(services=["*"], methods=["GET"]),
                                  AccessRule(constraints=[Constraint()])])
        assert error_messages(validate_service_role("r", "default", role)) == [
            "at least 1 service must be specified for rule 1",
            "at least 1 method must be specified for rule 1",
            "key cannot be empty for constraint 0 in rule 1",
            "at least 1 value must be specified for constraint 0 in rule 1",
        ]


class TestServiceRoleBinding:

    def test_valid(self):
        binding = ServiceRoleBinding(subjects=[Subject(user="alice"), Subject(properties={"service": "reviews"})],
                                     role_ref=RoleRef(kind="ServiceRole", name="reader"))
        assert validate_service_role_binding("b", "default", binding) is None

    def test_errors(self):
        assert error_messages(validate_service_role_binding("b", "default", ServiceRoleBinding())) == [
            "at least 1 subject must be specified",
            "roleRef must be specified",
        ]
        binding = ServiceRoleBinding(subjects=[Subject()], role_ref=RoleRef(kind="ClusterRole"))
        err = validate_service_role_binding("b", "default", binding)
        assert error_messages(err) == [
            "at least 1 of user, group or properties must be specified for subject 0",
            "kind set to 'ClusterRole', currently the only supported value is 'ServiceRole'",
            "name cannot be empty",
        ]
        assert isinstance(err.errors[1], UnsupportedError)


@pytest.mark.parametrize(
    "mode, expected",
    [
        (RbacMode.OFF, []),
        (RbacMode.ON, []),
        (RbacMode.ON_WITH_INCLUSION, ["rbac mode not implemented, currently only supports ON/OFF"]),
        (RbacMode.ON_WITH_EXCLUSION, ["rbac mode not implemented, currently only supports ON/OFF"]),
        ("MAYBE", ["unrecognized rbac mode 'MAYBE'"]),
    ],
)
def test_rbac_config_modes(mode, expected):
    assert error_messages(validate_rbac_config("default", "", RbacConfig(mode=mode))) == expected
