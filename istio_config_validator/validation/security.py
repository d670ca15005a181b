"""
安全相关资源校验：认证策略与 RBAC
"""
from typing import Optional

from istio_config_validator.errors import (
    ConflictError,
    DuplicateError,
    FormatError,
    MissingFieldError,
    ShapeError,
    UnsupportedError,
    ValidationError,
    append_errors,
)
from istio_config_validator.models.authn import (
    DEFAULT_AUTHENTICATION_POLICY_NAME,
    Jwt,
    Policy,
    TargetSelector,
)
from istio_config_validator.models.rbac import RbacConfig, RbacMode, ServiceRole, ServiceRoleBinding
from istio_config_validator.validation.primitives import (
    is_dns1123_label,
    parse_jwks_uri,
    validate_port_selector,
)

# RoleRef 目前唯一支持的 kind
SERVICE_ROLE_KIND = "ServiceRole"


def validate_authentication_policy(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """
    校验认证策略

    namespace 为空表示集群级策略：名称必须为 "default" 且不能有 target。
    命名空间级策略没有 target 时名称必须为 "default"，反之亦然。
    所有 peer 和 origin 中的 JWT issuer 必须唯一。
    """
    if not isinstance(msg, Policy):
        return ShapeError("cannot cast to AuthenticationPolicy")
    cluster_scoped = namespace == ""

    errs = None
    if not cluster_scoped:
        if not msg.targets and name != DEFAULT_AUTHENTICATION_POLICY_NAME:
            errs = append_errors(errs, ConflictError(
                f"authentication policy with no target rules  must be named "
                f"{DEFAULT_AUTHENTICATION_POLICY_NAME!r}, found {name!r}"))
        if msg.targets and name == DEFAULT_AUTHENTICATION_POLICY_NAME:
            errs = append_errors(errs, ConflictError(
                f"authentication policy with name {name!r} must not have any target rules"))
        for target in msg.targets:
            errs = append_errors(errs, validate_authn_policy_target(target))
    else:
        if name != DEFAULT_AUTHENTICATION_POLICY_NAME:
            errs = append_errors(errs, ConflictError(
                f"cluster-scoped authentication policy name must be "
                f"{DEFAULT_AUTHENTICATION_POLICY_NAME!r}, found {name!r}"))
        if msg.targets:
            errs = append_errors(errs, ConflictError("cluster-scoped authentication policy must not have targets"))

    issuers = set()
    for method in msg.peers:
        jwt = method.jwt
        if jwt is None:
            continue
        if jwt.issuer in issuers:
            errs = append_errors(errs, DuplicateError(f"jwt with issuer {jwt.issuer!r} already defined"))
        else:
            issuers.add(jwt.issuer)
        errs = append_errors(errs, validate_jwt(jwt))

    for method in msg.origins:
        jwt = method.jwt
        if jwt is None:
            errs = append_errors(errs, MissingFieldError("origin authentication method must set jwt"))
            continue
        if jwt.issuer in issuers:
            errs = append_errors(errs, DuplicateError(f"jwt with issuer {jwt.issuer!r} already defined"))
        else:
            issuers.add(jwt.issuer)
        errs = append_errors(errs, validate_jwt(jwt))
    return errs


def validate_jwt(jwt: Optional[Jwt]) -> Optional[ValidationError]:
    if jwt is None:
        return None
    errs = None
    if not jwt.issuer:
        errs = append_errors(errs, MissingFieldError("issuer must be set"))
    for audience in jwt.audiences:
        if not audience:
            errs = append_errors(errs, FormatError("audience must be non-empty string"))
    if jwt.jwks_uri:
        try:
            parse_jwks_uri(jwt.jwks_uri)
        except ValueError as e:
            errs = append_errors(errs, FormatError(str(e)))
    for location in jwt.jwt_headers:
        if not location:
            errs = append_errors(errs, FormatError("location header must be non-empty string"))
    for location in jwt.jwt_params:
        if not location:
            errs = append_errors(errs, FormatError("location query must be non-empty string"))
    return errs


def validate_authn_policy_target(target: Optional[TargetSelector]) -> Optional[ValidationError]:
    """target 名称必须是服务短名"""
    if target is None:
        return None
    errs = None
    if not is_dns1123_label(target.name):
        errs = append_errors(errs, FormatError(f"target name {target.name!r} must be a valid label"))
    for port in target.ports:
        errs = append_errors(errs, validate_port_selector(port))
    return errs


def validate_service_role(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    if not isinstance(msg, ServiceRole):
        return ShapeError("cannot cast to ServiceRole")

    errs = None
    if not msg.rules:
        errs = append_errors(errs, MissingFieldError("at least 1 rule must be specified"))
    for i, rule in enumerate(msg.rules):
        if not rule.services:
            errs = append_errors(errs, MissingFieldError(f"at least 1 service must be specified for rule {i}"))
        if not rule.methods:
            errs = append_errors(errs, MissingFieldError(f"at least 1 method must be specified for rule {i}"))
        for j, constraint in enumerate(rule.constraints):
            if not constraint.key:
                errs = append_errors(errs, MissingFieldError(
                    f"key cannot be empty for constraint {j} in rule {i}"))
            if not constraint.values:
                errs = append_errors(errs, MissingFieldError(
                    f"at least 1 value must be specified for constraint {j} in rule {i}"))
    return errs


def validate_service_role_binding(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    if not isinstance(msg, ServiceRoleBinding):
        return ShapeError("cannot cast to ServiceRoleBinding")

    errs = None
    if not msg.subjects:
        errs = append_errors(errs, MissingFieldError("at least 1 subject must be specified"))
    for i, subject in enumerate(msg.subjects):
        if not subject.user and not subject.group and not subject.properties:
            errs = append_errors(errs, MissingFieldError(
                f"at least 1 of user, group or properties must be specified for subject {i}"))
    if msg.role_ref is None:
        errs = append_errors(errs, MissingFieldError("roleRef must be specified"))
    else:
        if msg.role_ref.kind != SERVICE_ROLE_KIND:
            errs = append_errors(errs, UnsupportedError(
                f"kind set to {msg.role_ref.kind!r}, currently the only supported value is {SERVICE_ROLE_KIND!r}"))
        if not msg.role_ref.name:
            errs = append_errors(errs, MissingFieldError("name cannot be empty"))
    return errs


def validate_rbac_config(name: str, namespace: str, msg: object) -> Optional[ValidationError]:
    """只支持 ON/OFF 两种模式"""
    if not isinstance(msg, RbacConfig):
        return ShapeError("cannot cast to RbacConfig")
    if msg.mode in (RbacMode.ON_WITH_INCLUSION, RbacMode.ON_WITH_EXCLUSION):
        return UnsupportedError("rbac mode not implemented, currently only supports ON/OFF")
    if not isinstance(msg.mode, RbacMode):
        return FormatError(f"unrecognized rbac mode {msg.mode!r}")
    return None
