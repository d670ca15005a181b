"""
服务注册表对象校验：服务、服务实例、网络端点地址
"""
import ipaddress
from typing import Optional

from istio_config_validator.errors import (
    FormatError,
    MissingFieldError,
    ValidationError,
    append_errors,
)
from istio_config_validator.models.service import AddressFamily, NetworkEndpoint, Service, ServiceInstance
from istio_config_validator.validation.primitives import (
    is_dns1123_label,
    validate_labels,
    validate_port,
    validate_unix_address,
)


def validate_service(svc: Service) -> Optional[ValidationError]:
    """
    主机名每个标签都是 DNS-1123 标签，至少一个端口

    只有一个端口时端口名可以为空。
    """
    errs = None
    if not svc.hostname:
        errs = append_errors(errs, MissingFieldError("invalid empty hostname"))
    for part in str(svc.hostname).split("."):
        if not is_dns1123_label(part):
            errs = append_errors(errs, FormatError(f"invalid hostname part: {part!r}"))

    if not svc.ports:
        errs = append_errors(errs, MissingFieldError("service must have at least one declared port"))
    for port in svc.ports:
        if not port.name:
            if len(svc.ports) > 1:
                errs = append_errors(errs, MissingFieldError(
                    "empty port names are not allowed for services with multiple ports"))
        elif not is_dns1123_label(port.name):
            errs = append_errors(errs, FormatError(f"invalid name: {port.name!r}"))
        err = validate_port(port.port)
        if err is not None:
            errs = append_errors(errs, err.__class__(
                f"invalid service port value {port.port} for {port.name!r}: {err}"))
    return errs


def validate_service_instance(instance: ServiceInstance) -> Optional[ValidationError]:
    """实例的服务端口必须与服务声明的同名端口一致（端口号和协议）"""
    errs = None
    if instance.service is None:
        errs = append_errors(errs, MissingFieldError("missing service in the instance"))
    else:
        errs = append_errors(errs, validate_service(instance.service))

    errs = append_errors(errs, validate_labels(instance.labels), validate_port(instance.endpoint.port))

    port = instance.endpoint.service_port
    if port is None:
        errs = append_errors(errs, MissingFieldError("missing service port"))
    elif instance.service is not None:
        expected = instance.service.get_port(port.name)
        if expected is None:
            errs = append_errors(errs, MissingFieldError(f"missing service port {port.name!r}"))
        else:
            if expected.port != port.port:
                errs = append_errors(errs, FormatError(
                    f"unexpected service port value {port.port}, expected {expected.port}"))
            if expected.protocol != port.protocol:
                errs = append_errors(errs, FormatError(
                    f"unexpected service protocol {port.protocol.value}, expected {expected.protocol.value}"))
    return errs


def validate_network_endpoint_address(endpoint: NetworkEndpoint) -> Optional[ValidationError]:
    """
    TCP 端点地址必须是 IP，Unix 端点地址必须是绝对路径

    Raises:
        ValueError: 未知的地址族
    """
    if endpoint.family is AddressFamily.TCP:
        try:
            ipaddress.ip_address(endpoint.address)
        except ValueError:
            return FormatError(f"invalid IP address {endpoint.address}")
        return None
    if endpoint.family is AddressFamily.UNIX:
        return validate_unix_address(endpoint.address)
    raise ValueError(f"unhandled Family {endpoint.family!r}")
