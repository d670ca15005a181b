import pytest

from istio_config_validator.errors import RangeError, error_messages
from istio_config_validator.models.common import Hostname, Protocol
from istio_config_validator.models.service import (
    AddressFamily,
    NetworkEndpoint,
    Port,
    Service,
    ServiceInstance,
)
from istio_config_validator.validation.service import (
    validate_network_endpoint_address,
    validate_service,
    validate_service_instance,
)

HTTP = Port(name="http", port=80, protocol=Protocol.HTTP)


def reviews(*ports):
    return Service(hostname=Hostname("reviews.default.svc.cluster.local"), ports=list(ports))


class TestService:

    def test_valid(self):
        assert validate_service(reviews(HTTP)) is None
        # 只有一个端口时可以不命名
        assert validate_service(reviews(Port(port=9080))) is None

    def test_hostname(self):
        svc = Service(hostname=Hostname(""), ports=[HTTP])
        assert error_messages(validate_service(svc)) == ["invalid empty hostname", "invalid hostname part: ''"]

        svc = Service(hostname=Hostname("reviews..local"), ports=[HTTP])
        assert error_messages(validate_service(svc)) == ["invalid hostname part: ''"]

    def test_ports(self):
        assert error_messages(validate_service(reviews())) == ["service must have at least one declared port"]

        svc = reviews(Port(port=80), Port(name="Bad_Name", port=0))
        err = validate_service(svc)
        assert error_messages(err) == [
            "empty port names are not allowed for services with multiple ports",
            "invalid name: 'Bad_Name'",
            "invalid service port value 0 for 'Bad_Name': port number 0 must be in the range 1..65535",
        ]
        assert isinstance(err.errors[2], RangeError)


class TestServiceInstance:

    def instance(self, service_port, service=None, port=8080, labels=None):
        return ServiceInstance(
            endpoint=NetworkEndpoint(address="10.0.0.1", port=port, service_port=service_port),
            service=service if service is not None else reviews(HTTP),
            labels=labels or {"version": "v1"},
        )

    def test_valid(self):
        assert validate_service_instance(self.instance(HTTP)) is None

    def test_port_mismatch(self):
        inst = self.instance(Port(name="http", port=81, protocol=Protocol.TCP))
        assert error_messages(validate_service_instance(inst)) == [
            "unexpected service port value 81, expected 80",
            "unexpected service protocol TCP, expected HTTP",
        ]

    def test_missing_pieces(self):
        inst = self.instance(Port(name="grpc", port=90), port=0, labels={"bad key": "v"})
        assert error_messages(validate_service_instance(inst)) == [
            "invalid tag key: 'bad key'",
            "port number 0 must be in the range 1..65535",
            "missing service port 'grpc'",
        ]
        inst = ServiceInstance(endpoint=NetworkEndpoint(address="10.0.0.1", port=80))
        assert error_messages(validate_service_instance(inst)) == [
            "missing service in the instance",
            "missing service port",
        ]


class TestNetworkEndpointAddress:

    @pytest.mark.parametrize(
        "family, address, ok",
        [
            (AddressFamily.TCP, "10.0.0.1", True),
            (AddressFamily.TCP, "::1", True),
            (AddressFamily.TCP, "reviews", False),
            (AddressFamily.UNIX, "/var/run/app.sock", True),
            (AddressFamily.UNIX, "var/run/app.sock", False),
        ],
    )
    def test_families(self, family, address, ok):
        err = validate_network_endpoint_address(NetworkEndpoint(family=family, address=address))
        assert (err is None) is ok

    def test_invalid_ip_message(self):
        err = validate_network_endpoint_address(NetworkEndpoint(address="reviews"))
        assert err.message == "invalid IP address reviews"

    def test_unknown_family_raises(self):
        with pytest.raises(ValueError, match="unhandled Family"):
            validate_network_endpoint_address(NetworkEndpoint(family="SCTP", address="x"))
