import pytest

from istio_config_validator.errors import ShapeError, error_messages
from istio_config_validator.models import mixer
from istio_config_validator.models.common import Duration, ExactMatch, PrefixMatch, StringMatch, Timestamp
from istio_config_validator.validation.mixer import (
    mixer_to_routing_service,
    validate_http_api_spec,
    validate_http_api_spec_binding,
    validate_mixer_attributes,
    validate_quota_spec,
    validate_quota_spec_binding,
)


def attrs(**values):
    return mixer.Attributes(attributes={k: mixer.AttributeValue(v) for k, v in values.items()})


def pattern(method="GET", template="/books/{id}", attributes=None):
    return mixer.HTTPAPISpecPattern(attributes=attributes, http_method=method, pattern=mixer.UriTemplate(template))


class TestAttributes:

    def test_valid(self):
        a = attrs(
            api_service=mixer.StringValue("bookinfo"),
            request_size=mixer.Int64Value(10),
            timeout=mixer.DurationValue(Duration(seconds=1)),
            time=mixer.TimestampValue(Timestamp(seconds=1500000000)),
            headers=mixer.StringMapValue(mixer.StringMap(entries={"a": "b"})),
            payload=mixer.BytesValue(b"\x01"),
        )
        assert validate_mixer_attributes(a) is None

    def test_empty(self):
        assert error_messages(validate_mixer_attributes(mixer.Attributes())) == ["list of attributes is nil/empty"]

    def test_empty_values(self):
        a = attrs(
            api_service=mixer.StringValue(""),
            timeout=mixer.DurationValue(None),
            time=mixer.TimestampValue(None),
            headers=mixer.StringMapValue(None),
            payload=mixer.BytesValue(b""),
        )
        assert error_messages(validate_mixer_attributes(a)) == [
            "string attribute for 'api_service' should not be empty",
            "duration attribute for 'timeout' should not be nil",
            "duration: nil Duration",
            "timestamp attribute for 'time' should not be nil",
            "timestamp: nil Timestamp",
            "stringmap attribute for 'headers' should not be nil",
            "bytes attribute for 'payload' should not be empty",
        ]

    def test_out_of_range_values(self):
        a = attrs(
            timeout=mixer.DurationValue(Duration(seconds=1, nanos=-1)),
            time=mixer.TimestampValue(Timestamp(nanos=-1)),
        )
        assert error_messages(validate_mixer_attributes(a)) == [
            "duration: seconds:1 nanos:-1: seconds and nanos have different signs",
            "timestamp: seconds:0 nanos:-1: nanos not in range [0, 1e9)",
        ]

    def test_wrong_shape(self):
        assert isinstance(validate_mixer_attributes(mixer.HTTPAPISpec()), ShapeError)


class TestHTTPAPISpec:

    def test_valid(self):
        spec = mixer.HTTPAPISpec(
            attributes=attrs(api_service=mixer.StringValue("bookinfo")),
            patterns=[pattern(attributes=attrs(api_operation=mixer.StringValue("getBook"))),
                      mixer.HTTPAPISpecPattern(http_method="POST", pattern=mixer.Regex("/books/.*"))],
            api_keys=[mixer.APIKey(mixer.QueryKey("key")), mixer.APIKey(mixer.HeaderKey("x-api-key"))],
        )
        assert validate_http_api_spec("spec", "default", spec) is None

    def test_requires_patterns(self):
        assert error_messages(validate_http_api_spec("spec", "default", mixer.HTTPAPISpec())) == [
            "at least one pattern must be specified",
        ]

    def test_pattern_fields(self):
        spec = mixer.HTTPAPISpec(
            patterns=[
                pattern(method="", template="", attributes=mixer.Attributes()),
                mixer.HTTPAPISpecPattern(http_method="GET", pattern=mixer.Regex("")),
            ],
            api_keys=[mixer.APIKey(mixer.QueryKey("")), mixer.APIKey(mixer.CookieKey(""))],
        )
        assert error_messages(validate_http_api_spec("spec", "default", spec)) == [
            "list of attributes is nil/empty",
            "http_method cannot be empty",
            "uri_template cannot be empty",
            "regex cannot be empty",
            "query cannot be empty",
            "cookie cannot be empty",
        ]

    def test_wrong_shape(self):
        err = validate_http_api_spec("spec", "default", mixer.QuotaSpec())
        assert isinstance(err, ShapeError)
        assert err.message == "cannot cast to HTTPAPISpec"


class TestBindings:

    def test_http_api_spec_binding(self):
        binding = mixer.HTTPAPISpecBinding(
            services=[mixer.IstioService(name="bookinfo", namespace="default")],
            api_specs=[mixer.HTTPAPISpecReference(name="bookinfo-spec")],
        )
        assert validate_http_api_spec_binding("b", "default", binding) is None

        assert error_messages(validate_http_api_spec_binding("b", "default", mixer.HTTPAPISpecBinding())) == [
            "at least one service must be specified",
            "at least one spec must be specified",
        ]

        binding = mixer.HTTPAPISpecBinding(
            services=[mixer.IstioService()],
            api_specs=[mixer.HTTPAPISpecReference(namespace="Bad_NS")],
        )
        assert error_messages(validate_http_api_spec_binding("b", "default", binding)) == [
            "name or service is mandatory for a service reference",
            "name is mandatory for HTTPAPISpecReference",
            "namespace 'Bad_NS' must be a valid label",
        ]

    def test_quota_spec_binding(self):
        binding = mixer.QuotaSpecBinding(
            services=[mixer.IstioService(service="*.google.com")],
            quota_specs=[mixer.QuotaSpecReference(name="request-count", namespace="istio-system")],
        )
        assert validate_quota_spec_binding("b", "default", binding) is None

        binding = mixer.QuotaSpecBinding(services=[mixer.IstioService(name="bookinfo")],
                                         quota_specs=[mixer.QuotaSpecReference()])
        assert error_messages(validate_quota_spec_binding("b", "default", binding)) == [
            "name is mandatory for QuotaSpecReference",
        ]

    def test_service_conversion(self):
        svc = mixer.IstioService(name="a", namespace="b", domain="c.local", labels={"v": "1"})
        converted = mixer_to_routing_service(svc)
        assert (converted.name, converted.namespace, converted.domain, converted.labels) == ("a", "b", "c.local",
                                                                                              {"v": "1"})
        converted.labels["v"] = "2"
        assert svc.labels == {"v": "1"}


class TestQuotaSpec:

    def test_valid(self):
        spec = mixer.QuotaSpec(rules=[mixer.QuotaRule(
            match=[mixer.AttributeMatch(clause={"request.path": StringMatch(PrefixMatch("/books"))})],
            quotas=[mixer.Quota(quota="request-count", charge=1)],
        )])
        assert validate_quota_spec("q", "default", spec) is None

    def test_requires_rules(self):
        assert error_messages(validate_quota_spec("q", "default", mixer.QuotaSpec())) == [
            "a least one rule must be specified",
        ]

    @pytest.mark.parametrize("charge", [0, -1])
    def test_rule_errors(self, charge):
        spec = mixer.QuotaSpec(rules=[mixer.QuotaRule(
            match=[mixer.AttributeMatch(clause={"request.path": StringMatch(ExactMatch(""))})],
            quotas=[mixer.Quota(quota="", charge=charge)],
        )])
        assert error_messages(validate_quota_spec("q", "default", spec)) == [
            "StringMatch_Exact for attribute 'request.path' cannot be empty",
            "quota name cannot be empty",
            "quota charge amount must be positive",
        ]

    def test_rule_without_quotas(self):
        spec = mixer.QuotaSpec(rules=[mixer.QuotaRule()])
        assert error_messages(validate_quota_spec("q", "default", spec)) == ["a least one quota must be specified"]
