import pytest

from istio_config_validator.errors import (
    ConflictError,
    FormatError,
    MultiError,
    RangeError,
    ValidationError,
    append_errors,
    error_messages,
    format_error,
    prefix_error,
)


def test_append_all_none_is_none():
    assert append_errors(None) is None
    assert append_errors(None, None, None) is None


def test_append_single_error_returned_unchanged():
    err = FormatError("bad")
    assert append_errors(None, err, None) is err


def test_append_many_flattens_in_order():
    a, b, c = FormatError("a"), RangeError("b"), ConflictError("c")
    inner = append_errors(a, b)
    assert isinstance(inner, MultiError)

    out = append_errors(inner, None, c)
    assert isinstance(out, MultiError)
    assert len(out) == 3
    assert out.messages() == ["a", "b", "c"]
    # 嵌套的 MultiError 被展开，保留各自类型
    assert [type(e) for e in out.errors] == [FormatError, RangeError, ConflictError]


def test_multierror_rendering():
    err = append_errors(FormatError("first"), FormatError("second"))
    assert str(err) == "2 errors occurred:\n\t* first\n\t* second\n\n"


def test_errors_property_is_a_copy():
    err = append_errors(FormatError("a"), FormatError("b"))
    err.errors.clear()
    assert len(err) == 2


def test_prefix_error_keeps_type_and_prefixes_each():
    assert prefix_error(None, "x: ") is None

    single = prefix_error(RangeError("out of range"), "port: ")
    assert isinstance(single, RangeError)
    assert single.message == "port: out of range"

    multi = prefix_error(append_errors(FormatError("a"), RangeError("b")), "p:")
    assert multi.messages() == ["p:a", "p:b"]
    assert isinstance(multi.errors[1], RangeError)


def test_error_messages_helper():
    assert error_messages(None) == []
    assert error_messages(FormatError("x")) == ["x"]


def test_validation_errors_are_exceptions():
    with pytest.raises(ValidationError, match="boom"):
        raise append_errors(FormatError("boom"))


@pytest.mark.parametrize(
    "exc, expected",
    [
        (FormatError("detail"), "FormatError: detail"),
        (ValueError(""), "ValueError"),
        (RuntimeError("  spaced  "), "RuntimeError: spaced"),
    ],
)
def test_format_error(exc, expected):
    assert format_error(exc) == expected
