import pytest

from sixfs.printf import format_kernel, format_user


@pytest.mark.parametrize("n", [0, 7, 42, -42, 2**31 - 1, -(2**31)])
def test_decimal_matches_python(n):
    assert format_user("%d", n) == str(n)
    assert format_kernel("%d", n) == str(n)


def test_decimal_wraps_to_32_bits():
    assert format_user("%d", 2**31) == str(-(2**31))


def test_hex_case_differs():
    assert format_user("%x", 255) == format(255, "X")
    assert format_kernel("%x", 255) == format(255, "x")
    assert format_user("%p", 4096) == format(4096, "X")


def test_negative_hex_is_unsigned():
    assert format_user("%x", -1) == "FFFFFFFF"
    assert format_kernel("%x", -1) == "ffffffff"


def test_string_and_null():
    assert format_user("%s-%s", "ab", None) == "ab-(null)"
    assert format_kernel("%s", None) == "(null)"


def test_char_only_for_user():
    assert format_user("%c", ord("Z")) == "Z"
    assert format_kernel("%c") == "%c"


def test_percent_and_unknown():
    assert format_user("100%%") == "100%"
    assert format_user("%q") == "%q"
    assert format_kernel("%q") == "%q"


def test_trailing_percent_dropped():
    assert format_user("ab%") == "ab"
    assert format_kernel("ab%") == "ab"


def test_plain_text_unchanged():
    assert format_user("plain text") == "plain text"


def test_missing_argument_raises():
    with pytest.raises(TypeError):
        format_user("%d")


def test_kernel_null_format_raises():
    with pytest.raises(ValueError):
        format_kernel(None)