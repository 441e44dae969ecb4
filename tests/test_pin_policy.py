import pytest

from pin_policy import is_sequential, is_valid_format, is_weak


@pytest.mark.parametrize("pin", [999, 1000, 5000, 9999, 10000, -1, 0])
def test_strict_format_is_four_digit_range(pin):
    assert is_valid_format(pin) == (1000 <= pin <= 9999)


def test_lenient_format_accepts_short_pins():
    assert is_valid_format(0, "lenient")
    assert is_valid_format(123, "lenient")
    assert not is_valid_format(10000, "lenient")
    assert not is_valid_format(-5, "lenient")


@pytest.mark.parametrize("value", ["1234", 1234.0, None, True])
def test_non_integers_are_invalid_and_not_weak(value):
    assert not is_valid_format(value)
    assert not is_weak(value)


def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError):
        is_valid_format(1234, "loose")


@pytest.mark.parametrize("digit", range(10))
def test_repeated_digits_are_weak(digit):
    assert is_weak(digit * 1111)


@pytest.mark.parametrize("start", range(0, 7))
def test_ascending_runs_are_weak(start):
    pin = int("".join(str(start + i) for i in range(4)))
    assert is_sequential(pin)
    assert is_weak(pin)


@pytest.mark.parametrize("start", range(3, 10))
def test_descending_runs_are_weak(start):
    pin = int("".join(str(start - i) for i in range(4)))
    assert is_weak(pin)


def test_known_values():
    assert is_weak(1234)
    assert is_weak(0)
    assert is_weak(1212)
    assert not is_weak(7391)
    assert not is_weak(4821)
    assert not is_sequential(1357)


def test_out_of_range_is_not_weak():
    assert not is_weak(12345)
    assert not is_weak(-1111)
