"""PIN rules shared by every terminal.

Format is checked before weakness: a PIN outside the configured range is
reported as badly formed, never as weak.
"""

PIN_RANGES = {
    "strict": (1000, 9999),
    "lenient": (0, 9999),
}
DEFAULT_POLICY = "strict"

WEAK_PINS = frozenset({
    0, 1234, 4321, 9876, 5432, 6789, 8765,
    1111, 2222, 3333, 4444, 5555, 6666, 7777, 8888, 9999,
    1212, 1122, 1004, 2000, 6969, 2580, 1010, 1313,
})


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_valid_format(pin, policy: str = DEFAULT_POLICY) -> bool:
    if policy not in PIN_RANGES:
        raise ValueError(f"Unknown PIN policy: {policy!r}")
    if not _is_int(pin):
        return False
    low, high = PIN_RANGES[policy]
    return low <= pin <= high


def _digits(pin: int):
    return [int(d) for d in f"{pin:04d}"]


def is_sequential(pin: int) -> bool:
    """True for runs like 1234 or 9876 (zero-padded, so 0123 counts)."""
    digits = _digits(pin)
    steps = {b - a for a, b in zip(digits, digits[1:])}
    return steps == {1} or steps == {-1}


def is_weak(pin) -> bool:
    if not _is_int(pin) or not 0 <= pin <= 9999:
        return False
    if pin in WEAK_PINS:
        return True
    # 1111, 2222, ... and 0000
    if pin == (pin // 1000) * 1111:
        return True
    return is_sequential(pin)
