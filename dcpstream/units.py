"""Parsing of durations, sizes, booleans and unsigned integers found in configuration."""

from __future__ import annotations

import re
from datetime import timedelta
from fractions import Fraction

__all__ = ["parse_duration", "resolve_size", "parse_bool", "parse_uint32"]

_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "kb": 1024,
    "mb": 1024 * 1024,
    "gb": 1024 * 1024 * 1024,
}

_SIZE = re.compile(r"(\d+)\s*([a-z]*)")

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_UINT32_MAX = 2**32 - 1


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"10s"`` or ``"-1.5h"``.

    Every number needs a unit (ns, us, µs, ms, s, m, h); only ``"0"`` may stand alone.
    """
    original = text
    sign = 1
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = Fraction(0)
    position = 0
    while position < len(text):
        match = _COMPONENT.match(text, position)
        if match is None:
            raise ValueError(f"invalid duration {original!r}")
        number, unit = match.groups()
        total += Fraction(number) * _NANOSECONDS[unit]
        position = match.end()

    nanoseconds = int(total) * sign
    return timedelta(microseconds=nanoseconds / 1000)


def resolve_size(value: int | str) -> int:
    """Resolve a byte size given as an integer or a string such as ``"20mb"``."""
    if isinstance(value, bool):
        raise TypeError("size must be an integer or a string")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise TypeError("size must be an integer or a string")

    match = _SIZE.fullmatch(value.strip().lower())
    if match is None or match.group(2) not in _SIZE_UNITS:
        raise ValueError(f"invalid size {value!r}")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2)]


def parse_bool(text: str) -> bool:
    """Parse a boolean spelled as 1/0, t/f or true/false in the accepted casings."""
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def parse_uint32(text: str) -> int:
    """Parse a base-10 unsigned integer that fits in 32 bits."""
    if not text or not text.isascii() or not text.isdigit():
        raise ValueError(f"invalid unsigned integer {text!r}")
    number = int(text)
    if number > _UINT32_MAX:
        raise ValueError(f"value {text!r} out of range for a 32-bit unsigned integer")
    return number