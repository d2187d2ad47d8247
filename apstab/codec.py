"""
APSTAB Byte Codec

Converts fixed-width scalars to the byte stream the automaton consumes and
back. The stream always carries the most significant byte first, so the
codec packs the value's in-memory (little-endian) image with struct and
reverses it. This is a reinterpretation of bits, not numeric formatting:
integers and IEEE floats go through the same path, and values such as
negative zero or infinities survive the round trip unchanged.

Usage:
    u32 = ScalarType(Domain.UNSIGNED, 4)
    u32.encode(10)               # b"\\x00\\x00\\x00\\x0a"
    u32.decode(b"\\x00\\x00\\x00\\x0a")  # 10
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Union

from apstab.errors import MalformedInput, UnsupportedWidth


Scalar = Union[int, float]


class Domain(Enum):
    """Numeric domain of interval limits and points."""
    UNSIGNED = "unsigned"
    SIGNED = "signed"
    REAL = "real"


# struct format characters per (domain, width)
_FORMATS: dict[Domain, dict[int, str]] = {
    Domain.UNSIGNED: {1: "B", 2: "H", 4: "I", 8: "Q"},
    Domain.SIGNED: {1: "b", 2: "h", 4: "i", 8: "q"},
    Domain.REAL: {2: "e", 4: "f", 8: "d"},
}

# Largest finite value per IEEE width
_REAL_MAX: dict[int, float] = {
    2: 65504.0,
    4: 3.4028234663852886e38,
    8: 1.7976931348623157e308,
}

# Significant digits needed to print a value of each IEEE width exactly
_REAL_DIGITS: dict[int, int] = {2: 5, 4: 9, 8: 17}

_TYPE_PREFIX: dict[Domain, str] = {
    Domain.UNSIGNED: "uint",
    Domain.SIGNED: "int",
    Domain.REAL: "float",
}


@dataclass(frozen=True)
class ScalarType:
    """A numeric domain at a fixed byte width.

    The width is a runtime parameter threaded through every component,
    so one process can label 4-byte and 8-byte intervals side by side.
    """
    domain: Domain
    width: int

    def __post_init__(self) -> None:
        if self.width not in _FORMATS[self.domain]:
            raise UnsupportedWidth(self.width, self.domain.value)

    @classmethod
    def from_flags(cls, num_bytes: int, signed: bool = False, real: bool = False) -> ScalarType:
        """Resolve a domain from command-line style flags. Real wins over signed."""
        if real:
            return cls(Domain.REAL, num_bytes)
        if signed:
            return cls(Domain.SIGNED, num_bytes)
        return cls(Domain.UNSIGNED, num_bytes)

    @property
    def name(self) -> str:
        return f"{_TYPE_PREFIX[self.domain]}{self.width * 8}"

    @property
    def is_real(self) -> bool:
        return self.domain == Domain.REAL

    @property
    def is_signed(self) -> bool:
        return self.domain == Domain.SIGNED

    @property
    def min_value(self) -> Scalar:
        if self.domain == Domain.UNSIGNED:
            return 0
        if self.domain == Domain.SIGNED:
            return -(1 << (8 * self.width - 1))
        return -_REAL_MAX[self.width]

    @property
    def max_value(self) -> Scalar:
        if self.domain == Domain.UNSIGNED:
            return (1 << (8 * self.width)) - 1
        if self.domain == Domain.SIGNED:
            return (1 << (8 * self.width - 1)) - 1
        return _REAL_MAX[self.width]

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, value: Scalar) -> bytes:
        """Big-endian byte image of the value's bit pattern."""
        fmt = "<" + _FORMATS[self.domain][self.width]
        if not self.is_real:
            if isinstance(value, bool) or not isinstance(value, int):
                raise MalformedInput(f"{value!r} is not an integer")
            if not self.min_value <= value <= self.max_value:
                raise MalformedInput(f"{value} is out of range for {self.name}")
        try:
            image = struct.pack(fmt, value)
        except (struct.error, OverflowError) as e:
            raise MalformedInput(f"{value!r} cannot be stored as {self.name}: {e}")
        return image[::-1]

    def decode(self, data: bytes) -> Scalar:
        """Exact inverse of encode()."""
        if len(data) != self.width:
            raise MalformedInput(
                f"Expected {self.width} bytes for {self.name}, got {len(data)}"
            )
        fmt = "<" + _FORMATS[self.domain][self.width]
        return struct.unpack(fmt, bytes(data)[::-1])[0]

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def is_negative(self, value: Scalar) -> bool:
        """Sign-bit test on the encoded image.

        Uses the raw bit rather than `value < 0` so that -0.0 counts as
        negative.
        """
        if self.domain == Domain.UNSIGNED:
            return False
        return bool(self.encode(value)[0] & 0x80)

    def sort_key(self, value: Scalar) -> tuple:
        """Key for the domain's natural ordering (-0.0 sorts before +0.0)."""
        if self.is_real:
            return (value, 0 if self.is_negative(value) else 1)
        return (value,)

    def less_equal(self, a: Scalar, b: Scalar) -> bool:
        return self.sort_key(a) <= self.sort_key(b)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def parse(self, text: str) -> Scalar:
        """Parse one token in the domain's textual format.

        Real values are rounded to the width's precision so that the
        value held in memory is the one the automaton is programmed with.
        """
        token = text.strip()
        if self.is_real:
            try:
                value = float(token)
            except ValueError:
                raise MalformedInput(f"Cannot parse {token!r} as {self.name}")
            if math.isnan(value):
                raise MalformedInput(f"NaN has no position in the {self.name} ordering")
            return self.decode(self.encode(value))
        try:
            value = int(token, 10)
        except ValueError:
            raise MalformedInput(f"Cannot parse {token!r} as {self.name}")
        if not self.min_value <= value <= self.max_value:
            raise MalformedInput(f"{token} overflows {self.name}")
        return value

    def format(self, value: Scalar) -> str:
        if self.is_real:
            return format(value, f".{_REAL_DIGITS[self.width]}g")
        return str(value)

    def __repr__(self) -> str:
        return f"<ScalarType {self.name}>"
