"""
APSTAB Range Labeling

Derives, for every byte position of a B-byte big-endian value, the byte
sets that the comparator automaton must accept so that it matches exactly
the values of a closed interval [x, y].

The comparator has three kinds of paths:

    BETWEEN      first byte strictly between x[0] and y[0]; the rest is free
    lower path   bytes equal to x[0..k-1], then a byte above x[k]
                 (LOWER_EQUAL ... LOWER_EQUAL, LOWER_ABOVE); the rest is free
    upper path   bytes equal to y[0..k-1], then a byte below y[k]
                 (UPPER_EQUAL ... UPPER_EQUAL, UPPER_BELOW); the rest is free

At the final position the releasing byte is compared inclusively, since
no later byte can narrow the match. While x and y share their prefix both
paths are still bounded on both sides, so the releasing byte must lie
strictly between x[i] and y[i].

Signed and real domains are reduced to this unsigned core:
- signed bounds of equal sign are already ordered byte-wise
- signed bounds of different sign label the two paths independently and
  let the first byte wrap around the sign boundary
- real bounds must be sign-homogeneous (see split_real_interval); negative
  real bounds are labeled with x and y swapped, because negative IEEE bit
  patterns grow with magnitude
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from apstab.codec import Scalar, ScalarType
from apstab.errors import MalformedInput
from apstab.symbols import BYTE_MAX, BYTE_MIN, SymbolSet


logger = logging.getLogger(__name__)


class Branch(Enum):
    """Which comparator path a symbol set is written to."""
    SPAN = "span"                # width 1: the whole comparison in one byte
    BETWEEN = "between"          # position 0, strictly inside the bounds
    LOWER_EQUAL = "lower_equal"  # still equal to the lower bound
    UPPER_EQUAL = "upper_equal"  # still equal to the upper bound
    LOWER_ABOVE = "lower_above"  # leaves the lower bound upwards
    UPPER_BELOW = "upper_below"  # leaves the upper bound downwards


@dataclass
class LabelSet:
    """Symbol sets for one interval, keyed by (position, branch)."""
    width: int
    labels: dict[tuple[int, Branch], SymbolSet] = field(default_factory=dict)

    def set(self, position: int, branch: Branch, symbols: SymbolSet) -> None:
        if not 0 <= position < self.width:
            raise IndexError(f"Position {position} outside a {self.width}-byte value")
        self.labels[(position, branch)] = symbols

    def get(self, position: int, branch: Branch) -> SymbolSet:
        return self.labels.get((position, branch), SymbolSet.empty())

    def items(self) -> list[tuple[int, Branch, SymbolSet]]:
        return sorted(
            ((pos, br, sym) for (pos, br), sym in self.labels.items()),
            key=lambda item: (item[0], list(Branch).index(item[1])),
        )

    @property
    def is_degenerate(self) -> bool:
        """No path can fire at all."""
        return all(sym.is_empty for sym in self.labels.values())

    def accepts(self, encoded: bytes) -> bool:
        """Whether the comparator programmed with these labels matches the value."""
        if len(encoded) != self.width:
            raise ValueError(f"Expected {self.width} bytes, got {len(encoded)}")
        if self.width == 1:
            return encoded[0] in self.get(0, Branch.SPAN)
        if encoded[0] in self.get(0, Branch.BETWEEN):
            return True
        for equal, release in (
            (Branch.LOWER_EQUAL, Branch.LOWER_ABOVE),
            (Branch.UPPER_EQUAL, Branch.UPPER_BELOW),
        ):
            for k in range(1, self.width):
                if encoded[k - 1] not in self.get(k - 1, equal):
                    break
                if encoded[k] in self.get(k, release):
                    return True
        return False

    def __repr__(self) -> str:
        filled = sum(1 for sym in self.labels.values() if sym)
        return f"<LabelSet width={self.width} slots={len(self.labels)} non-empty={filled}>"


# ============================================================================
# Unsigned core
# ============================================================================

def label_unsigned(x: bytes, y: bytes) -> LabelSet:
    """Label [x, y] where x <= y in plain byte-wise order."""
    if len(x) != len(y):
        raise ValueError(f"Bound widths differ: {len(x)} != {len(y)}")
    width = len(x)
    labels = LabelSet(width)

    if width == 1:
        labels.set(0, Branch.SPAN, SymbolSet.span(x[0], y[0]))
        return labels

    labels.set(0, Branch.BETWEEN, SymbolSet.bounded(x[0], y[0]))
    equal_prefix = x[0] == y[0]

    for i in range(1, width):
        last = i == width - 1
        labels.set(i - 1, Branch.LOWER_EQUAL, SymbolSet.exact(x[i - 1]))
        labels.set(i - 1, Branch.UPPER_EQUAL, SymbolSet.exact(y[i - 1]))
        if equal_prefix:
            inside = SymbolSet.bounded(x[i], y[i], last, last)
            labels.set(i, Branch.LOWER_ABOVE, inside)
            labels.set(i, Branch.UPPER_BELOW, inside)
        else:
            labels.set(i, Branch.LOWER_ABOVE, _above(x[i], last))
            labels.set(i, Branch.UPPER_BELOW, _below(y[i], last))
        equal_prefix = equal_prefix and x[i] == y[i]

    return labels


def _above(limit: int, last: bool) -> SymbolSet:
    return SymbolSet.bounded(limit, BYTE_MAX, lower_inclusive=last, upper_inclusive=True)


def _below(limit: int, last: bool) -> SymbolSet:
    return SymbolSet.bounded(BYTE_MIN, limit, lower_inclusive=True, upper_inclusive=last)


# ============================================================================
# Signed split
# ============================================================================

def label_signed(x: bytes, y: bytes) -> LabelSet:
    """Label a two's-complement interval [x, y]."""
    if (x[0] & 0x80) == (y[0] & 0x80):
        return label_unsigned(x, y)

    # x is negative, y is not: the lower path is that of [x, all-ones] and
    # the upper path that of [all-zeros, y], independent from byte 0 on.
    width = len(x)
    labels = LabelSet(width)

    if width == 1:
        labels.set(0, Branch.SPAN, SymbolSet.span(x[0], BYTE_MAX) | SymbolSet.span(BYTE_MIN, y[0]))
        return labels

    labels.set(0, Branch.BETWEEN, _above(x[0], False) | _below(y[0], False))
    for i in range(1, width):
        last = i == width - 1
        labels.set(i - 1, Branch.LOWER_EQUAL, SymbolSet.exact(x[i - 1]))
        labels.set(i - 1, Branch.UPPER_EQUAL, SymbolSet.exact(y[i - 1]))
        labels.set(i, Branch.LOWER_ABOVE, _above(x[i], last))
        labels.set(i, Branch.UPPER_BELOW, _below(y[i], last))
    return labels


# ============================================================================
# Domain dispatch
# ============================================================================

def split_real_interval(
    stype: ScalarType,
    lower: Scalar,
    upper: Scalar,
) -> list[tuple[Scalar, Scalar]]:
    """Split a real interval that crosses zero into sign-homogeneous parts.

    [lower, upper] with a negative lower and non-negative upper becomes
    [lower, -0.0] and [+0.0, upper]. Anything else is returned as is.
    """
    if stype.is_real and stype.is_negative(lower) and not stype.is_negative(upper):
        return [(lower, -0.0), (0.0, upper)]
    return [(lower, upper)]


def label_interval(stype: ScalarType, lower: Scalar, upper: Scalar) -> LabelSet:
    """Encode both limits and label them according to the domain."""
    x = stype.encode(lower)
    y = stype.encode(upper)

    if stype.is_real:
        lower_negative = stype.is_negative(lower)
        if lower_negative != stype.is_negative(upper):
            raise MalformedInput(
                f"Real interval [{stype.format(lower)}, {stype.format(upper)}] "
                f"crosses zero; split it with split_real_interval() first"
            )
        if lower_negative:
            x, y = y, x
        labels = label_unsigned(x, y)
    elif stype.is_signed:
        labels = label_signed(x, y)
    else:
        labels = label_unsigned(x, y)

    logger.debug(
        "labeled [%s, %s] as %s: %s",
        stype.format(lower), stype.format(upper), stype.name,
        ", ".join(f"{pos}/{br.value}={sym!r}" for pos, br, sym in labels.items()),
    )
    return labels
