"""
APSTAB Symbol Sets

A SymbolSet is the set of byte values a state-transition element accepts
at one position: a union of closed ranges over 0x00-0xFF. Sets are
normalized (sorted, adjacent ranges merged) so equal sets compare equal.
An empty set is legal and means the element never fires.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator


BYTE_MIN = 0x00
BYTE_MAX = 0xFF


def _normalize(ranges: Iterable[tuple[int, int]]) -> tuple[tuple[int, int], ...]:
    merged: list[list[int]] = []
    for lo, hi in sorted(r for r in ranges if r[0] <= r[1]):
        if merged and lo <= merged[-1][1] + 1:
            merged[-1][1] = max(merged[-1][1], hi)
        else:
            merged.append([lo, hi])
    return tuple((lo, hi) for lo, hi in merged)


@dataclass(frozen=True)
class SymbolSet:
    """Union of closed byte ranges."""
    ranges: tuple[tuple[int, int], ...] = ()

    def __post_init__(self) -> None:
        for lo, hi in self.ranges:
            if not (BYTE_MIN <= lo <= BYTE_MAX and BYTE_MIN <= hi <= BYTE_MAX):
                raise ValueError(f"Byte range [{lo}, {hi}] outside 0x00-0xFF")
        object.__setattr__(self, "ranges", _normalize(self.ranges))

    @classmethod
    def empty(cls) -> SymbolSet:
        return cls(())

    @classmethod
    def everything(cls) -> SymbolSet:
        return cls(((BYTE_MIN, BYTE_MAX),))

    @classmethod
    def exact(cls, value: int) -> SymbolSet:
        return cls(((value, value),))

    @classmethod
    def span(cls, lower: int, upper: int) -> SymbolSet:
        """Closed range [lower, upper]; empty when lower > upper."""
        if lower > upper:
            return cls.empty()
        return cls(((lower, upper),))

    @classmethod
    def bounded(
        cls,
        lower: int,
        upper: int,
        lower_inclusive: bool = False,
        upper_inclusive: bool = False,
    ) -> SymbolSet:
        """Range between two byte limits, each open or closed.

        An open limit that is already exhausted (lower 0xFF, upper 0x00)
        leaves nothing to accept and yields the empty set.
        """
        if not lower_inclusive:
            if lower == BYTE_MAX:
                return cls.empty()
            lower += 1
        if not upper_inclusive:
            if upper == BYTE_MIN:
                return cls.empty()
            upper -= 1
        return cls.span(lower, upper)

    # ------------------------------------------------------------------
    # Set algebra
    # ------------------------------------------------------------------

    def union(self, other: SymbolSet) -> SymbolSet:
        return SymbolSet(self.ranges + other.ranges)

    __or__ = union

    def __contains__(self, value: int) -> bool:
        return any(lo <= value <= hi for lo, hi in self.ranges)

    def __iter__(self) -> Iterator[int]:
        for lo, hi in self.ranges:
            yield from range(lo, hi + 1)

    def __len__(self) -> int:
        return sum(hi - lo + 1 for lo, hi in self.ranges)

    def __bool__(self) -> bool:
        return bool(self.ranges)

    @property
    def is_empty(self) -> bool:
        return not self.ranges

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_anml(self) -> str:
        """ANML symbol-set syntax, e.g. ``[\\x0a-\\x14\\xff]``."""
        parts = []
        for lo, hi in self.ranges:
            if lo == hi:
                parts.append(f"\\x{lo:02x}")
            else:
                parts.append(f"\\x{lo:02x}-\\x{hi:02x}")
        return "[" + "".join(parts) + "]"

    def __repr__(self) -> str:
        if not self.ranges:
            return "<SymbolSet empty>"
        body = " u ".join(
            f"{lo:#04x}" if lo == hi else f"[{lo:#04x},{hi:#04x}]"
            for lo, hi in self.ranges
        )
        return f"<SymbolSet {body}>"
