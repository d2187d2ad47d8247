"""
APSTAB Intervals and Points

IntervalSet and PointSet are the ordered inputs of the pipeline. The index
of an interval or point in its set is its identity: match events are
decoded back to these indices, so a set never reorders or drops entries.

Both sets can be read from whitespace-separated text files (one record per
line) or generated from a seeded random number generator.

Real intervals that cross zero are split into [lower, -0.0] and
[+0.0, upper] as they are added, so every interval held by an IntervalSet
can be labeled directly.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from apstab.codec import Scalar, ScalarType
from apstab.errors import MalformedInput
from apstab.labeling import split_real_interval


logger = logging.getLogger(__name__)


def _records(path: Union[str, Path], fields: int, stype: ScalarType) -> Iterator[tuple[int, list[Scalar]]]:
    """Yield (line number, parsed fields) for every record in a text file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise MalformedInput("No such file", source=str(path))
    except UnicodeDecodeError as e:
        raise MalformedInput(f"Not UTF-8 text ({e.reason} at byte {e.start})", source=str(path))
    except OSError as e:
        raise MalformedInput(f"Cannot read file: {e.strerror or e}", source=str(path))
    for line_num, line in enumerate(text.splitlines(), 1):
        content = line.split("#", 1)[0].split()
        if not content:
            continue
        if len(content) != fields:
            raise MalformedInput(
                f"Expected {fields} field(s), found {len(content)}",
                source=str(path), line=line_num,
            )
        try:
            values = [stype.parse(token) for token in content]
        except MalformedInput as e:
            raise MalformedInput(str(e), source=str(path), line=line_num)
        yield line_num, values


def _random_value(stype: ScalarType, rng: random.Random) -> Scalar:
    if stype.is_real:
        value = stype.max_value * (2.0 * rng.random() - 1.0)
        return stype.decode(stype.encode(value))
    return rng.randint(stype.min_value, stype.max_value)


@dataclass(frozen=True)
class Interval:
    """Closed interval [lower, upper]."""
    lower: Scalar
    upper: Scalar

    def contains(self, stype: ScalarType, point: Scalar) -> bool:
        return stype.less_equal(self.lower, point) and stype.less_equal(point, self.upper)

    def __iter__(self):
        yield self.lower
        yield self.upper


class IntervalSet:
    """Ordered, append-only collection of intervals over one scalar type."""

    def __init__(self, stype: ScalarType, intervals: Iterable[tuple[Scalar, Scalar]] = ()) -> None:
        self._stype = stype
        self._intervals: list[Interval] = []
        for lower, upper in intervals:
            self.add(lower, upper)

    @property
    def stype(self) -> ScalarType:
        return self._stype

    def add(self, lower: Scalar, upper: Scalar) -> list[int]:
        """Validate and append an interval; return the indices it occupies.

        A real interval crossing zero occupies two indices.
        """
        stype = self._stype
        # Round-trip through the codec: range check plus real rounding
        lower = stype.decode(stype.encode(lower))
        upper = stype.decode(stype.encode(upper))
        if stype.is_real and (math.isnan(lower) or math.isnan(upper)):
            raise MalformedInput("NaN cannot bound an interval")
        if not stype.less_equal(lower, upper):
            raise MalformedInput(
                f"Lower limit {stype.format(lower)} exceeds upper limit {stype.format(upper)}"
            )

        parts = split_real_interval(stype, lower, upper)
        if len(parts) > 1:
            logger.info(
                "Splitting the interval [%s,%s] into [%s,-0.0] and [+0.0,%s]",
                stype.format(lower), stype.format(upper),
                stype.format(lower), stype.format(upper),
            )
        indices = []
        for part_lower, part_upper in parts:
            indices.append(len(self._intervals))
            self._intervals.append(Interval(part_lower, part_upper))
        return indices

    @classmethod
    def from_file(cls, path: Union[str, Path], stype: ScalarType) -> IntervalSet:
        """Read `lower upper` records, one per line."""
        intervals = cls(stype)
        for line_num, (lower, upper) in _records(path, 2, stype):
            try:
                intervals.add(lower, upper)
            except MalformedInput as e:
                raise MalformedInput(str(e), source=str(path), line=line_num)
        logger.info("Read %d interval(s) from %s", len(intervals), path)
        return intervals

    @classmethod
    def random(
        cls,
        count: int,
        stype: ScalarType,
        rng: Optional[random.Random] = None,
    ) -> IntervalSet:
        """Generate `count` intervals with limits drawn uniformly from the domain."""
        rng = rng or random.Random(0)
        intervals = cls(stype)
        for _ in range(count):
            x = _random_value(stype, rng)
            y = _random_value(stype, rng)
            if not stype.less_equal(x, y):
                x, y = y, x
            intervals.add(x, y)
        logger.info("Generated %d random %s interval(s)", len(intervals), stype.name)
        return intervals

    def stabbed_by(self, point: Scalar) -> list[int]:
        """Indices of all intervals containing the point, by direct comparison."""
        return [i for i, iv in enumerate(self._intervals) if iv.contains(self._stype, point)]

    def __getitem__(self, index: int) -> Interval:
        return self._intervals[index]

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def __repr__(self) -> str:
        return f"<IntervalSet: {len(self._intervals)} {self._stype.name} interval(s)>"


class PointSet:
    """Ordered collection of query points over one scalar type."""

    def __init__(self, stype: ScalarType, points: Iterable[Scalar] = ()) -> None:
        self._stype = stype
        self._points: list[Scalar] = []
        for point in points:
            self.add(point)

    @property
    def stype(self) -> ScalarType:
        return self._stype

    def add(self, point: Scalar) -> int:
        point = self._stype.decode(self._stype.encode(point))
        self._points.append(point)
        return len(self._points) - 1

    @classmethod
    def from_file(cls, path: Union[str, Path], stype: ScalarType) -> PointSet:
        points = cls(stype)
        for _, (value,) in _records(path, 1, stype):
            points.add(value)
        logger.info("Read %d point(s) from %s", len(points), path)
        return points

    @classmethod
    def random(
        cls,
        count: int,
        stype: ScalarType,
        rng: Optional[random.Random] = None,
    ) -> PointSet:
        rng = rng or random.Random(0)
        points = cls(stype, (_random_value(stype, rng) for _ in range(count)))
        logger.info("Generated %d random %s point(s)", len(points), stype.name)
        return points

    def __getitem__(self, index: int) -> Scalar:
        return self._points[index]

    def __iter__(self) -> Iterator[Scalar]:
        return iter(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return f"<PointSet: {len(self._points)} {self._stype.name} point(s)>"
