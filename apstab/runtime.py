"""
APSTAB Stab Runtime

Streams query points through a compiled program and decodes the match
events into a point -> intervals map.

The runtime:
1. Compiles the IntervalSet (unless a compiled program is supplied)
2. Encodes every point into one contiguous big-endian buffer
3. Cuts the buffer into chunks that hold whole points only
4. Runs each chunk through the Matching Engine inside one session
5. Rebases event offsets onto the full buffer and decodes them

Chunking only bounds how much is streamed per call: the result is the same
for any chunk size of at least one point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from apstab.compiler import CompiledProgram, ElementIndexMap, compile_intervals
from apstab.engine import MatchEvent, MatchingEngine, guarded, open_engine
from apstab.errors import EngineFailure, EngineUnavailable, MalformedInput
from apstab.intervals import IntervalSet, PointSet


logger = logging.getLogger(__name__)


@dataclass
class StabResult:
    """Which intervals each point stabs.

    Points that stab nothing are absent from `stabs`. The order of the
    interval indices for one point carries no meaning.
    """
    stabs: dict[int, list[int]] = field(default_factory=dict)
    num_points: int = 0
    chunks: int = 0
    events: int = 0
    engine: Optional[str] = None

    @property
    def degraded(self) -> bool:
        """True when no engine ran and the result is empty by policy."""
        return self.engine is None

    def add(self, point_index: int, interval_index: int) -> None:
        bucket = self.stabs.setdefault(point_index, [])
        if interval_index not in bucket:
            bucket.append(interval_index)

    def get(self, point_index: int, default=None):
        return self.stabs.get(point_index, default)

    def as_sets(self) -> dict[int, set[int]]:
        return {p: set(ivs) for p, ivs in self.stabs.items()}

    def __getitem__(self, point_index: int) -> list[int]:
        return self.stabs[point_index]

    def __contains__(self, point_index: object) -> bool:
        return point_index in self.stabs

    def __len__(self) -> int:
        return len(self.stabs)

    def summary(self) -> str:
        lines = [
            f"Stab {'DEGRADED (no engine)' if self.degraded else 'OK'}",
            f"  Points: {self.num_points}",
            f"  Points stabbing an interval: {len(self.stabs)}",
            f"  Chunks: {self.chunks}",
            f"  Match events: {self.events}",
        ]
        if self.engine:
            lines.append(f"  Engine: {self.engine}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<StabResult: {len(self.stabs)}/{self.num_points} points stab>"


# ============================================================================
# Stream preparation
# ============================================================================

def encode_points(points: PointSet) -> bytes:
    """All points, in order, as one buffer of fixed-width records."""
    stype = points.stype
    return b"".join(stype.encode(p) for p in points)


def chunk_size_for(width: int, max_chunk_size: Optional[int]) -> Optional[int]:
    """Largest multiple of `width` not above `max_chunk_size` (None: unbounded)."""
    if max_chunk_size is None:
        return None
    flow = (max_chunk_size // width) * width
    if flow <= 0:
        raise MalformedInput(
            f"Maximum chunk size {max_chunk_size} cannot hold one {width}-byte point"
        )
    return flow


def iter_chunks(
    buffer: bytes,
    width: int,
    max_chunk_size: Optional[int] = None,
) -> Iterator[tuple[int, bytes]]:
    """Yield (offset, chunk) pairs that never split a record."""
    if len(buffer) % width:
        raise MalformedInput(f"Buffer of {len(buffer)} bytes is not made of {width}-byte records")
    flow = chunk_size_for(width, max_chunk_size) or len(buffer)
    if not buffer:
        return
    for offset in range(0, len(buffer), flow):
        yield offset, buffer[offset:offset + flow]


def decode_events(
    events: list[MatchEvent],
    base: int,
    width: int,
    element_map: ElementIndexMap,
    result: StabResult,
) -> None:
    """Fold chunk-relative match events into the result."""
    for event in events:
        if event.element not in element_map:
            raise EngineFailure(f"unknown match element {event.element!r}", "search")
        point_index = (base + event.offset) // width
        result.add(point_index, element_map[event.element])


# ============================================================================
# Query
# ============================================================================

class StabQuery:
    """Runs PointSets against one compiled program.

    Usage:
        query = StabQuery(program, SimulatedEngine(), max_chunk_size=4096)
        result = query.run(points)
    """

    def __init__(
        self,
        program: CompiledProgram,
        engine: MatchingEngine,
        max_chunk_size: Optional[int] = None,
    ) -> None:
        self._program = program
        self._engine = engine
        self._max_chunk_size = max_chunk_size

    def run(self, points: PointSet) -> StabResult:
        program = self._program
        if points.stype != program.stype:
            raise MalformedInput(
                f"Points are {points.stype.name} but the program expects {program.stype.name}"
            )
        width = program.width
        buffer = encode_points(points)
        chunks = list(iter_chunks(buffer, width, self._max_chunk_size))
        result = StabResult(num_points=len(points), engine=self._engine.name)

        with self._engine.session(program) as engine:
            for base, chunk in chunks:
                events = guarded("search", engine.search, chunk)
                decode_events(events, base, width, program.element_map, result)
                result.chunks += 1
                result.events += len(events)

        logger.info(
            "Streamed %d point(s) in %d chunk(s): %d match event(s)",
            len(points), result.chunks, result.events,
        )
        return result


def stab(
    intervals: IntervalSet,
    points: PointSet,
    engine: Union[MatchingEngine, str, None],
    max_chunk_size: Optional[int] = None,
    program: Optional[CompiledProgram] = None,
) -> StabResult:
    """Determine which intervals each point stabs.

    `engine` is an engine instance or a device name for open_engine().
    Without an engine the program is still compiled, a warning is logged
    and an empty result is returned.
    """
    if program is None:
        program = compile_intervals(intervals)
    if not isinstance(engine, MatchingEngine):
        try:
            engine = open_engine(engine)
        except EngineUnavailable as e:
            logger.warning("%s. Unable to determine stabbed intervals.", e)
            return StabResult(num_points=len(points))
    return StabQuery(program, engine, max_chunk_size).run(points)
