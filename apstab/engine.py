"""
APSTAB Matching Engine

The Matching Engine is the collaborator that executes a compiled program
over a byte stream. Its contract is small:

    load(program)        take exclusive ownership of a compiled program
    search(data)         stream bytes, return (element, offset) events
    unload()             release the program

Offsets are 0-based positions of the reporting byte, relative to the
buffer passed to search(). Engines are used through session(), which
unloads on every exit path so that a failed search never leaves a program
behind for the next session.

SimulatedEngine runs the automaton in-process. The stream is a sequence of
fixed-width records; start elements are enabled at every record boundary.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

from apstab.compiler import CompiledProgram
from apstab.errors import EngineFailure, EngineUnavailable, StabError


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class MatchEvent:
    """One report: `element` fired on the byte at `offset`."""
    element: str
    offset: int

    def __repr__(self) -> str:
        return f"<Match {self.element} @ {self.offset:#x}>"


def guarded(operation: str, call: Callable[..., T], *args) -> T:
    """Run one engine call, reporting foreign exceptions as EngineFailure."""
    try:
        return call(*args)
    except StabError:
        raise
    except Exception as e:
        raise EngineFailure(str(e), operation) from e


class MatchingEngine(ABC):
    """Base class for anything that can run a CompiledProgram."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def loaded(self) -> Optional[CompiledProgram]:
        """The program currently loaded, if any."""
        ...

    @abstractmethod
    def load(self, program: CompiledProgram) -> None:
        ...

    @abstractmethod
    def search(self, data: bytes) -> list[MatchEvent]:
        ...

    @abstractmethod
    def unload(self) -> None:
        ...

    @contextmanager
    def session(self, program: CompiledProgram) -> Iterator[MatchingEngine]:
        """Load `program` for the duration of a with-block.

        Load and unload errors surface as EngineFailure. If the block fails
        and unloading fails too, the unload failure is raised with the
        block's error as its cause.
        """
        guarded("load", self.load, program)
        try:
            yield self
        except BaseException as e:
            try:
                guarded("unload", self.unload)
            except EngineFailure as unload_error:
                raise unload_error from e
            raise
        guarded("unload", self.unload)

    def __repr__(self) -> str:
        state = self.loaded.name if self.loaded else "idle"
        return f"<{type(self).__name__}:{self.name} {state}>"


class SimulatedEngine(MatchingEngine):
    """Software execution of the aggregate automaton.

    Args:
        label: device label reported by name
        stall_after: fail every search after this many successful ones
            (None never fails); used to exercise error paths
    """

    def __init__(self, label: str = "sim", stall_after: Optional[int] = None) -> None:
        self._label = label
        self._stall_after = stall_after
        self._program: Optional[CompiledProgram] = None
        self._searches = 0
        # Per-STE execution tables, indexed by integer id
        self._accepts: list[frozenset[int]] = []
        self._successors: list[tuple[int, ...]] = []
        self._reports: list[Optional[str]] = []
        self._starts_by_byte: list[list[int]] = []

    @property
    def name(self) -> str:
        return self._label

    @property
    def loaded(self) -> Optional[CompiledProgram]:
        return self._program

    @property
    def searches(self) -> int:
        return self._searches

    def load(self, program: CompiledProgram) -> None:
        if self._program is not None:
            raise EngineFailure(f"{self._program.name} is still loaded", "load")

        graph = program.graph
        ids = {ste: i for i, ste in enumerate(graph.nodes)}
        self._accepts = [frozenset(d["symbols"]) for _, d in graph.nodes(data=True)]
        self._successors = [tuple(ids[t] for t in graph.successors(ste)) for ste in graph.nodes]
        self._reports = [d["element"] if d["report"] else None for _, d in graph.nodes(data=True)]
        starts = [ids[ste] for ste, d in graph.nodes(data=True) if d["start"]]
        self._starts_by_byte = [
            [s for s in starts if byte in self._accepts[s]] for byte in range(256)
        ]
        self._program = program
        self._searches = 0
        logger.info("%s: loaded %s", self._label, program.name)

    def search(self, data: bytes) -> list[MatchEvent]:
        program = self._program
        if program is None:
            raise EngineFailure("no program loaded", "search")
        width = program.width
        if len(data) % width:
            raise EngineFailure(
                f"{len(data)} bytes is not a whole number of {width}-byte records", "search"
            )
        if self._stall_after is not None and self._searches >= self._stall_after:
            raise EngineFailure(f"{self._label} stalled after {self._searches} search(es)", "search")
        self._searches += 1

        events: list[MatchEvent] = []
        for base in range(0, len(data), width):
            fired = self._starts_by_byte[data[base]]
            pos = 0
            while fired:
                reported = {self._reports[n] for n in fired if self._reports[n] is not None}
                events.extend(MatchEvent(e, base + pos) for e in sorted(reported))
                pos += 1
                if pos == width:
                    break
                byte = data[base + pos]
                enabled = {t for n in fired for t in self._successors[n]}
                fired = [n for n in enabled if byte in self._accepts[n]]
        return events

    def unload(self) -> None:
        if self._program is None:
            return
        logger.info("%s: unloaded %s", self._label, self._program.name)
        self._program = None
        self._accepts = []
        self._successors = []
        self._reports = []
        self._starts_by_byte = []


def open_engine(device: Optional[str]) -> MatchingEngine:
    """Resolve a device name to an engine.

    Recognized names: ``sim`` and ``sim:<label>``.

    Raises:
        EngineUnavailable: no device name was given
        EngineFailure: the name does not identify a known device
    """
    if not device:
        raise EngineUnavailable("No matching engine device was provided")
    kind, _, label = device.partition(":")
    if kind == "sim":
        return SimulatedEngine(label or "sim")
    raise EngineFailure(f"No device named {device!r}", "open")
