"""
APSTAB - interval stabbing on byte-stream automata

Compiles numeric intervals into comparator automata over the big-endian
bytes of their limits, then streams query points through the compiled
program to find which intervals each point falls into.

Pipeline: codec -> labeling -> compiler -> engine -> runtime
"""

__version__ = "0.1.0"

from apstab.codec import Domain, ScalarType
from apstab.symbols import SymbolSet
from apstab.labeling import Branch, LabelSet, label_interval, split_real_interval
from apstab.intervals import Interval, IntervalSet, PointSet
from apstab.compiler import CompiledProgram, ElementIndexMap, compile_intervals
from apstab.engine import MatchEvent, MatchingEngine, SimulatedEngine, open_engine
from apstab.runtime import StabQuery, StabResult, stab
from apstab.errors import (
    StabError,
    MalformedInput,
    UnsupportedWidth,
    DegenerateInterval,
    EngineUnavailable,
    EngineFailure,
)

__all__ = [
    "Domain",
    "ScalarType",
    "SymbolSet",
    "Branch",
    "LabelSet",
    "label_interval",
    "split_real_interval",
    "Interval",
    "IntervalSet",
    "PointSet",
    "CompiledProgram",
    "ElementIndexMap",
    "compile_intervals",
    "MatchEvent",
    "MatchingEngine",
    "SimulatedEngine",
    "open_engine",
    "StabQuery",
    "StabResult",
    "stab",
    "StabError",
    "MalformedInput",
    "UnsupportedWidth",
    "DegenerateInterval",
    "EngineUnavailable",
    "EngineFailure",
]
