"""
APSTAB Error Kinds

Every failure the pipeline can report derives from StabError so callers can
catch the family in one place. The kinds mirror the propagation policy:

- MalformedInput, UnsupportedWidth: fatal to the whole run
- DegenerateInterval: fatal to program assembly
- EngineUnavailable: degraded to an empty result by the query layer
- EngineFailure: propagated, never retried
"""

from __future__ import annotations

from typing import Optional


class StabError(Exception):
    """Base class for all APSTAB errors."""


class MalformedInput(StabError, ValueError):
    """An unparsable record, an out-of-range value or lower > upper."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        line: Optional[int] = None,
    ):
        where = ""
        if source is not None:
            where = f"{source}:{line}: " if line is not None else f"{source}: "
        super().__init__(f"{where}{message}")
        self.source = source
        self.line = line


class UnsupportedWidth(StabError, ValueError):
    def __init__(self, width: int, domain: str = ""):
        kind = f" {domain}" if domain else ""
        super().__init__(f"Unsupported number of bytes for{kind} values: {width}")
        self.width = width


class DegenerateInterval(StabError):
    """Program assembly cannot represent an interval (or got none at all)."""

    def __init__(self, message: str, index: Optional[int] = None):
        at = f"interval {index}: " if index is not None else ""
        super().__init__(f"{at}{message}")
        self.index = index


class EngineUnavailable(StabError):
    """No Matching Engine is configured for this run."""


class EngineFailure(StabError):
    """A load, search or unload call on the Matching Engine failed."""

    def __init__(self, message: str, operation: str = ""):
        op_str = f" during {operation}" if operation else ""
        super().__init__(f"Engine failure{op_str}: {message}")
        self.operation = operation
