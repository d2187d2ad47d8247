"""
APSTAB Comparator Template

The comparator is the automaton fragment programmed once per interval. It
is a directed graph of state-transition elements (STEs): each STE carries
a symbol set, fires when the current byte is in that set and it was
enabled by a predecessor (or is a start element at a record boundary), and
enables its successors for the next byte.

For width B >= 2 the template holds, per position:

    between      (0)           start, parameter  -> free[1]
    lower_eq[i]  (0 .. B-2)    start at 0, param -> lower_eq[i+1], lower_above[i+1]
    upper_eq[i]  (0 .. B-2)    start at 0, param -> upper_eq[i+1], upper_below[i+1]
    lower_above[i] (1 .. B-1)  parameter         -> free[i+1] | report at B-1
    upper_below[i] (1 .. B-1)  parameter         -> free[i+1] | report at B-1
    free[i]      (1 .. B-1)    all bytes          -> free[i+1] | report at B-1

Width 1 is a single reporting start element and width 2 is spelled out
directly; the general builder covers B >= 3. The template does not know
anything about intervals: labeling output reaches it only through the
(position, Branch) -> parameter table built here once per width.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

import networkx as nx

from apstab.labeling import Branch, LabelSet
from apstab.symbols import SymbolSet


@dataclass(frozen=True)
class SlotKey:
    position: int
    branch: Branch

    def __repr__(self) -> str:
        return f"<Slot {self.position}/{self.branch.value}>"


def _param_number(width: int, key: SlotKey) -> int:
    """Parameter numbering of the comparator macro (%p1 .. %p<4B-1>)."""
    i = key.position
    if key.branch in (Branch.SPAN, Branch.BETWEEN):
        return 2 if width > 1 else 1
    if key.branch == Branch.LOWER_EQUAL:
        return 4 * i + 1
    if key.branch == Branch.UPPER_EQUAL:
        return 4 * i + 4
    if key.branch == Branch.LOWER_ABOVE:
        return 4 * i + 2
    return 4 * i + 3


@dataclass
class ComparatorTemplate:
    """Uninstantiated comparator for one byte width."""
    width: int
    graph: nx.DiGraph
    # (position, branch) -> parameter name
    slots: dict[SlotKey, str] = field(default_factory=dict)
    # parameter name -> STE id
    slot_elements: dict[str, str] = field(default_factory=dict)

    def slot(self, position: int, branch: Branch) -> str:
        key = SlotKey(position, branch)
        if key not in self.slots:
            raise KeyError(f"{self.width}-byte comparator has no slot for {key}")
        return self.slots[key]

    @property
    def start_elements(self) -> list[str]:
        return [n for n, d in self.graph.nodes(data=True) if d["start"]]

    @property
    def report_elements(self) -> list[str]:
        return [n for n, d in self.graph.nodes(data=True) if d["report"]]

    def assign(self, labels: LabelSet) -> dict[str, SymbolSet]:
        """Symbol set of every STE once the labels are written to the slots."""
        if labels.width != self.width:
            raise ValueError(
                f"Labels for {labels.width}-byte values cannot program a "
                f"{self.width}-byte comparator"
            )
        for position, branch, _ in labels.items():
            self.slot(position, branch)

        symbols: dict[str, SymbolSet] = {}
        for ste, data in self.graph.nodes(data=True):
            key: Optional[SlotKey] = data["slot_key"]
            if key is None:
                symbols[ste] = data["symbols"]
            else:
                symbols[ste] = labels.get(key.position, key.branch)
        return symbols

    def __repr__(self) -> str:
        return (
            f"<ComparatorTemplate {self.width}B: {self.graph.number_of_nodes()} STEs, "
            f"{len(self.slots)} parameters>"
        )


class _Builder:
    def __init__(self, width: int) -> None:
        self.template = ComparatorTemplate(width=width, graph=nx.DiGraph())

    def ste(
        self,
        ste: str,
        position: int,
        branch: Optional[Branch] = None,
        start: bool = False,
        report: bool = False,
    ) -> str:
        template = self.template
        key = SlotKey(position, branch) if branch is not None else None
        template.graph.add_node(
            ste,
            position=position,
            slot_key=key,
            symbols=None if key else SymbolSet.everything(),
            start=start,
            report=report,
        )
        if key is not None:
            param = f"%p{_param_number(template.width, key)}"
            template.slots[key] = param
            template.slot_elements[param] = ste
        return ste

    def activate(self, source: str, target: str) -> None:
        self.template.graph.add_edge(source, target)


def _single_byte_template() -> ComparatorTemplate:
    builder = _Builder(1)
    builder.ste("span", 0, Branch.SPAN, start=True, report=True)
    return builder.template


def _two_byte_template() -> ComparatorTemplate:
    # byte 0 chooses a path, byte 1 closes it
    builder = _Builder(2)
    builder.ste("between", 0, Branch.BETWEEN, start=True)
    builder.ste("lower_eq_0", 0, Branch.LOWER_EQUAL, start=True)
    builder.ste("upper_eq_0", 0, Branch.UPPER_EQUAL, start=True)
    builder.ste("free_1", 1, report=True)
    builder.ste("lower_above_1", 1, Branch.LOWER_ABOVE, report=True)
    builder.ste("upper_below_1", 1, Branch.UPPER_BELOW, report=True)
    builder.activate("between", "free_1")
    builder.activate("lower_eq_0", "lower_above_1")
    builder.activate("upper_eq_0", "upper_below_1")
    return builder.template


def _multi_byte_template(width: int) -> ComparatorTemplate:
    builder = _Builder(width)
    last = width - 1

    builder.ste("between", 0, Branch.BETWEEN, start=True)
    for i in range(1, width):
        builder.ste(f"free_{i}", i, report=i == last)
        builder.ste(f"lower_above_{i}", i, Branch.LOWER_ABOVE, report=i == last)
        builder.ste(f"upper_below_{i}", i, Branch.UPPER_BELOW, report=i == last)
    for i in range(0, last):
        builder.ste(f"lower_eq_{i}", i, Branch.LOWER_EQUAL, start=i == 0)
        builder.ste(f"upper_eq_{i}", i, Branch.UPPER_EQUAL, start=i == 0)

    builder.activate("between", "free_1")
    for i in range(0, last):
        builder.activate(f"lower_eq_{i}", f"lower_above_{i + 1}")
        builder.activate(f"upper_eq_{i}", f"upper_below_{i + 1}")
        if i + 1 < last:
            builder.activate(f"lower_eq_{i}", f"lower_eq_{i + 1}")
            builder.activate(f"upper_eq_{i}", f"upper_eq_{i + 1}")
    for i in range(1, last):
        for ste in (f"free_{i}", f"lower_above_{i}", f"upper_below_{i}"):
            builder.activate(ste, f"free_{i + 1}")
    return builder.template


@lru_cache(maxsize=None)
def comparator_template(width: int) -> ComparatorTemplate:
    """The comparator for `width`-byte values, built once per width.

    Callers share the cached template and must not mutate it.
    """
    if width < 1:
        raise ValueError(f"Comparator width must be positive, got {width}")
    if width == 1:
        return _single_byte_template()
    if width == 2:
        return _two_byte_template()
    return _multi_byte_template(width)
