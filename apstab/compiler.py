"""
APSTAB Program Compiler

Assembles the aggregate automaton for an IntervalSet.

Compilation phases:
1. Template   -> Fetch the comparator for the interval width
2. Labeling   -> Encode both limits of every interval and label them
3. Validation -> Every interval must accept its own limits
4. Assembly   -> One comparator instance per interval, labels written
                 through the template's parameter table
5. Indexing   -> Record element -> interval index for result decoding

Example:
    intervals = IntervalSet(ScalarType(Domain.UNSIGNED, 4), [(10, 20)])
    program = compile_intervals(intervals)
    program.element_map["4bytes_network.comparator_0"]   # 0
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import networkx as nx

from apstab.codec import ScalarType
from apstab.comparator import ComparatorTemplate, comparator_template
from apstab.errors import DegenerateInterval, MalformedInput
from apstab.intervals import IntervalSet
from apstab.labeling import LabelSet, label_interval


logger = logging.getLogger(__name__)


# ============================================================================
# Element index
# ============================================================================

class ElementIndexMap:
    """Injective map from match element name to interval index."""

    def __init__(self) -> None:
        self._index: dict[str, int] = {}

    def add(self, element: str, interval_index: int) -> None:
        if element in self._index:
            raise ValueError(f"Element {element!r} is already mapped to interval {self._index[element]}")
        self._index[element] = interval_index

    def __getitem__(self, element: str) -> int:
        return self._index[element]

    def __contains__(self, element: object) -> bool:
        return element in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def items(self):
        return self._index.items()

    def elements_for(self, interval_index: int) -> list[str]:
        return [e for e, i in self._index.items() if i == interval_index]

    def to_json(self) -> dict:
        return dict(self._index)

    @classmethod
    def from_json(cls, data: dict) -> ElementIndexMap:
        emap = cls()
        for element, index in data.items():
            emap.add(element, int(index))
        return emap

    def __repr__(self) -> str:
        return f"<ElementIndexMap: {len(self._index)} element(s)>"


# ============================================================================
# Compiled program
# ============================================================================

@dataclass
class CompiledProgram:
    """The aggregate automaton for one IntervalSet.

    Nodes of `graph` are STEs named `<network>.comparator_<i>.<ste>`, with
    attributes `symbols`, `start`, `report`, `position` and `element`.
    The program is not modified after compile_intervals() returns.
    """
    name: str
    stype: ScalarType
    graph: nx.DiGraph
    element_map: ElementIndexMap
    labels: list[LabelSet] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.stype.width

    @property
    def num_elements(self) -> int:
        return len(self.element_map)

    @property
    def start_elements(self) -> list[str]:
        return [n for n, d in self.graph.nodes(data=True) if d["start"]]

    def summary(self) -> str:
        reports = sum(1 for _, d in self.graph.nodes(data=True) if d["report"])
        return "\n".join([
            f"Program {self.name} ({self.stype.name})",
            f"  Comparators: {self.num_elements}",
            f"  STEs: {self.graph.number_of_nodes()}",
            f"  Activation edges: {self.graph.number_of_edges()}",
            f"  Reporting STEs: {reports}",
        ])

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def to_anml(self) -> str:
        """Render the network as ANML-style XML."""
        root = ET.Element("anml", version="1.0")
        network = ET.SubElement(root, "automata-network", id=self.name)
        for ste, data in self.graph.nodes(data=True):
            attrs = {"id": ste, "symbol-set": data["symbols"].to_anml()}
            if data["start"]:
                attrs["start"] = "all-input"
            node = ET.SubElement(network, "state-transition-element", attrs)
            for target in self.graph.successors(ste):
                ET.SubElement(node, "activate-on-match", element=target)
            if data["report"]:
                ET.SubElement(node, "report-on-match")
        ET.indent(root)
        return ET.tostring(root, encoding="unicode")

    def export(self, basename: str) -> tuple[Path, Path]:
        """Write `<basename>.anml` and `<basename>.emap`."""
        anml_path = Path(f"{basename}.anml")
        emap_path = Path(f"{basename}.emap")
        anml_path.write_text(self.to_anml(), encoding="utf-8")
        emap_path.write_text(json.dumps({
            "network": self.name,
            "type": self.stype.name,
            "width": self.width,
            "elements": self.element_map.to_json(),
        }, indent=2), encoding="utf-8")
        logger.info("Exported %s and %s", anml_path, emap_path)
        return anml_path, emap_path

    def __repr__(self) -> str:
        return (
            f"<CompiledProgram {self.name}: {self.num_elements} comparator(s), "
            f"{self.graph.number_of_nodes()} STEs>"
        )


# ============================================================================
# Assembly
# ============================================================================

def _instantiate(
    graph: nx.DiGraph,
    template: ComparatorTemplate,
    labels: LabelSet,
    element: str,
) -> None:
    symbols = template.assign(labels)
    for ste, data in template.graph.nodes(data=True):
        graph.add_node(
            f"{element}.{ste}",
            symbols=symbols[ste],
            start=data["start"],
            report=data["report"],
            position=data["position"],
            element=element,
        )
    graph.add_edges_from(
        (f"{element}.{src}", f"{element}.{dst}") for src, dst in template.graph.edges
    )


def compile_intervals(intervals: IntervalSet, name: Optional[str] = None) -> CompiledProgram:
    """Build the aggregate automaton and element index for an IntervalSet.

    Raises:
        DegenerateInterval: the set is empty, or an interval's labels do
            not accept its own limits
        MalformedInput: an interval cannot be labeled in its domain
    """
    if len(intervals) == 0:
        raise DegenerateInterval("No intervals to program")

    stype = intervals.stype
    network = name or f"{stype.width}bytes_network"
    template = comparator_template(stype.width)
    graph = nx.DiGraph()
    element_map = ElementIndexMap()
    all_labels: list[LabelSet] = []

    for index, interval in enumerate(intervals):
        try:
            labels = label_interval(stype, interval.lower, interval.upper)
        except MalformedInput as e:
            raise DegenerateInterval(str(e), index=index)

        if labels.is_degenerate:
            raise DegenerateInterval("no comparator path can match", index=index)
        for limit in interval:
            if not labels.accepts(stype.encode(limit)):
                raise DegenerateInterval(
                    f"labels for [{stype.format(interval.lower)}, "
                    f"{stype.format(interval.upper)}] never match limit {stype.format(limit)}",
                    index=index,
                )

        element = f"{network}.comparator_{index}"
        _instantiate(graph, template, labels, element)
        element_map.add(element, index)
        all_labels.append(labels)

    logger.info(
        "Compiled %d %s interval(s) into %s (%d STEs)",
        len(intervals), stype.name, network, graph.number_of_nodes(),
    )
    return CompiledProgram(
        name=network,
        stype=stype,
        graph=graph,
        element_map=element_map,
        labels=all_labels,
    )
