"""
APSTAB Compiler Test Suite

Tests program assembly:
1. Comparator templates (STEs, parameter table, start/report elements)
2. Element index map
3. Compilation of interval sets
4. Degenerate intervals are rejected
5. Exported artifacts
"""

import json
import os
import sys
import xml.etree.ElementTree as ET

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from apstab import comparator, compiler
from apstab.codec import Domain, ScalarType
from apstab.comparator import comparator_template
from apstab.compiler import ElementIndexMap, compile_intervals
from apstab.errors import DegenerateInterval
from apstab.intervals import IntervalSet
from apstab.labeling import Branch, LabelSet
from apstab.symbols import SymbolSet


U8 = ScalarType(Domain.UNSIGNED, 1)
U32 = ScalarType(Domain.UNSIGNED, 4)
I16 = ScalarType(Domain.SIGNED, 2)
F32 = ScalarType(Domain.REAL, 4)


# --- Test 1: Templates ---

def test_four_byte_template_parameters():
    template = comparator_template(4)
    assert template.graph.number_of_nodes() == 16
    assert len(template.slots) == 13
    assert template.slot(0, Branch.BETWEEN) == "%p2"
    assert template.slot(0, Branch.LOWER_EQUAL) == "%p1"
    assert template.slot(0, Branch.UPPER_EQUAL) == "%p4"
    assert template.slot(1, Branch.LOWER_ABOVE) == "%p6"
    assert template.slot(3, Branch.UPPER_BELOW) == "%p15"
    params = set(template.slots.values())
    # parameters 3 and 4B-3 have no slot
    assert "%p3" not in params and "%p13" not in params
    assert template.slot_elements["%p2"] == "between"
    with pytest.raises(KeyError):
        template.slot(3, Branch.LOWER_EQUAL)


def test_template_start_and_report_elements():
    template = comparator_template(4)
    assert sorted(template.start_elements) == ["between", "lower_eq_0", "upper_eq_0"]
    assert sorted(template.report_elements) == ["free_3", "lower_above_3", "upper_below_3"]


def test_single_byte_template():
    template = comparator_template(1)
    assert list(template.graph.nodes) == ["span"]
    assert template.slot(0, Branch.SPAN) == "%p1"
    assert template.start_elements == ["span"]
    assert template.report_elements == ["span"]


def test_two_byte_template():
    template = comparator_template(2)
    assert template.graph.number_of_nodes() == 6
    assert sorted(template.slots.values()) == ["%p1", "%p2", "%p4", "%p6", "%p7"]
    assert sorted(template.start_elements) == ["between", "lower_eq_0", "upper_eq_0"]
    assert sorted(template.report_elements) == ["free_1", "lower_above_1", "upper_below_1"]
    assert set(template.graph.edges) == {
        ("between", "free_1"),
        ("lower_eq_0", "lower_above_1"),
        ("upper_eq_0", "upper_below_1"),
    }
    general = comparator._multi_byte_template(2)
    assert set(general.graph.edges) == set(template.graph.edges)
    assert general.slots == template.slots


def test_templates_are_shared_per_width():
    assert comparator_template(8) is comparator_template(8)
    with pytest.raises(ValueError):
        comparator_template(0)


def test_assign_rejects_other_widths():
    with pytest.raises(ValueError):
        comparator_template(4).assign(LabelSet(2))


# --- Test 2: Element index map ---

def test_element_index_map():
    emap = ElementIndexMap()
    emap.add("net.comparator_0", 0)
    emap.add("net.comparator_1", 0)
    assert emap["net.comparator_1"] == 0
    assert sorted(emap.elements_for(0)) == ["net.comparator_0", "net.comparator_1"]
    with pytest.raises(ValueError):
        emap.add("net.comparator_0", 2)
    restored = ElementIndexMap.from_json(json.loads(json.dumps(emap.to_json())))
    assert dict(restored.items()) == dict(emap.items())


# --- Test 3: Compilation ---

def test_compile_maps_every_interval():
    intervals = IntervalSet(U32, [(10, 20), (0, 5), (100, 1000)])
    program = compile_intervals(intervals)
    assert program.name == "4bytes_network"
    assert program.num_elements == 3
    assert program.graph.number_of_nodes() == 3 * 16
    for i in range(3):
        assert program.element_map[f"4bytes_network.comparator_{i}"] == i
    assert sorted(program.element_map.to_json().values()) == [0, 1, 2]
    assert len(program.start_elements) == 9


def test_compile_writes_labels_into_steps():
    program = compile_intervals(IntervalSet(U32, [(10, 20)]), name="net")
    node = program.graph.nodes["net.comparator_0.lower_above_3"]
    assert list(node["symbols"]) == list(range(10, 21))
    assert node["report"] and node["element"] == "net.comparator_0"
    assert program.graph.nodes["net.comparator_0.between"]["symbols"].is_empty
    assert len(program.graph.nodes["net.comparator_0.free_2"]["symbols"]) == 256


def test_compile_single_byte():
    program = compile_intervals(IntervalSet(U8, [(3, 9)]))
    assert program.name == "1bytes_network"
    assert program.graph.number_of_nodes() == 1
    assert list(program.graph.nodes["1bytes_network.comparator_0.span"]["symbols"]) == list(range(3, 10))


def test_compile_twice_gives_independent_programs():
    intervals = IntervalSet(I16, [(-5, 5)])
    first = compile_intervals(intervals)
    second = compile_intervals(intervals)
    assert first.graph is not second.graph
    assert first.element_map is not second.element_map
    assert set(first.graph.nodes) == set(second.graph.nodes)


def test_real_interval_crossing_zero_takes_two_comparators():
    intervals = IntervalSet(F32, [(-1.5, 2.5)])
    program = compile_intervals(intervals)
    assert program.num_elements == 2
    assert {program.element_map[e] for e in program.element_map} == {0, 1}


# --- Test 4: Degenerate intervals ---

def test_empty_set_is_rejected():
    with pytest.raises(DegenerateInterval):
        compile_intervals(IntervalSet(U32))


def test_labels_that_never_match_are_rejected(monkeypatch):
    monkeypatch.setattr(compiler, "label_interval", lambda stype, lower, upper: LabelSet(stype.width))
    with pytest.raises(DegenerateInterval, match="no comparator path") as info:
        compile_intervals(IntervalSet(U32, [(10, 20), (30, 40)]))
    assert info.value.index == 0


def test_labels_that_miss_a_limit_are_rejected(monkeypatch):
    def off_target(stype, lower, upper):
        return LabelSet(stype.width, {(0, Branch.BETWEEN): SymbolSet.exact(0x7F)})

    monkeypatch.setattr(compiler, "label_interval", off_target)
    with pytest.raises(DegenerateInterval, match="never match limit") as info:
        compile_intervals(IntervalSet(U32, [(10, 20)]))
    assert info.value.index == 0


# --- Test 5: Artifacts ---

def test_export_writes_anml_and_element_map(tmp_path):
    intervals = IntervalSet(U32, [(10, 20), (30, 40)])
    program = compile_intervals(intervals, name="demo")
    anml_path, emap_path = program.export(str(tmp_path / "demo"))
    assert anml_path.name == "demo.anml" and emap_path.name == "demo.emap"

    root = ET.fromstring(anml_path.read_text(encoding="utf-8"))
    network = root.find("automata-network")
    assert network.get("id") == "demo"
    stes = network.findall("state-transition-element")
    assert len(stes) == 32
    starts = [s for s in stes if s.get("start") == "all-input"]
    assert len(starts) == 6
    reporting = [s.get("id") for s in stes if s.find("report-on-match") is not None]
    assert "demo.comparator_1.free_3" in reporting
    between = next(s for s in stes if s.get("id") == "demo.comparator_0.between")
    targets = [a.get("element") for a in between.findall("activate-on-match")]
    assert targets == ["demo.comparator_0.free_1"]

    emap = json.loads(emap_path.read_text(encoding="utf-8"))
    assert emap["network"] == "demo"
    assert emap["type"] == "uint32"
    assert emap["width"] == 4
    assert emap["elements"] == {"demo.comparator_0": 0, "demo.comparator_1": 1}
