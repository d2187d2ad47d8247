"""
APSTAB Input Test Suite

Tests interval and point sources:
1. Text files (comments, blank lines, field counts, bad values)
2. Validation on add (ordering, range, NaN)
3. Real intervals crossing zero
4. Seeded random generation
5. Run options
"""

import logging
import os
import random
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from apstab.codec import Domain, ScalarType
from apstab.errors import MalformedInput, UnsupportedWidth
from apstab.intervals import Interval, IntervalSet, PointSet
from apstab.options import StabOptions


U16 = ScalarType(Domain.UNSIGNED, 2)
U32 = ScalarType(Domain.UNSIGNED, 4)
I32 = ScalarType(Domain.SIGNED, 4)
F32 = ScalarType(Domain.REAL, 4)
F64 = ScalarType(Domain.REAL, 8)


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


# --- Test 1: Files ---

def test_interval_file_with_comments(tmp_path):
    path = write(tmp_path, "intervals.txt", "# lower upper\n10 20\n\n  5   7  # short one\n30\t40\n")
    intervals = IntervalSet.from_file(path, U32)
    assert [tuple(iv) for iv in intervals] == [(10, 20), (5, 7), (30, 40)]


def test_point_file(tmp_path):
    path = write(tmp_path, "points.txt", "-5\n0\n# skipped\n7\n")
    points = PointSet.from_file(path, I32)
    assert list(points) == [-5, 0, 7]
    assert points[2] == 7


def test_wrong_field_count_reports_line(tmp_path):
    path = write(tmp_path, "intervals.txt", "1 2\n3 4 5\n")
    with pytest.raises(MalformedInput) as info:
        IntervalSet.from_file(path, U32)
    assert info.value.line == 2
    assert info.value.source == str(path)
    assert f"{path}:2:" in str(info.value)

    path = write(tmp_path, "points.txt", "1\n2 3\n")
    with pytest.raises(MalformedInput) as info:
        PointSet.from_file(path, U32)
    assert info.value.line == 2


def test_bad_values_report_line(tmp_path):
    path = write(tmp_path, "intervals.txt", "1 2\n# fine\n0 70000\n")
    with pytest.raises(MalformedInput) as info:
        IntervalSet.from_file(path, U16)
    assert info.value.line == 3

    path = write(tmp_path, "reversed.txt", "20 10\n")
    with pytest.raises(MalformedInput) as info:
        IntervalSet.from_file(path, U32)
    assert info.value.line == 1


def test_missing_file(tmp_path):
    with pytest.raises(MalformedInput):
        IntervalSet.from_file(tmp_path / "absent.txt", U32)


def test_unreadable_files(tmp_path):
    path = tmp_path / "binary.txt"
    path.write_bytes(b"10 20\n\xff\xfe 30\n")
    with pytest.raises(MalformedInput, match="Not UTF-8") as info:
        IntervalSet.from_file(path, U32)
    assert info.value.source == str(path)
    with pytest.raises(MalformedInput):
        PointSet.from_file(path, U32)

    with pytest.raises(MalformedInput, match="Cannot read file"):
        IntervalSet.from_file(tmp_path, U32)


# --- Test 2: Validation ---

def test_add_validates_limits():
    intervals = IntervalSet(U32)
    assert intervals.add(7, 7) == [0]
    with pytest.raises(MalformedInput):
        intervals.add(8, 7)
    with pytest.raises(MalformedInput):
        intervals.add(0, 1 << 32)
    with pytest.raises(MalformedInput):
        IntervalSet(F32).add(float("nan"), 1.0)
    assert len(intervals) == 1


def test_points_are_rounded_to_width():
    points = PointSet(F32, [0.1])
    assert points[0] == F32.decode(F32.encode(0.1))
    with pytest.raises(MalformedInput):
        PointSet(U16, [65536])


def test_stabbed_by_direct_comparison():
    intervals = IntervalSet(I32, [(-10, 0), (0, 10), (20, 30)])
    assert intervals.stabbed_by(0) == [0, 1]
    assert intervals.stabbed_by(15) == []
    assert Interval(1, 5).contains(I32, 5)


# --- Test 3: Real intervals crossing zero ---

def test_crossing_real_interval_is_split(caplog):
    intervals = IntervalSet(F64, [(1.0, 2.0)])
    with caplog.at_level(logging.INFO, logger="apstab.intervals"):
        indices = intervals.add(-3.0, 4.0)
    assert indices == [1, 2]
    assert tuple(intervals[1]) == (-3.0, -0.0)
    assert tuple(intervals[2]) == (0.0, 4.0)
    assert "Splitting the interval" in caplog.text
    assert intervals.stabbed_by(-0.0) == [1]
    assert intervals.stabbed_by(0.0) == [2]


def test_negative_zero_orders_before_positive_zero():
    intervals = IntervalSet(F32)
    assert intervals.add(-0.0, 0.0) == [0, 1]
    with pytest.raises(MalformedInput):
        intervals.add(0.0, -0.0)


# --- Test 4: Random generation ---

def test_random_generation_is_reproducible():
    first = IntervalSet.random(50, I32, random.Random(5))
    second = IntervalSet.random(50, I32, random.Random(5))
    assert [tuple(iv) for iv in first] == [tuple(iv) for iv in second]
    assert all(I32.less_equal(iv.lower, iv.upper) for iv in first)
    assert list(PointSet.random(20, U32, random.Random(5))) == list(PointSet.random(20, U32, random.Random(5)))


def test_random_reals_stay_in_range():
    intervals = IntervalSet.random(100, F32, random.Random(3))
    assert len(intervals) >= 100
    for iv in intervals:
        assert F32.is_negative(iv.lower) == F32.is_negative(iv.upper)
        assert -F32.max_value <= iv.lower <= iv.upper <= F32.max_value


# --- Test 5: Run options ---

def test_options_choose_file_over_random(tmp_path, caplog):
    path = write(tmp_path, "points.txt", "1\n2\n")
    options = StabOptions(points_file=str(path), num_points=10)
    with caplog.at_level(logging.WARNING, logger="apstab.options"):
        options.validate()
    assert "random-points" in caplog.text
    assert list(options.load_points(random.Random(0))) == [1, 2]


def test_options_reject_unusable_settings(tmp_path):
    with pytest.raises(MalformedInput):
        StabOptions(intervals_file=str(tmp_path / "absent.txt")).validate()
    with pytest.raises(MalformedInput):
        StabOptions(num_bytes=8, max_chunk_size=4).validate()
    with pytest.raises(UnsupportedWidth):
        StabOptions(num_bytes=3).validate()
    with pytest.raises(MalformedInput):
        StabOptions().load_intervals(random.Random(0))
    with pytest.raises(MalformedInput):
        StabOptions().load_points(random.Random(0))


def test_options_scalar_type():
    assert StabOptions(num_bytes=2, signed=True).scalar_type == ScalarType(Domain.SIGNED, 2)
    assert StabOptions(num_bytes=8, signed=True, real=True).scalar_type == F64
