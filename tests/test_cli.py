"""
APSTAB CLI Test Suite

Runs the `apstab` commands through main() and checks output and exit codes.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from apstab.cli import main


@pytest.fixture
def inputs(tmp_path):
    intervals = tmp_path / "intervals.txt"
    intervals.write_text("10 20\n100 200\n15 150\n", encoding="utf-8")
    points = tmp_path / "points.txt"
    points.write_text("5\n15\n175\n", encoding="utf-8")
    return str(intervals), str(points)


def test_label_prints_parameters(capsys):
    assert main(["--no-color", "label", "10", "20"]) == 0
    out = capsys.readouterr().out
    assert "LABEL: [10, 20] [uint32]" in out
    assert "lower bytes: 00 00 00 0a" in out
    assert "%p14" in out and "[\\x0a-\\x14]" in out
    assert "(empty)" in out


def test_label_signed_and_real(capsys):
    assert main(["--no-color", "label", "-5", "5", "--signed", "-b", "2"]) == 0
    out = capsys.readouterr().out
    assert "[int16]" in out and "ff fb" in out

    assert main(["--no-color", "label", "-1.5", "2", "--real"]) == 0
    out = capsys.readouterr().out
    assert out.count("LABEL:") == 2


def test_label_exponent_and_infinite_limits_after_separator(capsys):
    assert main(["--no-color", "label", "--real", "--", "-inf", "-1e5"]) == 0
    out = capsys.readouterr().out
    assert "LABEL: [-inf, -100000] [float32]" in out
    assert "lower bytes: ff 80 00 00" in out


def test_label_rejects_reversed_limits(capsys):
    assert main(["--no-color", "label", "20", "10"]) == 1
    assert "exceeds upper limit" in capsys.readouterr().out


def test_stab_from_files(inputs, capsys):
    intervals, points = inputs
    assert main(["--no-color", "stab", "-i", intervals, "-p", points, "-d", "sim", "--verify"]) == 0
    out = capsys.readouterr().out
    assert "Point\tStabbed Intervals" in out
    assert "  15\t[10,20]\t[15,150]" in out
    assert "  175\t[100,200]" in out
    assert "agree with direct comparison" in out


def test_stab_random_inputs(capsys):
    argv = ["--no-color", "stab", "-I", "20", "-P", "200", "-s", "7", "-b", "8", "--signed",
            "-d", "sim", "-c", "100", "--verify"]
    assert main(argv) == 0
    assert "All 200 point(s) agree" in capsys.readouterr().out


def test_stab_without_hits(tmp_path, capsys):
    intervals = tmp_path / "intervals.txt"
    intervals.write_text("10 20\n", encoding="utf-8")
    points = tmp_path / "points.txt"
    points.write_text("1\n2\n", encoding="utf-8")
    assert main(["--no-color", "stab", "-i", str(intervals), "-p", str(points), "-d", "sim"]) == 0
    assert "None of the points were found to be stabbing any intervals." in capsys.readouterr().out


def test_stab_without_device(inputs, capsys):
    intervals, points = inputs
    assert main(["--no-color", "stab", "-i", intervals, "-p", points]) == 0
    assert "No device provided" in capsys.readouterr().out


def test_stab_exports_program(inputs, tmp_path, capsys):
    intervals, points = inputs
    base = str(tmp_path / "run")
    assert main(["--no-color", "stab", "-i", intervals, "-p", points, "-d", "sim", "-f", base]) == 0
    assert os.path.exists(base + ".anml") and os.path.exists(base + ".emap")


def test_compile(inputs, tmp_path, capsys):
    intervals, _ = inputs
    base = str(tmp_path / "net")
    assert main(["--no-color", "compile", "-i", intervals, "-f", base]) == 0
    out = capsys.readouterr().out
    assert "Comparators: 3" in out
    assert os.path.exists(base + ".anml") and os.path.exists(base + ".emap")


def test_errors_exit_with_one(tmp_path, capsys):
    missing = str(tmp_path / "missing.txt")
    assert main(["--no-color", "stab", "-i", missing, "-P", "5", "-d", "sim"]) == 1
    assert "Couldn't find the intervals file" in capsys.readouterr().out

    assert main(["--no-color", "stab", "-I", "5", "-P", "5", "-b", "3", "-d", "sim"]) == 1
    assert "Unsupported number of bytes" in capsys.readouterr().out

    assert main(["--no-color", "stab", "-I", "5", "-P", "5", "-d", "fpga0"]) == 1
    assert "No device named" in capsys.readouterr().out


def test_binary_input_file_exits_with_one(inputs, tmp_path, capsys):
    _, points = inputs
    binary = tmp_path / "binary.txt"
    binary.write_bytes(b"10 20\n\xff\xfe 30\n")
    assert main(["--no-color", "stab", "-i", str(binary), "-p", points, "-d", "sim"]) == 1
    assert "Not UTF-8" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main(["--no-color"]) == 1
    assert "usage:" in capsys.readouterr().out
