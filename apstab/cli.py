#!/usr/bin/env python3
"""
APSTAB — interval stabbing on byte-stream automata

Command-line interface.

Usage:
    apstab stab -i intervals.txt -p points.txt -d sim     Stab points against intervals
    apstab stab -I 100 -P 1000 -s 7 -d sim --verify       Random inputs, checked directly
    apstab compile -i intervals.txt -f network            Export .anml / .emap artifacts
    apstab label 10 20 --bytes 4                          Show per-byte acceptance sets
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
import textwrap
from typing import Optional

from apstab import __version__
from apstab.comparator import comparator_template
from apstab.compiler import compile_intervals
from apstab.errors import StabError
from apstab.labeling import label_interval, split_real_interval
from apstab.options import StabOptions
from apstab.runtime import stab


# ============================================================================
# Formatting helpers
# ============================================================================

class C:
    """ANSI colors."""
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    RESET = "\033[0m"

    @staticmethod
    def off():
        C.BOLD = C.DIM = C.RED = C.GREEN = C.YELLOW = ""
        C.CYAN = C.RESET = ""


def header(text: str) -> str:
    return f"\n{C.BOLD}{C.CYAN}{'─' * 60}{C.RESET}\n{C.BOLD}  {text}{C.RESET}\n{C.BOLD}{C.CYAN}{'─' * 60}{C.RESET}"


def ok(text: str) -> str:
    return f"  {C.GREEN}✓{C.RESET} {text}"


def warn(text: str) -> str:
    return f"  {C.YELLOW}⚠{C.RESET} {text}"


def fail(text: str) -> str:
    return f"  {C.RED}✗{C.RESET} {text}"


def dim(text: str) -> str:
    return f"{C.DIM}{text}{C.RESET}"


# ============================================================================
# Commands
# ============================================================================

def cmd_stab(args) -> int:
    """Stab points against intervals and print the table."""
    options = StabOptions.from_args(args)
    options.validate()
    stype = options.scalar_type
    rng = random.Random(options.seed)
    intervals = options.load_intervals(rng)
    points = options.load_points(rng)

    print(header(f"STAB: {len(intervals)} interval(s) × {len(points)} point(s) [{stype.name}]"))

    program = compile_intervals(intervals, options.fsm_name)
    if options.fsm_name:
        print(dim(program.summary()))
        for path in program.export(options.fsm_name):
            print(ok(f"Wrote {path}"))

    result = stab(intervals, points, options.device, options.max_chunk_size, program=program)

    if result.degraded:
        print(warn("No device provided. Unable to determine stabbed intervals."))
        return 0

    print(dim(f"  Engine: {result.engine}  |  Chunks: {result.chunks}  |  Events: {result.events}"))
    if not result.stabs:
        print("\n  None of the points were found to be stabbing any intervals.")
    else:
        print(f"\n  {C.BOLD}Point\tStabbed Intervals{C.RESET}")
        for p, point in enumerate(points):
            row = [stype.format(point)]
            for i in sorted(result.get(p, [])):
                iv = intervals[i]
                row.append(f"[{stype.format(iv.lower)},{stype.format(iv.upper)}]")
            print("  " + "\t".join(row))

    if args.verify:
        mismatches = [
            p for p, point in enumerate(points)
            if set(result.get(p, [])) != set(intervals.stabbed_by(point))
        ]
        if mismatches:
            print(fail(f"{len(mismatches)} point(s) disagree with direct comparison: {mismatches[:10]}"))
            return 1
        print(ok(f"All {len(points)} point(s) agree with direct comparison"))
    return 0


def cmd_compile(args) -> int:
    """Compile intervals and export the program artifacts."""
    options = StabOptions.from_args(args)
    options.validate()
    intervals = options.load_intervals(random.Random(options.seed))

    print(header(f"COMPILE: {len(intervals)} interval(s) [{options.scalar_type.name}]"))
    program = compile_intervals(intervals, options.fsm_name)
    print(dim(program.summary()))
    for path in program.export(options.fsm_name):
        print(ok(f"Wrote {path}"))
    return 0


def cmd_label(args) -> int:
    """Print the acceptance sets of one interval."""
    options = StabOptions(num_bytes=args.num_bytes, signed=args.signed, real=args.real)
    stype = options.scalar_type
    lower = stype.parse(args.lower)
    upper = stype.parse(args.upper)
    if not stype.less_equal(lower, upper):
        print(fail(f"Lower limit {args.lower} exceeds upper limit {args.upper}"))
        return 1

    template = comparator_template(stype.width)
    for part_lower, part_upper in split_real_interval(stype, lower, upper):
        print(header(f"LABEL: [{stype.format(part_lower)}, {stype.format(part_upper)}] [{stype.name}]"))
        x = stype.encode(part_lower).hex(" ")
        y = stype.encode(part_upper).hex(" ")
        print(dim(f"  lower bytes: {x}\n  upper bytes: {y}"))
        labels = label_interval(stype, part_lower, part_upper)
        for position, branch, symbols in labels.items():
            param = template.slot(position, branch)
            shown = symbols.to_anml() if symbols else dim("(empty)")
            print(f"    byte {position}  {branch.value:12s} {param:6s} {shown}")
    return 0


# ============================================================================
# CLI setup
# ============================================================================

def _add_domain_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-b", "--bytes", dest="num_bytes", type=int, default=4, help="Number of bytes per value")
    p.add_argument("--signed", action="store_true", help="Use signed numbers for labeling")
    p.add_argument("--real", action="store_true", help="Use real numbers for labeling")


def _add_interval_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-i", "--intervals", dest="intervals_file", help="File from which intervals are read")
    p.add_argument("-I", "--random-intervals", dest="num_intervals", type=int, default=0,
                   help="Number of random intervals to program")
    p.add_argument("-s", "--seed", type=int, default=0, help="Seed for the random number generator")
    _add_domain_args(p)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apstab",
        description="Determine which intervals are stabbed by which points",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
        examples:
          apstab stab -i intervals.txt -p points.txt -d sim
          apstab stab -I 100 -P 1000 --signed -b 8 -d sim --verify
          apstab compile -i intervals.txt -f 4bytes_network
          apstab label -5 5 --signed
          apstab label --real -- -inf -1e5    (limits such as -1e5 or -inf go after --)
        """),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress (DEBUG level)")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    # stab
    p = sub.add_parser("stab", help="Stab points against intervals")
    _add_interval_args(p)
    p.add_argument("-p", "--points", dest="points_file", help="File from which points are read")
    p.add_argument("-P", "--random-points", dest="num_points", type=int, default=0,
                   help="Number of random points to stab with")
    p.add_argument("-d", "--device", help="Matching engine device (e.g. sim)")
    p.add_argument("-f", "--fsm", dest="fsm_name", help="Also export the program under this name")
    p.add_argument("-c", "--chunks", dest="max_chunk_size", type=int, default=None,
                   help="Maximum chunk size of a flow to the engine, in bytes")
    p.add_argument("--verify", action="store_true", help="Check results against direct comparison")

    # compile
    p = sub.add_parser("compile", help="Compile intervals and export the program")
    _add_interval_args(p)
    p.add_argument("-f", "--fsm", dest="fsm_name", required=True, help="Base name of the exported files")

    # label
    p = sub.add_parser(
        "label",
        help="Show the acceptance sets of one interval",
        epilog="Put limits like -1e5 or -inf after -- so they are not read as options.",
    )
    p.add_argument("lower", help="Lower limit")
    p.add_argument("upper", help="Upper limit")
    _add_domain_args(p)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color:
        C.off()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "stab": cmd_stab,
        "compile": cmd_compile,
        "label": cmd_label,
    }

    try:
        return commands[args.command](args)
    except StabError as e:
        print(fail(str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
