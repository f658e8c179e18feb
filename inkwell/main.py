"""
inkwell/main.py
===============

Command-line interface.

Usage
-----
    inkwell dip FILE [-f FUNC] [-o compact|detailed|json] [--threshold N] [--config FILE]
    inkwell instrument FILE [-o OUT]
    inkwell report FILE [--config FILE]

Commands
--------
    dip (d, analyze)   Estimate the ink cost of every entry point
    instrument (i)     Insert runtime probes and the tracking module
    report             Re-check a runtime report dumped by an instrumented build

Exit codes
----------
    0    success
    1    analysis failure (parse error, no entry points, unknown function)
    2    infrastructure failure (unreadable file, bad configuration)
    130  interrupted
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from typing import Optional, Sequence

from inkwell import __version__
from inkwell.analyzer import analyze_contract
from inkwell.config import DEFAULT_CONFIG, AnalysisConfig, load_config
from inkwell.errors import ConfigError, InkwellError
from inkwell.instrumentor import Instrumentor
from inkwell.report import FORMATS, render_report
from inkwell.runtime import format_report, parse_ink_report, recheck_report

__all__ = ["build_parser", "main"]

log = logging.getLogger("inkwell")

EXIT_OK = 0
EXIT_ANALYSIS = 1
EXIT_INFRA = 2
EXIT_INTERRUPTED = 130

_LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s"


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    root = logging.getLogger("inkwell")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(level)


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


def _config(args: argparse.Namespace) -> AnalysisConfig:
    if getattr(args, "config", None):
        return load_config(args.config)
    return DEFAULT_CONFIG


def _unreadable(path: str, exc: Exception) -> int:
    if isinstance(exc, UnicodeDecodeError):
        reason = f"not valid UTF-8 (byte {exc.start})"
    else:
        reason = exc.strerror
    sys.stderr.write(f"{path}: error: cannot read file: {reason}\n")
    return EXIT_INFRA


def _fail(exc: InkwellError) -> int:
    sys.stderr.write(exc.to_gcc_format() + "\n")
    return EXIT_INFRA if isinstance(exc, ConfigError) else EXIT_ANALYSIS


# ═══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════

def cmd_dip(args: argparse.Namespace) -> int:
    try:
        config = _config(args)
        source = _read(args.file)
        analysis = analyze_contract(source, args.function, args.file, config)
    except InkwellError as exc:
        return _fail(exc)
    except (OSError, UnicodeDecodeError) as exc:
        return _unreadable(args.file, exc)
    sys.stdout.write(render_report(analysis, args.output, args.threshold))
    return EXIT_OK


def cmd_instrument(args: argparse.Namespace) -> int:
    try:
        config = _config(args)
        source = _read(args.file)
        instrumentor = Instrumentor(config.runtime)
        text = instrumentor.instrument(source, args.file)
    except InkwellError as exc:
        return _fail(exc)
    except (OSError, UnicodeDecodeError) as exc:
        return _unreadable(args.file, exc)

    listing = sys.stdout
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as exc:
            sys.stderr.write(f"{args.output}: error: cannot write file: {exc.strerror}\n")
            return EXIT_INFRA
        log.info("wrote %s", args.output)
    else:
        sys.stdout.write(text)
        listing = sys.stderr

    listing.write(f"Inserted {len(instrumentor.operations)} probe(s)\n")
    for op in instrumentor.operations:
        listing.write(f"  #{op.probe_id:<3} {op.operation_type:<14} line {op.line:<5} {op.function}\n")
    return EXIT_OK


def cmd_report(args: argparse.Namespace) -> int:
    try:
        config = _config(args)
        text = _read(args.file)
    except InkwellError as exc:
        return _fail(exc)
    except (OSError, UnicodeDecodeError) as exc:
        return _unreadable(args.file, exc)
    report = parse_ink_report(text)
    bugs = recheck_report(report, config.runtime)
    sys.stdout.write(format_report(report.total_ink, report.probes, bugs))
    return EXIT_OK


# ═══════════════════════════════════════════════════════════════════════════
# ARGUMENT PARSER
# ═══════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Static ink-cost estimator and probe instrumentor for Stylus contracts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              %(prog)s dip src/lib.rs
              %(prog)s dip src/lib.rs -f transfer -o detailed
              %(prog)s instrument src/lib.rs -o src/lib_profiled.rs
              %(prog)s report ink-report.txt
        """),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # ── dip ──────────────────────────────────────────────────────────────

    p_dip = subparsers.add_parser(
        "dip",
        aliases=["d", "analyze"],
        help="Estimate ink cost per entry point",
    )
    p_dip.add_argument("file", help="Contract source file")
    p_dip.add_argument("-f", "--function", help="Only analyze this entry point")
    p_dip.add_argument(
        "-o", "--output",
        choices=sorted(FORMATS),
        default="compact",
        help="Report format (default: compact)",
    )
    p_dip.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Mark operations at or above this ink in the detailed report",
    )
    p_dip.add_argument("--config", help="JSON file overriding cost and detector constants")
    p_dip.set_defaults(func=cmd_dip)

    # ── instrument ───────────────────────────────────────────────────────

    p_inst = subparsers.add_parser(
        "instrument",
        aliases=["i"],
        help="Insert runtime probes",
    )
    p_inst.add_argument("file", help="Contract source file")
    p_inst.add_argument("-o", "--output", help="Write the instrumented source here (default: stdout)")
    p_inst.add_argument("--config", help="JSON file overriding the runtime thresholds")
    p_inst.set_defaults(func=cmd_instrument)

    # ── report ───────────────────────────────────────────────────────────

    p_report = subparsers.add_parser(
        "report",
        help="Re-check a dumped runtime report",
    )
    p_report.add_argument("file", help="Report text produced by dump_report()")
    p_report.add_argument("--config", help="JSON file overriding the runtime thresholds")
    p_report.set_defaults(func=cmd_report)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        return args.func(args)
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted.\n")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
