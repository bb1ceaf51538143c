#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
interdataflow/__main__.py
=========================

Command-line entry point.

Usage
-----
    python -m interdataflow <command> [options] <ir-file>

Commands
--------
    analyze     Run interprocedural constant propagation and print the facts
    check       Parse the program and build its ICFG (no analysis)
    dump-icfg   Print the ICFG in Graphviz DOT form

Pipeline
--------
::

    .ir source
        │
        ▼
    ┌──────────┐
    │  Parser   │   parsimonious → ir.Program
    └────┬─────┘
         │
         ▼
    ┌──────────────┐
    │  Call graph   │   reachable methods from the entries
    │  + ICFG       │
    └────┬─────────┘
         │
         ▼
    ┌──────────────┐
    │  InterSolver  │   worklist fixpoint
    └────┬─────────┘
         │
         ▼
    text / JSON report

Exit codes: 0 on success, 1 on a user error (bad input, bad configuration),
2 on an internal error, 130 when interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import textwrap
import traceback
from typing import List, Optional, Sequence, TextIO

from termcolor import colored

from interdataflow import __version__
from interdataflow.config import AnalysisConfig
from interdataflow.errors import InterDataflowError
from interdataflow.icfg import InterproceduralCFG, build_icfg
from interdataflow.inter_constprop import analyze
from interdataflow.ir import Program
from interdataflow.ir_parser import parse_program, parse_program_file
from interdataflow.report import print_results, result_to_dict

__description__ = "Interprocedural constant propagation over a small IR"

logger = logging.getLogger("interdataflow")


# ═══════════════════════════════════════════════════════════════════════════
# DIAGNOSTICS
# ═══════════════════════════════════════════════════════════════════════════

def _error(message: str, stream: Optional[TextIO] = None) -> None:
    (stream or sys.stderr).write(f"{colored('error:', 'red', attrs=['bold'])} {message}\n")


def _ok(message: str, stream: Optional[TextIO] = None) -> None:
    (stream or sys.stderr).write(f"{colored('✓', 'green')} {message}\n")


def _configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "debug", False):
        level = logging.DEBUG
    elif getattr(args, "verbose", False):
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ═══════════════════════════════════════════════════════════════════════════
# SHARED STEPS
# ═══════════════════════════════════════════════════════════════════════════

def _load_program(path: str) -> Program:
    if path == "-":
        return parse_program(sys.stdin.read(), filename="<stdin>")
    return parse_program_file(path)


def _build_config(args: argparse.Namespace) -> AnalysisConfig:
    config = (
        AnalysisConfig.from_json_file(args.config)
        if getattr(args, "config", None)
        else AnalysisConfig()
    )
    overrides = {}
    if getattr(args, "entry", None):
        overrides["entry_methods"] = tuple(args.entry)
    if getattr(args, "strategy", None):
        overrides["strategy"] = args.strategy
    if getattr(args, "max_iterations", None) is not None:
        overrides["max_iterations"] = args.max_iterations
    if getattr(args, "warn_arity", False):
        overrides["warn_arity_mismatch"] = True
    return config.with_options(**overrides) if overrides else config


def _prepare(args: argparse.Namespace):
    """Load the program and configuration, build the ICFG."""
    config = _build_config(args)
    program = _load_program(args.input)
    icfg = build_icfg(program, config.entry_methods)
    return config, program, icfg


# ═══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════

def cmd_analyze(args: argparse.Namespace) -> int:
    """Handle the 'analyze' command."""
    try:
        config, program, icfg = _prepare(args)
        result = analyze(program, config, icfg=icfg)
    except (InterDataflowError, OSError) as e:
        _error(str(e))
        return 1

    unknown = _unknown_methods(icfg, args.method)
    if unknown:
        _error(f"not a reachable method: {', '.join(unknown)}")
        return 1

    if args.format == "json":
        data = result_to_dict(
            result, icfg, methods=args.method, show_temps=args.show_temps
        )
        json.dump(data, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print_results(
            result, icfg, methods=args.method, show_temps=args.show_temps,
            file=sys.stdout,
        )
    logger.info(
        "Analysed %d nodes in %d iterations (%.4fs)",
        len(icfg), result.iterations, result.elapsed_seconds,
    )
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command (parse + ICFG, no analysis)."""
    try:
        _, program, icfg = _prepare(args)
    except (InterDataflowError, OSError) as e:
        _error(str(e))
        return 1

    if not args.quiet:
        _ok(
            f"{args.input}: {len(program)} method(s), "
            f"{len(icfg.methods())} reachable, {len(icfg)} ICFG node(s), "
            f"{len(icfg.edges)} edge(s)"
        )
    return 0


def cmd_dump_icfg(args: argparse.Namespace) -> int:
    """Handle the 'dump-icfg' command."""
    try:
        _, _, icfg = _prepare(args)
    except (InterDataflowError, OSError) as e:
        _error(str(e))
        return 1

    dot = icfg.to_dot(title=os.path.basename(args.input))
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(dot + "\n")
        except OSError as e:
            _error(f"Cannot write output: {e}")
            return 1
    else:
        sys.stdout.write(dot + "\n")
    return 0


def _unknown_methods(icfg: InterproceduralCFG, names: Optional[List[str]]) -> List[str]:
    if not names:
        return []
    known = {m.name for m in icfg.methods()}
    return [n for n in names if n not in known]


# ═══════════════════════════════════════════════════════════════════════════
# ARGUMENT PARSER
# ═══════════════════════════════════════════════════════════════════════════

def _add_common_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "input",
        help="Input IR file (use '-' for stdin)",
    )
    p.add_argument(
        "-e", "--entry",
        action="append",
        metavar="METHOD",
        help="Entry method (repeatable; default: main)",
    )
    p.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="JSON configuration file",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="interdataflow",
        description=__description__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              %(prog)s analyze prog.ir
              %(prog)s analyze prog.ir --format json --method id
              %(prog)s check prog.ir --entry start
              %(prog)s dump-icfg prog.ir -o prog.dot
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Log progress information",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log solver and graph construction details",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="available commands",
        metavar="<command>",
    )

    # ── analyze ──────────────────────────────────────────────────────────

    p_analyze = subparsers.add_parser(
        "analyze",
        help="Run interprocedural constant propagation",
        description=(
            "Parse an IR program, build its ICFG from the entry methods and "
            "print the constant-propagation fact after every statement."
        ),
    )
    _add_common_arguments(p_analyze)
    p_analyze.add_argument(
        "--strategy",
        choices=["fifo", "lifo"],
        help="Worklist order (default: fifo)",
    )
    p_analyze.add_argument(
        "--max-iterations",
        type=int,
        metavar="N",
        help="Fail if no fixpoint is reached after N iterations",
    )
    p_analyze.add_argument(
        "-f", "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    p_analyze.add_argument(
        "-m", "--method",
        action="append",
        metavar="METHOD",
        help="Only report this method (repeatable)",
    )
    p_analyze.add_argument(
        "--show-temps",
        action="store_true",
        default=False,
        help="Include literal temporaries in the output",
    )
    p_analyze.add_argument(
        "--warn-arity",
        action="store_true",
        default=False,
        help="Warn about calls passing more or fewer arguments than declared",
    )
    p_analyze.set_defaults(func=cmd_analyze)

    # ── check ────────────────────────────────────────────────────────────

    p_check = subparsers.add_parser(
        "check",
        help="Parse a program and build its ICFG",
    )
    _add_common_arguments(p_check)
    p_check.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress non-error output",
    )
    p_check.set_defaults(func=cmd_check)

    # ── dump-icfg ────────────────────────────────────────────────────────

    p_dump = subparsers.add_parser(
        "dump-icfg",
        help="Print the ICFG as Graphviz DOT",
    )
    _add_common_arguments(p_dump)
    p_dump.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)",
    )
    p_dump.set_defaults(func=cmd_dump_icfg)

    return parser


# ═══════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the interdataflow CLI.

    Parameters
    ----------
    argv : sequence of str, optional
        Command-line arguments. Defaults to sys.argv[1:].

    Returns
    -------
    int
        Exit code (0 = success, non-zero = failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args)

    try:
        return args.func(args)
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted.\n")
        return 130
    except BrokenPipeError:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 0
    except Exception as e:
        sys.stderr.write(f"\n{colored('Internal error:', 'red', attrs=['bold'])} {e}\n")
        traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
