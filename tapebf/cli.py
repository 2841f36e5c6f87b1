from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import StepLimitExceeded, UnbalancedBrackets, UnbalancedLoop, UnprintableOutput
from .machine import LoopMode, Machine, describe
from .parser import parse, to_input_cells, to_output_text

EXIT_OK = 0
EXIT_BAD_SOURCE = 1
EXIT_STEP_LIMIT = 2
EXIT_UNBALANCED_LOOP = 3
EXIT_UNPRINTABLE_OUTPUT = 4


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _format_output(values: List[int], numeric: bool) -> str:
    if numeric:
        return " ".join(str(value) for value in values) + ("\n" if values else "")
    return to_output_text(values)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a program on the infinite tape machine")
    parser.add_argument("source", help="Path to the program source file")
    parser.add_argument(
        "--input",
        default="",
        help="Input string; each character is fed to the program as its code point",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Stop after this many machine transitions (default: unlimited)",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in LoopMode],
        default=LoopMode.DO_WHILE.value,
        help="Loop entry behaviour (default: do-while)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject programs whose brackets do not balance before running",
    )
    parser.add_argument(
        "--numeric",
        action="store_true",
        help="Print output cells as space separated integers instead of characters",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Print every machine configuration to stderr",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        source_text = _read_source(args.source)
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_BAD_SOURCE

    try:
        program = parse(source_text, strict=args.strict)
    except UnbalancedBrackets as exc:
        print(f"Parse error: {exc}", file=sys.stderr)
        return EXIT_BAD_SOURCE

    machine = Machine(loop_mode=LoopMode(args.mode), max_steps=args.max_steps)
    config = machine.start(program, to_input_cells(args.input))
    try:
        if args.trace:
            print(describe(config), file=sys.stderr)
            for config in machine.iterate(config):
                print(describe(config), file=sys.stderr)
        else:
            config = machine.finish(config)
    except StepLimitExceeded as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_STEP_LIMIT

    if config.faulted:
        print(f"error: {UnbalancedLoop(config)}", file=sys.stderr)
        return EXIT_UNBALANCED_LOOP

    try:
        text = _format_output(config.output_values(), args.numeric)
    except UnprintableOutput as exc:
        print(f"error: {exc} (use --numeric)", file=sys.stderr)
        return EXIT_UNPRINTABLE_OUTPUT
    sys.stdout.write(text)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
