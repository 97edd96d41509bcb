#!/usr/bin/env python3
"""Command-line interface for the assembly pretty printer."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from asmprinter import PrettyPrinter, PrinterConfig, ProgramModel, default_registry


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "model",
        nargs="?",
        type=Path,
        help="JSON export of the program model to print",
    )
    parser.add_argument(
        "-o",
        "--out",
        type=Path,
        default=None,
        help="Override the default <model>.s output path ('-' writes to stdout)",
    )
    parser.add_argument("--format", default="elf", help="Binary format of the target")
    parser.add_argument(
        "--syntax",
        default=None,
        help="Assembler dialect; defaults to the format's preferred syntax",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print addresses, comments and normally skipped code",
    )
    parser.add_argument(
        "--keep-function",
        action="append",
        default=[],
        metavar="NAME",
        help="Print a function that is skipped by default",
    )
    parser.add_argument(
        "--skip-function",
        action="append",
        default=[],
        metavar="NAME",
        help="Leave the named function out of the listing",
    )
    parser.add_argument(
        "--list-targets",
        action="store_true",
        help="List the registered format/syntax pairs and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, registry) -> PrinterConfig:
    try:
        config = PrinterConfig.for_target(
            args.format, args.syntax, registry=registry, debug=args.debug
        )
    except KeyError as exc:
        raise SystemExit(f"unknown target: {exc.args[0]}") from None
    for name in args.keep_function:
        config.keep_function(name)
    for name in args.skip_function:
        config.skip_function(name)
    return config


def main(argv: Optional[Sequence[str]] = None) -> None:
    start_time = time.perf_counter()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    registry = default_registry()

    if args.list_targets:
        for fmt, syntax in sorted(registry.targets()):
            print(f"{fmt} {syntax}")
        return
    if args.model is None:
        raise SystemExit("missing program model path")
    if not args.model.exists():
        raise SystemExit(f"missing input file: {args.model}")

    config = build_config(args, registry)
    try:
        model = ProgramModel.load(args.model)
    except (ValueError, KeyError) as exc:
        raise SystemExit(f"invalid program model {args.model}: {exc}") from None

    printer = PrettyPrinter(config, registry=registry)
    try:
        if args.out is not None and str(args.out) == "-":
            printer.print(model, sys.stdout)
            return
        output_path = args.out or args.model.with_suffix(".s")
        report = printer.write(model, output_path)
    except ValueError as exc:
        raise SystemExit(f"printing failed: {exc}") from None

    print(f"assembly written to {output_path}")
    if report.overlaps:
        print(f"dropped {len(report.overlaps)} overlapping element(s)")
    total_time = time.perf_counter() - start_time
    print(f"total execution time: {total_time:.2f}s")


if __name__ == "__main__":
    main()
