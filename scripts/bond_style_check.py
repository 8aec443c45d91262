"""Check a bond style against recorded reference data, or record new data.

usage: bond_style_check.py <testfile.yaml> [--gen <newfile.yaml> | --stats <yes|no>]

Exit codes: 0 when every execution mode passed or was skipped, 1 on a usage
error or a failing mode, 2 when the scenario document cannot be parsed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from src.forcecheck.config import load_config
from src.forcecheck.engine import EngineFactory, lammps_factory
from src.forcecheck.errors import DocumentParseError, ForceCheckError, PrerequisiteUnavailable, UsageError
from src.forcecheck.harness import EXECUTION_MODES, generate, verify_modes

LOGGER = logging.getLogger("bond_style_check")

USAGE = "usage: bond_style_check.py <testfile.yaml> [--gen <newfile.yaml> | --stats <yes|no>]"

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILED = 1
EXIT_PARSE = 2


class _UsageParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _parse_args(argv: List[str]) -> argparse.Namespace:
    # program name excluded: either the test file alone or the file plus one option pair
    if len(argv) not in (1, 3):
        raise UsageError(f"expected 1 or 3 arguments, got {len(argv)}")
    parser = _UsageParser(prog="bond_style_check.py", add_help=False, allow_abbrev=False)
    parser.add_argument("testfile", type=Path)
    options = parser.add_mutually_exclusive_group()
    options.add_argument("--gen", type=Path, metavar="NEWFILE")
    options.add_argument("--stats", metavar="yes|no")
    return parser.parse_args(argv)


def _print_stats_table(frames: List[pd.DataFrame]) -> None:
    if not frames:
        return
    table = pd.concat(frames, ignore_index=True)
    with pd.option_context("display.max_columns", None, "display.width", 160):
        print(table.to_string(index=False, float_format=lambda x: f"{x:10.3e}"))


def main(argv: Optional[Iterable[str]] = None, factory: Optional[EngineFactory] = None) -> int:
    args_list = list(sys.argv[1:] if argv is None else argv)
    try:
        args = _parse_args(args_list)
    except UsageError as exc:
        print(f"{exc}\n{USAGE}", file=sys.stderr)
        return EXIT_USAGE

    _configure_logging()
    try:
        config = load_config(args.testfile)
    except DocumentParseError as exc:
        print(f"Error parsing yaml file: {args.testfile}: {exc}", file=sys.stderr)
        return EXIT_PARSE

    factory = factory or lammps_factory
    try:
        if args.gen is not None:
            try:
                generate(config, factory, args.gen)
            except PrerequisiteUnavailable as exc:
                LOGGER.error("one or more prerequisite styles are not available in this LAMMPS configuration: %s", exc)
            return EXIT_OK

        print_stats = args.stats == "yes"
        outcomes = verify_modes(config, factory, EXECUTION_MODES, print_stats=print_stats)
    except ForceCheckError as exc:
        LOGGER.error("%s", exc)
        return EXIT_FAILED

    if print_stats:
        _print_stats_table([outcome.report.to_frame() for outcome in outcomes if outcome.report is not None])
    for outcome in outcomes:
        LOGGER.info("%-7s %s", outcome.mode, outcome.status)
    if any(outcome.status == "failed" for outcome in outcomes):
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
