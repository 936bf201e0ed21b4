"""CLI entry point for rsim."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from .fields import SchemaError
from .report import run_to_dict, summary_lines, write_json
from .run import execute_run
from .schema import load_input
from .simulation import with_overrides
from .validate import validate_input


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Monthly retirement simulation")
    parser.add_argument("input", help="Path to simulation input JSON file")
    parser.add_argument("-o", "--output", default="result.json", help="Output JSON path")
    parser.add_argument("--mode", choices=["deterministic", "stochastic", "historical"], help="Override return model mode")
    parser.add_argument("--runs", type=int, help="Override stochastic run count")
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("--explain", action="store_true", help="Include monthly timeline and explanations in the output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug detail to stderr")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        sim_input = load_input(args.input)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load input: {exc}", file=sys.stderr)
        return 2

    if args.runs is not None and args.runs < 1:
        print("--runs must be >= 1", file=sys.stderr)
        return 2
    sim_input = with_overrides(sim_input, mode=args.mode, runs=args.runs, seed=args.seed)

    validation = validate_input(sim_input)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1
    if args.validate:
        print("Input is valid.")
        return 0

    run = execute_run(sim_input)
    write_json(args.output, run_to_dict(run, include_monthly=args.explain, include_explanations=args.explain))
    if run.status != "success" or run.result is None:
        print(f"Simulation failed: {run.error_message}", file=sys.stderr)
        return 1

    if args.summary:
        for line in summary_lines(run.result):
            print(line)
    print(f"Wrote result to {Path(args.output)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
