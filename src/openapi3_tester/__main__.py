"""CLI entry-point for openapi3_tester.

Usage:
    openapi3-tester <definition.json|definition.yaml>
    openapi3-tester <definition> --coverage [--json]
    python -m openapi3_tester <definition>
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

from openapi3_tester import __version__
from openapi3_tester.coverage import CoverageTracker
from openapi3_tester.definition import ensure_valid, load_definition
from openapi3_tester.errors import DefinitionInvalid
from openapi3_tester.report import format_coverage_text, write_coverage_json
from openapi3_tester.utils.exit_codes import ExitCode

USAGE = "Usage: openapi3-tester definitionFile.json"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="openapi3-tester",
        description="Validate an OpenAPI 3 definition before contract testing.",
    )
    p.add_argument(
        "definition",
        nargs="?",
        type=Path,
        default=None,
        help="Definition file (.json, .yaml or .yml).",
    )
    p.add_argument(
        "--coverage",
        action="store_true",
        default=False,
        help="Also print the coverage index declared by the definition.",
    )
    p.add_argument(
        "--json",
        dest="json_out",
        action="store_true",
        default=False,
        help="Print the coverage index as JSON (with --coverage).",
    )
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    """Entry-point; returns an exit code (0 = valid, 1 = usage, 2 = error)."""
    args = _build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    if args.definition is None:
        print(USAGE)
        return ExitCode.USAGE

    try:
        definition = load_definition(args.definition)
        ensure_valid(definition)
    except DefinitionInvalid as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.ERROR
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"error: cannot read {args.definition}: {e}", file=sys.stderr)
        return ExitCode.ERROR

    if args.coverage:
        tracker = CoverageTracker.for_definition(definition)
        if args.json_out:
            write_coverage_json(tracker, sys.stdout)
            return ExitCode.SUCCESS
        print(format_coverage_text(tracker))

    print("validation finished")
    return ExitCode.SUCCESS


if __name__ == "__main__":
    raise SystemExit(main())
