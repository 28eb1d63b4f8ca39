"""Coverage reporting.

Renders a tracker's state for humans (plain text) or for CI artifacts (JSON):

    print(format_coverage_text(tester.coverage))
    Path("coverage.json").write_text(coverage_json(tester.coverage))
    write_coverage_json(tester.coverage, sys.stdout)
"""
from __future__ import annotations

from typing import IO, Any, Dict

from openapi3_tester.coverage import TOTAL_KEY, CoverageTracker
from openapi3_tester.utils.json_norm import stable_json_dump, stable_json_dumps


def coverage_report(tracker: CoverageTracker) -> Dict[str, Any]:
    """JSON-friendly coverage summary: ordered entries, total, uncovered keys."""
    numbers = tracker.numbers()
    return {
        "entries": [r.to_dict() for r in tracker.snapshot()],
        "total": numbers[TOTAL_KEY],
        "uncovered": tracker.uncovered(),
    }


def coverage_json(tracker: CoverageTracker) -> str:
    return stable_json_dumps(coverage_report(tracker))


def write_coverage_json(tracker: CoverageTracker, fp: IO[str]) -> None:
    stable_json_dump(coverage_report(tracker), fp)


def format_coverage_text(tracker: CoverageTracker) -> str:
    records = tracker.snapshot()
    total = tracker.numbers()[TOTAL_KEY]
    width = max((len(str(r.matching_calls)) for r in records), default=1)
    lines = [f"{r.matching_calls:>{width}}  {r.key}" for r in records]
    lines.append(
        f"coverage: {total['checked']}/{total['all']} responses ({total['percent']}%)"
    )
    return "\n".join(lines)
