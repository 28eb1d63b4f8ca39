"""Tests for the coverage index builder and tracker."""

from __future__ import annotations

import threading
from typing import Any, Dict

import pytest

from openapi3_tester.coverage import (
    TOTAL_KEY,
    CoverageRecord,
    CoverageTracker,
    build_coverage_index,
    index_key,
)


def _doc(paths: Dict[str, Any]) -> Dict[str, Any]:
    return {"openapi": "3.0.3", "info": {"title": "t", "version": "1"}, "paths": paths}


def _ok(*codes: str) -> Dict[str, Any]:
    return {"responses": {c: {"description": "x"} for c in codes}}


# ── build_coverage_index ────────────────────────────────────────────


class TestBuildCoverageIndex:

    def test_one_entry_per_declared_triple_in_order(self, petstore: Dict[str, Any]) -> None:
        keys = [e.key for e in build_coverage_index(petstore)]
        assert keys == [
            "/pet/{petId}->get->200",
            "/pet/{petId}->get->400",
            "/pet/{petId}->get->404",
            "/pet/{petId}->get->default",
            "/pet/{petId}->delete->200",
            "/pet/{petId}->delete->404",
            "/pet->post->201",
            "/pet->post->405",
            "/pet/findByStatus->get->200",
            "/pet/findByStatus->get->400",
            "/store/inventory->get->200",
        ]

    def test_counters_start_at_zero(self, petstore: Dict[str, Any]) -> None:
        assert all(e.matching_calls == 0 for e in build_coverage_index(petstore))

    def test_empty_paths_yield_empty_index(self) -> None:
        assert build_coverage_index(_doc({})) == []

    def test_non_method_keys_are_skipped(self) -> None:
        doc = _doc({
            "/x": {
                "summary": "x",
                "parameters": [],
                "get": _ok("200"),
            }
        })
        assert [e.key for e in build_coverage_index(doc)] == ["/x->get->200"]

    def test_operation_without_responses_contributes_nothing(self) -> None:
        assert build_coverage_index(_doc({"/x": {"get": {}}})) == []

    def test_integer_codes_are_stringified(self) -> None:
        doc = _doc({"/x": {"get": {"responses": {200: {"description": "x"}}}}})
        assert build_coverage_index(doc)[0].key == "/x->get->200"


def test_index_key_uses_arrow_separator() -> None:
    assert index_key("/pet/{petId}", "get", "200") == "/pet/{petId}->get->200"
    assert index_key("/pet", "get", None) == "/pet->get->"


# ── CoverageTracker.mark ────────────────────────────────────────────


class TestMark:

    def test_parameterized_entry_counts_any_value(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        tracker.mark("/pet/1", "get", 200)
        tracker.mark("/pet/999", "get", 200)
        assert tracker.numbers()["/pet/{petId}->get->200"] == 2

    def test_default_entry_counts_every_code(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        for code in (200, 404, 503):
            tracker.mark("/pet/1", "get", code)
        numbers = tracker.numbers()
        assert numbers["/pet/{petId}->get->default"] == 3
        assert numbers["/pet/{petId}->get->200"] == 1
        assert numbers["/pet/{petId}->get->404"] == 1

    def test_one_call_may_match_several_entries(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        # concrete literal path also instantiates /pet/{petId}
        hits = tracker.mark("/pet/findByStatus", "get", 200)
        assert hits == 3
        numbers = tracker.numbers()
        assert numbers["/pet/findByStatus->get->200"] == 1
        assert numbers["/pet/{petId}->get->200"] == 1
        assert numbers["/pet/{petId}->get->default"] == 1

    def test_missing_code_only_matches_default(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        assert tracker.mark("/pet/1", "get", None) == 1
        assert tracker.numbers()["/pet/{petId}->get->default"] == 1

    def test_unmatched_call_changes_nothing(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        assert tracker.mark("/nope", "get", 200) == 0
        assert all(r.matching_calls == 0 for r in tracker.snapshot())

    def test_concurrent_marks_are_not_lost(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)

        def worker() -> None:
            for _ in range(500):
                tracker.mark("/store/inventory", "get", 200)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert tracker.numbers()["/store/inventory->get->200"] == 4000


# ── snapshot / numbers ──────────────────────────────────────────────


class TestNumbers:

    def test_snapshot_is_read_only_copy(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        snap = tracker.snapshot()
        assert isinstance(snap[0], CoverageRecord)
        with pytest.raises(AttributeError):
            snap[0].matching_calls = 5  # type: ignore[misc]
        tracker.mark("/pet/1", "get", 200)
        assert snap[0].matching_calls == 0
        assert tracker.snapshot()[0].matching_calls == 1

    def test_total_excludes_default_entries(self, petstore: Dict[str, Any]) -> None:
        tracker = CoverageTracker.for_definition(petstore)
        tracker.mark("/pet/1", "get", 200)
        tracker.mark("/store/inventory", "get", 200)
        tracker.mark("/store/inventory", "get", 200)
        total = tracker.numbers()[TOTAL_KEY]
        assert total == {"all": 10, "checked": 2, "percent": 20}

    def test_percent_is_floored(self) -> None:
        tracker = CoverageTracker.for_definition(_doc({"/x": {"get": _ok("200", "400", "500")}}))
        tracker.mark("/x", "get", 200)
        assert tracker.numbers()[TOTAL_KEY]["percent"] == 33

    def test_percent_is_zero_without_countable_entries(self) -> None:
        tracker = CoverageTracker.for_definition(_doc({"/x": {"get": _ok("default")}}))
        tracker.mark("/x", "get", 200)
        numbers = tracker.numbers()
        assert numbers["/x->get->default"] == 1
        assert numbers[TOTAL_KEY] == {"all": 0, "checked": 0, "percent": 0}

    def test_empty_index_numbers(self) -> None:
        tracker = CoverageTracker.for_definition(_doc({}))
        assert tracker.numbers() == {TOTAL_KEY: {"all": 0, "checked": 0, "percent": 0}}

    def test_uncovered_lists_zero_count_non_default_keys(self) -> None:
        tracker = CoverageTracker.for_definition(_doc({"/x": {"get": _ok("200", "404", "default")}}))
        tracker.mark("/x", "get", 200)
        assert tracker.uncovered() == ["/x->get->404"]


def test_range_codes_are_matched_literally() -> None:
    tracker = CoverageTracker.for_definition(_doc({"/x": {"get": _ok("2XX")}}))
    assert tracker.mark("/x", "get", 204) == 0
    assert tracker.numbers()[TOTAL_KEY] == {"all": 1, "checked": 0, "percent": 0}
    assert tracker.uncovered() == ["/x->get->2XX"]
