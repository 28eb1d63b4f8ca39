"""Coverage index and tracker.

The index holds one entry per declared (path template, method, response code)
triple, in definition order. The tracker increments every entry whose matcher
accepts a concrete call and derives the aggregate numbers on demand:

    tracker = CoverageTracker(build_coverage_index(definition))
    tracker.mark("/pet/1", "get", 200)
    tracker.numbers()["/pet/{petId}->get->200"]   # 1
    tracker.numbers()[TOTAL_KEY]                   # {"all": ..., "checked": ..., "percent": ...}
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from openapi3_tester.matcher import WILDCARD_CODE, EntryMatcher

logger = logging.getLogger(__name__)

SEPARATOR = "->"
TOTAL_KEY = "::total::"

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


def index_key(path: str, method: str, code: object) -> str:
    """Join a (path, method, code) triple into a coverage key."""
    return f"{path}{SEPARATOR}{method}{SEPARATOR}{'' if code is None else code}"


@dataclass
class CoverageEntry:
    """One declared (path template, method, code) triple and its call counter."""

    key: str
    path: str
    method: str
    code: str
    matcher: EntryMatcher = field(repr=False)
    matching_calls: int = 0

    @property
    def is_wildcard(self) -> bool:
        return self.code == WILDCARD_CODE


@dataclass(frozen=True)
class CoverageRecord:
    """Read-only view of a coverage entry, as handed out by ``snapshot()``."""

    key: str
    matching_calls: int

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "matching_calls": self.matching_calls}


def iter_operations(path_item: Any) -> Iterable[tuple[str, Mapping[str, Any]]]:
    if not isinstance(path_item, Mapping):
        return
    for name, operation in path_item.items():
        if name in HTTP_METHODS and isinstance(operation, Mapping):
            yield name, operation


def build_coverage_index(definition: Mapping[str, Any]) -> List[CoverageEntry]:
    """Walk *definition* once and emit one entry per declared response code.

    The definition is assumed to be structurally valid already.
    """
    index: List[CoverageEntry] = []
    paths = definition.get("paths") or {}
    for path_name, path_item in paths.items():
        for method_name, operation in iter_operations(path_item):
            responses = operation.get("responses")
            if not isinstance(responses, Mapping):
                continue
            for code in responses:
                code_str = str(code)
                index.append(
                    CoverageEntry(
                        key=index_key(path_name, method_name, code_str),
                        path=path_name,
                        method=method_name,
                        code=code_str,
                        matcher=EntryMatcher.compile(path_name, method_name, code_str),
                    )
                )
    logger.debug("indexed %d coverage entries", len(index))
    return index


class CoverageTracker:
    """Owns the coverage index for one bound definition.

    ``mark`` is the only mutator. It and ``snapshot`` hold a single lock over
    the whole index so concurrent callers never lose increments.
    """

    def __init__(self, entries: Iterable[CoverageEntry]) -> None:
        self._entries: List[CoverageEntry] = list(entries)
        self._lock = threading.Lock()

    @classmethod
    def for_definition(cls, definition: Mapping[str, Any]) -> "CoverageTracker":
        return cls(build_coverage_index(definition))

    def __len__(self) -> int:
        return len(self._entries)

    def mark(self, path: str, method: str, code: object) -> int:
        """Increment every entry accepting the call; return how many matched."""
        hits = 0
        with self._lock:
            for entry in self._entries:
                if entry.matcher.accepts(path, method, code):
                    entry.matching_calls += 1
                    hits += 1
        if not hits:
            logger.debug("no coverage entry for %s", index_key(path, method, code))
        return hits

    def snapshot(self) -> List[CoverageRecord]:
        with self._lock:
            return [CoverageRecord(e.key, e.matching_calls) for e in self._entries]

    def numbers(self) -> Dict[str, Any]:
        """Per-key counters plus the ``TOTAL_KEY`` aggregate.

        Wildcard (``default``) entries are counted per key but left out of the
        total's denominator.
        """
        total = {"all": 0, "checked": 0, "percent": 0}
        out: Dict[str, Any] = {TOTAL_KEY: total}
        with self._lock:
            for entry in self._entries:
                out[entry.key] = entry.matching_calls
                if entry.is_wildcard:
                    continue
                total["all"] += 1
                if entry.matching_calls:
                    total["checked"] += 1
        if total["all"]:
            total["percent"] = (100 * total["checked"]) // total["all"]
        return out

    def uncovered(self) -> List[str]:
        with self._lock:
            return [
                e.key for e in self._entries
                if not e.is_wildcard and not e.matching_calls
            ]
