"""Compiled matchers for coverage entries.

An OpenAPI path template is compiled once into segments of literal text and
parameter placeholders, so concrete request paths can be matched without
building regular expressions from user-controlled text:

    /pet/{petId}           accepts /pet/1, /pet/1/
    /files/{name}.{ext}    accepts /files/report.json

Literal pieces are compared as plain strings, so templates containing
characters such as ``.``, ``+`` or ``(`` need no escaping.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union


_PLACEHOLDER_RE = re.compile(r"\{([^/{}]*)\}")

WILDCARD_CODE = "default"


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Param:
    name: str


Piece = Union[Literal, Param]
Segment = Tuple[Piece, ...]


def _compile_segment(seg: str) -> Segment:
    pieces: list[Piece] = []
    pos = 0
    for m in _PLACEHOLDER_RE.finditer(seg):
        if m.start() > pos:
            pieces.append(Literal(seg[pos:m.start()]))
        pieces.append(Param(m.group(1)))
        pos = m.end()
    if pos < len(seg):
        pieces.append(Literal(seg[pos:]))
    return tuple(pieces)


def _match_pieces(pieces: Segment, text: str, captured: Dict[str, str]) -> bool:
    """Match one concrete segment against its pieces, backtracking over params."""
    if not pieces:
        return text == ""
    head, rest = pieces[0], pieces[1:]
    if isinstance(head, Literal):
        if not text.startswith(head.text):
            return False
        return _match_pieces(rest, text[len(head.text):], captured)

    # A parameter consumes one or more characters (never a slash: segments
    # are already split).
    for end in range(len(text), 0, -1):
        if _match_pieces(rest, text[end:], captured):
            captured[head.name] = text[:end]
            return True
    return False


@dataclass(frozen=True)
class PathTemplate:
    """A compiled OpenAPI path template."""

    template: str
    segments: Tuple[Segment, ...]
    trailing_slash: bool

    @classmethod
    def compile(cls, template: str) -> "PathTemplate":
        body = template
        trailing = len(body) > 1 and body.endswith("/")
        if trailing:
            body = body[:-1]
        segs = tuple(_compile_segment(s) for s in body.split("/"))
        return cls(template=template, segments=segs, trailing_slash=trailing)

    @property
    def param_count(self) -> int:
        return sum(1 for seg in self.segments for p in seg if isinstance(p, Param))

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Return captured parameter values if *path* instantiates this template.

        One trailing slash on *path* is optional; a query string is ignored.
        """
        path = path.split("?", 1)[0]
        if len(path) > 1 and path.endswith("/"):
            path = path[:-1]
        parts = path.split("/")
        if len(parts) != len(self.segments):
            return None
        captured: Dict[str, str] = {}
        for pieces, part in zip(self.segments, parts):
            if not _match_pieces(pieces, part, captured):
                return None
        return captured

    def matches(self, path: str) -> bool:
        return self.match(path) is not None


@dataclass(frozen=True)
class CodeMatcher:
    """Matches a concrete status code against a declared response code."""

    declared: str

    @classmethod
    def compile(cls, code: object) -> "CodeMatcher":
        return cls(declared=str(code))

    @property
    def is_wildcard(self) -> bool:
        return self.declared == WILDCARD_CODE

    def accepts(self, code: object) -> bool:
        if self.is_wildcard:
            return True
        if code is None:
            return False
        return str(code) == self.declared


@dataclass(frozen=True)
class EntryMatcher:
    """Accepts concrete (path, method, code) triples for one coverage entry."""

    path: PathTemplate
    method: str
    code: CodeMatcher

    @classmethod
    def compile(cls, path: str, method: str, code: object) -> "EntryMatcher":
        return cls(
            path=PathTemplate.compile(path),
            method=method,
            code=CodeMatcher.compile(code),
        )

    def accepts(self, path: str, method: str, code: object) -> bool:
        return (
            method == self.method
            and self.code.accepts(code)
            and self.path.matches(path)
        )
