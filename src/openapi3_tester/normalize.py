"""Canonical request/response shapes handed to the schema validator.

Responses are reduced to string status, a flat header mapping and a parsed
body. Normalization never raises: a body that is not JSON stays text.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

HeaderValue = Union[str, List[str]]


@dataclass(frozen=True)
class RawResponse:
    """Transport-agnostic response as read off the wire."""

    status: int
    headers: Tuple[Tuple[str, str], ...] = ()
    text: str = ""
    url: str = ""

    @classmethod
    def from_httpx(cls, response: "httpx.Response") -> "RawResponse":
        """Adapt an ``httpx.Response`` whose body has already been read."""
        try:
            url = str(response.url)
        except RuntimeError:
            # Responses built by hand carry no request.
            url = ""
        return cls(
            status=response.status_code,
            headers=tuple(response.headers.multi_items()),
            text=response.text,
            url=url,
        )


@dataclass
class NormalizedResponse:
    status: str
    headers: Dict[str, HeaderValue] = field(default_factory=dict)
    body: Any = None
    url: str = ""

    @property
    def status_code(self) -> int:
        return int(self.status)

    def json(self) -> Any:
        return self.body


@dataclass(frozen=True)
class RequestView:
    """Canonical outgoing request for request-side schema validation."""

    path: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    body: Any = None

    @property
    def content_type(self) -> Optional[str]:
        value = self.headers.get("content-type")
        return media_type(value) if value else None


def media_type(value: str) -> str:
    """Strip parameters (``; charset=...``) from a content-type value."""
    return value.split(";", 1)[0].strip()


def flatten_headers(pairs: Sequence[Tuple[str, str]]) -> Dict[str, HeaderValue]:
    """Group header pairs by lower-cased name; single values become scalars."""
    grouped: Dict[str, List[str]] = {}
    for name, value in pairs:
        grouped.setdefault(name.lower(), []).append(value)
    return {k: v[0] if len(v) == 1 else v for k, v in grouped.items()}


def parse_body(text: str) -> Any:
    if text == "":
        return text
    try:
        return json.loads(text)
    except ValueError as e:
        logger.debug("response parsing error: %s", e)
        return text


def normalize_response(raw: RawResponse) -> NormalizedResponse:
    headers = flatten_headers(raw.headers)
    content_type = headers.get("content-type")
    if content_type is not None:
        if raw.text == "":
            # Empty body with a declared content type: drop the header so the
            # validator does not look for a body schema.
            del headers["content-type"]
        elif isinstance(content_type, str):
            headers["content-type"] = media_type(content_type)
        else:
            headers["content-type"] = media_type(content_type[0])
    return NormalizedResponse(
        status=str(raw.status),
        headers=headers,
        body=parse_body(raw.text),
        url=raw.url,
    )


def build_request_view(
    path: str,
    *,
    method: str = "get",
    headers: Optional[Mapping[str, str]] = None,
    query: Optional[Mapping[str, Any]] = None,
    body: Any = None,
) -> RequestView:
    """Build the view request validation sees.

    A query string embedded in *path* is split off and merged with *query*;
    keys given in *query* win.
    """
    bare, _, embedded = path.partition("?")
    merged: Dict[str, Any] = dict(parse_qsl(embedded, keep_blank_values=True))
    merged.update(query or {})
    return RequestView(
        path=bare,
        method=(method or "get").lower(),
        headers={k.lower(): v for k, v in (headers or {}).items()},
        query=merged,
        body=body,
    )
