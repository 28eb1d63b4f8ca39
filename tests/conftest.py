"""Shared fixtures: the petstore definition and an in-process fake server."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest

from openapi3_tester.config import Settings
from openapi3_tester.tester import BoundTester, use

FIXTURES = Path(__file__).resolve().parent / "fixtures"
PETSTORE_PATH = FIXTURES / "petstore.json"

PET = {"id": 1, "name": "doggie", "tag": None, "status": "available"}
NOT_FOUND = {"code": 1, "message": "Pet not found"}


def petstore_app(request: httpx.Request) -> httpx.Response:
    """Minimal petstore implementation that honors the fixture definition."""
    path = request.url.path.removeprefix("/v2")
    method = request.method

    if path == "/pet/findByStatus" and method == "GET":
        return httpx.Response(200, json=[PET], headers={"X-Rate-Limit": "100"})
    if path == "/store/inventory" and method == "GET":
        return httpx.Response(200, json={"available": 3, "sold": 1})
    if path == "/pet" and method == "POST":
        body = json.loads(request.content)
        return httpx.Response(201, json={"id": 10, **body})
    if path.startswith("/pet/"):
        pet_id = path.split("/")[2]
        if pet_id != "1":
            return httpx.Response(404, json=NOT_FOUND)
        if method == "GET":
            return httpx.Response(200, json=PET)
        if method == "DELETE":
            # Empty body with a declared content type.
            return httpx.Response(
                200,
                content=b"",
                headers={"content-type": "application/json; charset=utf-8"},
            )
    return httpx.Response(404, json={"message": "no route"})


class FakeServer:
    """Records every request before delegating to a handler."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response] = petstore_app) -> None:
        self.handler = handler
        self.calls: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def petstore() -> Dict[str, Any]:
    return json.loads(PETSTORE_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def tester(petstore: Dict[str, Any], server: FakeServer) -> BoundTester:
    return use(petstore, transport=server.transport, settings=Settings())


@pytest.fixture
def make_definition(petstore: Dict[str, Any]) -> Callable[..., Dict[str, Any]]:
    """Return a deep copy of the petstore definition with *paths* replaced."""

    def _make(paths: Dict[str, Any] | None = None, **top: Any) -> Dict[str, Any]:
        doc = copy.deepcopy(petstore)
        if paths is not None:
            doc["paths"] = paths
        doc.update(top)
        return doc

    return _make


@pytest.fixture
def make_server() -> Callable[..., FakeServer]:
    return FakeServer
