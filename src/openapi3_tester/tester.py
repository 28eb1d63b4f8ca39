"""Per-call validation pipeline and the bound tester.

``use(definition)`` lints the definition, indexes it for coverage and returns
a ``BoundTester``. Each ``await tester.test(options)`` runs, strictly in
order:

  1. request validation (skipped for ``bad_request`` calls)
  2. coverage marking
  3. the HTTP call
  4. response normalization
  5. status / response validation

Any stage failure propagates out of ``test``. Coverage is marked before the
HTTP call, so a call that later fails still counts as exercised.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from openapi3_tester.config import Settings, load_settings
from openapi3_tester.coverage import CoverageRecord, CoverageTracker
from openapi3_tester.definition import ensure_valid
from openapi3_tester.errors import (
    ContractViolation,
    RequestValidationError,
    ResponseValidationError,
    SchemaMismatch,
    StatusMismatch,
    ValidatorError,
)
from openapi3_tester.normalize import (
    NormalizedResponse,
    RawResponse,
    build_request_view,
    normalize_response,
)
from openapi3_tester.validator import (
    ByOperationId,
    ByPath,
    ContractValidator,
    SchemaValidator,
    Target,
)

logger = logging.getLogger(__name__)

CLIENT_ERROR_THRESHOLD = 400


@dataclass
class RequestOptions:
    method: str = "get"
    headers: Dict[str, str] = field(default_factory=dict)
    qs: Dict[str, Any] = field(default_factory=dict)
    body: Any = None


@dataclass
class CallOptions:
    """What a single ``BoundTester.test`` call sends and expects."""

    path: str
    req_options: RequestOptions = field(default_factory=RequestOptions)
    operation_id: Optional[str] = None
    expected_status: Optional[int] = None
    bad_request: bool = False
    url: Optional[str] = None

    @property
    def method(self) -> str:
        return (self.req_options.method or "get").lower()

    @property
    def target(self) -> Target:
        if self.operation_id:
            return ByOperationId(self.operation_id)
        return ByPath(self.path, self.method)


# ── response expectation (pure) ─────────────────────────────────────


@dataclass(frozen=True)
class Expectation:
    target: Target
    expected_status: Optional[int] = None
    bad_request: bool = False


@dataclass(frozen=True)
class ValidationOutcome:
    error: Optional[ContractViolation] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def validate_response(
    response: NormalizedResponse,
    expectation: Expectation,
    validator: SchemaValidator,
) -> ValidationOutcome:
    """Check a normalized response against *expectation*.

    An explicit expected status is compared first. A bad request without an
    expected status only has to come back with a client error or worse.
    Everything else is handed to the schema validator.
    """
    status = response.status_code
    if expectation.expected_status is not None:
        if status != expectation.expected_status:
            return ValidationOutcome(
                StatusMismatch(
                    status,
                    expectation.expected_status,
                    f"to be a valid API response with status {expectation.expected_status}",
                )
            )
    elif expectation.bad_request:
        if status < CLIENT_ERROR_THRESHOLD:
            return ValidationOutcome(
                StatusMismatch(
                    status,
                    None,
                    f"to be a client error response (status >= {CLIENT_ERROR_THRESHOLD})",
                )
            )
        return ValidationOutcome()

    try:
        validator.validate_response(expectation.target, response)
    except SchemaMismatch as e:
        logger.debug("raw validator error: %r", e)
        return ValidationOutcome(
            ResponseValidationError(
                f"to be a valid API response. {e.message}:", e.detail, e.raw_errors
            )
        )
    except ValidatorError as e:
        logger.debug("raw validator error: %r", e)
        return ValidationOutcome(
            ResponseValidationError(f"to validate correctly. Got error: {e}")
        )
    return ValidationOutcome()


# ── bound tester ────────────────────────────────────────────────────


def _encode_body(
    body: Any, headers: Dict[str, str]
) -> tuple[Optional[Union[str, bytes]], Dict[str, str]]:
    if body is None or isinstance(body, (str, bytes)):
        return body, headers
    out = dict(headers)
    if not any(k.lower() == "content-type" for k in out):
        out["content-type"] = "application/json"
    return json.dumps(body), out


class BoundTester:
    """Runs contract-checked calls against one definition and tracks coverage."""

    def __init__(
        self,
        definition: Mapping[str, Any],
        *,
        validator: Optional[SchemaValidator] = None,
        coverage: Optional[CoverageTracker] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.definition = definition
        self.validator: SchemaValidator = validator or ContractValidator(definition)
        self.coverage = coverage or CoverageTracker.for_definition(definition)
        self.settings = settings or load_settings()
        self._base_url = base_url
        self._client = client
        self._transport = transport

    def resolve_url(self, options: CallOptions) -> httpx.URL:
        base = options.url or self._base_url or self.settings.base_url
        if not base:
            servers = self.definition.get("servers") or []
            base = servers[0].get("url") if servers else None
        if not base:
            raise ValueError(
                "no base URL: pass url=, configure OPENAPI3_TESTER_BASE_URL "
                "or declare servers in the definition"
            )
        url = httpx.URL(f"{base.rstrip('/')}{options.path}")
        if options.req_options.qs:
            url = url.copy_merge_params(options.req_options.qs)
        return url

    async def test(self, options: CallOptions) -> NormalizedResponse:
        url = self.resolve_url(options)
        req = options.req_options
        target = options.target

        if not options.bad_request:
            view = build_request_view(
                options.path,
                method=options.method,
                headers=req.headers,
                query=req.qs,
                body=req.body,
            )
            try:
                self.validator.validate_request(target, view)
            except SchemaMismatch as e:
                raise RequestValidationError(
                    f"to be a valid API request. {e.message}:", e.detail, e.raw_errors
                ) from e
            except ValidatorError as e:
                raise RequestValidationError(f"to validate correctly. Got error: {e}") from e

        self.coverage.mark(options.path, options.method, options.expected_status)

        logger.debug("request options: %s %s %r", options.method.upper(), url, req)
        raw = await self._send(url, options)
        logger.debug("response: %s %s", raw.status, raw.url)

        response = normalize_response(raw)
        expectation = Expectation(
            target=target,
            expected_status=options.expected_status,
            bad_request=options.bad_request,
        )
        validate_response(response, expectation, self.validator).raise_for_error()
        return response

    async def _send(self, url: httpx.URL, options: CallOptions) -> RawResponse:
        req = options.req_options
        content, headers = _encode_body(req.body, dict(req.headers))
        if self._client is not None:
            response = await self._client.request(
                options.method.upper(), url, headers=headers, content=content
            )
            return RawResponse.from_httpx(response)

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.timeout,
            follow_redirects=self.settings.follow_redirects,
        ) as client:
            response = await client.request(
                options.method.upper(), url, headers=headers, content=content
            )
            return RawResponse.from_httpx(response)

    def get_coverage(self) -> List[CoverageRecord]:
        return self.coverage.snapshot()

    def get_coverage_numbers(self) -> Dict[str, Any]:
        return self.coverage.numbers()


def use(
    definition: Mapping[str, Any],
    *,
    base_url: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    validator: Optional[SchemaValidator] = None,
    settings: Optional[Settings] = None,
) -> BoundTester:
    """Bind *definition* and return a tester for it.

    Raises
    ------
    DefinitionInvalid
        If the definition fails schema-of-schemas linting.
    """
    ensure_valid(definition)
    return BoundTester(
        definition,
        validator=validator,
        base_url=base_url,
        client=client,
        transport=transport,
        settings=settings,
    )
