"""Exception hierarchy for the tester.

``DefinitionInvalid`` is raised at bind time. Per-call failures derive from
``ContractViolation`` and carry the pipeline ``stage`` that failed; they are
also ``AssertionError`` instances so test runners report them as failed
assertions. Transport failures are ``httpx.HTTPError`` and are never wrapped.

The schema-validator collaborator raises ``ValidatorError`` subclasses; the
orchestrator re-renders those into ``ContractViolation`` messages.
"""
from __future__ import annotations

import pprint
from typing import Any, List, Optional, Sequence


class ApiTesterError(Exception):
    """Base class for all tester errors."""


class DefinitionInvalid(ApiTesterError):
    """The API definition failed schema-of-schemas linting."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("definition was not valid \n" + pprint.pformat(self.errors))


# ── schema validator collaborator ──────────────────────────────────


class ValidatorError(ApiTesterError):
    """Raised by a schema validator."""


class SchemaMismatch(ValidatorError):
    """A request or response does not match its declared schema."""

    def __init__(self, message: str, raw_errors: Sequence[str] = ()) -> None:
        self.message = message
        self.raw_errors: List[str] = list(raw_errors)
        super().__init__(message)

    @property
    def detail(self) -> str:
        return "\n".join(self.raw_errors)


class OperationNotFound(ValidatorError):
    """No operation in the definition matches the call."""


# ── per-call failures ──────────────────────────────────────────────


class ContractViolation(ApiTesterError, AssertionError):
    """A call failed one of the pipeline stages."""

    stage = "call"

    def __init__(self, operator: str, detail: str = "") -> None:
        self.operator = operator
        self.detail = detail
        message = f"expected {operator}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


class RequestValidationError(ContractViolation):
    """The outgoing request does not match the definition."""

    stage = "request"

    def __init__(self, operator: str, detail: str = "", raw_errors: Sequence[str] = ()) -> None:
        self.raw_errors: List[str] = list(raw_errors)
        super().__init__(operator, detail)


class StatusMismatch(ContractViolation):
    """The response status differs from the expected one."""

    stage = "status"

    def __init__(self, actual: Any, expected: Optional[Any], operator: str) -> None:
        self.actual = actual
        self.expected = expected
        super().__init__(operator, f"got status {actual}")


class ResponseValidationError(ContractViolation):
    """The response does not match the definition."""

    stage = "response"

    def __init__(self, operator: str, detail: str = "", raw_errors: Sequence[str] = ()) -> None:
        self.raw_errors: List[str] = list(raw_errors)
        super().__init__(operator, detail)
