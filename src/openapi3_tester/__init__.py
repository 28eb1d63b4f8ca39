"""openapi3_tester: contract-checked HTTP calls and response coverage for OpenAPI 3."""

__all__ = [
    "__version__",
    "use",
    "BoundTester",
    "CallOptions",
    "RequestOptions",
    "TOTAL_KEY",
    # Errors
    "ApiTesterError",
    "DefinitionInvalid",
    "ContractViolation",
    "RequestValidationError",
    "StatusMismatch",
    "ResponseValidationError",
]
__version__ = "0.1.0"

from openapi3_tester.coverage import TOTAL_KEY  # noqa: E402
from openapi3_tester.errors import (  # noqa: E402
    ApiTesterError,
    ContractViolation,
    DefinitionInvalid,
    RequestValidationError,
    ResponseValidationError,
    StatusMismatch,
)
from openapi3_tester.tester import BoundTester, CallOptions, RequestOptions, use  # noqa: E402
