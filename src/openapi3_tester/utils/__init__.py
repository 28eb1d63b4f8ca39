"""Shared utilities for openapi3_tester."""

from openapi3_tester.utils.exit_codes import ExitCode
from openapi3_tester.utils.json_norm import stable_json_dump, stable_json_dumps

__all__ = [
    "ExitCode",
    "stable_json_dump",
    "stable_json_dumps",
]
