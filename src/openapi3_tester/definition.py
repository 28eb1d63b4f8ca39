"""Definition loading and schema-of-schemas linting.

Usage::

    from openapi3_tester.definition import load_definition, lint_definition

    definition = load_definition(Path("openapi.yaml"))
    errors = lint_definition(definition)   # [] when structurally valid
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml
from openapi_spec_validator import OpenAPIV30SpecValidator, OpenAPIV31SpecValidator

from openapi3_tester.errors import DefinitionInvalid

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}


def load_definition(path: Path) -> Dict[str, Any]:
    """Read a JSON or YAML definition file into a dict."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in _YAML_SUFFIXES:
        loaded = yaml.safe_load(text)
    else:
        loaded = json.loads(text)
    if not isinstance(loaded, dict):
        raise DefinitionInvalid([f"{path}: expected an OpenAPI mapping at the top level"])
    return loaded


def _format_error(error: Any) -> str:
    location = "/".join(str(p) for p in getattr(error, "absolute_path", ()) or ())
    message = getattr(error, "message", None) or str(error)
    return f"{location}: {message}" if location else message


def lint_definition(definition: Mapping[str, Any]) -> List[str]:
    """Return the structural errors of *definition*; empty when valid."""
    if not isinstance(definition, Mapping):
        return ["definition must be a mapping"]
    version = definition.get("openapi")
    if not isinstance(version, str):
        return ["'openapi' is a required property"]
    if version.startswith("3.0"):
        validator_cls = OpenAPIV30SpecValidator
    elif version.startswith("3.1"):
        validator_cls = OpenAPIV31SpecValidator
    else:
        return [f"openapi: unsupported version {version!r}"]

    errors = [_format_error(e) for e in validator_cls(definition).iter_errors()]
    logger.debug("definition lint found %d error(s)", len(errors))
    return errors


def ensure_valid(definition: Mapping[str, Any]) -> None:
    """Raise ``DefinitionInvalid`` unless *definition* lints clean."""
    errors = lint_definition(definition)
    if errors:
        raise DefinitionInvalid(errors)
