"""Request/response schema validation against an OpenAPI 3 definition.

The orchestrator talks to any object implementing ``SchemaValidator``;
``ContractValidator`` is the default one, built on ``jsonschema``.

Operations are addressed by a ``Target``:

    ByPath("/pet/1", "get")       # concrete path + method
    ByOperationId("getPetById")   # operation id

Failures raise ``SchemaMismatch`` with one line per underlying schema error,
or ``OperationNotFound`` when the target does not exist in the definition.

Request bodies are checked in write mode (``readOnly`` properties may be
omitted, never sent) and response bodies in read mode (``writeOnly``
properties may be omitted, never returned).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Type, Union

import jsonschema
from openapi_schema_validator import (
    OAS30ReadValidator,
    OAS30Validator,
    OAS30WriteValidator,
    OAS31Validator,
)

from openapi3_tester.coverage import iter_operations
from openapi3_tester.errors import OperationNotFound, SchemaMismatch, ValidatorError
from openapi3_tester.matcher import WILDCARD_CODE, PathTemplate
from openapi3_tester.normalize import NormalizedResponse, RequestView, media_type

logger = logging.getLogger(__name__)


# ── targets ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ByPath:
    path: str
    method: str


@dataclass(frozen=True)
class ByOperationId:
    operation_id: str


Target = Union[ByPath, ByOperationId]


class SchemaValidator(Protocol):
    def validate_request(self, target: Target, request: RequestView) -> None: ...

    def validate_response(self, target: Target, response: NormalizedResponse) -> None: ...


# ── schema helpers ──────────────────────────────────────────────────


READ = "read"
WRITE = "write"

# Validator class per access mode; None is used for parameters and headers.
_OAS30_VALIDATORS: Dict[Optional[str], Type[Any]] = {
    None: OAS30Validator,
    READ: OAS30ReadValidator,
    WRITE: OAS30WriteValidator,
}
_OAS31_VALIDATORS: Dict[Optional[str], Type[Any]] = {
    None: OAS31Validator,
    READ: OAS31Validator,
    WRITE: OAS31Validator,
}


def _is_json(ctype: str) -> bool:
    return ctype == "application/json" or ctype.endswith("+json")


def _select_media(content: Mapping[str, Any], ctype: str) -> Optional[Mapping[str, Any]]:
    ctype = ctype.lower()
    for key, media in content.items():
        if media_type(key).lower() == ctype:
            return media
    major = ctype.split("/", 1)[0]
    for candidate in (f"{major}/*", "*/*"):
        if candidate in content:
            return content[candidate]
    return None


def _location(where: str, error: jsonschema.ValidationError) -> str:
    loc = where
    for part in error.absolute_path:
        loc += f"[{part}]" if isinstance(part, int) else f".{part}"
    return loc


def _scalar(value: Any, type_name: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        if type_name == "integer":
            return int(value)
        if type_name == "number":
            return float(value)
    except ValueError:
        return value
    if type_name == "boolean" and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


# ── operations ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Operation:
    template: PathTemplate
    method: str
    spec: Mapping[str, Any]
    parameters: Tuple[Mapping[str, Any], ...]

    @property
    def label(self) -> str:
        return f"{self.method.upper()} {self.template.template}"

    @property
    def operation_id(self) -> Optional[str]:
        return self.spec.get("operationId")


class ContractValidator:
    """Validates requests and responses against one definition."""

    def __init__(self, definition: Mapping[str, Any]) -> None:
        self._definition = definition
        self._components = definition.get("components") or {}
        version = str(definition.get("openapi", "3.0"))
        self._validators = _OAS31_VALIDATORS if version.startswith("3.1") else _OAS30_VALIDATORS
        self._operations: List[Operation] = []
        self._by_id: Dict[str, Operation] = {}
        for path_name, path_item in (definition.get("paths") or {}).items():
            if not isinstance(path_item, Mapping):
                continue
            shared = path_item.get("parameters") or []
            for method, spec in iter_operations(path_item):
                op = Operation(
                    template=PathTemplate.compile(path_name),
                    method=method,
                    spec=spec,
                    parameters=self._merge_parameters(shared, spec.get("parameters") or []),
                )
                self._operations.append(op)
                if op.operation_id:
                    self._by_id[op.operation_id] = op
        # Literal templates win over parameterized ones for the same path.
        self._by_specificity = sorted(self._operations, key=lambda o: o.template.param_count)

    # ── lookup ──────────────────────────────────────────────────────

    def resolve(self, node: Any) -> Any:
        """Follow local ``$ref`` pointers until a concrete node is reached."""
        seen: set[str] = set()
        while isinstance(node, Mapping) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if ref in seen or not ref.startswith("#/"):
                break
            seen.add(ref)
            cur: Any = self._definition
            for part in ref[2:].split("/"):
                part = part.replace("~1", "/").replace("~0", "~")
                if not isinstance(cur, Mapping) or part not in cur:
                    raise ValidatorError(f"unresolvable $ref {ref!r}")
                cur = cur[part]
            node = cur
        return node

    def _merge_parameters(
        self, shared: Sequence[Any], own: Sequence[Any]
    ) -> Tuple[Mapping[str, Any], ...]:
        merged: Dict[Tuple[str, str], Mapping[str, Any]] = {}
        for raw in list(shared) + list(own):
            param = self.resolve(raw)
            if isinstance(param, Mapping):
                merged[(str(param.get("name")), str(param.get("in")))] = param
        return tuple(merged.values())

    def find_operation(self, target: Target) -> Operation:
        if isinstance(target, ByOperationId):
            op = self._by_id.get(target.operation_id)
            if op is None:
                raise OperationNotFound(f"operationId {target.operation_id!r} is not declared")
            return op
        method = target.method.lower()
        path_found = None
        for op in self._by_specificity:
            if not op.template.matches(target.path):
                continue
            if op.method == method:
                return op
            path_found = path_found or op.template.template
        if path_found is not None:
            raise OperationNotFound(f"method {method!r} is not declared for path {path_found!r}")
        raise OperationNotFound(f"no path in the definition matches {target.path!r}")

    # ── schema checks ───────────────────────────────────────────────

    def check(
        self, schema: Any, instance: Any, where: str, mode: Optional[str] = None
    ) -> List[str]:
        """Return one message per schema error of *instance* at *where*.

        *mode* is ``READ``, ``WRITE`` or None and selects how ``readOnly``
        and ``writeOnly`` properties are treated.
        """
        root = dict(schema) if isinstance(schema, Mapping) else schema
        if isinstance(root, dict):
            root.setdefault("components", self._components)
        validator_cls = self._validators[mode]
        validator = validator_cls(root, format_checker=validator_cls.FORMAT_CHECKER)
        errors = sorted(
            validator.iter_errors(instance),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
        return [f"{_location(where, e)}: {e.message}" for e in errors]

    def coerce(self, value: Any, schema: Any) -> Any:
        """Convert string parameter values to the schema's declared type."""
        schema = self.resolve(schema)
        if not isinstance(schema, Mapping):
            return value
        if schema.get("type") == "array":
            items = self.resolve(schema.get("items") or {})
            if isinstance(value, str):
                value = value.split(",")
            if isinstance(value, (list, tuple)):
                item_type = items.get("type") if isinstance(items, Mapping) else None
                return [_scalar(v, item_type) for v in value]
            return value
        return _scalar(value, schema.get("type"))

    # ── requests ────────────────────────────────────────────────────

    def validate_request(self, target: Target, request: RequestView) -> None:
        op = self.find_operation(target)
        errors: List[str] = []
        path_params = op.template.match(request.path)
        if path_params is None:
            errors.append(f"path {request.path!r} does not match {op.template.template!r}")
            path_params = {}

        sources: Dict[str, Mapping[str, Any]] = {
            "path": path_params,
            "query": request.query,
            "header": request.headers,
        }
        for param in op.parameters:
            loc, name = param.get("in"), str(param.get("name"))
            source = sources.get(loc)
            if source is None:
                continue
            key = name.lower() if loc == "header" else name
            if key not in source:
                if param.get("required") or loc == "path":
                    errors.append(f"{loc}.{name}: required parameter is missing")
                continue
            schema = param.get("schema")
            if schema is None:
                continue
            errors += self.check(schema, self.coerce(source[key], schema), f"{loc}.{name}")

        errors += self._check_request_body(op, request)
        if errors:
            raise SchemaMismatch(f"Request validation failed for {op.label}", errors)

    def _check_request_body(self, op: Operation, request: RequestView) -> List[str]:
        body_spec = self.resolve(op.spec.get("requestBody"))
        if not isinstance(body_spec, Mapping):
            return []
        if request.body is None:
            return ["body: request body is required"] if body_spec.get("required") else []
        ctype = (request.content_type or "application/json").lower()
        media = _select_media(body_spec.get("content") or {}, ctype)
        if media is None:
            return [f"body: content type {ctype!r} is not declared"]
        if "schema" not in media:
            return []
        body = request.body
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8", errors="replace")
        if isinstance(body, str) and _is_json(ctype):
            try:
                body = json.loads(body)
            except ValueError:
                return ["body: request body is not valid JSON"]
        return self.check(media["schema"], body, "body", WRITE)

    # ── responses ───────────────────────────────────────────────────

    def _declared_response(self, op: Operation, status: str) -> Optional[Mapping[str, Any]]:
        responses = op.spec.get("responses") or {}
        by_code = {str(k).upper(): v for k, v in responses.items()}
        for key in (status, f"{status[:1]}XX", WILDCARD_CODE.upper()):
            if key in by_code:
                return self.resolve(by_code[key])
        return None

    def validate_response(self, target: Target, response: NormalizedResponse) -> None:
        op = self.find_operation(target)
        declared = self._declared_response(op, response.status)
        if declared is None:
            raise SchemaMismatch(
                f"Response validation failed for {op.label}",
                [f"status: {response.status} is not a declared response"],
            )

        errors: List[str] = []
        for name, header in (declared.get("headers") or {}).items():
            header = self.resolve(header)
            lname = name.lower()
            if lname == "content-type" or not isinstance(header, Mapping):
                continue
            if lname not in response.headers:
                if header.get("required"):
                    errors.append(f"header.{name}: required header is missing")
                continue
            schema = header.get("schema")
            if schema is not None:
                value = self.coerce(response.headers[lname], schema)
                errors += self.check(schema, value, f"header.{name}")

        content = declared.get("content") or {}
        ctype = response.headers.get("content-type")
        if isinstance(ctype, list):
            ctype = ctype[0]
        if ctype and content:
            media = _select_media(content, ctype)
            if media is None:
                errors.append(f"header.content-type: {ctype!r} is not declared for status {response.status}")
            elif "schema" in media:
                errors += self.check(media["schema"], response.body, "body", READ)

        if errors:
            logger.debug("response errors for %s: %s", op.label, errors)
            raise SchemaMismatch(f"Response validation failed for {op.label}", errors)
