"""Canonical model construction: one pass over every operation in the document."""

from __future__ import annotations

import json
import logging
from typing import Any

from openapi_gql.options import Options
from openapi_gql.translate import oas
from openapi_gql.translate.types import (
    BuildContext,
    DataDefinition,
    Operation,
    ProcessedSecurityScheme,
    SchemaNames,
)
from openapi_gql.translate.warnings import WarningType

logger = logging.getLogger(__name__)

_UNSUPPORTED_KEYWORDS = ("anyOf", "oneOf", "not")


def preprocess(spec: dict[str, Any], options: Options | None = None) -> BuildContext:
    """Build the canonical model (definitions, operations, security) for *spec*."""
    ctx = BuildContext(spec=spec, options=options or Options())
    num_ops, num_query, num_mutation = oas.count_operations(spec)
    ctx.report.num_ops = num_ops
    ctx.report.num_ops_query = num_query
    ctx.report.num_ops_mutation = num_mutation

    ctx.security = get_processed_security_schemes(ctx)

    for path, method, endpoint in oas.iter_operations(spec):
        operation = _process_operation(ctx, path, method, endpoint)
        if operation is not None:
            if operation.operation_id in ctx.operations:
                logger.debug("Operation id '%s' is used twice, keeping %s", operation.operation_id, operation.operation_string)
            ctx.operations[operation.operation_id] = operation

    if ctx.options.add_sub_operations:
        for operation in ctx.operations.values():
            operation.sub_ops = get_sub_operations(operation, ctx.operations)

    return ctx


def _process_operation(
    ctx: BuildContext, path: str, method: str, endpoint: dict[str, Any]
) -> Operation | None:
    operation_string = f"{method.upper()} {path}"
    description = endpoint.get("description")
    if not isinstance(description, str) or not description:
        description = endpoint.get("summary")
    if not isinstance(description, str) or not description:
        description = "No description available."
    if ctx.options.equivalent_to_messages:
        description += f"\n\nEquivalent to {operation_string}"

    operation_id = endpoint.get("operationId")
    if not isinstance(operation_id, str):
        operation_id = oas.generate_operation_id(method, path)

    # Request
    payload = oas.get_request_schema_and_names(ctx.spec, path, method)
    payload_definition = None
    if payload is not None:
        payload_definition = create_or_reuse_definition(ctx, payload.schema, payload.names)

    # Response
    status_code = _get_status_code(ctx, path, method)
    response = None
    if status_code is not None:
        response = oas.get_response_schema_and_names(
            ctx.spec, path, method, status_code,
            fill_empty_responses=ctx.options.fill_empty_responses,
        )
    if response is None:
        ctx.warn(WarningType.MISSING_RESPONSE_SCHEMA, operation_string)
        return None
    response.names.from_operation = operation_id
    response_definition = create_or_reuse_definition(ctx, response.schema, response.names)

    security_requirements: list[str] = []
    if ctx.options.viewer:
        security_requirements = oas.get_security_requirements(
            ctx.spec, path, method, oas.get_security_schemes(ctx.spec)
        )

    return Operation(
        operation_id=operation_id,
        description=description,
        path=path,
        method=method,
        response_definition=response_definition,
        response_content_type=response.content_type,
        status_code=status_code,
        payload_definition=payload_definition,
        payload_content_type=payload.content_type if payload else None,
        payload_required=payload.required if payload else False,
        links=oas.get_links(ctx.spec, path, method, status_code) if status_code else {},
        parameters=oas.get_parameters(ctx.spec, path, method),
        security_requirements=security_requirements,
        servers=oas.get_servers(ctx.spec, path, method),
        in_viewer=bool(security_requirements) and ctx.options.viewer,
    )


def _get_status_code(ctx: BuildContext, path: str, method: str) -> str | None:
    codes = oas.get_success_status_codes(ctx.spec, path, method)
    if not codes:
        return None
    if len(codes) > 1:
        chosen = sorted(codes)[0]
        ctx.warn(WarningType.MULTIPLE_RESPONSES, f"{method.upper()} {path}", chosen)
        return chosen
    return codes[0]


# -- Data definitions -----------------------------------------------------------


def schema_key(schema: dict[str, Any]) -> str:
    """Structural identity of a schema: equal for deep-equal schemas."""
    return json.dumps(schema, sort_keys=True, default=str)


def create_or_reuse_definition(
    ctx: BuildContext, schema: dict[str, Any], names: SchemaNames
) -> DataDefinition:
    """Return the definition for a deep-equal schema if one exists, else register a new one."""
    key = schema_key(schema)
    existing = ctx.definitions.get(key)
    if existing is not None:
        logger.debug("Reuse definition '%s'", existing.ot_name)
        return existing

    for keyword in _UNSUPPORTED_KEYWORDS:
        if keyword in schema:
            ctx.warn(WarningType.UNSUPPORTED_JSON_SCHEMA_KEYWORD, json.dumps(schema, default=str), keyword)

    classification = oas.classify_schema(schema)
    if classification.needs_type_name:
        name = _pick_type_name(ctx, names)
        ctx.used_type_names.add(name)
        ctx.used_type_names.add(name + "Input")
    else:
        candidates = names.candidates()
        name = ctx.name(candidates[0]) if candidates else "placeholderName"

    definition = DataDefinition(
        schema=schema,
        classification=classification,
        ot_name=name,
        iot_name=name + "Input",
    )
    ctx.definitions[key] = definition
    logger.debug("Create definition '%s' (%s)", name, classification.kind.value)
    return definition


def _pick_type_name(ctx: BuildContext, names: SchemaNames) -> str:
    def is_free(name: str) -> bool:
        return name not in ctx.used_type_names and name + "Input" not in ctx.used_type_names

    candidates = names.candidates()
    for candidate in candidates:
        name = ctx.name(candidate)
        if is_free(name):
            return name

    base = ctx.name(candidates[0]) if candidates else ctx.name("PlaceholderName")
    suffix = 2
    while not is_free(f"{base}{suffix}"):
        suffix += 1
    return f"{base}{suffix}"


# -- Security -------------------------------------------------------------------


def get_processed_security_schemes(ctx: BuildContext) -> dict[str, ProcessedSecurityScheme]:
    """Non-OAuth2 schemes by raw name, with the credentials each needs."""
    result: dict[str, ProcessedSecurityScheme] = {}
    for key, definition in oas.get_security_schemes(ctx.spec).items():
        scheme_type = definition.get("type")
        if scheme_type == "oauth2":
            continue

        processed = ProcessedSecurityScheme(raw_name=key, definition=definition)
        if scheme_type == "apiKey":
            processed.parameters = {"apiKey": ctx.name(f"{key}_apiKey")}
            processed.schema = {
                "type": "object",
                "description": f"API key credentials for the security protocol '{key}'",
                "properties": {"apiKey": {"type": "string"}},
            }
        elif scheme_type == "http":
            if str(definition.get("scheme", "")).lower() == "basic":
                processed.parameters = {
                    "username": ctx.name(f"{key}_username"),
                    "password": ctx.name(f"{key}_password"),
                }
                processed.schema = {
                    "type": "object",
                    "description": f"Basic auth credentials for security protocol '{key}'",
                    "properties": {
                        "username": {"type": "string"},
                        "password": {"type": "string"},
                    },
                }
            else:
                ctx.warn(WarningType.UNSUPPORTED_HTTP_AUTH_SCHEME, str(definition.get("scheme")))
        elif scheme_type != "openIdConnect":
            ctx.warn(WarningType.UNSUPPORTED_HTTP_AUTH_SCHEME, str(scheme_type))

        result[key] = processed
    return result


# -- Sub-operations -------------------------------------------------------------


def get_sub_operations(operation: Operation, operations: dict[str, Operation]) -> list[Operation]:
    """GET operations nested below a parameterised GET operation's path.

    ``GET /users/{id}/car`` is a sub-operation of ``GET /users/{id}``.
    """
    if "{" not in operation.path or operation.method != "get":
        return []
    return [
        candidate
        for candidate in operations.values()
        if candidate.method == "get"
        and candidate is not operation
        and candidate.path != operation.path
        and operation.path in candidate.path
    ]
