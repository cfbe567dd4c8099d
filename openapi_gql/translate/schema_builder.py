"""Translation of data definitions into GraphQL (input) types.

Every definition gets at most one output type and one input type, built on
first use and cached on the definition. Object fields are thunks, so
self-referencing schemas close over the cached type instead of recursing.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from graphql import (
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLEnumType,
    GraphQLEnumValue,
    GraphQLError,
    GraphQLField,
    GraphQLFloat,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInt,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLString,
    GraphQLType,
    get_named_type,
    get_nullable_type,
    value_from_ast_untyped,
)

from openapi_gql.errors import TooManyIterationsError
from openapi_gql.helpers.naming import beautify
from openapi_gql.translate import oas
from openapi_gql.translate.preprocessor import create_or_reuse_definition
from openapi_gql.translate.resolver_builder import LIMIT_ARG, get_resolver
from openapi_gql.translate.types import BuildContext, DataDefinition, Operation, SchemaKind, SchemaNames
from openapi_gql.translate.warnings import WarningType

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 50
NO_DESCRIPTION = "No description available."
GENERIC_PAYLOAD_ARG = "requestBody"

_LOCATION_PREFIXES = ("path.", "query.", "header.", "cookie.")


def _identity(value: Any) -> Any:
    return value


JSON = GraphQLScalarType(
    name="JSON",
    description="Arbitrary JSON value",
    serialize=_identity,
    parse_value=_identity,
    parse_literal=value_from_ast_untyped,
)

_SCALARS: dict[str, GraphQLScalarType] = {
    "string": GraphQLString,
    "integer": GraphQLInt,
    "number": GraphQLFloat,
    "boolean": GraphQLBoolean,
    "json": JSON,
}


# -- Types --------------------------------------------------------------------


def get_graphql_type(
    ctx: BuildContext,
    definition: DataDefinition,
    *,
    operation: Operation | None = None,
    iteration: int = 0,
    is_input: bool = False,
) -> GraphQLType:
    """Return the (cached) GraphQL type for *definition* in output or input position."""
    if iteration >= MAX_ITERATIONS:
        name = definition.iot_name if is_input else definition.ot_name
        raise TooManyIterationsError(
            f"Too many iterations when creating schema {name}", {"iterations": iteration}
        )

    kind = definition.kind
    if kind is SchemaKind.OBJECT:
        return _object_type(ctx, definition, operation, iteration, is_input)
    elif kind is SchemaKind.ARRAY:
        return _list_type(ctx, definition, operation, iteration, is_input)
    elif kind is SchemaKind.ENUM:
        return _enum_type(definition)
    elif kind is SchemaKind.SCALAR:
        return _scalar_type(ctx, definition)
    else:
        if definition.ot is None:
            ctx.warn(WarningType.INVALID_SCHEMA_TYPE, json.dumps(definition.schema, default=str))
            definition.ot = definition.iot = GraphQLString
        return definition.ot


def _object_type(
    ctx: BuildContext,
    definition: DataDefinition,
    operation: Operation | None,
    iteration: int,
    is_input: bool,
) -> GraphQLType:
    description = definition.schema.get("description") or NO_DESCRIPTION
    if is_input:
        if definition.iot is None:
            logger.debug("Create Input Object Type '%s'", definition.iot_name)
            definition.iot = GraphQLInputObjectType(
                name=definition.iot_name,
                description=description,
                fields=lambda: create_input_fields(ctx, definition, operation, iteration),
            )
        return definition.iot

    if definition.ot is None:
        logger.debug(
            "Create Object Type '%s'%s",
            definition.ot_name,
            f" (for operation '{operation.operation_id}')" if operation else "",
        )
        definition.ot = GraphQLObjectType(
            name=definition.ot_name,
            description=description,
            fields=lambda: create_fields(ctx, definition, operation, iteration),
        )
    return definition.ot


def _list_type(
    ctx: BuildContext,
    definition: DataDefinition,
    operation: Operation | None,
    iteration: int,
    is_input: bool,
) -> GraphQLType:
    cached = definition.iot if is_input else definition.ot
    if cached is not None:
        return cached

    items = definition.schema.get("items")
    if isinstance(items, dict):
        item_definition = sub_definition(ctx, items, fallback_name=f"{definition.ot_name}ListItem")
        list_type = GraphQLList(
            get_graphql_type(ctx, item_definition, operation=operation, iteration=iteration + 1, is_input=is_input)
        )
    else:
        ctx.warn(
            WarningType.INVALID_SCHEMA_TYPE_LIST_ITEM,
            f"List item in list '{definition.ot_name}' with schema: '{json.dumps(definition.schema, default=str)}'",
        )
        list_type = GraphQLList(GraphQLString)

    if is_input:
        definition.iot = list_type
    else:
        definition.ot = list_type
    return list_type


def enum_value_name(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    name = beautify(str(value), lowercase_first=False)
    return name.upper() if name in ("true", "false", "null") else name


def _enum_type(definition: DataDefinition) -> GraphQLType:
    if definition.ot is None:
        values: dict[str, GraphQLEnumValue] = {}
        for value in definition.schema["enum"]:
            values.setdefault(enum_value_name(value), GraphQLEnumValue(value))
        definition.ot = definition.iot = GraphQLEnumType(
            name=definition.ot_name,
            values=values,
            description=definition.schema.get("description"),
        )
    return definition.ot


def _scalar_type(ctx: BuildContext, definition: DataDefinition) -> GraphQLType:
    if definition.ot is None:
        scalar = _SCALARS.get(definition.classification.scalar or "")
        if scalar is None:
            ctx.warn(
                WarningType.INVALID_SCHEMA_TYPE_SCALAR,
                f"Unknown JSON scalar type '{definition.classification.scalar}'",
            )
            scalar = GraphQLString
        definition.ot = definition.iot = scalar
    return definition.ot


def sub_definition(
    ctx: BuildContext, schema: dict[str, Any], *, fallback_name: str
) -> DataDefinition:
    """Definition for a nested schema, named from its reference or *fallback_name*."""
    resolved, from_ref = oas.deref_with_name(schema, ctx.spec)
    resolved = oas.merge_all_of(resolved, ctx.spec)
    names = SchemaNames(
        from_ref=from_ref or fallback_name,
        from_schema=resolved.get("title") if isinstance(resolved.get("title"), str) else None,
    )
    return create_or_reuse_definition(ctx, resolved, names)


# -- Fields -------------------------------------------------------------------


def is_list_of_objects(field_type: GraphQLType) -> bool:
    nullable = get_nullable_type(field_type)
    return isinstance(nullable, GraphQLList) and isinstance(get_named_type(nullable), GraphQLObjectType)


def limit_argument() -> GraphQLArgument:
    return GraphQLArgument(
        GraphQLInt,
        description="Auto-generated argument that limits the size of returned list of "
        "objects/list, selecting the first `n` elements of the list",
    )


def _limited_property_resolver(field_name: str):
    def resolve(source: Any, info: Any, limit: int | None = None) -> Any:
        value = source.get(field_name) if isinstance(source, dict) else getattr(source, field_name, None)
        if limit is None or not isinstance(value, list):
            return value
        if limit < 0:
            raise GraphQLError("Auto-generated 'limit' argument must be greater than or equal to 0")
        return value[:limit]

    return resolve


def create_fields(
    ctx: BuildContext,
    definition: DataDefinition,
    operation: Operation | None,
    iteration: int,
) -> dict[str, GraphQLField]:
    """Output fields: one per property, plus link and sub-operation fields on
    an operation's top-level response type."""
    fields: dict[str, GraphQLField] = {}
    for key, property_schema in (definition.schema.get("properties") or {}).items():
        property_definition = sub_definition(ctx, property_schema, fallback_name=key)
        field_type = get_graphql_type(ctx, property_definition, operation=operation, iteration=iteration + 1)
        name = ctx.store_name(key)
        if name in fields:
            ctx.warn(WarningType.DUPLICATE_FIELD_NAME, name)
            continue
        description = oas.deref(property_schema, ctx.spec).get("description") or NO_DESCRIPTION
        if ctx.options.add_limit_argument and is_list_of_objects(field_type):
            fields[name] = GraphQLField(
                field_type,
                args={LIMIT_ARG: limit_argument()},
                resolve=_limited_property_resolver(name),
                description=description,
            )
        else:
            fields[name] = GraphQLField(field_type, description=description)

    if iteration == 0 and operation is not None:
        _add_link_fields(ctx, operation, fields)
        _add_sub_operation_fields(ctx, operation, fields)

    return dict(sorted(fields.items()))


def create_input_fields(
    ctx: BuildContext,
    definition: DataDefinition,
    operation: Operation | None,
    iteration: int,
) -> dict[str, GraphQLInputField]:
    """Input fields; properties listed in ``required`` become non-null."""
    fields: dict[str, GraphQLInputField] = {}
    required = set(definition.required)
    for key, property_schema in (definition.schema.get("properties") or {}).items():
        property_definition = sub_definition(ctx, property_schema, fallback_name=key)
        field_type = get_graphql_type(
            ctx, property_definition, operation=operation, iteration=iteration + 1, is_input=True
        )
        name = ctx.store_name(key)
        if name in fields:
            ctx.warn(WarningType.DUPLICATE_FIELD_NAME, name)
            continue
        fields[name] = GraphQLInputField(
            GraphQLNonNull(field_type) if key in required else field_type,
            description=oas.deref(property_schema, ctx.spec).get("description") or NO_DESCRIPTION,
        )
    return dict(sorted(fields.items()))


def _add_link_fields(ctx: BuildContext, operation: Operation, fields: dict[str, GraphQLField]) -> None:
    for link_key, link in operation.links.items():
        logger.debug("Create link '%s'...", link_key)
        linked_operation = resolve_link_target(ctx, link_key, link)
        if linked_operation is None:
            continue

        args_from_link = {
            _strip_location(name): value for name, value in (link.get("parameters") or {}).items()
        }
        dynamic_parameters = [
            parameter for parameter in linked_operation.parameters
            if parameter.get("name") not in args_from_link
        ]

        field_type = get_graphql_type(ctx, linked_operation.response_definition, operation=linked_operation)
        args = get_args(ctx, dynamic_parameters, operation=linked_operation)
        maybe_add_limit(ctx, field_type, args)

        description = link.get("description") if isinstance(link.get("description"), str) else NO_DESCRIPTION
        if ctx.options.equivalent_to_messages:
            description += f"\n\nEquivalent to {linked_operation.operation_string}"

        name = ctx.store_name(link_key)
        if name in fields:
            ctx.warn(WarningType.LINK_NAME_COLLISION, link_key, name)
            continue
        fields[name] = GraphQLField(
            field_type,
            args=args,
            resolve=get_resolver(ctx, linked_operation, args_from_link=args_from_link),
            description=description,
        )


def _add_sub_operation_fields(ctx: BuildContext, operation: Operation, fields: dict[str, GraphQLField]) -> None:
    args_from_parent = [
        ctx.name(parameter["name"])
        for parameter in operation.parameters
        if parameter.get("in") == "path" and isinstance(parameter.get("name"), str)
    ]
    for sub_operation in operation.sub_ops:
        name = sub_operation.response_definition.ot_name
        if name in fields:
            ctx.warn(WarningType.LINK_NAME_COLLISION, sub_operation.operation_string, name)
            continue
        dynamic_parameters = [
            parameter for parameter in sub_operation.parameters
            if not isinstance(parameter.get("name"), str) or ctx.name(parameter["name"]) not in args_from_parent
        ]
        field_type = get_graphql_type(ctx, sub_operation.response_definition, operation=sub_operation)
        args = get_args(ctx, dynamic_parameters, operation=sub_operation)
        maybe_add_limit(ctx, field_type, args)
        fields[name] = GraphQLField(
            field_type,
            args=args,
            resolve=get_resolver(ctx, sub_operation, args_from_parent=args_from_parent),
            description=sub_operation.description,
        )


def _strip_location(name: str) -> str:
    for prefix in _LOCATION_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


# -- Links ----------------------------------------------------------------------


def resolve_link_target(ctx: BuildContext, link_key: str, link: dict[str, Any]) -> Operation | None:
    """The operation a link points to, or None (with an UnresolvableLink warning)."""
    if isinstance(link.get("operationId"), str):
        operation_id: str | None = link["operationId"]
    elif isinstance(link.get("operationRef"), str):
        operation_id = operation_ref_to_id(ctx, link_key, link["operationRef"])
        if operation_id is None:
            return None
    else:
        ctx.warn(WarningType.UNRESOLVABLE_LINK, f"Link '{link_key}' has neither operationId nor operationRef")
        return None

    if operation_id not in ctx.operations:
        ctx.warn(WarningType.UNRESOLVABLE_LINK, f"Could not find operationId '{operation_id}' in link '{link_key}'")
        return None
    return ctx.operations[operation_id]


def operation_ref_to_id(ctx: BuildContext, link_key: str, operation_ref: str) -> str | None:
    """``#/paths/~1users~1{id}/get`` -> the id of ``GET /users/{id}``.

    Operations without an explicit id get the same synthesized id as during
    preprocessing.
    """
    if operation_ref.startswith("#/paths/"):
        relative = operation_ref
    else:
        first = operation_ref.find("#/paths/")
        if first == -1:
            ctx.warn(
                WarningType.UNRESOLVABLE_LINK,
                f"Link '{link_key}' has no relative path in operationRef '{operation_ref}'",
            )
            return None
        if first != operation_ref.rfind("#/paths/"):
            ctx.warn(WarningType.AMBIGUOUS_LINK, operation_ref)
        relative = operation_ref[first:]

    pivot = relative.rfind("/")
    method = relative[pivot + 1:]
    if method not in oas.OAS_OPERATIONS:
        ctx.warn(
            WarningType.UNRESOLVABLE_LINK,
            f"Method '{method}' in operationRef '{operation_ref}' is invalid",
        )
        return None
    path = relative[len("#/paths/"):pivot].replace("~1", "/").replace("~0", "~")

    endpoint = (ctx.spec.get("paths") or {}).get(path, {}).get(method)
    if isinstance(endpoint, dict) and isinstance(endpoint.get("operationId"), str):
        return endpoint["operationId"]
    return oas.generate_operation_id(method, path)


# -- Arguments ------------------------------------------------------------------


def payload_arg_name(ctx: BuildContext, definition: DataDefinition) -> str:
    if ctx.options.generic_payload_arg_name:
        return GENERIC_PAYLOAD_ARG
    return ctx.name(definition.iot_name)


def maybe_add_limit(ctx: BuildContext, field_type: GraphQLType, args: dict[str, GraphQLArgument]) -> None:
    if ctx.options.add_limit_argument and is_list_of_objects(field_type) and LIMIT_ARG not in args:
        args[LIMIT_ARG] = limit_argument()


def get_args(
    ctx: BuildContext,
    parameters: list[dict[str, Any]],
    *,
    operation: Operation | None = None,
    payload_definition: DataDefinition | None = None,
    payload_required: bool = False,
) -> dict[str, GraphQLArgument]:
    """Arguments for parameters and, when given, the request payload."""
    args: dict[str, GraphQLArgument] = {}
    ambient_headers = ctx.options.headers if isinstance(ctx.options.headers, dict) else {}
    ambient_qs = ctx.options.qs if isinstance(ctx.options.qs, dict) else {}

    for parameter in parameters:
        name = parameter.get("name")
        if not isinstance(name, str):
            ctx.warn(WarningType.UNNAMED_PARAMETER, json.dumps(parameter, default=str))
            continue
        if name in ambient_headers or name in ambient_qs:
            continue

        schema = oas.get_parameter_schema(parameter, ctx.spec)
        arg_type: GraphQLType = GraphQLString
        if schema is not None:
            schema = oas.merge_all_of(schema, ctx.spec)
            names = SchemaNames(
                from_ref=name,
                from_schema=schema.get("title") if isinstance(schema.get("title"), str) else None,
            )
            parameter_definition = create_or_reuse_definition(ctx, schema, names)
            arg_type = get_graphql_type(ctx, parameter_definition, operation=operation, is_input=True)

        required = bool(parameter.get("required")) and not (schema is not None and "default" in schema)
        args[ctx.name(name)] = GraphQLArgument(
            GraphQLNonNull(arg_type) if required else arg_type,
            description=parameter.get("description"),
        )

    if payload_definition is not None:
        payload_type = get_graphql_type(ctx, payload_definition, operation=operation, is_input=True)
        args[payload_arg_name(ctx, payload_definition)] = GraphQLArgument(
            GraphQLNonNull(payload_type) if payload_required else payload_type,
            description=payload_definition.schema.get("description") or NO_DESCRIPTION,
        )

    return dict(sorted(args.items()))
