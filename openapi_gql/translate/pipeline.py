"""Schema assembly: the public entry point of the translation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable

from graphql import GraphQLField, GraphQLObjectType, GraphQLSchema, GraphQLString

from openapi_gql.errors import TranslationError
from openapi_gql.formats.openapi import get_valid_oas3
from openapi_gql.formats.report import Report
from openapi_gql.helpers.http import RequestsTransport
from openapi_gql.options import Options
from openapi_gql.translate.auth_builder import build_viewers
from openapi_gql.translate.preprocessor import preprocess
from openapi_gql.translate.resolver_builder import get_resolver
from openapi_gql.translate.schema_builder import (
    get_args,
    get_graphql_type,
    maybe_add_limit,
    payload_arg_name,
)
from openapi_gql.translate.types import BuildContext, Operation

logger = logging.getLogger(__name__)


@dataclass
class TranslationResult:
    schema: GraphQLSchema
    report: Report


def build_schema(
    spec: dict[str, Any],
    options: Options | None = None,
    *,
    converter: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
) -> TranslationResult:
    """Translate an OpenAPI document into an executable GraphQL schema.

    OpenAPI 2.0 documents need a *converter* returning the 3.x equivalent.
    """
    options = options or Options()
    document = get_valid_oas3(spec, converter=converter)

    ctx = preprocess(document, options)
    ctx.transport = options.transport or RequestsTransport()

    query_fields: dict[str, GraphQLField] = {}
    mutation_fields: dict[str, GraphQLField] = {}
    auth_query_fields: dict[str, dict[str, GraphQLField]] = {}
    auth_mutation_fields: dict[str, dict[str, GraphQLField]] = {}
    # Operation ids behind root fields, and behind each security requirement
    query_ops: set[str] = set()
    mutation_ops: set[str] = set()
    ops_by_requirement: dict[str, set[str]] = {}

    # Operations with links or sub-operations first, so that reused types
    # already carry their link fields.
    ordered = sorted(ctx.operations.values(), key=lambda op: not (op.links or op.sub_ops))
    for operation in ordered:
        logger.debug("Process operation '%s'...", operation.operation_id)
        field = get_field_for_operation(ctx, operation)
        if operation.in_viewer:
            for requirement in operation.security_requirements:
                ops_by_requirement.setdefault(requirement, set()).add(operation.operation_id)
        elif operation.is_mutation:
            mutation_ops.add(operation.operation_id)
        else:
            query_ops.add(operation.operation_id)
        if not operation.is_mutation:
            if operation.in_viewer:
                for requirement in operation.security_requirements:
                    bucket = auth_query_fields.setdefault(requirement, {})
                    bucket[_query_field_name(ctx, operation, bucket)] = field
            else:
                query_fields[_query_field_name(ctx, operation, query_fields)] = field
        else:
            name = ctx.store_name(operation.operation_id)
            if operation.in_viewer:
                for requirement in operation.security_requirements:
                    auth_mutation_fields.setdefault(requirement, {})[name] = field
            else:
                mutation_fields[name] = field

    with_viewer: set[str] = set()
    if auth_query_fields:
        query_fields.update(build_viewers(ctx, auth_query_fields, built=with_viewer))
    if auth_mutation_fields:
        mutation_fields.update(build_viewers(ctx, auth_mutation_fields, is_mutation=True, built=with_viewer))

    for requirement in with_viewer:
        for operation_id in ops_by_requirement.get(requirement, ()):
            (mutation_ops if ctx.operations[operation_id].is_mutation else query_ops).add(operation_id)
    ctx.report.num_queries_created = len(query_ops)
    ctx.report.num_mutations_created = len(mutation_ops)

    query = (
        GraphQLObjectType(name="query", description="The start of any query", fields=query_fields)
        if query_fields
        else placeholder_type("query")
    )
    mutation = (
        GraphQLObjectType(name="mutation", description="The start of any mutation", fields=mutation_fields)
        if mutation_fields
        else None
    )

    # Field thunks run while the schema collects its types.
    try:
        schema = GraphQLSchema(query=query, mutation=mutation)
    except TypeError as e:
        if isinstance(e.__cause__, TranslationError):
            raise e.__cause__ from None
        raise

    return TranslationResult(schema=schema, report=ctx.report)


def placeholder_type(name: str) -> GraphQLObjectType:
    """Root type for interfaces that offer no query."""
    return GraphQLObjectType(
        name=name + "Placeholder",
        fields={
            "message": GraphQLField(
                GraphQLString,
                resolve=lambda source, info: "This interface offers no query.",
            )
        },
    )


def _query_field_name(ctx: BuildContext, operation: Operation, taken: dict[str, GraphQLField]) -> str:
    if ctx.options.operation_id_field_names:
        return ctx.store_name(operation.operation_id)
    name = operation.response_definition.ot_name
    if name in taken:
        name = ctx.store_name(operation.operation_id)
    return name


def get_field_for_operation(ctx: BuildContext, operation: Operation) -> GraphQLField:
    """Root field of one operation: response type, arguments and resolver."""
    field_type = get_graphql_type(ctx, operation.response_definition, operation=operation)

    payload_name = None
    if operation.payload_definition is not None:
        payload_name = payload_arg_name(ctx, operation.payload_definition)

    args = get_args(
        ctx,
        operation.parameters,
        operation=operation,
        payload_definition=operation.payload_definition,
        payload_required=operation.payload_required,
    )
    maybe_add_limit(ctx, field_type, args)

    return GraphQLField(
        field_type,
        args=args,
        resolve=get_resolver(ctx, operation, payload_name=payload_name),
        description=operation.description,
    )
