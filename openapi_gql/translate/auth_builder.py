"""Viewer fields: wrappers that take credentials as arguments.

A viewer performs no HTTP call. Its resolver records the credentials in the
resolution context, where the resolvers of the wrapped fields pick them up.
"""

from __future__ import annotations

import logging
from typing import Any

from graphql import (
    GraphQLArgument,
    GraphQLField,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLResolveInfo,
    GraphQLString,
)

from openapi_gql.translate.preprocessor import create_or_reuse_definition
from openapi_gql.translate.resolver_builder import get_parent_context, store_context
from openapi_gql.translate.schema_builder import get_graphql_type
from openapi_gql.translate.types import BuildContext, SchemaNames
from openapi_gql.translate.warnings import WarningType

logger = logging.getLogger(__name__)


def viewer_type_name(ctx: BuildContext, scheme_name: str) -> str | None:
    """``apiKey``, ``basicAuth`` or ``openIdConnect``; None for unsupported HTTP schemes."""
    definition = ctx.security[scheme_name].definition
    scheme_type = str(definition.get("type"))
    if scheme_type == "http":
        if str(definition.get("scheme", "")).lower() == "basic":
            return "basicAuth"
        ctx.warn(
            WarningType.UNSUPPORTED_HTTP_AUTH_SCHEME,
            f"{definition.get('scheme')} (security scheme '{scheme_name}')",
        )
        return None
    return scheme_type


def build_viewers(
    ctx: BuildContext,
    fields_by_requirement: dict[str, dict[str, GraphQLField]],
    *,
    is_mutation: bool = False,
    built: set[str] | None = None,
) -> dict[str, GraphQLField]:
    """One viewer per security scheme plus an ``AnyAuth`` viewer over all of them.

    Schemes that got a viewer are added to *built*.
    """
    viewers: dict[str, GraphQLField] = {}
    any_auth_fields: dict[str, GraphQLField] = {}

    for scheme_name, fields in fields_by_requirement.items():
        viewer_type = viewer_type_name(ctx, scheme_name)
        if viewer_type is None:
            continue
        any_auth_fields.update(fields)
        if built is not None:
            built.add(scheme_name)

        base = ctx.name(f"mutation viewer {viewer_type}" if is_mutation else f"viewer {viewer_type}")
        name = base
        suffix = 2
        while name in viewers or name in ctx.used_type_names:
            name = f"{base}{suffix}"
            suffix += 1
        ctx.used_type_names.add(name)

        viewers[name] = _viewer_field(ctx, name, scheme_name, viewer_type, fields)

    if any_auth_fields:
        name = "mutationViewerAnyAuth" if is_mutation else "viewerAnyAuth"
        ctx.used_type_names.add(name)
        viewers[name] = _any_auth_field(ctx, name, any_auth_fields)
    return viewers


def _viewer_field(
    ctx: BuildContext,
    name: str,
    scheme_name: str,
    viewer_type: str,
    fields: dict[str, GraphQLField],
) -> GraphQLField:
    scheme = ctx.security[scheme_name]
    security_key = ctx.name(scheme_name)

    def resolve(source: Any, info: GraphQLResolveInfo, **args: Any) -> dict[str, Any]:
        resolution_context = get_parent_context(info, ctx.fallback_state)
        resolution_context.security[security_key] = args
        store_context(info, resolution_context, ctx.fallback_state)
        return {}

    # Parameter order is kept: username before password
    args = {parameter: GraphQLArgument(GraphQLNonNull(GraphQLString)) for parameter in scheme.parameters}
    return GraphQLField(
        GraphQLObjectType(
            name=name,
            description=f"A viewer for the security protocol: '{scheme.raw_name}'",
            fields=lambda: dict(sorted(fields.items())),
        ),
        args=args,
        resolve=resolve,
        description=f"A viewer that wraps all operations authenticated via {viewer_type}",
    )


def _any_auth_field(ctx: BuildContext, name: str, fields: dict[str, GraphQLField]) -> GraphQLField:
    args: dict[str, GraphQLArgument] = {}
    for scheme_name, scheme in ctx.security.items():
        if scheme.schema is None:
            continue
        definition = create_or_reuse_definition(ctx, scheme.schema, SchemaNames(from_ref=scheme_name))
        args[ctx.name(scheme_name)] = GraphQLArgument(get_graphql_type(ctx, definition, is_input=True))

    def resolve(source: Any, info: GraphQLResolveInfo, **kwargs: Any) -> dict[str, Any]:
        resolution_context = get_parent_context(info, ctx.fallback_state)
        resolution_context.security.update(kwargs)
        store_context(info, resolution_context, ctx.fallback_state)
        return {}

    return GraphQLField(
        GraphQLObjectType(
            name=name,
            description="Warning: Not every request will work with this viewer type",
            fields=lambda: dict(sorted(fields.items())),
        ),
        args=dict(sorted(args.items())),
        resolve=resolve,
        description="A viewer that wraps operations for all available authentication mechanisms",
    )
