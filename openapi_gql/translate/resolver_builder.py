"""Resolvers that turn a GraphQL field into one HTTP call against the REST API.

Call state (parameters sent, payload, request, credentials) is not smuggled
into response bodies. It is kept in a side table stored in the per-request
GraphQL context value (or on the build when there is none), keyed by the field
path of the resolver that produced it, so a descendant resolver finds its
ancestor's state through ``info.path``.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import MutableMapping
import json
import logging
from typing import Any, Callable
from urllib.parse import quote, urlencode

from graphql import GraphQLError, GraphQLResolveInfo
from requests.structures import CaseInsensitiveDict

from openapi_gql.errors import InvalidInputError, MissingAuthenticationError
from openapi_gql.helpers.http import (
    HttpRequest,
    HttpResponse,
    RequestsTransport,
    Transport,
    get_header,
    trim,
)
from openapi_gql.helpers.json_path import extract_path
from openapi_gql.helpers.naming import desanitize_object_keys, sanitize_object_keys
from openapi_gql.translate import oas
from openapi_gql.translate.runtime_expressions import evaluate_link_value
from openapi_gql.translate.types import BuildContext, Operation, ResolutionContext, SideTable

logger = logging.getLogger(__name__)

CONTEXT_KEY = "_openapi_gql"
LIMIT_ARG = "limit"

Resolver = Callable[..., Any]


# -- Resolution context side table --------------------------------------------


def path_identifier(path: Any) -> str:
    """``users/0/company`` for the field ``company`` of the first ``users`` item."""
    if path is None:
        return ""
    return "/".join(str(key) for key in path.as_list())


def get_side_table(
    info: GraphQLResolveInfo, fallback: MutableMapping[str, Any] | None = None
) -> dict[str, ResolutionContext]:
    """Entries of the running execution.

    The table lives on the GraphQL context value, or in *fallback* when the
    execution has none. A table left behind by an earlier execution is
    replaced, so credentials never outlive the query that supplied them.
    Concurrent executions must not share one context value.
    """
    holder = info.context if info.context is not None else fallback
    if holder is None:
        return {}
    if isinstance(holder, MutableMapping):
        table = holder.get(CONTEXT_KEY)
    else:
        table = getattr(holder, CONTEXT_KEY, None)
    if not isinstance(table, SideTable) or table.execution is not info.variable_values:
        table = SideTable(execution=info.variable_values)
        if isinstance(holder, MutableMapping):
            holder[CONTEXT_KEY] = table
        else:
            setattr(holder, CONTEXT_KEY, table)
    return table.entries


def get_parent_context(
    info: GraphQLResolveInfo, fallback: MutableMapping[str, Any] | None = None
) -> ResolutionContext:
    """Copy of the nearest ancestor's context, or a fresh one for root fields."""
    parent = info.path.prev
    if parent is None:
        return ResolutionContext()
    table = get_side_table(info, fallback)
    while parent is not None:
        found = table.get(path_identifier(parent))
        if found is not None:
            return found.branch()
        parent = parent.prev
    return ResolutionContext()


def store_context(
    info: GraphQLResolveInfo,
    resolution_context: ResolutionContext,
    fallback: MutableMapping[str, Any] | None = None,
) -> None:
    table = get_side_table(info, fallback)
    table[path_identifier(info.path)] = resolution_context


# -- Resolver -------------------------------------------------------------------


def get_resolver(
    ctx: BuildContext,
    operation: Operation,
    *,
    args_from_link: dict[str, Any] | None = None,
    args_from_parent: list[str] | None = None,
    payload_name: str | None = None,
) -> Resolver:
    """Build the resolver performing *operation*.

    *args_from_link* maps raw parameter names to link values (literals,
    runtime expressions or templates). *args_from_parent* lists argument
    names copied from the ancestor's used parameters.
    """
    custom = (
        ctx.options.custom_resolvers.get(ctx.title, {}).get(operation.path, {}).get(operation.method)
    )
    if custom is not None:
        logger.debug("Use custom resolver for %s", operation.operation_string)
        return custom

    link_values = dict(args_from_link or {})
    parent_args = list(args_from_parent or [])
    base_url = (ctx.options.base_url or oas.get_base_url(operation.servers)).rstrip("/")

    async def resolve(source: Any, info: GraphQLResolveInfo, **kwargs: Any) -> Any:
        resolution_context = get_parent_context(info, ctx.fallback_state)
        args = dict(kwargs)

        apply_parameter_defaults(ctx, operation, args)
        for param_name, value in link_values.items():
            args[ctx.name(param_name)] = evaluate_link_value(
                value, source=source, context=resolution_context, style=ctx.style
            )
        for arg_name in parent_args:
            args[arg_name] = resolution_context.used_params.get(arg_name)
        resolution_context.used_params.update(args)

        request = build_request(
            ctx, operation, args,
            base_url=base_url,
            payload_name=payload_name,
            resolution_context=resolution_context,
            source=source,
            info=info,
        )

        logger.debug(
            "Call %s %s?%s headers:%s",
            request.method.upper(), request.url, urlencode(request.params, doseq=True), request.headers,
        )
        response = await asyncio.to_thread(_transport(ctx).send, request)
        logger.debug("%s - %s", response.status_code, trim(response.text, 100))

        if not response.ok:
            raise GraphQLError(
                f"Could not invoke operation {operation.operation_string}",
                extensions=error_extensions(operation, response) if ctx.options.provide_error_extensions else None,
            )

        resolution_context.used_request = request
        resolution_context.used_status_code = response.status_code
        resolution_context.response_headers = dict(response.headers)
        store_context(info, resolution_context, ctx.fallback_state)

        body = parse_response(ctx, operation, response)
        return apply_limit(ctx, operation, args, body)

    return resolve


def _transport(ctx: BuildContext) -> Transport:
    if ctx.transport is None:
        ctx.transport = RequestsTransport()
    return ctx.transport


def apply_parameter_defaults(ctx: BuildContext, operation: Operation, args: dict[str, Any]) -> None:
    """Fill schema-level defaults for parameters the caller did not supply."""
    for parameter in operation.parameters:
        name = parameter.get("name")
        if not isinstance(name, str):
            continue
        arg_name = ctx.name(name)
        if args.get(arg_name) is not None:
            continue
        schema = oas.get_parameter_schema(parameter, ctx.spec)
        if schema is not None and "default" in schema:
            args[arg_name] = schema["default"]


# -- Request assembly -------------------------------------------------------------


def build_request(
    ctx: BuildContext,
    operation: Operation,
    args: dict[str, Any],
    *,
    base_url: str,
    payload_name: str | None,
    resolution_context: ResolutionContext,
    source: Any = None,
    info: GraphQLResolveInfo | None = None,
) -> HttpRequest:
    """Assemble the outbound request.

    Later layers win: computed defaults, ambient options, ``request_options``,
    per-request parameters, viewer credentials, then the OAuth token.
    """
    body = _build_body(ctx, operation, args, payload_name, resolution_context)

    headers: CaseInsensitiveDict[str] = CaseInsensitiveDict()
    params: dict[str, Any] = {}

    # Computed defaults
    headers["accept"] = operation.response_content_type or oas.JSON_CONTENT_TYPE
    if body is not None:
        headers["content-type"] = operation.payload_content_type or oas.JSON_CONTENT_TYPE

    # Ambient options
    hook_args = {"source": source, "args": args, "context": info.context if info else None, "info": info}
    headers.update(_ambient(ctx, ctx.options.headers, operation, hook_args))
    params.update(_ambient(ctx, ctx.options.qs, operation, hook_args))

    # Explicit request options
    transport_options: dict[str, Any] = {}
    for key, value in (ctx.options.request_options or {}).items():
        if key == "headers":
            headers.update(value or {})
        elif key == "qs":
            params.update(value or {})
        elif key not in ("method", "url"):
            transport_options[key] = value

    # Per-request parameters
    path, query, param_headers, cookies = _instantiate_parameters(ctx, operation, args)
    params.update(query)
    headers.update(param_headers)

    # Credentials
    auth_headers, auth_query, auth_cookies = get_auth_additions(ctx, operation, resolution_context, info)
    headers.update(auth_headers)
    params.update(auth_query)
    cookies.extend(auth_cookies)

    # OAuth token
    token = _extract_token(ctx, info)
    if token is not None:
        if ctx.options.send_oauth_token_in_query:
            params["access_token"] = token
        else:
            headers["Authorization"] = f"Bearer {token}"

    if cookies:
        existing = headers.get("cookie")
        headers["cookie"] = "; ".join(([existing] if existing else []) + cookies)

    return HttpRequest(
        method=operation.method,
        url=base_url + path,
        headers=dict(headers),
        params=params,
        body=body,
        options=transport_options,
    )


def _ambient(
    ctx: BuildContext,
    addition: Any,
    operation: Operation,
    hook_args: dict[str, Any],
) -> dict[str, Any]:
    if addition is None:
        return {}
    if callable(addition):
        return dict(addition(operation.method, operation.path, ctx.title, hook_args) or {})
    return dict(addition)


def _stringify(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def _instantiate_parameters(
    ctx: BuildContext, operation: Operation, args: dict[str, Any]
) -> tuple[str, dict[str, Any], dict[str, str], list[str]]:
    path = operation.path
    query: dict[str, Any] = {}
    headers: dict[str, str] = {}
    cookies: list[str] = []
    for parameter in operation.parameters:
        name = parameter.get("name")
        if not isinstance(name, str):
            continue
        value = args.get(ctx.name(name))
        if value is None:
            continue
        location = parameter.get("in")
        if location == "path":
            path = path.replace(f"{{{name}}}", quote(str(_stringify(value)), safe=""))
        elif location == "query":
            query[name] = [_stringify(v) for v in value] if isinstance(value, list) else _stringify(value)
        elif location == "header":
            headers[name] = str(_stringify(value))
        elif location == "cookie":
            cookies.append(f"{name}={_stringify(value)}")
        else:
            logger.debug("Parameter location '%s' of '%s' is not supported", location, name)
    return path, query, headers, cookies


def _build_body(
    ctx: BuildContext,
    operation: Operation,
    args: dict[str, Any],
    payload_name: str | None,
    resolution_context: ResolutionContext,
) -> str | None:
    if not payload_name or args.get(payload_name) is None:
        return None
    raw = desanitize_object_keys(args[payload_name], ctx.sane_map)
    resolution_context.used_payload = raw

    content_type = operation.payload_content_type or oas.JSON_CONTENT_TYPE
    if oas.is_json_content_type(content_type):
        return json.dumps(raw)
    if content_type == oas.FORM_CONTENT_TYPE and isinstance(raw, dict):
        return urlencode(
            {key: json.dumps(value) if isinstance(value, dict) else value for key, value in raw.items()},
            doseq=True,
        )
    return raw if isinstance(raw, str) else json.dumps(raw)


# -- Authentication ---------------------------------------------------------------


def _ambient_security(info: GraphQLResolveInfo | None) -> dict[str, Any]:
    if info is None or info.context is None:
        return {}
    security = extract_path(info.context, "$.security")
    return security if isinstance(security, dict) else {}


def get_auth_additions(
    ctx: BuildContext,
    operation: Operation,
    resolution_context: ResolutionContext,
    info: GraphQLResolveInfo | None = None,
) -> tuple[dict[str, str], dict[str, str], list[str]]:
    """Headers, query parameters and cookies carrying viewer credentials.

    Raises MissingAuthenticationError when the operation needs credentials
    and none of its schemes has any.
    """
    if not operation.security_requirements:
        return {}, {}, []

    ambient = _ambient_security(info)
    chosen: str | None = None
    credentials: dict[str, Any] = {}
    for requirement in operation.security_requirements:
        found = resolution_context.security.get(ctx.name(requirement), ambient.get(ctx.name(requirement)))
        if isinstance(found, dict):
            chosen, credentials = requirement, found
            break
    if chosen is None:
        raise MissingAuthenticationError(
            f"Missing information to authenticate API request {operation.operation_string}",
            {"securityRequirements": operation.security_requirements},
        )

    definition = ctx.security[chosen].definition
    scheme_type = definition.get("type")
    headers: dict[str, str] = {}
    query: dict[str, str] = {}
    cookies: list[str] = []

    if scheme_type == "apiKey":
        api_key = str(credentials.get("apiKey", ""))
        location = definition.get("in")
        name = definition.get("name")
        if location == "header":
            headers[name] = api_key
        elif location == "query":
            query[name] = api_key
        elif location == "cookie":
            cookies.append(f"{name}={api_key}")
        else:
            raise InvalidInputError(f"Cannot send apiKey in '{location}'", {"scheme": chosen})
    elif scheme_type == "http":
        if str(definition.get("scheme", "")).lower() != "basic":
            raise InvalidInputError(
                f"Cannot recognize http security scheme '{definition.get('scheme')}'", {"scheme": chosen}
            )
        pair = f"{credentials.get('username', '')}:{credentials.get('password', '')}"
        headers["Authorization"] = "Basic " + base64.b64encode(pair.encode()).decode()

    return headers, query, cookies


def _extract_token(ctx: BuildContext, info: GraphQLResolveInfo | None) -> str | None:
    if not ctx.options.token_json_path or info is None:
        return None
    token = extract_path(info.context, ctx.options.token_json_path)
    if token is None:
        logger.warning("Could not extract OAuth token from context at '%s'", ctx.options.token_json_path)
        return None
    return str(token)


# -- Response handling ------------------------------------------------------------


def error_extensions(operation: Operation, response: HttpResponse) -> dict[str, Any]:
    try:
        response_body: Any = json.loads(response.text)
    except ValueError:
        response_body = response.text
    return {
        "method": operation.method.upper(),
        "path": operation.path,
        "statusCode": response.status_code,
        "responseHeaders": dict(response.headers),
        "responseBody": response_body,
    }


def parse_response(ctx: BuildContext, operation: Operation, response: HttpResponse) -> Any:
    """JSON-parse and sanitize a successful body; non-JSON bodies pass through as text."""
    if not response.text:
        return None

    declared = operation.response_content_type or oas.JSON_CONTENT_TYPE
    actual = get_header(response.headers, "content-type") or ""
    if declared == "*/*":
        if "json" not in actual.lower():
            return response.text
    elif not oas.is_json_content_type(declared):
        return response.text
    elif declared.split(";")[0].strip().lower() not in actual.lower():
        raise GraphQLError(
            f"Operation {operation.operation_string} should have a content-type "
            f"'{declared}' but has '{actual}' instead"
        )

    try:
        body = json.loads(response.text)
    except ValueError as e:
        raise GraphQLError(
            f"Cannot JSON parse response body of operation {operation.operation_string} "
            f"even though it has content-type '{actual}'"
        ) from e
    return sanitize_object_keys(body, ctx.style)


def apply_limit(ctx: BuildContext, operation: Operation, args: dict[str, Any], body: Any) -> Any:
    if not ctx.options.add_limit_argument or args.get(LIMIT_ARG) is None:
        return body
    if any(p.get("name") == LIMIT_ARG for p in operation.parameters):
        return body
    limit = args[LIMIT_ARG]
    if limit < 0:
        raise GraphQLError("Auto-generated 'limit' argument must be greater than or equal to 0")
    return body[:limit] if isinstance(body, list) else body
