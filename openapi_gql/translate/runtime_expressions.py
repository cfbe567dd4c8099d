"""OpenAPI link runtime expressions: parsing and evaluation.

A link parameter such as ``$response.body#/employerId`` is parsed once into a
``RuntimeExpression`` and evaluated every time the link field resolves, against
the parent's response body and the parent's resolution context.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Any

from openapi_gql.errors import InvalidRuntimeExpressionError
from openapi_gql.helpers.http import get_header
from openapi_gql.helpers.json_path import pointer_tokens
from openapi_gql.helpers.naming import CaseStyle, to_graphql_name
from openapi_gql.translate.types import ResolutionContext

logger = logging.getLogger(__name__)

_TEMPLATE = re.compile(r"\{(\$[^{}]+)\}")


class ExpressionKind(Enum):
    URL = "url"
    METHOD = "method"
    STATUS_CODE = "statusCode"
    REQUEST_BODY = "request.body"
    REQUEST_QUERY = "request.query"
    REQUEST_PATH = "request.path"
    REQUEST_HEADER = "request.header"
    RESPONSE_BODY = "response.body"
    RESPONSE_QUERY = "response.query"
    RESPONSE_PATH = "response.path"
    RESPONSE_HEADER = "response.header"


_BODY_KINDS = {"$request.body": ExpressionKind.REQUEST_BODY, "$response.body": ExpressionKind.RESPONSE_BODY}
_NAMED_KINDS = {
    "$request.query.": ExpressionKind.REQUEST_QUERY,
    "$request.path.": ExpressionKind.REQUEST_PATH,
    "$request.header.": ExpressionKind.REQUEST_HEADER,
    "$response.query.": ExpressionKind.RESPONSE_QUERY,
    "$response.path.": ExpressionKind.RESPONSE_PATH,
    "$response.header.": ExpressionKind.RESPONSE_HEADER,
}


@dataclass(frozen=True)
class RuntimeExpression:
    kind: ExpressionKind
    name: str | None = None  # query / path / header name
    pointer: tuple[str, ...] | None = None  # body pointer tokens, None for the whole body


def parse(expression: str) -> RuntimeExpression:
    """Parse one runtime expression. Raises InvalidRuntimeExpressionError."""
    if expression == "$url":
        return RuntimeExpression(ExpressionKind.URL)
    if expression == "$method":
        return RuntimeExpression(ExpressionKind.METHOD)
    if expression == "$statusCode":
        return RuntimeExpression(ExpressionKind.STATUS_CODE)

    for prefix, kind in _BODY_KINDS.items():
        if expression == prefix:
            return RuntimeExpression(kind)
        if expression.startswith(prefix + "#"):
            return RuntimeExpression(kind, pointer=tuple(pointer_tokens(expression[len(prefix):])))

    for prefix, kind in _NAMED_KINDS.items():
        if expression.startswith(prefix) and len(expression) > len(prefix):
            return RuntimeExpression(kind, name=expression[len(prefix):])

    raise InvalidRuntimeExpressionError(
        f"Runtime expression '{expression}' is not supported", {"expression": expression}
    )


def is_runtime_expression(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("$")


def is_template(value: Any) -> bool:
    """``abc_{$response.body#/id}`` embeds expressions in a literal."""
    return isinstance(value, str) and bool(_TEMPLATE.search(value))


def evaluate(
    expression: RuntimeExpression,
    *,
    source: Any,
    context: ResolutionContext,
    style: CaseStyle = CaseStyle.CAMEL,
) -> Any:
    """Evaluate against the parent response body (*source*) and its call context."""
    request = context.used_request
    kind = expression.kind

    if kind is ExpressionKind.URL:
        return request.url if request else None
    elif kind is ExpressionKind.METHOD:
        return request.method.upper() if request else None
    elif kind is ExpressionKind.STATUS_CODE:
        return context.used_status_code
    elif kind is ExpressionKind.REQUEST_BODY:
        return _walk(context.used_payload, expression.pointer or (), None)
    elif kind in (
        ExpressionKind.REQUEST_QUERY,
        ExpressionKind.REQUEST_PATH,
        ExpressionKind.RESPONSE_QUERY,
        ExpressionKind.RESPONSE_PATH,
    ):
        return context.used_params.get(to_graphql_name(expression.name or "", style))
    elif kind is ExpressionKind.REQUEST_HEADER:
        return get_header(request.headers, expression.name or "") if request else None
    elif kind is ExpressionKind.RESPONSE_HEADER:
        return get_header(context.response_headers, expression.name or "")
    elif kind is ExpressionKind.RESPONSE_BODY:
        return _walk(source, expression.pointer or (), style)
    raise InvalidRuntimeExpressionError(f"Unhandled runtime expression kind '{kind.value}'")


def evaluate_link_value(
    value: Any,
    *,
    source: Any,
    context: ResolutionContext,
    style: CaseStyle = CaseStyle.CAMEL,
) -> Any:
    """Resolve a link parameter value: an expression, a template, or a literal."""
    if is_runtime_expression(value):
        return evaluate(parse(value), source=source, context=context, style=style)
    if is_template(value):
        def substitute(match: re.Match[str]) -> str:
            result = evaluate(parse(match.group(1)), source=source, context=context, style=style)
            return "" if result is None else str(result)

        return _TEMPLATE.sub(substitute, value)
    return value


def _walk(document: Any, tokens: tuple[str, ...] | list[str], style: CaseStyle | None) -> Any:
    # Response bodies carry GraphQL names, so tokens get the same conversion.
    current = document
    for token in tokens:
        if isinstance(current, list) and token.isdigit():
            index = int(token)
            current = current[index] if index < len(current) else None
        elif isinstance(current, dict):
            key = token if style is None else to_graphql_name(token, style)
            current = current.get(key, current.get(token))
        else:
            current = None
        if current is None:
            logger.debug("Could not follow pointer %s", "/".join(tokens))
            return None
    return current
