"""The single warn-or-raise decision point for construction-time irregularities."""

from __future__ import annotations

from enum import Enum
import logging

from openapi_gql.errors import StrictModeError
from openapi_gql.formats.report import TranslationWarning
from openapi_gql.translate.types import BuildContext

logger = logging.getLogger(__name__)


class WarningType(str, Enum):
    UNSUPPORTED_HTTP_AUTH_SCHEME = "UnsupportedHTTPAuthScheme"
    MULTIPLE_RESPONSES = "MultipleResponses"
    MISSING_RESPONSE_SCHEMA = "MissingResponseSchema"
    INVALID_SCHEMA_TYPE = "InvalidSchemaType"
    INVALID_SCHEMA_TYPE_LIST_ITEM = "InvalidSchemaTypeListItem"
    INVALID_SCHEMA_TYPE_SCALAR = "InvalidSchemaTypeScalar"
    UNRESOLVABLE_LINK = "UnresolvableLink"
    AMBIGUOUS_LINK = "AmbiguousLink"
    LINK_NAME_COLLISION = "LinkNameCollision"
    UNNAMED_PARAMETER = "UnnamedParameter"
    DUPLICATE_FIELD_NAME = "DuplicateFieldName"
    UNSUPPORTED_JSON_SCHEMA_KEYWORD = "UnsupportedJSONSchemaKeyword"
    NAME_COLLISION = "NameCollision"


# Links are metadata: they degrade even in strict mode
NEVER_FATAL = frozenset({WarningType.UNRESOLVABLE_LINK, WarningType.AMBIGUOUS_LINK})

_INVALID_TYPE = (
    "Request / response schema has no (valid) type: {culprit}",
    "Fall back to type 'GraphQL String'",
)

# (message, mitigation), formatted with culprit / solution
_TEMPLATES: dict[WarningType, tuple[str, str]] = {
    WarningType.UNSUPPORTED_HTTP_AUTH_SCHEME: (
        "Unsupported HTTP authentication scheme '{culprit}'.",
        "Ignore operation",
    ),
    WarningType.MULTIPLE_RESPONSES: (
        "Operation '{culprit}' has more than one success status codes (200 - 299).",
        "Will select response for status code '{solution}'",
    ),
    WarningType.MISSING_RESPONSE_SCHEMA: (
        "Operation '{culprit}' has no (valid) response schema. "
        "You can create placeholder schemas using the fill_empty_responses option.",
        "Ignore operation",
    ),
    WarningType.INVALID_SCHEMA_TYPE: _INVALID_TYPE,
    WarningType.INVALID_SCHEMA_TYPE_LIST_ITEM: _INVALID_TYPE,
    WarningType.INVALID_SCHEMA_TYPE_SCALAR: _INVALID_TYPE,
    WarningType.UNRESOLVABLE_LINK: (
        "Cannot resolve target of link: {culprit}.",
        "Ignore link",
    ),
    WarningType.AMBIGUOUS_LINK: (
        "Cannot unambiguously resolve operationRef '{culprit}' in link.",
        "Use first occurrence of '#/' - may cause runtime errors",
    ),
    WarningType.LINK_NAME_COLLISION: (
        "Cannot create link '{culprit}' because Object Type already contains field '{solution}'.",
        "Ignore link",
    ),
    WarningType.UNNAMED_PARAMETER: (
        "Parameter misses 'name' property: {culprit}.",
        "Ignore parameter",
    ),
    WarningType.DUPLICATE_FIELD_NAME: (
        "Field name '{culprit}' is already present in the object.",
        "Ignore field and maintain preexisting field",
    ),
    WarningType.UNSUPPORTED_JSON_SCHEMA_KEYWORD: (
        "Schema keyword '{solution}' is not supported: {culprit}",
        "Ignore keyword",
    ),
    WarningType.NAME_COLLISION: (
        "Identifiers {culprit} both map to the GraphQL name '{solution}'.",
        "Desanitize '{solution}' to the most recent identifier",
    ),
}


def make_warning(warning_type: WarningType, culprit: str, solution: str = "") -> TranslationWarning:
    message, mitigation = _TEMPLATES[warning_type]
    return TranslationWarning(
        type=warning_type.value,
        message=message.format(culprit=culprit, solution=solution),
        mitigation=mitigation.format(culprit=culprit, solution=solution),
    )


def handle_warning(
    ctx: BuildContext,
    warning_type: WarningType,
    culprit: str,
    solution: str = "",
) -> None:
    """Raise in strict mode, otherwise log the warning and add it to the report.

    Link warnings are never raised.
    """
    warning = make_warning(warning_type, culprit, solution)
    if ctx.options.strict and warning_type not in NEVER_FATAL:
        raise StrictModeError(warning)
    logger.warning("%s - %s", warning.message, warning.mitigation)
    ctx.report.warnings.append(warning)
