"""Translate OpenAPI 3 descriptions into executable GraphQL schemas."""

from __future__ import annotations

from openapi_gql.errors import (
    InvalidInputError as InvalidInputError,
    InvalidRuntimeExpressionError as InvalidRuntimeExpressionError,
    MissingAuthenticationError as MissingAuthenticationError,
    SchemaCompositionError as SchemaCompositionError,
    StrictModeError as StrictModeError,
    TooManyIterationsError as TooManyIterationsError,
    TranslationError as TranslationError,
    UnresolvableReferenceError as UnresolvableReferenceError,
)
from openapi_gql.formats.report import (
    Report as Report,
    TranslationWarning as TranslationWarning,
)
from openapi_gql.options import Options as Options
from openapi_gql.translate.pipeline import (
    TranslationResult as TranslationResult,
    build_schema as build_schema,
)

__all__ = [
    "InvalidInputError",
    "InvalidRuntimeExpressionError",
    "MissingAuthenticationError",
    "Options",
    "Report",
    "SchemaCompositionError",
    "StrictModeError",
    "TooManyIterationsError",
    "TranslationError",
    "TranslationResult",
    "TranslationWarning",
    "UnresolvableReferenceError",
    "build_schema",
]
