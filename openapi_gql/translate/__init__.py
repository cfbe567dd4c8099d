"""OpenAPI to GraphQL translation stages."""

from __future__ import annotations

from openapi_gql.translate.pipeline import (
    TranslationResult as TranslationResult,
    build_schema as build_schema,
)
from openapi_gql.translate.warnings import WarningType as WarningType

__all__ = [
    "TranslationResult",
    "WarningType",
    "build_schema",
]
