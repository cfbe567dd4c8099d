"""Exceptions raised while translating an OpenAPI document or resolving its fields."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from openapi_gql.formats.report import TranslationWarning


class TranslationError(Exception):
    """Base class for every error raised by openapi-gql."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class InvalidInputError(TranslationError):
    """The document, an option, or a value handed to a helper is malformed."""


class UnresolvableReferenceError(TranslationError):
    """A ``$ref`` pointer does not lead anywhere in the document."""


class TooManyIterationsError(TranslationError):
    """Type construction nested deeper than the hard recursion limit."""


class SchemaCompositionError(TranslationError):
    """``allOf`` branches declare incompatible types."""


class StrictModeError(TranslationError):
    """A translation warning escalated because ``strict`` is enabled."""

    def __init__(self, warning: TranslationWarning):
        super().__init__(
            f"{warning.type} - {warning.message}",
            {"type": warning.type, "mitigation": warning.mitigation},
        )
        self.warning = warning


class MissingAuthenticationError(TranslationError):
    """An operation requires credentials that no viewer supplied."""


class InvalidRuntimeExpressionError(TranslationError):
    """A link parameter is not a recognised runtime expression."""
