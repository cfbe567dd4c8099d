"""Loading and validation of input OpenAPI documents."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import yaml

from openapi_gql.errors import InvalidInputError

logger = logging.getLogger(__name__)


class OpenApiInfo(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    title: str
    version: str = ""


class OpenApiDocument(BaseModel):
    """The fields the translation relies on; everything else passes through."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    openapi: str
    info: OpenApiInfo
    paths: dict[str, Any] = Field(default_factory=dict)


def load_spec(path: str | Path) -> dict[str, Any]:
    """Read a YAML or JSON document from disk."""
    text = Path(path).read_text()
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidInputError(f"Could not parse '{path}'", {"error": str(e)}) from e
    if not isinstance(data, dict):
        raise InvalidInputError(f"'{path}' does not contain an object", {"path": str(path)})
    return data


def get_valid_oas3(
    spec: dict[str, Any],
    converter: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Return *spec* as a validated OpenAPI 3.x document.

    Swagger 2.0 input is handed to *converter*; there is no built-in one.
    """
    if not isinstance(spec, dict):
        raise InvalidInputError("Invalid specification provided", {"type": type(spec).__name__})

    if str(spec.get("swagger", "")) == "2.0":
        if converter is None:
            raise InvalidInputError(
                "Swagger 2.0 documents need a converter to OpenAPI 3",
                {"swagger": spec.get("swagger")},
            )
        logger.debug("Converting Swagger 2.0 document...")
        spec = converter(spec)

    if not str(spec.get("openapi", "")).startswith("3"):
        raise InvalidInputError(
            "Invalid specification provided: expected OpenAPI 3.x",
            {"openapi": spec.get("openapi"), "swagger": spec.get("swagger")},
        )

    try:
        OpenApiDocument.model_validate(spec)
    except ValidationError as e:
        raise InvalidInputError("Invalid OpenAPI document", {"errors": e.errors()}) from e
    return spec
