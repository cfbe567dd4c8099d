"""GraphQL naming utilities: sanitizing API identifiers and restoring them."""

from __future__ import annotations

from enum import Enum
import re
from typing import Any

from openapi_gql.errors import InvalidInputError

_ILLEGAL_CHARS = re.compile(r"[^a-zA-Z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+(.?)")


class CaseStyle(Enum):
    """How raw identifiers are turned into GraphQL names."""

    CAMEL = "camel"  # beautify()
    SIMPLE = "simple"  # simplify()


def sanitize(raw: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_]`` with ``_``."""
    _check_str(raw)
    return _ILLEGAL_CHARS.sub("_", raw)


def beautify(raw: str, *, lowercase_first: bool = True) -> str:
    """Sanitize, then camelCase on underscores.

    The result never starts with a digit and is never empty: both cases get a
    leading ``_``.  Applying it twice yields the same value.
    """
    name = _UNDERSCORE_RUNS.sub(lambda m: m.group(1).upper(), sanitize(raw))
    if not name or name[0].isdigit():
        name = "_" + name
    if lowercase_first:
        name = name[0].lower() + name[1:]
    return name


def simplify(raw: str) -> str:
    """Sanitize only, prefixing ``_`` when the result is empty or starts with a digit."""
    name = sanitize(raw)
    if not name or name[0].isdigit():
        name = "_" + name
    return name


def to_graphql_name(raw: str, style: CaseStyle = CaseStyle.CAMEL) -> str:
    """Convert a raw identifier using the given case style."""
    if style is CaseStyle.SIMPLE:
        return simplify(raw)
    return beautify(raw)


def beautify_and_store(
    raw: str,
    mapping: dict[str, str],
    *,
    style: CaseStyle = CaseStyle.CAMEL,
) -> tuple[str, str | None]:
    """Convert *raw* and record ``mapping[clean] = raw`` when they differ.

    Returns the clean name and, if a different raw name was already stored
    under the same clean name, that previous raw name.  The new raw name wins.
    """
    clean = to_graphql_name(raw, style)
    previous: str | None = None
    if clean != raw:
        existing = mapping.get(clean)
        if existing is not None and existing != raw:
            previous = existing
        mapping[clean] = raw
    return clean, previous


def sanitize_object_keys(
    obj: Any,
    style: CaseStyle = CaseStyle.CAMEL,
    *,
    exceptions: frozenset[str] = frozenset(),
) -> Any:
    """Return a copy of *obj* where every dict key is converted, at any depth."""
    if isinstance(obj, list):
        return [sanitize_object_keys(item, style, exceptions=exceptions) for item in obj]
    if isinstance(obj, dict):
        return {
            (key if key in exceptions else to_graphql_name(str(key), style)):
                sanitize_object_keys(value, style, exceptions=exceptions)
            for key, value in obj.items()
        }
    return obj


def desanitize_object_keys(obj: Any, mapping: dict[str, str]) -> Any:
    """Return a copy of *obj* with keys restored through *mapping*, at any depth."""
    if isinstance(obj, list):
        return [desanitize_object_keys(item, mapping) for item in obj]
    if isinstance(obj, dict):
        return {
            mapping.get(key, key): desanitize_object_keys(value, mapping)
            for key, value in obj.items()
        }
    return obj


def _check_str(raw: Any) -> None:
    if not isinstance(raw, str):
        raise InvalidInputError(
            f"Cannot sanitize {raw!r} of type '{type(raw).__name__}'",
            {"value": repr(raw)},
        )
