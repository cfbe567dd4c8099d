"""Lookups into parsed JSON: JSON pointers and dotted token paths."""

from __future__ import annotations

import re
from typing import Any

_INDEX = re.compile(r"\[(\d+)\]")


def pointer_tokens(pointer: str) -> list[str]:
    """Split ``#/a/b~1c`` (or ``/a/b``) into unescaped tokens ``["a", "b/c"]``."""
    if pointer.startswith("#"):
        pointer = pointer[1:]
    if not pointer:
        return []
    return [
        token.replace("~1", "/").replace("~0", "~")
        for token in pointer.lstrip("/").split("/")
    ]


def resolve_pointer(document: Any, tokens: list[str]) -> Any:
    """Walk *tokens* through dicts and lists. Raises KeyError on a missing segment."""
    current = document
    for token in tokens:
        if isinstance(current, dict) and token in current:
            current = current[token]
        elif isinstance(current, list) and token.isdigit() and int(token) < len(current):
            current = current[int(token)]
        else:
            raise KeyError(token)
    return current


def extract_path(data: Any, dot_path: str) -> Any:
    """Traverse data with dot-notation: '$.user.tokens[0]' -> data["user"]["tokens"][0].

    Returns None when any step is missing.
    """
    if not dot_path:
        return None
    path = dot_path[1:] if dot_path.startswith("$") else dot_path
    path = _INDEX.sub(r".\1", path).strip(".")
    current: Any = data
    for key in path.split(".") if path else []:
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        elif current is not None and hasattr(current, key):
            current = getattr(current, key)
        else:
            return None
    return current
