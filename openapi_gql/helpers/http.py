"""HTTP transport used by generated resolvers, plus header utilities."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import requests


@dataclass
class HttpRequest:
    """A fully assembled outbound request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    params: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())
    body: str | None = None
    options: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())  # timeout, verify, ...


@dataclass
class HttpResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code <= 299


class Transport(ABC):
    """Performs one HTTP request and returns status, headers and body."""

    @abstractmethod
    def send(self, request: HttpRequest) -> HttpResponse:
        ...


class RequestsTransport(Transport):
    """Default transport backed by a shared ``requests.Session``."""

    def __init__(self, session: requests.Session | None = None):
        self._session = session or requests.Session()

    @property
    def session(self) -> requests.Session:
        return self._session

    def send(self, request: HttpRequest) -> HttpResponse:
        response = self._session.request(
            request.method.upper(),
            request.url,
            headers=request.headers,
            params=request.params or None,
            data=request.body.encode() if request.body is not None else None,
            **request.options,
        )
        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """Get a header value by name (case-insensitive, first match wins)."""
    name_lower = name.lower()
    for key, value in headers.items():
        if key.lower() == name_lower:
            return value
    return None


def trim(text: str, max_len: int) -> str:
    """Truncate a string to max_len, adding '...' if needed."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
