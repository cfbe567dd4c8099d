"""Shared test fixtures for openapi-gql tests."""

from __future__ import annotations

import copy
import json
from typing import Any

from graphql import ExecutionResult, GraphQLSchema, graphql
import pytest

from openapi_gql.helpers.http import HttpRequest, HttpResponse, Transport
from openapi_gql.options import Options
from openapi_gql.translate.pipeline import TranslationResult, build_schema

BASE_URL = "http://api.example.com"


class StubTransport(Transport):
    """Records requests and answers from a ``(METHOD, url) -> response`` table."""

    def __init__(self, routes: dict[tuple[str, str], HttpResponse] | None = None):
        self.routes = dict(routes or {})
        self.requests: list[HttpRequest] = []

    def add(self, method: str, url: str, body: Any = None, *, status: int = 200, headers: dict[str, str] | None = None) -> None:
        text = body if isinstance(body, str) else json.dumps(body) if body is not None else ""
        self.routes[(method.upper(), url)] = HttpResponse(
            status_code=status,
            headers=headers if headers is not None else {"Content-Type": "application/json"},
            text=text,
        )

    def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        response = self.routes.get((request.method.upper(), request.url))
        if response is None:
            return HttpResponse(status_code=404, headers={"Content-Type": "application/json"}, text='{"error": "not found"}')
        return response


def make_response(status: int = 200, body: Any = None, content_type: str = "application/json") -> HttpResponse:
    text = body if isinstance(body, str) else json.dumps(body) if body is not None else ""
    return HttpResponse(status_code=status, headers={"Content-Type": content_type}, text=text)


def make_spec(
    paths: dict[str, Any],
    *,
    schemas: dict[str, Any] | None = None,
    security_schemes: dict[str, Any] | None = None,
    security: list[dict[str, list[str]]] | None = None,
    title: str = "Test API",
) -> dict[str, Any]:
    """Helper to create an OpenAPI 3 document with minimal boilerplate."""
    spec: dict[str, Any] = {
        "openapi": "3.0.0",
        "info": {"title": title, "version": "1.0.0"},
        "servers": [{"url": BASE_URL}],
        "paths": paths,
    }
    components: dict[str, Any] = {}
    if schemas:
        components["schemas"] = schemas
    if security_schemes:
        components["securitySchemes"] = security_schemes
    if components:
        spec["components"] = components
    if security is not None:
        spec["security"] = security
    return spec


def json_response(schema: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"description": "ok", "content": {"application/json": {"schema": schema}}, **extra}


def make_build(spec: dict[str, Any], transport: Transport | None = None, **options: Any) -> TranslationResult:
    return build_schema(copy.deepcopy(spec), Options(transport=transport, **options))


async def execute(
    schema: GraphQLSchema,
    query: str,
    context: Any = None,
    variables: dict[str, Any] | None = None,
) -> ExecutionResult:
    return await graphql(
        schema,
        query,
        context_value=context if context is not None else {},
        variable_values=variables,
    )


USER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name", "address"],
    "properties": {
        "name": {"type": "string", "description": "The user's name"},
        "address": {"$ref": "#/components/schemas/Address"},
        "employerId": {"type": "string"},
        "hobbies": {"type": "array", "items": {"type": "string"}},
    },
}

ADDRESS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "street": {"type": "string"},
        "city": {"type": "string"},
    },
}

COMPANY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "legalForm": {"type": "string", "enum": ["public", "private", "non-profit"]},
    },
}


@pytest.fixture
def users_spec() -> dict[str, Any]:
    """Users and companies, with a link from a user to its employer."""
    return make_spec(
        {
            "/users": {
                "get": {
                    "operationId": "getUsers",
                    "description": "Returns all users",
                    "parameters": [{"name": "limit", "in": "query", "schema": {"type": "integer"}}],
                    "responses": {
                        "200": json_response({"type": "array", "items": {"$ref": "#/components/schemas/User"}})
                    },
                },
                "post": {
                    "operationId": "postUser",
                    "requestBody": {
                        "required": True,
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}},
                    },
                    "responses": {"201": json_response({"$ref": "#/components/schemas/User"})},
                },
            },
            "/users/{username}": {
                "get": {
                    "operationId": "getUserByUsername",
                    "parameters": [
                        {"name": "username", "in": "path", "required": True, "schema": {"type": "string"}}
                    ],
                    "responses": {
                        "200": json_response(
                            {"$ref": "#/components/schemas/User"},
                            links={
                                "employerCompany": {
                                    "operationId": "getCompanyById",
                                    "parameters": {"id": "$response.body#/employerId"},
                                }
                            },
                        )
                    },
                },
            },
            "/companies/{id}": {
                "get": {
                    "operationId": "getCompanyById",
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "responses": {"200": json_response({"$ref": "#/components/schemas/Company"})},
                },
            },
        },
        schemas={"User": USER_SCHEMA, "Address": ADDRESS_SCHEMA, "Company": COMPANY_SCHEMA},
    )


@pytest.fixture
def api_key_spec() -> dict[str, Any]:
    """One open operation and one guarded by an apiKey header."""
    return make_spec(
        {
            "/status": {
                "get": {
                    "operationId": "getStatus",
                    "security": [],
                    "responses": {"200": json_response({"type": "string"})},
                }
            },
            "/projects": {
                "get": {
                    "operationId": "getProjects",
                    "responses": {
                        "200": json_response(
                            {
                                "type": "array",
                                "items": {"$ref": "#/components/schemas/Project"},
                            }
                        )
                    },
                }
            },
        },
        schemas={
            "Project": {
                "type": "object",
                "properties": {"projectId": {"type": "integer"}, "active": {"type": "boolean"}},
            }
        },
        security_schemes={"example_api_key": {"type": "apiKey", "in": "header", "name": "access_token"}},
        security=[{"example_api_key": []}],
    )


@pytest.fixture
def stub_transport() -> StubTransport:
    return StubTransport()
