"""Tests for request assembly, response handling and the call-state side table."""

from __future__ import annotations

import base64
import json
from types import SimpleNamespace
from typing import Any

from graphql import GraphQLError
from graphql.pyutils import Path
import pytest

from openapi_gql.errors import MissingAuthenticationError
from openapi_gql.helpers.http import HttpRequest, HttpResponse
from openapi_gql.options import Options
from openapi_gql.translate.preprocessor import preprocess
from openapi_gql.translate.resolver_builder import (
    CONTEXT_KEY,
    apply_limit,
    build_request,
    error_extensions,
    get_auth_additions,
    get_parent_context,
    get_side_table,
    parse_response,
    path_identifier,
    store_context,
)
from openapi_gql.translate.types import BuildContext, ResolutionContext
from tests.conftest import BASE_URL, json_response, make_response, make_spec


# Stands for one execution's coerced variables
_EXECUTION: dict[str, Any] = {}


def _info(path: Path, context: Any = None, execution: dict[str, Any] | None = None) -> Any:
    return SimpleNamespace(
        path=path, context=context, variable_values=_EXECUTION if execution is None else execution
    )


def _request(ctx: BuildContext, operation_id: str, args: dict[str, Any], **kwargs: Any):
    operation = ctx.operations[operation_id]
    return build_request(
        ctx,
        operation,
        args,
        base_url=BASE_URL,
        payload_name=kwargs.pop("payload_name", None),
        resolution_context=kwargs.pop("resolution_context", ResolutionContext()),
        **kwargs,
    )


@pytest.fixture
def params_spec() -> dict[str, Any]:
    return make_spec(
        {
            "/users/{user-id}/posts": {
                "post": {
                    "operationId": "postPost",
                    "parameters": [
                        {"name": "user-id", "in": "path", "required": True, "schema": {"type": "string"}},
                        {"name": "tags", "in": "query", "schema": {"type": "array", "items": {"type": "string"}}},
                        {"name": "draft", "in": "query", "schema": {"type": "boolean", "default": False}},
                        {"name": "X-Trace", "in": "header", "schema": {"type": "string"}},
                        {"name": "session", "in": "cookie", "schema": {"type": "string"}},
                    ],
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {"post-title": {"type": "string"}, "body": {"type": "string"}},
                                }
                            }
                        }
                    },
                    "responses": {"201": json_response({"type": "object", "properties": {"id": {"type": "string"}}})},
                }
            },
            "/login": {
                "post": {
                    "operationId": "login",
                    "requestBody": {
                        "content": {
                            "application/x-www-form-urlencoded": {
                                "schema": {"type": "object", "properties": {"user": {"type": "string"}}}
                            }
                        }
                    },
                    "responses": {"200": {"content": {"text/plain": {"schema": {"type": "string"}}}}},
                }
            },
        }
    )


class TestSideTable:
    def test_path_identifier(self) -> None:
        path = Path(None, "users", "query").add_key(0).add_key("company")
        assert path_identifier(path) == "users/0/company"
        assert path_identifier(None) == ""

    def test_without_context_value_uses_fallback(self) -> None:
        fallback: dict[str, Any] = {}
        root = Path(None, "user", "query")
        store_context(_info(root, None), ResolutionContext(used_params={"username": "erik"}), fallback)
        assert CONTEXT_KEY in fallback

        child = get_parent_context(_info(root.add_key("employerCompany"), None), fallback)
        assert child.used_params == {"username": "erik"}

    def test_without_any_holder_nothing_is_kept(self) -> None:
        root = Path(None, "user", "query")
        store_context(_info(root, None), ResolutionContext(used_params={"username": "erik"}))
        assert get_parent_context(_info(root.add_key("employerCompany"), None)) == ResolutionContext()

    def test_new_execution_replaces_table(self) -> None:
        context: dict[str, Any] = {}
        root = Path(None, "viewerApiKey", "query")
        first: dict[str, Any] = {}
        second: dict[str, Any] = {}
        store_context(_info(root, context, first), ResolutionContext(security={"key": {"apiKey": "k"}}))

        stale = get_parent_context(_info(root.add_key("projects"), context, second))
        assert stale == ResolutionContext()
        assert get_side_table(_info(root, context, second)) == {}

    def test_dict_and_object_contexts(self) -> None:
        context: dict[str, Any] = {}
        get_side_table(_info(Path(None, "a", "query"), context))
        assert CONTEXT_KEY in context

        holder = SimpleNamespace()
        table = get_side_table(_info(Path(None, "a", "query"), holder))
        assert getattr(holder, CONTEXT_KEY) is table

    def test_parent_context_is_copied(self) -> None:
        context: dict[str, Any] = {}
        root = Path(None, "user", "query")
        stored = ResolutionContext(used_params={"username": "erik"})
        store_context(_info(root, context), stored)

        child = get_parent_context(_info(root.add_key("employerCompany"), context))
        assert child.used_params == {"username": "erik"}
        child.used_params["id"] = "x"
        assert stored.used_params == {"username": "erik"}

    def test_branch_shares_request_and_copies_state(self) -> None:
        class Uncopyable:
            def __deepcopy__(self, memo: dict[int, Any]) -> Any:
                raise TypeError("cannot copy")

        request = HttpRequest(method="get", url=BASE_URL, options={"auth": Uncopyable()})
        stored = ResolutionContext(
            used_params={"id": "1"},
            used_request=request,
            response_headers={"x": "1"},
            security={"key": {"apiKey": "k"}},
        )
        context: dict[str, Any] = {}
        root = Path(None, "user", "query")
        store_context(_info(root, context), stored)

        child = get_parent_context(_info(root.add_key("employerCompany"), context))
        assert child.used_request is request
        child.security["key"]["apiKey"] = "other"
        child.response_headers["y"] = "2"
        assert stored.security == {"key": {"apiKey": "k"}}
        assert stored.response_headers == {"x": "1"}

    def test_list_items_use_their_own_entry(self) -> None:
        context: dict[str, Any] = {}
        users = Path(None, "users", "query")
        store_context(_info(users.add_key(0).add_key("posts"), context), ResolutionContext(used_params={"n": 0}))
        store_context(_info(users.add_key(1).add_key("posts"), context), ResolutionContext(used_params={"n": 1}))

        first = get_parent_context(_info(users.add_key(0).add_key("posts").add_key(0).add_key("author"), context))
        assert first.used_params == {"n": 0}

    def test_nearest_ancestor_is_found(self) -> None:
        context: dict[str, Any] = {}
        root = Path(None, "viewerApiKey", "query")
        store_context(_info(root, context), ResolutionContext(security={"key": {"apiKey": "k"}}))
        nested = get_parent_context(_info(root.add_key("project").add_key("owner").add_key("team"), context))
        assert nested.security == {"key": {"apiKey": "k"}}

    def test_fresh_context_for_root_fields(self) -> None:
        assert get_parent_context(_info(Path(None, "user", "query"), {})) == ResolutionContext()


class TestBuildRequest:
    def test_parameters_by_location(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(params_spec)
        request = _request(
            ctx,
            "postPost",
            {"userId": "a b", "tags": ["x", "y"], "draft": True, "xTrace": "t-1", "session": "s1"},
        )
        assert request.method == "post"
        assert request.url == f"{BASE_URL}/users/a%20b/posts"
        assert request.params == {"tags": ["x", "y"], "draft": "true"}
        assert request.headers["X-Trace"] == "t-1"
        assert request.headers["cookie"] == "session=s1"
        assert request.body is None
        assert "content-type" not in {key.lower() for key in request.headers}

    def test_json_body_is_desanitized(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(params_spec)
        ctx.store_name("post-title")
        resolution_context = ResolutionContext()
        request = _request(
            ctx,
            "postPost",
            {"userId": "u1", "payload": {"postTitle": "Hello", "body": "text"}},
            payload_name="payload",
            resolution_context=resolution_context,
        )
        assert json.loads(request.body or "") == {"post-title": "Hello", "body": "text"}
        assert request.headers["content-type"] == "application/json"
        assert request.headers["accept"] == "application/json"
        assert resolution_context.used_payload == {"post-title": "Hello", "body": "text"}

    def test_form_body(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(params_spec)
        request = _request(ctx, "login", {"body": {"user": "erik"}}, payload_name="body")
        assert request.body == "user=erik"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.headers["accept"] == "text/plain"

    def test_precedence_of_header_sources(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(
            params_spec,
            Options(
                headers={"X-Trace": "ambient", "X-Ambient": "yes", "Accept": "text/html"},
                qs={"api": "1"},
                request_options={"headers": {"X-Ambient": "explicit"}, "qs": {"api": "2"}, "timeout": 3, "url": "ignored"},
            ),
        )
        request = _request(ctx, "postPost", {"userId": "u1", "xTrace": "param"})
        assert request.headers["X-Trace"] == "param"
        assert request.headers["X-Ambient"] == "explicit"
        assert request.headers["Accept"] == "text/html"
        assert "accept" not in request.headers
        assert request.params["api"] == "2"
        assert request.options == {"timeout": 3}

    def test_callable_additions(self, params_spec: dict[str, Any]) -> None:
        calls: list[tuple[Any, ...]] = []

        def headers(method: str, path: str, title: str, hook: dict[str, Any]) -> dict[str, str]:
            calls.append((method, path, title, hook["args"]))
            return {"X-Hook": f"{method} {path}"}

        ctx = preprocess(params_spec, Options(headers=headers))
        request = _request(ctx, "postPost", {"userId": "u1"})
        assert request.headers["X-Hook"] == "post /users/{user-id}/posts"
        assert calls == [("post", "/users/{user-id}/posts", "Test API", {"userId": "u1"})]

    def test_oauth_token(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(params_spec, Options(token_json_path="$.user.token"))
        info = _info(Path(None, "a", "mutation"), {"user": {"token": "abc"}})
        request = _request(ctx, "postPost", {"userId": "u1"}, info=info)
        assert request.headers["Authorization"] == "Bearer abc"

    def test_oauth_token_in_query(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(params_spec, Options(token_json_path="$.token", send_oauth_token_in_query=True))
        request = _request(ctx, "postPost", {"userId": "u1"}, info=_info(Path(None, "a", "mutation"), {"token": "abc"}))
        assert request.params["access_token"] == "abc"
        assert "Authorization" not in request.headers


class TestAuth:
    @pytest.fixture
    def secured_spec(self) -> dict[str, Any]:
        return make_spec(
            {"/a": {"get": {"operationId": "getA", "responses": {"200": json_response({"type": "string"})}}}},
            security_schemes={
                "header_key": {"type": "apiKey", "in": "header", "name": "X-Key"},
                "query_key": {"type": "apiKey", "in": "query", "name": "key"},
                "cookie_key": {"type": "apiKey", "in": "cookie", "name": "k"},
                "basic": {"type": "http", "scheme": "basic"},
            },
            security=[{"header_key": []}, {"query_key": []}, {"cookie_key": []}, {"basic": []}],
        )

    def test_missing_credentials(self, secured_spec: dict[str, Any]) -> None:
        ctx = preprocess(secured_spec)
        with pytest.raises(MissingAuthenticationError):
            get_auth_additions(ctx, ctx.operations["getA"], ResolutionContext())

    @pytest.mark.parametrize(
        ("scheme", "expected"),
        [
            ("headerKey", ({"X-Key": "s3cret"}, {}, [])),
            ("queryKey", ({}, {"key": "s3cret"}, [])),
            ("cookieKey", ({}, {}, ["k=s3cret"])),
        ],
    )
    def test_api_key_locations(self, secured_spec: dict[str, Any], scheme: str, expected: tuple[Any, ...]) -> None:
        ctx = preprocess(secured_spec)
        resolution_context = ResolutionContext(security={scheme: {"apiKey": "s3cret"}})
        assert get_auth_additions(ctx, ctx.operations["getA"], resolution_context) == expected

    def test_basic_auth(self, secured_spec: dict[str, Any]) -> None:
        ctx = preprocess(secured_spec)
        resolution_context = ResolutionContext(security={"basic": {"username": "erik", "password": "pw"}})
        headers, _, _ = get_auth_additions(ctx, ctx.operations["getA"], resolution_context)
        assert headers["Authorization"] == "Basic " + base64.b64encode(b"erik:pw").decode()

    def test_ambient_security_from_context(self, secured_spec: dict[str, Any]) -> None:
        ctx = preprocess(secured_spec)
        info = _info(Path(None, "a", "query"), {"security": {"queryKey": {"apiKey": "from-context"}}})
        _, query, _ = get_auth_additions(ctx, ctx.operations["getA"], ResolutionContext(), info)
        assert query == {"key": "from-context"}

    def test_credentials_reach_the_request(self, secured_spec: dict[str, Any]) -> None:
        ctx = preprocess(secured_spec)
        request = _request(
            ctx, "getA", {}, resolution_context=ResolutionContext(security={"cookieKey": {"apiKey": "c"}})
        )
        assert request.headers["cookie"] == "k=c"


class TestResponses:
    @pytest.fixture
    def ctx(self, params_spec: dict[str, Any]) -> BuildContext:
        return preprocess(params_spec)

    def test_json_body_is_sanitized(self, ctx: BuildContext) -> None:
        body = parse_response(ctx, ctx.operations["postPost"], make_response(201, {"post-id": "p1"}))
        assert body == {"postId": "p1"}

    def test_empty_body(self, ctx: BuildContext) -> None:
        assert parse_response(ctx, ctx.operations["postPost"], make_response(201, None)) is None

    def test_content_type_mismatch(self, ctx: BuildContext) -> None:
        with pytest.raises(GraphQLError, match="should have a content-type"):
            parse_response(ctx, ctx.operations["postPost"], make_response(201, "<html/>", "text/html"))

    def test_invalid_json(self, ctx: BuildContext) -> None:
        with pytest.raises(GraphQLError, match="Cannot JSON parse"):
            parse_response(ctx, ctx.operations["postPost"], make_response(201, "{broken"))

    def test_non_json_response_is_text(self, ctx: BuildContext) -> None:
        body = parse_response(ctx, ctx.operations["login"], make_response(200, "welcome", "text/plain"))
        assert body == "welcome"

    def test_error_extensions(self, ctx: BuildContext) -> None:
        response = HttpResponse(404, {"Content-Type": "application/json"}, '{"message": "gone"}')
        assert error_extensions(ctx.operations["postPost"], response) == {
            "method": "POST",
            "path": "/users/{user-id}/posts",
            "statusCode": 404,
            "responseHeaders": {"Content-Type": "application/json"},
            "responseBody": {"message": "gone"},
        }

    def test_apply_limit(self, params_spec: dict[str, Any]) -> None:
        ctx = preprocess(params_spec, Options(add_limit_argument=True))
        operation = ctx.operations["postPost"]
        assert apply_limit(ctx, operation, {"limit": 2}, [1, 2, 3]) == [1, 2]
        assert apply_limit(ctx, operation, {}, [1, 2, 3]) == [1, 2, 3]
        with pytest.raises(GraphQLError):
            apply_limit(ctx, operation, {"limit": -1}, [1])
