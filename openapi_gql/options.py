"""Options accepted by build_schema()."""

from __future__ import annotations

from typing import Any, Callable, Union

from pydantic import BaseModel, Field

from openapi_gql.helpers.http import Transport
from openapi_gql.helpers.naming import CaseStyle

# (method, path, title, {"source", "args", "context", "info"}) -> dict
RequestAdditions = Union[dict[str, str], Callable[..., dict[str, str]]]


class Options(BaseModel):
    # Schema options
    strict: bool = False
    operation_id_field_names: bool = False
    fill_empty_responses: bool = False
    add_limit_argument: bool = False
    add_sub_operations: bool = False
    simple_names: bool = False
    generic_payload_arg_name: bool = False
    equivalent_to_messages: bool = True

    # Resolver options
    headers: RequestAdditions | None = None
    qs: RequestAdditions | None = None
    request_options: dict[str, Any] | None = None
    base_url: str | None = None
    custom_resolvers: dict[str, dict[str, dict[str, Callable[..., Any]]]] = Field(
        default_factory=dict
    )
    transport: Transport | None = None

    # Authentication options
    viewer: bool = True
    token_json_path: str | None = None
    send_oauth_token_in_query: bool = False

    # Logging options
    provide_error_extensions: bool = True

    model_config = {"arbitrary_types_allowed": True}

    @property
    def case_style(self) -> CaseStyle:
        return CaseStyle.SIMPLE if self.simple_names else CaseStyle.CAMEL
