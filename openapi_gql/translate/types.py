"""Intermediate model shared by the translation steps.

Three layers of types:
1. Schema classification: what kind of GraphQL type a JSON schema becomes
2. Canonical model: data definitions, operations and security schemes
3. Build and resolve state: the per-build context and the per-request
   resolution context
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from graphql import GraphQLInputType, GraphQLOutputType

from openapi_gql.formats.report import Report
from openapi_gql.helpers.http import HttpRequest, Transport
from openapi_gql.helpers.naming import CaseStyle, beautify_and_store, to_graphql_name
from openapi_gql.options import Options

if TYPE_CHECKING:
    from openapi_gql.translate.warnings import WarningType

# -- Schema classification ----------------------------------------------------


class SchemaKind(Enum):
    OBJECT = "object"
    ARRAY = "array"
    ENUM = "enum"
    SCALAR = "scalar"
    UNKNOWN = "unknown"


SCALAR_TYPES = frozenset({"string", "integer", "number", "boolean", "json"})


@dataclass(frozen=True)
class Classification:
    """Result of classifying one schema node, computed once per definition."""

    kind: SchemaKind
    scalar: str | None = None  # "string", "integer", "number", "boolean", "json" or unrecognised

    @property
    def needs_type_name(self) -> bool:
        return self.kind in (SchemaKind.OBJECT, SchemaKind.ARRAY, SchemaKind.ENUM)


# -- Canonical model ------------------------------------------------------------


@dataclass
class SchemaNames:
    """Naming candidates for a schema, in order of preference."""

    from_ref: str | None = None
    from_schema: str | None = None  # "title"
    from_path: str | None = None
    from_operation: str | None = None

    def candidates(self) -> list[str]:
        return [
            name
            for name in (self.from_ref, self.from_schema, self.from_path, self.from_operation)
            if name
        ]


@dataclass(eq=False)
class DataDefinition:
    """One distinct payload shape and the GraphQL types built for it."""

    schema: dict[str, Any]
    classification: Classification
    ot_name: str
    iot_name: str
    ot: GraphQLOutputType | None = None  # built lazily, reused thereafter
    iot: GraphQLInputType | None = None

    @property
    def kind(self) -> SchemaKind:
        return self.classification.kind

    @property
    def required(self) -> list[str]:
        return list(self.schema.get("required") or [])


@dataclass(eq=False)
class Operation:
    """One REST endpoint (path + method)."""

    operation_id: str
    description: str
    path: str
    method: str  # lower case
    response_definition: DataDefinition
    response_content_type: str | None = None
    status_code: str | None = None
    payload_definition: DataDefinition | None = None
    payload_content_type: str | None = None
    payload_required: bool = False
    links: dict[str, dict[str, Any]] = field(default_factory=lambda: dict[str, dict[str, Any]]())
    parameters: list[dict[str, Any]] = field(default_factory=lambda: list[dict[str, Any]]())
    security_requirements: list[str] = field(default_factory=lambda: list[str]())
    servers: list[dict[str, Any]] = field(default_factory=lambda: list[dict[str, Any]]())
    sub_ops: list[Operation] = field(default_factory=lambda: list[Operation]())
    in_viewer: bool = False

    @property
    def is_mutation(self) -> bool:
        return self.method != "get"

    @property
    def operation_string(self) -> str:
        return f"{self.method.upper()} {self.path}"


@dataclass
class ProcessedSecurityScheme:
    """A non-OAuth2 security scheme and the credentials it needs."""

    raw_name: str
    definition: dict[str, Any]
    parameters: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    schema: dict[str, Any] | None = None  # object schema of the credential fields


# -- Build and resolve state --------------------------------------------------


@dataclass
class BuildContext:
    """Mutable registries of one schema build, threaded through every step."""

    spec: dict[str, Any]
    options: Options
    report: Report = field(default_factory=Report)
    definitions: dict[str, DataDefinition] = field(default_factory=lambda: dict[str, DataDefinition]())
    used_type_names: set[str] = field(default_factory=lambda: {"query", "mutation"})
    operations: dict[str, Operation] = field(default_factory=lambda: dict[str, Operation]())
    security: dict[str, ProcessedSecurityScheme] = field(
        default_factory=lambda: dict[str, ProcessedSecurityScheme]()
    )
    sane_map: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    transport: Transport | None = None
    # Holds the side table of executions run without a context value
    fallback_state: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())

    @property
    def title(self) -> str:
        return str(self.spec.get("info", {}).get("title", ""))

    @property
    def style(self) -> CaseStyle:
        return self.options.case_style

    def name(self, raw: str) -> str:
        """GraphQL name for *raw* in the configured case style (not recorded)."""
        return to_graphql_name(raw, self.style)

    def store_name(self, raw: str) -> str:
        """GraphQL name for *raw*, recorded so payloads can be desanitized later."""
        from openapi_gql.translate.warnings import WarningType, handle_warning

        clean, previous = beautify_and_store(raw, self.sane_map, style=self.style)
        if previous is not None:
            handle_warning(self, WarningType.NAME_COLLISION, f"'{raw}' and '{previous}'", clean)
        return clean

    def warn(self, warning_type: WarningType, culprit: str, solution: str = "") -> None:
        from openapi_gql.translate.warnings import handle_warning

        handle_warning(self, warning_type, culprit, solution)


@dataclass
class ResolutionContext:
    """Per-call-tree data that descendant resolvers read back."""

    used_params: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())
    used_payload: Any = None
    used_request: HttpRequest | None = None
    used_status_code: int | None = None
    response_headers: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    security: dict[str, dict[str, Any]] = field(default_factory=lambda: dict[str, dict[str, Any]]())

    def branch(self) -> ResolutionContext:
        """Copy for a descendant resolver.

        Parameters, headers and credentials are copied; the request and
        payload are never mutated once stored and stay shared.
        """
        return ResolutionContext(
            used_params=dict(self.used_params),
            used_payload=self.used_payload,
            used_request=self.used_request,
            used_status_code=self.used_status_code,
            response_headers=dict(self.response_headers),
            security={key: dict(value) if isinstance(value, dict) else value for key, value in self.security.items()},
        )


@dataclass
class SideTable:
    """Resolution contexts of one execution, by field path."""

    # The coerced variables mapping, one object per execution
    execution: Any
    entries: dict[str, ResolutionContext] = field(default_factory=lambda: dict[str, ResolutionContext]())
