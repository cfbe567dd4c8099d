"""Read-only accessors over a validated OpenAPI 3 document.

Nothing here mutates the document or records state: each function takes the
document (plus path and method where relevant) and returns plain data.
Schema classification and ``allOf`` merging also live here because they only
look at schema nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Any

from openapi_gql.errors import SchemaCompositionError, UnresolvableReferenceError
from openapi_gql.helpers.json_path import pointer_tokens, resolve_pointer
from openapi_gql.helpers.naming import beautify, sanitize
from openapi_gql.translate.types import Classification, SchemaKind, SchemaNames

logger = logging.getLogger(__name__)

OAS_OPERATIONS = ("get", "put", "post", "patch", "delete", "options", "head")
SUCCESS_STATUS_RX = re.compile(r"2[0-9]{2}|2XX")

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_MAX_REF_HOPS = 100


@dataclass
class PayloadSchema:
    """A request or response body schema together with its naming candidates."""

    content_type: str
    schema: dict[str, Any]
    names: SchemaNames = field(default_factory=SchemaNames)
    required: bool = False


# -- Operations -------------------------------------------------------------


def is_operation(method: str) -> bool:
    """Path item keys such as ``parameters`` or ``servers`` are not operations."""
    return method.lower() in OAS_OPERATIONS


def iter_operations(spec: dict[str, Any]):
    """Yield ``(path, method, operation_object)`` for every operation."""
    for path, path_item in (spec.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if is_operation(method) and isinstance(operation, dict):
                yield path, method.lower(), operation


def count_operations(spec: dict[str, Any]) -> tuple[int, int, int]:
    """Return ``(total, queries, mutations)`` operation counts."""
    methods = [method for _, method, _ in iter_operations(spec)]
    queries = sum(1 for method in methods if method == "get")
    return len(methods), queries, len(methods) - queries


def generate_operation_id(method: str, path: str) -> str:
    """Synthesize an operation id for operations that lack one."""
    return beautify(f"{method}:{path}")


def infer_name_from_path(path: str) -> str:
    """``/users/{id}/car-keys`` -> ``UsersCar_keys``; parameter segments are skipped."""
    name = ""
    for i, part in enumerate(path.split("/")):
        if "{" in part or "}" in part:
            continue
        clean = sanitize(part)
        name += clean if i == 0 else clean[:1].upper() + clean[1:]
    return name


# -- References ---------------------------------------------------------------


def resolve_ref(ref: str, spec: dict[str, Any]) -> Any:
    """Resolve a local ``#/a/b/c`` pointer against the document."""
    if not ref.startswith("#"):
        raise UnresolvableReferenceError(
            f"Could not resolve reference '{ref}': only local references are supported",
            {"ref": ref},
        )
    try:
        return resolve_pointer(spec, pointer_tokens(ref))
    except KeyError as e:
        raise UnresolvableReferenceError(
            f"Could not resolve reference '{ref}'", {"ref": ref, "segment": str(e)}
        ) from e


def ref_name(ref: str) -> str:
    return ref.rstrip("/").split("/")[-1]


def deref(node: Any, spec: dict[str, Any]) -> Any:
    """Follow ``$ref`` until reaching a concrete node."""
    return deref_with_name(node, spec)[0]


def deref_with_name(node: Any, spec: dict[str, Any]) -> tuple[Any, str | None]:
    """Like deref(), also returning the name of the first reference followed."""
    name: str | None = None
    hops = 0
    while isinstance(node, dict) and isinstance(node.get("$ref"), str):
        ref = node["$ref"]
        if name is None:
            name = ref_name(ref)
        node = resolve_ref(ref, spec)
        hops += 1
        if hops > _MAX_REF_HOPS:
            raise UnresolvableReferenceError(f"Circular reference '{ref}'", {"ref": ref})
    return node, name


# -- Schemas ------------------------------------------------------------------


def merge_all_of(schema: dict[str, Any], spec: dict[str, Any]) -> dict[str, Any]:
    """Fold ``allOf`` branches into one schema (property and required union).

    Raises SchemaCompositionError when two branches declare different types,
    unless one of them is an object without properties.
    """
    branches = schema.get("allOf")
    if not isinstance(branches, list):
        return schema

    merged: dict[str, Any] = {key: value for key, value in schema.items() if key != "allOf"}
    for raw_branch in branches:
        branch = merge_all_of(deref(raw_branch, spec), spec)
        if not isinstance(branch, dict):
            continue
        _merge_type(merged, branch)
        if isinstance(branch.get("properties"), dict):
            properties = dict(merged.get("properties") or {})
            for key, value in branch["properties"].items():
                properties.setdefault(key, value)
            merged["properties"] = properties
        if isinstance(branch.get("required"), list):
            required = list(merged.get("required") or [])
            required.extend(name for name in branch["required"] if name not in required)
            merged["required"] = required
        for key, value in branch.items():
            if key not in ("type", "properties", "required"):
                merged.setdefault(key, value)
    return merged


def _merge_type(merged: dict[str, Any], branch: dict[str, Any]) -> None:
    ours = merged.get("type")
    theirs = branch.get("type")
    if theirs is None or ours == theirs:
        return
    if ours is None:
        merged["type"] = theirs
    elif ours == "object" and not merged.get("properties"):
        merged["type"] = theirs
    elif theirs == "object" and not branch.get("properties"):
        return
    else:
        raise SchemaCompositionError(
            f"allOf branches declare conflicting types '{ours}' and '{theirs}'",
            {"types": [ours, theirs]},
        )


def classify_schema(schema: dict[str, Any]) -> Classification:
    """Decide once which kind of GraphQL type a schema node becomes."""
    if isinstance(schema.get("enum"), list):
        return Classification(SchemaKind.ENUM)

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        non_null = [t for t in schema_type if t != "null"]
        schema_type = non_null[0] if non_null else None

    if schema_type == "object":
        if isinstance(schema.get("additionalProperties"), dict) or not schema.get("properties"):
            return Classification(SchemaKind.SCALAR, "json")
        return Classification(SchemaKind.OBJECT)
    if "properties" in schema:
        return Classification(SchemaKind.OBJECT)
    if "items" in schema or schema_type == "array":
        return Classification(SchemaKind.ARRAY)
    if schema_type == "integer" and schema.get("format") == "int64":
        return Classification(SchemaKind.SCALAR, "number")
    if isinstance(schema_type, str):
        return Classification(SchemaKind.SCALAR, schema_type)
    if "nullable" in schema:
        return Classification(SchemaKind.SCALAR, "string")
    return Classification(SchemaKind.UNKNOWN)


def is_json_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    return "json" in content_type.lower() or content_type == "*/*"


def _pick_content(content: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
    if not content:
        return None
    if JSON_CONTENT_TYPE in content:
        return JSON_CONTENT_TYPE, content[JSON_CONTENT_TYPE] or {}
    for preferred in (is_json_content_type, lambda ct: ct == FORM_CONTENT_TYPE):
        for content_type, media in content.items():
            if preferred(content_type):
                return content_type, media or {}
    content_type = next(iter(content))
    return content_type, content[content_type] or {}


def _placeholder_description(prefix: str, schema: dict[str, Any]) -> str:
    description = prefix
    if isinstance(schema.get("description"), str):
        description += f"\n\nOriginal top level description: {schema['description']}"
    return description


def get_request_schema_and_names(
    spec: dict[str, Any], path: str, method: str
) -> PayloadSchema | None:
    """Request body schema of an operation, or None when it takes no body."""
    operation = spec["paths"][path][method]
    request_body = deref(operation.get("requestBody"), spec)
    if not isinstance(request_body, dict):
        return None
    picked = _pick_content(request_body.get("content") or {})
    if picked is None or not isinstance(picked[1].get("schema"), dict):
        return None
    content_type, media = picked

    names = SchemaNames(from_path=infer_name_from_path(path))
    schema, names.from_ref = deref_with_name(media["schema"], spec)
    schema = merge_all_of(schema, spec)
    if isinstance(schema.get("title"), str):
        names.from_schema = schema["title"]

    if not is_json_content_type(content_type) and content_type != FORM_CONTENT_TYPE:
        names = SchemaNames(
            from_path="".join(term[:1].upper() + term[1:] for term in content_type.split("/"))
        )
        schema = {
            "description": _placeholder_description(
                f"{content_type} request placeholder object", schema
            ),
            "type": "string",
        }

    return PayloadSchema(
        content_type=content_type,
        schema=schema,
        names=names,
        required=bool(request_body.get("required", False)),
    )


def get_success_status_codes(spec: dict[str, Any], path: str, method: str) -> list[str]:
    responses = spec["paths"][path][method].get("responses") or {}
    return [str(code) for code in responses if SUCCESS_STATUS_RX.fullmatch(str(code))]


def _get_response(spec: dict[str, Any], path: str, method: str, status_code: str) -> dict[str, Any] | None:
    responses = spec["paths"][path][method].get("responses") or {}
    response = responses.get(status_code)
    if response is None and status_code.isdigit():
        response = responses.get(int(status_code))
    response = deref(response, spec)
    return response if isinstance(response, dict) else None


def get_response_schema_and_names(
    spec: dict[str, Any],
    path: str,
    method: str,
    status_code: str,
    *,
    fill_empty_responses: bool = False,
) -> PayloadSchema | None:
    """Schema of the chosen success response, or None when there is none."""
    response = _get_response(spec, path, method, status_code) or {}
    picked = _pick_content(response.get("content") or {})

    if picked is None or not isinstance(picked[1].get("schema"), dict):
        if status_code == "204" and fill_empty_responses:
            return PayloadSchema(
                content_type=JSON_CONTENT_TYPE,
                schema={
                    "description": "Placeholder object to support operations with no response schema",
                    "type": "string",
                },
                names=SchemaNames(from_path=infer_name_from_path(path)),
            )
        return None
    content_type, media = picked

    names = SchemaNames(from_path=infer_name_from_path(path))
    schema, names.from_ref = deref_with_name(media["schema"], spec)
    schema = merge_all_of(schema, spec)
    if isinstance(schema.get("title"), str):
        names.from_schema = schema["title"]

    if not is_json_content_type(content_type):
        schema = {
            "description": _placeholder_description(
                "Placeholder object to access non-application/json response bodies", schema
            ),
            "type": "string",
        }

    return PayloadSchema(content_type=content_type, schema=schema, names=names)


def get_links(
    spec: dict[str, Any], path: str, method: str, status_code: str
) -> dict[str, dict[str, Any]]:
    """Links declared on the chosen success response, references resolved."""
    response = _get_response(spec, path, method, status_code) or {}
    links: dict[str, dict[str, Any]] = {}
    for key, link in (response.get("links") or {}).items():
        link = deref(link, spec)
        if isinstance(link, dict):
            links[key] = link
    return links


def get_parameters(spec: dict[str, Any], path: str, method: str) -> list[dict[str, Any]]:
    """Path item parameters followed by operation parameters.

    An operation parameter replaces a path item parameter with the same name
    and location.
    """
    if not is_operation(method):
        logger.debug("Attempted to get parameters for %s %s, which is not an operation", method, path)
        return []
    path_item = spec["paths"][path]
    merged: dict[tuple[Any, Any], dict[str, Any]] = {}
    unnamed: list[dict[str, Any]] = []
    for raw in list(path_item.get("parameters") or []) + list(path_item[method].get("parameters") or []):
        parameter = deref(raw, spec)
        if not isinstance(parameter, dict):
            continue
        if "name" not in parameter:
            unnamed.append(parameter)
            continue
        merged[(parameter.get("name"), parameter.get("in"))] = parameter
    return list(merged.values()) + unnamed


def get_parameter_schema(parameter: dict[str, Any], spec: dict[str, Any]) -> dict[str, Any] | None:
    schema = deref(parameter.get("schema"), spec)
    return schema if isinstance(schema, dict) else None


# -- Servers ------------------------------------------------------------------


def get_servers(spec: dict[str, Any], path: str, method: str) -> list[dict[str, Any]]:
    """Operation servers override path item servers, which override global ones."""
    servers: list[dict[str, Any]] = [{"url": "/"}]
    path_item = spec["paths"][path]
    for candidate in (spec.get("servers"), path_item.get("servers"), path_item[method].get("servers")):
        if isinstance(candidate, list) and candidate:
            servers = candidate
    return servers


def build_server_url(server: dict[str, Any]) -> str:
    """Substitute server variables with their defaults."""
    url = str(server.get("url", "/"))
    for name, variable in (server.get("variables") or {}).items():
        if isinstance(variable, dict) and "default" in variable:
            url = url.replace(f"{{{name}}}", str(variable["default"]))
    return url


def get_base_url(servers: list[dict[str, Any]]) -> str:
    """URL of the first server, without trailing slash."""
    if not servers:
        return ""
    url = build_server_url(servers[0])
    if len(servers) > 1:
        logger.debug("Selected first of %d servers: %s", len(servers), url)
    return url.rstrip("/")


# -- Security -----------------------------------------------------------------


def get_security_schemes(spec: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Security scheme definitions by raw name, references resolved."""
    schemes = (spec.get("components") or {}).get("securitySchemes") or {}
    return {key: deref(scheme, spec) for key, scheme in schemes.items()}


def get_security_requirements(
    spec: dict[str, Any],
    path: str,
    method: str,
    schemes: dict[str, dict[str, Any]],
) -> list[str]:
    """Raw names of the non-OAuth2 schemes an operation may authenticate with.

    An operation level ``security`` list replaces the global one.
    """
    operation = spec["paths"][path][method]
    requirements = operation["security"] if "security" in operation else spec.get("security")

    results: list[str] = []
    for requirement in requirements or []:
        for key in requirement:
            scheme = schemes.get(key)
            if isinstance(scheme, dict) and scheme.get("type") != "oauth2" and key not in results:
                results.append(key)
    return results
