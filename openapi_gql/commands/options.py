"""Click options shared by the commands that build a schema."""

from __future__ import annotations

from typing import Any, Callable

import click

_SCHEMA_OPTIONS = [
    click.option("--strict", is_flag=True, help="Fail on the first translation warning"),
    click.option("--simple-names", is_flag=True, help="Only strip invalid characters from names"),
    click.option("--add-limit", "add_limit_argument", is_flag=True, help="Add a 'limit' argument to list fields"),
    click.option("--sub-operations", "add_sub_operations", is_flag=True, help="Nest GET operations by path"),
    click.option("--fill-empty-responses", is_flag=True, help="Translate 204 responses to a String field"),
    click.option(
        "--operation-id-names",
        "operation_id_field_names",
        is_flag=True,
        help="Name query fields after their operationId",
    ),
    click.option("--no-viewer", "no_viewer", is_flag=True, help="Do not wrap secured operations in viewers"),
]


def schema_options(func: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(_SCHEMA_OPTIONS):
        func = option(func)
    return func


def options_from_flags(flags: dict[str, Any]) -> dict[str, Any]:
    """Map the flags collected by schema_options() to Options fields."""
    return {
        "strict": flags["strict"],
        "simple_names": flags["simple_names"],
        "add_limit_argument": flags["add_limit_argument"],
        "add_sub_operations": flags["add_sub_operations"],
        "fill_empty_responses": flags["fill_empty_responses"],
        "operation_id_field_names": flags["operation_id_field_names"],
        "viewer": not flags["no_viewer"],
    }
