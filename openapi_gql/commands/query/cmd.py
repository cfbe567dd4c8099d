"""CLI command for running a GraphQL query against a translated API."""

from __future__ import annotations

import json
import sys
from typing import Any

import click

from openapi_gql.commands.options import options_from_flags, schema_options
from openapi_gql.helpers.console import console


@click.command()
@click.argument("spec_path", type=click.Path(exists=True))
@click.argument("query_text", required=False)
@click.option("-f", "--file", "query_file", type=click.Path(exists=True), default=None, help="Read the query from a file")
@click.option("--variables", default=None, help="Query variables as a JSON object")
@click.option("--base-url", envvar="OPENAPI_GQL_BASE_URL", default=None, help="Override the server URL")
@click.option("--token", envvar="OPENAPI_GQL_TOKEN", default=None, help="OAuth bearer token")
@click.option(
    "-H",
    "--header",
    "headers",
    multiple=True,
    help="Extra request header as 'Name: value'. Can be repeated.",
)
@schema_options
def query(
    spec_path: str,
    query_text: str | None,
    query_file: str | None,
    variables: str | None,
    base_url: str | None,
    token: str | None,
    headers: tuple[str, ...],
    **flags: Any,
) -> None:
    """Execute a GraphQL query; resolvers call the REST API.

    \b
    Examples:
      openapi-gql query petstore.yaml '{ pets { name } }'
      openapi-gql query api.yaml -f query.graphql --base-url http://localhost:3000
    """
    import asyncio

    from graphql import graphql

    from openapi_gql.errors import TranslationError
    from openapi_gql.formats.openapi import load_spec
    from openapi_gql.options import Options
    from openapi_gql.translate.pipeline import build_schema

    if query_file:
        with open(query_file) as f:
            query_text = f.read()
    if not query_text:
        console.print("[red]Provide a query as an argument or with --file[/red]")
        sys.exit(1)

    extra_headers: dict[str, str] = {}
    for header in headers:
        if ":" not in header:
            console.print(f"[red]Invalid header format: {header} (expected 'Name: value')[/red]")
            sys.exit(1)
        name, value = header.split(":", 1)
        extra_headers[name.strip()] = value.strip()

    try:
        variable_values = json.loads(variables) if variables else None
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid variables: {e}[/red]")
        sys.exit(1)

    options = Options(
        **options_from_flags(flags),
        base_url=base_url,
        headers=extra_headers or None,
        token_json_path="$.token" if token else None,
    )
    try:
        result = build_schema(load_spec(spec_path), options)
    except TranslationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    execution = asyncio.run(
        graphql(
            result.schema,
            query_text,
            variable_values=variable_values,
            context_value={"token": token},
        )
    )
    click.echo(json.dumps(execution.formatted, indent=2, default=str))
    if execution.errors:
        sys.exit(1)
