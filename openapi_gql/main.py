"""CLI entry point for openapi-gql."""

from __future__ import annotations

import click
from dotenv import load_dotenv

from openapi_gql.commands.query.cmd import query
from openapi_gql.commands.translate.cmd import translate
from openapi_gql.helpers.console import setup_logging

load_dotenv()


@click.group()
@click.version_option(version="0.1.0", prog_name="openapi-gql")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs")
def cli(verbose: bool) -> None:
    """Expose a REST API described by OpenAPI as a GraphQL schema."""
    setup_logging(verbose)


cli.add_command(translate)
cli.add_command(query)


if __name__ == "__main__":
    cli()
