"""CLI command for translating an OpenAPI document to GraphQL SDL."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Any

import click
from rich.table import Table

from openapi_gql.commands.options import options_from_flags, schema_options
from openapi_gql.helpers.console import console


@click.command()
@click.argument("spec_path", type=click.Path(exists=True))
@click.option("-o", "--output", default=None, help="Write the SDL to this file instead of stdout")
@click.option("--report", "show_report", is_flag=True, help="Print the translation report")
@schema_options
def translate(spec_path: str, output: str | None, show_report: bool, **flags: Any) -> None:
    """Translate an OpenAPI document into a GraphQL schema (SDL)."""
    from graphql import print_schema

    from openapi_gql.errors import TranslationError
    from openapi_gql.formats.openapi import load_spec
    from openapi_gql.options import Options
    from openapi_gql.translate.pipeline import build_schema

    try:
        result = build_schema(load_spec(spec_path), Options(**options_from_flags(flags)))
    except TranslationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    sdl = print_schema(result.schema)
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(sdl + "\n")
        console.print(f"[green]GraphQL schema written to {output}[/green]")
    else:
        click.echo(sdl)

    if show_report:
        report = result.report
        table = Table(title="Translation Report")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Operations", str(report.num_ops))
        table.add_row("GET operations", str(report.num_ops_query))
        table.add_row("Other operations", str(report.num_ops_mutation))
        table.add_row("Queries created", str(report.num_queries_created))
        table.add_row("Mutations created", str(report.num_mutations_created))
        table.add_row("Warnings", str(len(report.warnings)))
        console.print(table)

        if report.warnings:
            warning_table = Table(title="Warnings")
            warning_table.add_column("Type", style="yellow")
            warning_table.add_column("Message")
            warning_table.add_column("Mitigation")
            for warning in report.warnings:
                warning_table.add_row(warning.type, warning.message, warning.mitigation)
            console.print(warning_table)
