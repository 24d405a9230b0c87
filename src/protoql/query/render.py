"""Render query results as a table, JSON or CSV."""

from __future__ import annotations

import csv
import io
import json
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from protoql.store.database import QueryResult

FORMATS = ("table", "json", "csv")


def format_value(value: Any) -> str:
    """Text form of one cell for table and CSV output."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def render_table(result: QueryResult, console: Console | None = None) -> None:
    console = console or Console()
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    for column in result.columns:
        table.add_column(column, overflow="fold")
    for row in result.rows:
        table.add_row(*(format_value(v) for v in row))
    if result.columns:
        console.print(table)
    noun = "row" if result.rowcount == 1 else "rows"
    console.print(f"({result.rowcount} {noun})", highlight=False)


def render_json(result: QueryResult) -> str:
    records = [{k: _json_value(v) for k, v in record.items()} for record in result.as_dicts()]
    return json.dumps(records, indent=2, default=str)


def render_csv(result: QueryResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow([format_value(v) for v in row])
    return buffer.getvalue()


def render(result: QueryResult, fmt: str = "table", console: Console | None = None) -> None:
    """Write a result to stdout in the requested format."""
    if fmt == "json":
        click.echo(render_json(result))
    elif fmt == "csv":
        click.echo(render_csv(result), nl=False)
    elif fmt == "table":
        render_table(result, console)
    else:
        raise click.BadParameter(f"Unknown format {fmt!r}; expected one of {', '.join(FORMATS)}")
