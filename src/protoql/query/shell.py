"""Interactive SQL shell over the loaded descriptor tables."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click
import structlog
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory
from sqlalchemy.exc import SQLAlchemyError

from protoql.query.render import FORMATS, render
from protoql.store.models import ALL_TABLES, column_names, table_name

if TYPE_CHECKING:
    from prompt_toolkit.history import History
    from rich.console import Console

    from protoql.store.database import Database

logger = structlog.get_logger()

PROMPT = "pbql> "
TABLES_QUERY = "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
QUIT_COMMANDS = frozenset({".quit", ".exit", ".q"})
HELP_COMMANDS = frozenset({".help", ".h", ".?"})

HELP_TEXT = """\
Commands:
   .help, .h, .?   Show this help
   .tables         List all tables
   .schema         Show detailed schema
   .format <fmt>   Set output format (table, json, csv)
   .quit, .exit    Exit interactive mode

Example queries:
  -- Count methods per service
  SELECT s.name, COUNT(m.name) AS methods
  FROM services s
  LEFT JOIN methods m ON s.full_name = m.service
  GROUP BY s.name;

  -- Find all streaming RPCs
  SELECT service, name, client_streaming, server_streaming
  FROM methods
  WHERE client_streaming OR server_streaming;

  -- Messages with most fields
  SELECT m.name, COUNT(*) AS field_count
  FROM messages m
  JOIN fields f ON m.full_name = f.message
  GROUP BY m.full_name
  ORDER BY field_count DESC
  LIMIT 10;

Querying options (JSON columns, SQLite JSON functions):
  -- Find deprecated methods
  SELECT name FROM methods
  WHERE json_extract(options, '$.deprecated') = 1;

  -- Custom extension options (quote dotted keys)
  SELECT name, json_extract(options, '$."google.api.http".get') AS path
  FROM methods WHERE options IS NOT NULL;
"""


def schema_text() -> str:
    """One line per table listing its columns."""
    lines = ["Tables:"]
    for model in ALL_TABLES:
        lines.append(f"  {table_name(model)} ({', '.join(column_names(model))})")
    lines.append("")
    lines.append("The options column holds JSON (NULL when no option is set). Query with:")
    lines.append("  json_extract(options, '$.path')                  -- JSONPath syntax")
    lines.append("  json_extract(options, '$.\"dotted.key\".field')    -- quoted keys")
    lines.append("  options ->> '$.path'                             -- arrow syntax")
    return "\n".join(lines)


class QueryShell:
    """Read-eval-print loop for ad-hoc SQL plus a few dot commands."""

    def __init__(
        self,
        database: Database,
        fmt: str = "table",
        history_file: Path | None = None,
        console: Console | None = None,
    ) -> None:
        self.database = database
        self.format = fmt
        self.history_file = history_file
        self.console = console

    def handle(self, line: str) -> bool:
        """Process one input line; False means the session should end."""
        line = line.strip()
        if not line:
            return True

        command = line.lower()
        if command in QUIT_COMMANDS:
            click.echo("Goodbye!")
            return False
        if command in HELP_COMMANDS:
            click.echo(HELP_TEXT)
            return True
        if command == ".schema":
            click.echo(schema_text())
            return True
        if command == ".format" or command.startswith(".format "):
            self._set_format(line[len(".format") :].strip())
            return True
        if command == ".tables":
            line = TABLES_QUERY

        self.execute(line)
        click.echo()
        return True

    def _set_format(self, fmt: str) -> None:
        if fmt in FORMATS:
            self.format = fmt
            click.echo(f"Output format set to {fmt}")
        else:
            click.echo(f"Invalid format: {fmt}. Valid formats: {', '.join(FORMATS)}")
        click.echo()

    def execute(self, sql: str) -> bool:
        """Run one statement and render it; errors are reported, not raised."""
        try:
            result = self.database.execute_query(sql)
        except SQLAlchemyError as e:
            reason = getattr(e, "orig", None) or e
            click.echo(f"Error: {reason}", err=True)
            logger.debug("query_failed", error=str(reason))
            return False
        render(result, self.format, self.console)
        return True

    def _history(self) -> History:
        if self.history_file is None:
            return InMemoryHistory()
        path = self.history_file.expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        return FileHistory(str(path))

    def run(self) -> None:
        click.echo("pbql interactive mode. Type '.help' for commands, '.quit' to exit.")
        click.echo("Enter SQL queries to explore your protobuf definitions.")
        click.echo()

        session: PromptSession[str] = PromptSession(history=self._history())
        while True:
            try:
                line = session.prompt(PROMPT)
            except KeyboardInterrupt:
                continue
            except EOFError:
                click.echo("Goodbye!")
                break
            if not self.handle(line):
                break
