"""Tests for the interactive shell's command handling."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest
from prompt_toolkit.history import FileHistory, InMemoryHistory
from protobuilders import catalog_file

from protoql.loader import DescriptorLoader
from protoql.query.shell import HELP_TEXT, QueryShell, schema_text
from protoql.store import Database


@pytest.fixture
def shell(database: Database) -> QueryShell:
    DescriptorLoader(database).load_batch([catalog_file()])
    return QueryShell(database, fmt="json")


class TestDotCommands:
    """Commands that start with a dot."""

    @pytest.mark.parametrize("command", [".quit", ".exit", ".q", ".QUIT"])
    def test_quit_ends_session(
        self, shell: QueryShell, command: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Quit commands return False and say goodbye."""
        assert shell.handle(command) is False
        assert "Goodbye!" in capsys.readouterr().out

    @pytest.mark.parametrize("command", [".help", ".h", ".?"])
    def test_help(self, shell: QueryShell, command: str, capsys: pytest.CaptureFixture[str]) -> None:
        """Help lists commands and examples."""
        assert shell.handle(command) is True
        assert HELP_TEXT.strip() in capsys.readouterr().out

    def test_schema_lists_every_table(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """.schema prints one line per table with its columns."""
        shell.handle(".schema")

        out = capsys.readouterr().out
        assert "fields (id, name, number, message, type" in out
        assert "oneof_fields (oneof_id, field_id)" in out
        assert "json_extract" in out

    def test_tables_runs_catalog_query(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """.tables lists the tables through SQL."""
        shell.handle(".tables")

        names = [row["name"] for row in json.loads(capsys.readouterr().out)]
        assert "messages" in names
        assert "dependencies" in names

    def test_format_switches_output(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """.format changes the renderer for later queries."""
        shell.handle(".format csv")
        shell.handle("SELECT name FROM services")

        out = capsys.readouterr().out
        assert "Output format set to csv" in out
        assert "name\nCatalog\n" in out
        assert shell.format == "csv"

    def test_invalid_format_is_reported(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """Unknown formats leave the current one in place."""
        shell.handle(".format yaml")

        assert "Invalid format: yaml" in capsys.readouterr().out
        assert shell.format == "json"

    def test_format_prefix_is_not_a_command(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """Only `.format` itself switches the renderer."""
        assert shell.handle(".formatted csv") is True

        captured = capsys.readouterr()
        assert "Output format set" not in captured.out
        assert "Error:" in captured.err
        assert shell.format == "json"


class TestQueries:
    """Plain SQL lines."""

    def test_blank_line_is_ignored(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """Empty input continues the session silently."""
        assert shell.handle("   ") is True
        assert capsys.readouterr().out == ""

    def test_query_renders_rows(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """SQL is executed against the loaded tables."""
        shell.handle("SELECT name FROM methods WHERE server_streaming ORDER BY name")

        assert json.loads(capsys.readouterr().out) == [{"name": "WatchItems"}]

    def test_sql_error_is_reported_not_raised(self, shell: QueryShell, capsys: pytest.CaptureFixture[str]) -> None:
        """A bad statement prints an error and the session continues."""
        assert shell.handle("SELECT * FROM nowhere") is True

        assert "Error: no such table: nowhere" in capsys.readouterr().err

    def test_execute_reports_success(self, shell: QueryShell) -> None:
        """execute returns whether the statement ran."""
        assert shell.execute("SELECT 1") is True
        assert shell.execute("SELEC 1") is False


class TestSchemaText:
    """Schema help text."""

    def test_lists_eleven_tables(self) -> None:
        """One indented line per table."""
        tables = [line for line in schema_text().splitlines() if re.match(r"  \w+ \(", line)]
        assert len(tables) == 11


class TestHistory:
    """Prompt history selection."""

    def test_no_history_file_uses_memory(self, database: Database) -> None:
        """Without a path nothing is persisted."""
        assert isinstance(QueryShell(database)._history(), InMemoryHistory)

    def test_history_file_parent_is_created(self, database: Database, tmp_path: Path) -> None:
        """The history directory is created on demand."""
        path = tmp_path / "nested" / "history"

        history = QueryShell(database, history_file=path)._history()

        assert isinstance(history, FileHistory)
        assert path.parent.is_dir()
