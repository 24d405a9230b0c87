"""pbql - query protobuf definitions using SQL."""

from __future__ import annotations

from pathlib import Path

import click
from sqlalchemy.exc import SQLAlchemyError

from protoql.compiler import CompileResult, compile_directory, compile_files
from protoql.config import ProtoQLConfig, load_config
from protoql.core.errors import ProtoQLError
from protoql.core.logging import configure_logging
from protoql.core.progress import pluralize, spinner, status
from protoql.loader import DescriptorLoader
from protoql.query import FORMATS, QueryShell, render
from protoql.store import Database

EPILOG = """\b
Tables available:
  files, messages, fields, enums, enum_values, services, methods,
  extensions, oneofs, oneof_fields, dependencies

\b
Examples:
  # Count methods per service
  pbql -q "SELECT s.name, COUNT(m.name) AS method_count FROM services s LEFT JOIN methods m ON s.full_name = m.service GROUP BY s.name" ./protos/

\b
  # Find all streaming RPCs
  pbql -q "SELECT * FROM methods WHERE client_streaming OR server_streaming" ./protos/

\b
  # List messages with more than 10 fields
  pbql -q "SELECT m.full_name, COUNT(*) AS field_count FROM messages m JOIN fields f ON m.full_name = f.message GROUP BY m.full_name HAVING COUNT(*) > 10" ./protos/
"""


def _report_diagnostics(result: CompileResult, source: str) -> None:
    if not result.diagnostics:
        return
    status(f"Parsed {source} with {pluralize(len(result.diagnostics), 'diagnostic')}:", style="warning")
    for line in result.diagnostics:
        status(f"- {line}", indent=2)


def _load(loader: DescriptorLoader, result: CompileResult, source: str) -> None:
    _report_diagnostics(result, source)
    try:
        stats = loader.load_batch(result.files, result.dependencies)
    except ProtoQLError as e:
        raise click.ClickException(f"Error loading files from {source}: {e}") from e
    if stats.files:
        status(
            f"Loaded {pluralize(len(stats.files), 'file')} from {source} ({stats.total_rows} rows)",
            style="success",
        )


def load_paths(
    loader: DescriptorLoader,
    paths: tuple[Path, ...],
    config: ProtoQLConfig,
) -> None:
    """Compile and load directories one batch each, then loose files as one batch."""
    import_paths = [Path(p) for p in config.compiler.import_paths]
    directories = [p for p in paths if p.is_dir()]
    files = [p for p in paths if not p.is_dir()]

    for directory in directories:
        try:
            with spinner(f"Compiling {directory}"):
                result = compile_directory(
                    directory,
                    import_paths,
                    lenient=config.compiler.lenient,
                    timeout_sec=config.compiler.timeout_sec,
                )
        except ProtoQLError as e:
            raise click.ClickException(f"Error parsing directory {directory}: {e}") from e
        _load(loader, result, str(directory))

    if files:
        try:
            with spinner(f"Compiling {pluralize(len(files), 'file')}"):
                result = compile_files(
                    files,
                    import_paths,
                    lenient=config.compiler.lenient,
                    timeout_sec=config.compiler.timeout_sec,
                )
        except ProtoQLError as e:
            raise click.ClickException(f"Error parsing files: {e}") from e
        _load(loader, result, pluralize(len(files), "file"))


@click.command(epilog=EPILOG, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version="0.1.0", prog_name="pbql")
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option("-q", "--query", help="SQL query to execute")
@click.option(
    "-I",
    "--import",
    "import_paths",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Import paths for proto files (can be specified multiple times)",
)
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice(FORMATS),
    default=None,
    help="Output format: table, json, csv",
)
@click.option("-l", "--lenient", is_flag=True, help="Continue parsing even if some files have errors")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Store tables in this SQLite file instead of memory",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(
    paths: tuple[Path, ...],
    query: str | None,
    import_paths: tuple[Path, ...],
    fmt: str | None,
    lenient: bool,
    db_path: Path | None,
    verbose: bool,
) -> None:
    """Query protobuf definitions using SQL.

    PATHS are .proto files or directories of them. Without --query an
    interactive shell starts.
    """
    if not paths:
        raise click.UsageError("at least one proto file or directory is required")

    try:
        config = load_config()
    except ProtoQLError as e:
        raise click.ClickException(str(e)) from e

    if verbose:
        config.logging.level = "DEBUG"
    if lenient:
        config.compiler.lenient = True
    if import_paths:
        config.compiler.import_paths = [*config.compiler.import_paths, *(str(p) for p in import_paths)]
    if db_path is not None:
        config.database.path = str(db_path)
    output_format = fmt or config.output.format

    configure_logging(config=config.logging)

    database = Database(config.database.path, busy_timeout_ms=config.database.busy_timeout_ms)
    try:
        try:
            database.ensure_schema()
        except ProtoQLError as e:
            raise click.ClickException(f"Error initializing database: {e}") from e

        load_paths(DescriptorLoader(database), paths, config)

        if query:
            try:
                result = database.execute_query(query)
            except SQLAlchemyError as e:
                raise click.ClickException(str(getattr(e, "orig", None) or e)) from e
            render(result, output_format)
        else:
            QueryShell(
                database,
                fmt=output_format,
                history_file=Path(config.output.history_file),
            ).run()
    finally:
        database.close()


if __name__ == "__main__":
    cli()
