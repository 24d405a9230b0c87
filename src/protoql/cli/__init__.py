"""Command-line entry point."""

from protoql.cli.main import cli

__all__ = ["cli"]
