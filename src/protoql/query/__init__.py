"""Query presentation: renderers and the interactive shell."""

from protoql.query.render import FORMATS, format_value, render, render_csv, render_json, render_table
from protoql.query.shell import QueryShell, schema_text

__all__ = [
    "FORMATS",
    "format_value",
    "render",
    "render_csv",
    "render_json",
    "render_table",
    "QueryShell",
    "schema_text",
]
