"""structlog setup for pbql.

structlog events are handed to stdlib logging, which owns the handlers:
one per configured output, each with its own level and renderer. Events
emitted while a batch is loading carry that batch's id.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from protoql.config.models import LoggingConfig, LogOutputConfig

_batch_id: ContextVar[str | None] = ContextVar("batch_id", default=None)

_STREAMS = ("stderr", "stdout")


def get_batch_id() -> str | None:
    return _batch_id.get()


def set_batch_id(batch_id: str | None = None) -> str:
    """Bind a batch id to the current context, generating one if needed."""
    bid = batch_id or uuid4().hex[:12]
    _batch_id.set(bid)
    return bid


def clear_batch_id() -> None:
    _batch_id.set(None)


def _add_batch_id(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    bid = get_batch_id()
    if bid is not None:
        event_dict.setdefault("batch_id", bid)
    return event_dict


def _level(name: str | None, fallback: int = logging.WARNING) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


class ConsoleSuppressingFilter(logging.Filter):
    """Hold back terminal output while a spinner is drawing."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from protoql.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_batch_id,
    ]


def _renderer(output: LogOutputConfig) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    stream = sys.stdout if output.destination == "stdout" else sys.stderr
    return structlog.dev.ConsoleRenderer(
        colors=output.destination in _STREAMS and stream.isatty(),
        pad_event_to=0,
        pad_level=False,
    )


def _build_handler(output: LogOutputConfig, root_level: int) -> logging.Handler:
    handler: logging.Handler
    if output.destination == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    elif output.destination == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")

    if output.destination in _STREAMS:
        handler.addFilter(ConsoleSuppressingFilter())
    handler.setLevel(_level(output.level, root_level))
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(output),
            foreign_pre_chain=_pre_chain(),
        )
    )
    return handler


def configure_logging(*, config: LoggingConfig | None = None, level: str = "WARNING") -> None:
    """Install handlers for every output of config.

    Without a config a single console handler on stderr is used at the given
    level. Calling this again replaces the previous handlers.
    """
    from protoql.config.models import LoggingConfig

    if config is None:
        config = LoggingConfig(level=level.upper())
    root_level = _level(config.level)

    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must reach loggers created at import time
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(root_level)
    for output in config.outputs:
        root.addHandler(_build_handler(output, root_level))

    # SQLAlchemy echoes every statement at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
