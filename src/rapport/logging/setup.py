"""Structured logging configuration for Rapport.

Provides JSON and text formatters, a run-context filter that tags every
record emitted during an enrich/dispatch run with its ``run_id`` and
``job``, and a one-call :func:`configure_logging` driven by settings.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rapport.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything else
# is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        "run_id",
        "job",
    }
)

_run_context: contextvars.ContextVar[tuple[str, str] | None] = contextvars.ContextVar(
    "rapport_run_context", default=None
)


@contextmanager
def run_context(run_id: str, job: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *run_id* and *job*."""
    token = _run_context.set((run_id, job))
    try:
        yield
    finally:
        _run_context.reset(token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        for attr in ("run_id", "job"):
            value = getattr(record, attr, None)
            if value not in (None, "-"):
                data[attr] = value

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for the console."""

    _FMT = "%(asctime)s %(levelname)-8s [%(job)s %(run_id)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RunContextFilter(logging.Filter):
    """Inject the active run's ``run_id`` and ``job`` (``"-"`` outside a run)."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        ctx = _run_context.get()
        run_id, job = ctx if ctx is not None else ("-", "-")
        if not hasattr(record, "run_id"):
            record.run_id = run_id  # type: ignore[attr-defined]
        if not hasattr(record, "job"):
            record.job = job  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``rapport`` logger hierarchy from settings.

    Replaces any previously installed handlers so repeated calls (tests,
    ``serve`` after ``--validate-only``) do not duplicate output.

    Returns the root ``rapport`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("rapport")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()
    ctx_filter = RunContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    if settings.file:
        try:
            from logging.handlers import RotatingFileHandler

            fh = RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_file_size_bytes,
                backupCount=settings.backup_count,
            )
            fh.setFormatter(StructuredFormatter())
            fh.addFilter(ctx_filter)
            root.addHandler(fh)
        except OSError as exc:
            root.warning("Could not open log file %s: %s", settings.file, exc)

    for lib in ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error", "psycopg.pool"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
