"""Logging setup for Task Manager.

Two output formats are supported:

- ``dev`` (default): one human-readable line per record.
- ``json``: one JSON object per line, including any ``extra=`` fields.

Call :func:`setup_logging` once from the entry point; library modules
just do ``logger = logging.getLogger(__name__)``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEV_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEV_DATEFMT = "%H:%M:%S"

DEFAULT_LOG_FILE = Path.home() / ".taskmanager" / "taskmanager.log"

# Third-party loggers that are too chatty at INFO.
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "mcp.server.lowlevel.server")


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    Standard fields are ``timestamp``, ``level``, ``logger`` and
    ``message``; attributes added through ``extra=`` are copied verbatim.
    """

    _BUILTIN_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in self._BUILTIN_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _resolve_level(level: int | str | None, warn: bool = True) -> int:
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = getattr(logging, level.upper(), None)
    if not isinstance(resolved, int):
        if warn:
            print(f"WARNING: Invalid LOG_LEVEL '{level}', falling back to INFO", file=sys.stderr)
        return logging.INFO
    return resolved


def _install(handler: logging.Handler, level: int) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(fmt: str | None = None, level: int | str | None = None) -> None:
    """Configure the root logger to write to stderr.

    *fmt* is ``"json"`` or ``"dev"`` (default ``LOG_FORMAT`` env var, then
    ``dev``); *level* defaults to ``LOG_LEVEL`` and then ``INFO``.  stderr
    keeps stdout free for the MCP stdio transport.
    """
    fmt = fmt or os.environ.get("LOG_FORMAT", "dev")
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt=DEV_DATEFMT))
    _install(handler, _resolve_level(level))


def setup_file_logging(log_file: Path | None = None, level: int | str | None = None) -> None:
    """Send all logging to a size-rotated file instead of stderr."""
    log_file = log_file or DEFAULT_LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    resolved = _resolve_level(level, warn=False)
    handler = RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt=DEV_DATEFMT))
    handler.setLevel(resolved)
    _install(handler, resolved)
