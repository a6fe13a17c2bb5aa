"""
Root-logger setup for the cde-advisor CLI.

Library modules only ever call ``logging.getLogger(__name__)``; the CLI calls
``configure_logging(config.logging)`` once per command, before it opens the
database. Engine operations log one INFO summary each (rows, failures,
elapsed time) and a WARNING per failed entity or stage. Fan-out workers are
named ``cde-<operation>_<n>``, so the thread column says which operation a
warning came from.

Every handler writes to stderr or to ``log_file``. Stdout carries the JSON
results of the CLI commands and must stay parseable.

With ``json_format = true`` each record becomes one object per line::

    {"ts": "2026-06-15T12:00:00Z", "level": "WARNING", "logger": "cde_advisor.engine.fanout",
     "thread": "cde-channel_effectiveness_0", "msg": "..."}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cde_advisor.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``thread``,
    ``msg``, ``exc`` when there is a traceback, plus any ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


def _formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> None:
    """Replace the root logger's handlers according to ``config``.

    A stderr handler is always installed; a UTF-8 file handler is added when
    ``config.log_file`` is non-empty (its directory is created).
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = _formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
