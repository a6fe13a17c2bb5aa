"""
Opening the cde-advisor SQLite database.

Two entry points:

  ``open_connection()``  returns a configured connection the caller owns.
                         The test suite and long-lived engine sessions use it.
  ``get_connection()``   wraps ``open_connection()`` as a unit of work for CLI
                         commands: commit on success, roll back on error, close.

Every connection has foreign keys enforced (fixture loads rely on them to
reject dangling channel/asset references), ``sqlite3.Row`` rows, and
``check_same_thread=False``. The engine fans per-entity queries out over
worker threads that share one connection; ``SqliteProjectStore`` holds a lock
around each query. File databases use WAL so a report can run while a
fixture load is writing.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def open_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> sqlite3.Connection:
    """Open ``db_path`` (creating parent directories) and apply the pragmas.

    Args:
        db_path: Database file, or ``":memory:"``.
        wal_mode: Use WAL journaling (ignored for in-memory databases).
        busy_timeout_ms: How long a query waits on a locked database.

    Raises:
        sqlite3.OperationalError: If the file cannot be opened.
    """
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    # Pragmas before any statement touches the schema.
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
    if wal_mode and db_path != MEMORY_DB:
        mode = conn.execute("PRAGMA journal_mode = WAL;").fetchone()[0]
        logger.debug("Opened %s | journal_mode=%s", db_path, mode)
    return conn


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """One unit of work against the database.

    Usage::

        with get_connection(config.database.db_path) as conn:
            apply_schema(conn)

    Commits when the block exits cleanly, rolls back when it raises, and
    always closes the connection.
    """
    conn = open_connection(db_path, wal_mode=wal_mode, busy_timeout_ms=busy_timeout_ms)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
