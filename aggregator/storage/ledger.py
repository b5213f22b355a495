"""SQLite-backed claim ledger preventing reposts across runs."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from ..common.exceptions import ComponentError
from ..schema import ComponentSettings

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS clips (
    id TEXT NOT NULL,
    runner TEXT NOT NULL,
    claimed TEXT NOT NULL,
    PRIMARY KEY (id, runner)
)
"""


class SqliteSettings(ComponentSettings):
    type: Literal["sqlite"] = "sqlite"
    path: Path


class SqliteLedger:
    """Record each ``(clip id, run name)`` pair at most once.

    ``claim`` relies on the primary key and ``INSERT OR IGNORE`` so the
    first caller wins even if several processes share the database file.
    """

    name = "sqlite"
    settings_model = SqliteSettings

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None

    @classmethod
    def from_settings(cls, settings: SqliteSettings) -> "SqliteLedger":
        return cls(settings.path.expanduser())

    def start(self) -> None:
        if self._conn is not None:
            return
        if str(self.path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(str(self.path), isolation_level=None)
            self._conn.execute(SCHEMA)
        except sqlite3.Error as exc:
            raise ComponentError(self.name, "could not open ledger", {"path": self.path, "error": exc}) from exc
        logger.info("ledger started path=%s", self.path)

    def stop(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()
        logger.info("ledger stopped path=%s", self.path)

    def claim(self, clip_id: str, run_name: str) -> bool:
        if self._conn is None:
            raise ComponentError(self.name, "ledger is not started", {"path": self.path})
        try:
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO clips (id, runner, claimed) VALUES (?, ?, ?)",
                (clip_id, run_name, datetime.now(timezone.utc).isoformat()),
            )
        except sqlite3.Error as exc:
            raise ComponentError(self.name, "claim failed", {"clip": clip_id, "error": exc}) from exc
        return cursor.rowcount == 1


__all__ = ["SqliteLedger", "SqliteSettings"]
