from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any


LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
}

logger = logging.getLogger("csr")


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(db_path: str) -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (Docker creates one for a missing
    bind-mounted file), the journal lives inside it.
    """
    p = os.path.abspath(db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "csr.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


class EventJournal:
    """Operator-visible event log.

    Every event is stored in the sqlite ``events`` table and forwarded to the
    ``csr`` logger at the matching severity.
    """

    def __init__(self, db_path: str) -> None:
        self.path = _resolve_db_path(db_path)
        self.init_db()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts TEXT NOT NULL,
                  level TEXT NOT NULL,
                  service_id TEXT,
                  agent TEXT,
                  message TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
                """
            )

    def log(self, level: str, message: str, service_id: str | None = None, agent: str | None = None) -> None:
        level = level.upper()
        logger.log(LEVELS.get(level, logging.INFO), message, extra={"service_id": service_id, "agent": agent})
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, service_id, agent, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level, service_id, agent, message),
            )

    def latest(self, limit: int = 100, level: str | None = None) -> list[dict[str, Any]]:
        with self.connect() as conn:
            if level:
                rows = conn.execute(
                    "SELECT * FROM events WHERE level=? ORDER BY id DESC LIMIT ?",
                    (level.upper(), limit),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
