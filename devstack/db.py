from __future__ import annotations

import os
import sqlite3
import sys
from datetime import datetime, timezone
from typing import Any, TextIO


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(db_path: str) -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (e.g. a bind mount Docker created
    as a directory), the DB file is placed inside it.
    """
    p = os.path.abspath(db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "devstack.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


class Journal:
    """Status lines for the operator, persisted as an event history.

    Every event is echoed to `stream` and appended to the `events` table so a
    later run (or `cli.py --events`) can show what previous runs did.
    """

    def __init__(self, db_path: str, stream: TextIO | None = None) -> None:
        self.path = _resolve_db_path(db_path)
        self.stream = stream
        self.run_id: int | None = None

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS runs (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  started_at TEXT NOT NULL,
                  finished_at TEXT,
                  recreate INTEGER NOT NULL,
                  pull INTEGER NOT NULL,
                  outcome TEXT -- ok|failed, NULL while in progress
                );

                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  run_id INTEGER,
                  ts TEXT NOT NULL,
                  level TEXT NOT NULL,
                  service_name TEXT,
                  message TEXT NOT NULL,
                  FOREIGN KEY(run_id) REFERENCES runs(id)
                );

                CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
                """
            )

    def start_run(self, recreate: bool, pull: bool) -> int:
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO runs (started_at, recreate, pull) VALUES (?, ?, ?)",
                (utc_now(), int(recreate), int(pull)),
            )
            self.run_id = int(cur.lastrowid)
        return self.run_id

    def finish_run(self, outcome: str) -> None:
        if self.run_id is None:
            return
        with self.connect() as conn:
            conn.execute(
                "UPDATE runs SET finished_at=?, outcome=? WHERE id=?",
                (utc_now(), outcome, self.run_id),
            )

    def echo(self, line: str = "") -> None:
        """Print a line without recording it (report bodies, separators)."""
        print(line, file=self.stream or sys.stdout)

    def log_event(self, level: str, message: str, service_name: str | None = None) -> None:
        level = level.upper()
        prefix = "" if level == "INFO" else f"[{level}] "
        self.echo(f"{prefix}{message}")
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO events (run_id, ts, level, service_name, message) VALUES (?, ?, ?, ?, ?)",
                (self.run_id, utc_now(), level, service_name, message),
            )

    def latest_events(self, limit: int = 100) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]

    def latest_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM runs ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
