from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from .settings import settings


SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  level TEXT NOT NULL,
  service_name TEXT,
  message TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS config_changes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  config_path TEXT NOT NULL,
  backup_path TEXT NOT NULL, -- '' when there was no previous file
  old_config TEXT NOT NULL,
  new_config TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS config_errors (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  config TEXT NOT NULL,
  diagnostics TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
"""

_initialized: set[str] = set()


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (a docker bind mount of a missing
    file ends up as one), the DB file is placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "lbc.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    path = _resolve_db_path()
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path not in _initialized:
        conn.executescript(SCHEMA)
        _initialized.add(path)
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    path = _resolve_db_path()
    _initialized.discard(path)
    with connect():
        pass


def log_event(level: str, message: str, service_name: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, service_name, message) VALUES (?, ?, ?, ?)",
            (utc_now(), level.upper(), service_name, message),
        )


def record_config_change(config_path: str, backup_path: str, old_config: str, new_config: str) -> None:
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO config_changes (ts, config_path, backup_path, old_config, new_config)
            VALUES (?, ?, ?, ?, ?)
            """,
            (utc_now(), config_path, backup_path, old_config, new_config),
        )


def record_config_error(config: str, diagnostics: str) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO config_errors (ts, config, diagnostics) VALUES (?, ?, ?)",
            (utc_now(), config, diagnostics),
        )


@dataclass(frozen=True)
class EventRow:
    id: int
    ts: str
    level: str
    service_name: str | None
    message: str


@dataclass(frozen=True)
class ConfigChangeRow:
    id: int
    ts: str
    config_path: str
    backup_path: str
    old_config: str
    new_config: str


@dataclass(frozen=True)
class ConfigErrorRow:
    id: int
    ts: str
    config: str
    diagnostics: str


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def latest_events(limit: int = 100, level: str | None = None) -> list[EventRow]:
    with connect() as conn:
        if level:
            rows = conn.execute(
                "SELECT * FROM events WHERE level=? ORDER BY id DESC LIMIT ?", (level.upper(), limit)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return _rows_to_dataclass(rows, EventRow)


def latest_changes(limit: int = 20) -> list[ConfigChangeRow]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM config_changes ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return _rows_to_dataclass(rows, ConfigChangeRow)


def latest_config_errors(limit: int = 20) -> list[ConfigErrorRow]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM config_errors ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return _rows_to_dataclass(rows, ConfigErrorRow)
