"""SQLite database — schema and connection helpers.

Usage
-----
    conn = db_connect(db_path)
    try:
        conn.execute(...)
        conn.commit()
    finally:
        conn.close()

Every table carries ``user_id``; every query issued by the services
scopes by it.
"""
from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from streamcurator.errors import DataUnavailableError

logger = logging.getLogger(__name__)

DB_NAME = "streamcurator.db"


# ---------------------------------------------------------------------------
# Low-level connection helpers
# ---------------------------------------------------------------------------

def _regexp(pattern: str, value: str | None) -> bool:
    """SQLite user function: REGEXP(pattern, string)."""
    if value is None:
        return False
    try:
        return bool(re.search(pattern, value))
    except re.error:
        return False


def db_connect(db_path: str) -> sqlite3.Connection:
    """Return a synchronous :class:`sqlite3.Connection` tuned for performance.

    *Always* called inside a ``try/finally`` or ``with`` block by callers.
    """
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA cache_size=-32768")   # 32 MB page cache
    conn.create_function("regexp", 2, _regexp)
    return conn


@contextmanager
def db_session(db_path: str) -> Iterator[sqlite3.Connection]:
    """Connection scoped to one unit of work: commit on success, rollback on error.

    ``sqlite3.Error`` is re-raised as :class:`DataUnavailableError`.
    """
    try:
        conn = db_connect(db_path)
    except sqlite3.Error as e:
        logger.error(f"Cannot open database {db_path}: {e}")
        raise DataUnavailableError(str(e)) from e
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Database error: {e}")
        raise DataUnavailableError(str(e)) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Schema – CREATE TABLE IF NOT EXISTS
# ---------------------------------------------------------------------------

_SCHEMA = """
-- ── Providers ─────────────────────────────────────────────────────────────

CREATE TABLE IF NOT EXISTS providers (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          INTEGER NOT NULL,
    name             TEXT NOT NULL,
    kind             INTEGER NOT NULL DEFAULT 0,
    domain           TEXT NOT NULL,
    username         TEXT,
    password         TEXT,
    stream_type      INTEGER NOT NULL DEFAULT 0,
    priority         INTEGER NOT NULL DEFAULT 99,
    should_filter    INTEGER NOT NULL DEFAULT 1,
    refresh_period   INTEGER NOT NULL DEFAULT 3,
    connection_limit INTEGER NOT NULL DEFAULT 1,
    last_synced      TEXT,
    created_at       TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at       TEXT
);

CREATE INDEX IF NOT EXISTS idx_providers_user
    ON providers (user_id);

-- ── Streams ───────────────────────────────────────────────────────────────
-- 'category' is 'stream' for curated entries and 'other' for uncategorised
-- ones; moving between the two only flips this column.

CREATE TABLE IF NOT EXISTS streams (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL,
    provider_id INTEGER
                REFERENCES providers(id) ON DELETE CASCADE,
    type        INTEGER NOT NULL DEFAULT 0,
    category    TEXT NOT NULL DEFAULT 'stream',
    active      INTEGER NOT NULL DEFAULT 1,
    channel     TEXT NOT NULL DEFAULT '0',
    name        TEXT NOT NULL DEFAULT '',
    orig_name   TEXT NOT NULL DEFAULT '',
    uri         TEXT NOT NULL DEFAULT '',
    tvg_id      TEXT,
    tvg_group   TEXT,
    tvg_logo    TEXT,
    extras      TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at  TEXT
);

CREATE INDEX IF NOT EXISTS idx_streams_user_type_active
    ON streams (user_id, type, active, category);
CREATE INDEX IF NOT EXISTS idx_streams_provider
    ON streams (provider_id);
CREATE INDEX IF NOT EXISTS idx_streams_uri
    ON streams (user_id, provider_id, uri);
CREATE INDEX IF NOT EXISTS idx_streams_name_lower
    ON streams (lower(name));

-- ── Filter rules ──────────────────────────────────────────────────────────

CREATE TABLE IF NOT EXISTS stream_filters (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id    INTEGER NOT NULL,
    active     INTEGER NOT NULL DEFAULT 1,
    kind       INTEGER NOT NULL DEFAULT 0,
    pattern    TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_filters_user_active_kind
    ON stream_filters (user_id, active, kind);

-- ── Missing streams ───────────────────────────────────────────────────────

CREATE TABLE IF NOT EXISTS stream_missing (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL,
    provider_id INTEGER NOT NULL
                REFERENCES providers(id) ON DELETE CASCADE,
    stream_id   INTEGER
                REFERENCES streams(id) ON DELETE CASCADE,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, provider_id, stream_id)
);

CREATE INDEX IF NOT EXISTS idx_missing_user_provider
    ON stream_missing (user_id, provider_id);
"""


def init_db(db_path: str) -> None:
    """Create all tables and indexes. Safe to call on every startup (idempotent)."""
    conn = db_connect(db_path)
    try:
        conn.executescript(_SCHEMA)
        conn.commit()
        logger.info(f"Database initialised at {db_path}")
    finally:
        conn.close()
