"""Database schema DDL definitions and initialization utilities.

Tables:
  - documents: generic key/value JSON store (currency settings live here)
  - rate_history: append-only exchange rate samples per currency
  - activity_log: admin activity entries (config updates, simulated syncs)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

DOCUMENTS_DDL = f"""
CREATE TABLE IF NOT EXISTS documents (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL, -- JSON
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

RATE_HISTORY_DDL = """
CREATE TABLE IF NOT EXISTS rate_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL,
    rate REAL NOT NULL CHECK (rate > 0),
    timestamp TEXT NOT NULL -- ISO timestamp, fixed width UTC
);
"""

ACTIVITY_LOG_DDL = f"""
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category TEXT NOT NULL,
    action TEXT NOT NULL,
    message TEXT NOT NULL,
    author TEXT NOT NULL DEFAULT 'system',
    details TEXT, -- JSON
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

RATE_HISTORY_CODE_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_rate_history_code_ts ON rate_history(code, timestamp, id);"
)
ACTIVITY_LOG_CATEGORY_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_activity_log_category ON activity_log(category);"
)

DDL_ORDER: Sequence[str] = (
    DOCUMENTS_DDL,
    RATE_HISTORY_DDL,
    ACTIVITY_LOG_DDL,
    RATE_HISTORY_CODE_INDEX_DDL,
    ACTIVITY_LOG_CATEGORY_INDEX_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        conn.commit()
    finally:
        conn.close()
