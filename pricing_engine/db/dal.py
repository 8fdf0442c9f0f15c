"""Data Access Layer for the pricing engine.

Responsibilities
----------------
- Provide a generic document store (get / list / save / delete) of JSON
  values keyed by name; currency settings are one such document.
- Append and query exchange rate history samples.
- Append and list admin activity entries.
- Expose ``transaction()`` so callers can group several writes into one
  atomic ``BEGIN IMMEDIATE`` unit; every write helper accepts the cursor of an
  open transaction and otherwise opens its own.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar

from .schema import init_db

T = TypeVar("T")
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC text so lexical order equals chronological order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class Database:
    def __init__(self, db_path: Path, initialize: bool = True):
        self.db_path = db_path
        if initialize:
            init_db(db_path)

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor inside BEGIN IMMEDIATE; commit on success, roll back on error."""
        with closing(self._connect()) as conn:
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            try:
                yield cur
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def _write(self, cur: Optional[sqlite3.Cursor], fn: Callable[[sqlite3.Cursor], T]) -> T:
        if cur is not None:
            return fn(cur)
        with self.transaction() as own:
            return fn(own)

    def _read(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with closing(self._connect()) as conn:
            cur = conn.cursor()
            cur.execute(sql, tuple(params))
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Generic document store
    def get_document(self, key: str, cur: Optional[sqlite3.Cursor] = None) -> Optional[Any]:
        sql = "SELECT value FROM documents WHERE key = ?"
        if cur is not None:
            cur.execute(sql, (key,))
            row = cur.fetchone()
        else:
            rows = self._read(sql, (key,))
            row = rows[0] if rows else None
        return json.loads(row["value"]) if row else None

    def list_documents(self, prefix: str = "") -> Dict[str, Any]:
        rows = self._read(
            "SELECT key, value FROM documents WHERE key LIKE ? ORDER BY key",
            (prefix + "%",),
        )
        return {r["key"]: json.loads(r["value"]) for r in rows}

    def save_document(self, key: str, value: Any, cur: Optional[sqlite3.Cursor] = None) -> None:
        payload = json.dumps(value, separators=(",", ":"))

        def _save(c: sqlite3.Cursor) -> None:
            c.execute(
                "INSERT INTO documents(key, value) VALUES(?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value, "
                "updated_at=(strftime('%Y-%m-%dT%H:%M:%fZ','now'))",
                (key, payload),
            )

        self._write(cur, _save)

    def delete_document(self, key: str, cur: Optional[sqlite3.Cursor] = None) -> bool:
        def _delete(c: sqlite3.Cursor) -> bool:
            c.execute("DELETE FROM documents WHERE key = ?", (key,))
            return c.rowcount > 0

        return self._write(cur, _delete)

    # ------------------------------------------------------------------
    # Rate history
    def append_rate_history(
        self,
        samples: Iterable[Tuple[str, float, datetime]],
        cur: Optional[sqlite3.Cursor] = None,
    ) -> int:
        rows = [(code, float(rate), format_timestamp(ts)) for code, rate, ts in samples]

        def _append(c: sqlite3.Cursor) -> int:
            c.executemany(
                "INSERT INTO rate_history(code, rate, timestamp) VALUES(?, ?, ?)", rows
            )
            return len(rows)

        return self._write(cur, _append)

    def latest_rate_timestamps(
        self, codes: Iterable[str], cur: Optional[sqlite3.Cursor] = None
    ) -> Dict[str, datetime]:
        codes = list(codes)
        if not codes:
            return {}
        placeholders = ",".join("?" for _ in codes)
        sql = (
            f"SELECT code, MAX(timestamp) AS ts FROM rate_history "
            f"WHERE code IN ({placeholders}) GROUP BY code"
        )
        if cur is not None:
            cur.execute(sql, codes)
            rows = cur.fetchall()
        else:
            rows = self._read(sql, codes)
        return {r["code"]: parse_timestamp(r["ts"]) for r in rows}

    def list_rate_history(
        self, code: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return samples oldest first; with ``limit`` only the newest ``limit`` rows."""
        clauses: List[str] = []
        params: List[Any] = []
        if code:
            clauses.append("code = ?")
            params.append(code)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        sql = f"SELECT id, code, rate, timestamp FROM rate_history{where} ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        rows = [dict(r) for r in self._read(sql, params)]
        rows.reverse()
        return rows

    def trim_rate_history(self, keep: int, cur: Optional[sqlite3.Cursor] = None) -> int:
        """Delete all but the newest ``keep`` samples; ``keep <= 0`` keeps everything."""
        if keep <= 0:
            return 0

        def _trim(c: sqlite3.Cursor) -> int:
            c.execute(
                "DELETE FROM rate_history WHERE id NOT IN "
                "(SELECT id FROM rate_history ORDER BY timestamp DESC, id DESC LIMIT ?)",
                (keep,),
            )
            return c.rowcount

        return self._write(cur, _trim)

    # ------------------------------------------------------------------
    # Activity log
    def append_activity(
        self,
        category: str,
        action: str,
        message: str,
        author: str = "system",
        details: Optional[Dict[str, Any]] = None,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> int:
        def _append(c: sqlite3.Cursor) -> int:
            c.execute(
                "INSERT INTO activity_log(category, action, message, author, details) "
                "VALUES(?, ?, ?, ?, ?)",
                (
                    category,
                    action,
                    message,
                    author,
                    json.dumps(details) if details is not None else None,
                ),
            )
            return int(c.lastrowid)

        return self._write(cur, _append)

    def list_activity(
        self, category: Optional[str] = None, limit: int = 50
    ) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM activity_log"
        params: List[Any] = []
        if category:
            sql += " WHERE category = ?"
            params.append(category)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        out = []
        for r in self._read(sql, params):
            row = dict(r)
            row["details"] = json.loads(row["details"]) if row["details"] else None
            out.append(row)
        return out
