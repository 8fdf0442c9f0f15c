"""Append-only exchange rate history.

Samples are ordered per currency by timestamp (ties keep insertion order).
Writes accept the cursor of an open transaction so one simulation tick's
samples become visible together with its new rates.
"""

from __future__ import annotations

import sqlite3
from typing import Dict, Iterable, List, Optional

from pricing_engine.core.errors import OutOfOrderSample
from pricing_engine.db.dal import Database, parse_timestamp
from pricing_engine.models import RateHistoryPoint

DEFAULT_TREND_WINDOW = 20


def _row_to_point(row: Dict) -> RateHistoryPoint:
    return RateHistoryPoint(
        code=row["code"], rate=row["rate"], timestamp=parse_timestamp(row["timestamp"])
    )


class RateHistoryStore:
    def __init__(self, db: Database, retention: int = 0):
        self._db = db
        self._retention = retention

    def append(
        self,
        points: Iterable[RateHistoryPoint],
        cur: Optional[sqlite3.Cursor] = None,
        base_currency: Optional[str] = None,
    ) -> int:
        points = list(points)
        if not points:
            return 0
        if base_currency is not None and any(p.code == base_currency for p in points):
            raise ValueError(f"base currency {base_currency} is never sampled")
        if cur is None:
            with self._db.transaction() as own:
                return self._append(own, points)
        return self._append(cur, points)

    def _append(self, cur: sqlite3.Cursor, points: List[RateHistoryPoint]) -> int:
        latest = self._db.latest_rate_timestamps({p.code for p in points}, cur=cur)
        for p in points:
            last = latest.get(p.code)
            if last is not None and p.timestamp < last:
                raise OutOfOrderSample(
                    f"{p.code} sample at {p.timestamp.isoformat()} precedes {last.isoformat()}"
                )
            latest[p.code] = p.timestamp
        count = self._db.append_rate_history(
            ((p.code, p.rate, p.timestamp) for p in points), cur=cur
        )
        self._db.trim_rate_history(self._retention, cur=cur)
        return count

    def recent(self, code: str, limit: int) -> List[RateHistoryPoint]:
        """Up to ``limit`` newest samples for ``code``, oldest first."""
        if limit <= 0:
            return []
        rows = self._db.list_rate_history(code=code.upper(), limit=limit)
        return [_row_to_point(r) for r in rows]

    def all(
        self, code: Optional[str] = None, limit: Optional[int] = None
    ) -> List[RateHistoryPoint]:
        rows = self._db.list_rate_history(
            code=code.upper() if code else None, limit=limit
        )
        return [_row_to_point(r) for r in rows]

    def trend(self, code: str, window: int = DEFAULT_TREND_WINDOW) -> List[RateHistoryPoint]:
        """Sparkline window; empty unless at least two samples exist."""
        points = self.recent(code, window)
        return points if len(points) >= 2 else []


__all__ = ["RateHistoryStore", "DEFAULT_TREND_WINDOW"]
