"""Authoritative multi-currency settings store.

The settings live as a single JSON document (``currency_settings``) in the
generic document table. All writers share one re-entrant lock owned by the
store plus an SQLite ``BEGIN IMMEDIATE`` transaction, so a manual save and a
simulation tick are applied one after the other and never merged.

Invariant names used in ``InvalidConfig``:
  - non_empty, code_format, unique_codes, known_rounding
  - positive_rate, finite_margin, non_negative_tax
  - single_base, base_rate_is_one, base_currency_matches
"""

from __future__ import annotations

import logging
import math
import re
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from pydantic import ValidationError

from pricing_engine.core.errors import InvalidConfig, StaleSettings
from pricing_engine.db.dal import Database
from pricing_engine.db.seed import default_currency_settings
from pricing_engine.models import MultiCurrencySettings, RoundingPolicy
from pricing_engine.models.constants import CURRENCY_CODE_PATTERN

logger = logging.getLogger("pricing.settings")

SETTINGS_DOCUMENT_KEY = "currency_settings"
_CODE_RE = re.compile(CURRENCY_CODE_PATTERN)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_settings(settings: MultiCurrencySettings) -> None:
    """Raise InvalidConfig naming the first broken invariant."""
    currencies = settings.currencies
    if not currencies:
        raise InvalidConfig("non_empty", "at least one currency is required")

    seen = set()
    for c in currencies:
        if not _CODE_RE.match(c.code):
            raise InvalidConfig("code_format", f"{c.code!r} is not a three letter code")
        if c.code in seen:
            raise InvalidConfig("unique_codes", f"currency {c.code} appears more than once")
        seen.add(c.code)
        if not isinstance(c.rounding, RoundingPolicy):
            raise InvalidConfig("known_rounding", f"{c.code} has unknown rounding {c.rounding!r}")
        if not math.isfinite(c.exchange_rate) or c.exchange_rate <= 0:
            raise InvalidConfig(
                "positive_rate", f"{c.code} exchange rate must be > 0, got {c.exchange_rate}"
            )
        if not math.isfinite(c.margin_percent):
            raise InvalidConfig("finite_margin", f"{c.code} margin must be finite")
        if not math.isfinite(c.tax_percent) or c.tax_percent < 0:
            raise InvalidConfig(
                "non_negative_tax", f"{c.code} tax must be >= 0, got {c.tax_percent}"
            )

    bases = [c for c in currencies if c.is_base]
    if len(bases) != 1:
        raise InvalidConfig(
            "single_base", f"exactly one base currency required, found {len(bases)}"
        )
    base = bases[0]
    if base.exchange_rate != 1.0:
        raise InvalidConfig(
            "base_rate_is_one", f"base currency {base.code} must have rate 1.0"
        )
    if settings.base_currency != base.code:
        raise InvalidConfig(
            "base_currency_matches",
            f"base_currency {settings.base_currency} does not match base config {base.code}",
        )


class CurrencySettingsStore:
    def __init__(self, db: Database, clock: Optional[Clock] = None):
        self._db = db
        self._clock = clock or utc_now
        self._lock = threading.RLock()

    # Internal --------------------------------------------------
    def _load(self, cur: Optional[sqlite3.Cursor] = None) -> Optional[MultiCurrencySettings]:
        raw = self._db.get_document(SETTINGS_DOCUMENT_KEY, cur=cur)
        if raw is None:
            return None
        try:
            return MultiCurrencySettings.model_validate(raw)
        except ValidationError as e:
            raise InvalidConfig("stored_document", f"stored settings are unreadable: {e}") from e

    def next_timestamp(self, current: Optional[MultiCurrencySettings]) -> datetime:
        """Commit time, never earlier than the previous stamp."""
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if current is not None and current.last_updated is not None:
            now = max(now, current.last_updated)
        return now

    # Public API -----------------------------------------------
    @contextmanager
    def writer(self) -> Iterator[sqlite3.Cursor]:
        """Hold the single-writer lock and an open write transaction."""
        with self._lock:
            with self._db.transaction() as cur:
                yield cur

    def get(self) -> MultiCurrencySettings:
        current = self._load()
        if current is not None:
            return current
        with self.writer() as cur:
            current = self._load(cur)
            if current is None:
                current = self._commit(cur, default_currency_settings(), None)
                logger.info(
                    "default currency settings created",
                    extra={"base_currency": current.base_currency},
                )
        return current

    def current(self, cur: sqlite3.Cursor) -> MultiCurrencySettings:
        """Settings as seen inside an open write transaction (default when empty)."""
        loaded = self._load(cur)
        return loaded if loaded is not None else default_currency_settings()

    def replace(
        self,
        settings: MultiCurrencySettings,
        expected_last_updated: Optional[datetime] = None,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> MultiCurrencySettings:
        """Validate then commit ``settings`` wholesale; returns the stamped copy.

        When ``expected_last_updated`` is given the write only succeeds if the
        stored settings still carry that stamp.
        """
        validate_settings(settings)
        if cur is not None:
            with self._lock:
                return self._commit(cur, settings, expected_last_updated)
        with self.writer() as own:
            return self._commit(own, settings, expected_last_updated)

    def _commit(
        self,
        cur: sqlite3.Cursor,
        settings: MultiCurrencySettings,
        expected_last_updated: Optional[datetime],
    ) -> MultiCurrencySettings:
        current = self._load(cur)
        if expected_last_updated is not None:
            stored = current.last_updated if current is not None else None
            if stored != expected_last_updated:
                logger.warning(
                    "stale settings write rejected",
                    extra={"expected": expected_last_updated, "stored": stored},
                )
                raise StaleSettings(
                    "settings were modified since they were read; reload and retry"
                )
        stamped = settings.model_copy(update={"last_updated": self.next_timestamp(current)})
        self._db.save_document(SETTINGS_DOCUMENT_KEY, stamped.model_dump(mode="json"), cur=cur)
        logger.debug(
            "currency settings written",
            extra={"mode": stamped.mode.value, "currencies": len(stamped.currencies)},
        )
        return stamped


__all__ = [
    "CurrencySettingsStore",
    "SETTINGS_DOCUMENT_KEY",
    "validate_settings",
    "utc_now",
]
