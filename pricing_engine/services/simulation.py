"""Simulated live exchange-rate feed.

Each ``tick()`` moves every non-base rate by a bounded multiplicative random
walk, ``new = old * (1 + drift)`` with ``drift`` uniform in
``[-drift_bound, +drift_bound]``, rounded to ``precision`` places and floored
at ``min_rate``. The history samples and the settings write share one
transaction: a tick is committed whole or not at all.

Ticks are only accepted in ``live_simulated`` mode; otherwise ModeMismatch.
Concurrent ticks queue on the settings store's writer lock.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional

from pricing_engine.core.errors import ModeMismatch
from pricing_engine.models import (
    CurrencyConfig,
    CurrencyMode,
    MultiCurrencySettings,
    RateHistoryPoint,
)
from pricing_engine.services.currency_store import CurrencySettingsStore
from pricing_engine.services.rate_history import RateHistoryStore
from pricing_engine.services.rounding import round_places

logger = logging.getLogger("pricing.simulation")

DEFAULT_DRIFT_BOUND = 0.02
DEFAULT_PRECISION = 4
DEFAULT_MIN_RATE = 0.0001


class RateSimulationEngine:
    def __init__(
        self,
        settings_store: CurrencySettingsStore,
        history: RateHistoryStore,
        rng: Optional[random.Random] = None,
        drift_bound: float = DEFAULT_DRIFT_BOUND,
        precision: int = DEFAULT_PRECISION,
        min_rate: float = DEFAULT_MIN_RATE,
    ):
        if not (0 < drift_bound < 1):
            raise ValueError("drift_bound must be in (0, 1)")
        if min_rate <= 0:
            raise ValueError("min_rate must be positive")
        self._store = settings_store
        self._history = history
        self._rng = rng or random.Random()
        self._drift_bound = drift_bound
        self._precision = precision
        self._min_rate = min_rate

    @property
    def drift_bound(self) -> float:
        return self._drift_bound

    def next_rate(self, old_rate: float) -> float:
        drift = self._rng.uniform(-self._drift_bound, self._drift_bound)
        new_rate = round_places(old_rate * (1 + drift), self._precision)
        return max(new_rate, self._min_rate)

    def _walk(self, settings: MultiCurrencySettings) -> List[CurrencyConfig]:
        return [
            c if c.is_base else c.model_copy(update={"exchange_rate": self.next_rate(c.exchange_rate)})
            for c in settings.currencies
        ]

    def tick(self) -> MultiCurrencySettings:
        with self._store.writer() as cur:
            current = self._store.current(cur)
            if current.mode is not CurrencyMode.LIVE_SIMULATED:
                raise ModeMismatch(
                    f"rate simulation requires mode '{CurrencyMode.LIVE_SIMULATED.value}', "
                    f"settings are in '{current.mode.value}'"
                )
            now = self._store.next_timestamp(current)
            updated = current.model_copy(update={"currencies": self._walk(current)})
            points = [
                RateHistoryPoint(code=c.code, rate=c.exchange_rate, timestamp=now)
                for c in updated.non_base()
            ]
            self._history.append(points, cur=cur, base_currency=current.base_currency)
            committed = self._store.replace(
                updated, expected_last_updated=current.last_updated, cur=cur
            )
        logger.info(
            "rate tick committed",
            extra={
                "rates": {c.code: c.exchange_rate for c in committed.non_base()},
                "samples": len(points),
            },
        )
        return committed


__all__ = ["RateSimulationEngine", "DEFAULT_DRIFT_BOUND"]
