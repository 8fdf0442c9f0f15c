"""Currency service facade consumed by the admin API and pricing callers.

Wires the settings store, rate history and simulation engine together over a
single Database. Build one per process with ``build_currency_service`` and
share it; all writes are serialized by the settings store.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

from pricing_engine.core.config import Settings
from pricing_engine.core.errors import UnknownCurrency
from pricing_engine.db.dal import Database
from pricing_engine.models import CurrencyConfig, MultiCurrencySettings, RateHistoryPoint
from pricing_engine.services.currency_store import Clock, CurrencySettingsStore
from pricing_engine.services import pricing
from pricing_engine.services.pricing import PriceBreakdown
from pricing_engine.services.rate_history import DEFAULT_TREND_WINDOW, RateHistoryStore
from pricing_engine.services.simulation import RateSimulationEngine

logger = logging.getLogger("pricing.currency")

ACTIVITY_CATEGORY = "currency"


class CurrencyService:
    def __init__(
        self,
        db: Database,
        store: CurrencySettingsStore,
        history: RateHistoryStore,
        engine: RateSimulationEngine,
        trend_window: int = DEFAULT_TREND_WINDOW,
    ):
        self.db = db
        self.store = store
        self.history = history
        self.engine = engine
        self.trend_window = trend_window

    # Settings -------------------------------------------------
    def get_settings(self) -> MultiCurrencySettings:
        return self.store.get()

    def update_settings(
        self, settings: MultiCurrencySettings, author: str = "Admin"
    ) -> MultiCurrencySettings:
        """Replace the settings wholesale and record the change in the activity log.

        ``settings.last_updated`` acts as the expected version: when present the
        save is rejected with StaleSettings if someone else committed first.
        """
        with self.store.writer() as cur:
            committed = self.store.replace(
                settings, expected_last_updated=settings.last_updated, cur=cur
            )
            self.db.append_activity(
                ACTIVITY_CATEGORY,
                "Config Update",
                "Currency rates/rules updated",
                author=author,
                details={"mode": committed.mode.value, "currencies": [c.code for c in committed.currencies]},
                cur=cur,
            )
        logger.info(
            "currency settings replaced",
            extra={"author": author, "mode": committed.mode.value},
        )
        return committed

    def active_currencies(self) -> List[CurrencyConfig]:
        return self.get_settings().active()

    # History / simulation -------------------------------------
    def get_history(
        self, code: Optional[str] = None, limit: Optional[int] = None
    ) -> List[RateHistoryPoint]:
        return self.history.all(code=code, limit=limit)

    def trend(self, code: str) -> List[RateHistoryPoint]:
        if self.get_settings().find(code) is None:
            raise UnknownCurrency(f"currency {code!r} is not configured")
        return self.history.trend(code, self.trend_window)

    def simulate_tick(self) -> MultiCurrencySettings:
        return self.engine.tick()

    # Pricing --------------------------------------------------
    def price_for(self, base_amount: float, currency_code: str) -> PriceBreakdown:
        return pricing.price_for(base_amount, currency_code, self.get_settings())

    def format_price(
        self, base_amount: float, currency_code: str, include_tax: bool = False
    ) -> Dict[str, Any]:
        settings = self.get_settings()
        breakdown = pricing.price_for(base_amount, currency_code, settings)
        config = settings.find(currency_code)
        return {
            **breakdown.as_dict(),
            "formatted": pricing.format_price(breakdown, config, include_tax=include_tax),
        }


def build_currency_service(
    settings: Settings,
    rng: Optional[random.Random] = None,
    clock: Optional[Clock] = None,
) -> CurrencyService:
    db = Database(settings.db_path)  # type: ignore[arg-type]
    store = CurrencySettingsStore(db, clock=clock)
    history = RateHistoryStore(db, retention=settings.rate_history_retention)
    if rng is None:
        rng = random.Random(settings.simulation_seed)
    engine = RateSimulationEngine(
        store,
        history,
        rng=rng,
        drift_bound=settings.rate_drift_bound,
        precision=settings.rate_precision,
        min_rate=settings.min_exchange_rate,
    )
    return CurrencyService(db, store, history, engine, trend_window=settings.trend_window)


__all__ = ["CurrencyService", "build_currency_service"]
