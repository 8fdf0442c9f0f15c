"""Smoke script for the simulated rate feed.

Sequence:
 1. Build the service on a temp DB and seed the storefront catalog.
 2. Price 100 USD in every active currency.
 3. Run a handful of seeded ticks.
 4. Show the EUR trend window and re-price.
 5. Switch to manual mode and show the tick being rejected.
"""

import os
import random
import tempfile
from pathlib import Path
from pprint import pprint

from pricing_engine.core.config import Settings
from pricing_engine.core.errors import ModeMismatch
from pricing_engine.db.seed import seed_currency_catalog
from pricing_engine.models import CurrencyMode
from pricing_engine.services.currency_service import build_currency_service


def run(ticks: int = 5):
    fd, temp_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    settings = Settings(db_path=Path(temp_path))
    settings.init_post_load()
    svc = build_currency_service(settings, rng=random.Random(42))
    output = {}

    seed_currency_catalog(svc.store)
    output["baseline"] = {
        c.code: svc.format_price(100, c.code, include_tax=True)["formatted"]
        for c in svc.active_currencies()
    }

    for _ in range(ticks):
        svc.simulate_tick()
    output["eur_trend"] = [p.rate for p in svc.trend("EUR")]
    output["after_ticks"] = {
        c.code: svc.format_price(100, c.code, include_tax=True)["formatted"]
        for c in svc.active_currencies()
    }

    current = svc.get_settings()
    svc.update_settings(current.model_copy(update={"mode": CurrencyMode.MANUAL}))
    try:
        svc.simulate_tick()
        output["manual_tick"] = "unexpectedly accepted"
    except ModeMismatch as e:
        output["manual_tick"] = f"rejected: {e.detail}"

    output["activity"] = [a["action"] for a in svc.db.list_activity("currency")]
    pprint(output)
    os.remove(temp_path)


if __name__ == "__main__":
    run()
