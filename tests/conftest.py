import random
from datetime import datetime, timedelta, timezone

import pytest

from pricing_engine.core.config import Settings
from pricing_engine.db.dal import Database
from pricing_engine.db.seed import seed_currency_catalog
from pricing_engine.services.currency_service import build_currency_service
from pricing_engine.services.currency_store import CurrencySettingsStore
from pricing_engine.services.rate_history import RateHistoryStore
from pricing_engine.services.simulation import RateSimulationEngine

EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = EPOCH, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db(tmp_path) -> Database:
    return Database(tmp_path / "pricing.sqlite3")


@pytest.fixture
def store(db, clock) -> CurrencySettingsStore:
    return CurrencySettingsStore(db, clock=clock)


@pytest.fixture
def history(db) -> RateHistoryStore:
    return RateHistoryStore(db)


@pytest.fixture
def engine(store, history) -> RateSimulationEngine:
    return RateSimulationEngine(store, history, rng=random.Random(7))


@pytest.fixture
def seeded_store(store):
    seed_currency_catalog(store)
    return store


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    settings = Settings(db_path=tmp_path / "api.sqlite3", data_dir=tmp_path)
    settings.init_post_load()
    return settings


@pytest.fixture
def service(app_settings, clock):
    return build_currency_service(app_settings, rng=random.Random(11), clock=clock)
