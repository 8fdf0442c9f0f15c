import math
import threading
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from pricing_engine.core.errors import InvalidConfig, StaleSettings
from pricing_engine.db.seed import storefront_catalog_settings
from pricing_engine.models import (
    CurrencyConfig,
    CurrencyMode,
    MultiCurrencySettings,
    RoundingPolicy,
)
from pricing_engine.services.currency_store import (
    SETTINGS_DOCUMENT_KEY,
    CurrencySettingsStore,
    validate_settings,
)

USD = CurrencyConfig(code="USD", name="US Dollar", exchange_rate=1.0, is_base=True)
EUR = CurrencyConfig(code="EUR", name="Euro", exchange_rate=0.92, tax_percent=20)
GBP = CurrencyConfig(code="GBP", name="British Pound", exchange_rate=0.79)


def settings_with(*currencies, base="USD", mode=CurrencyMode.MANUAL) -> MultiCurrencySettings:
    return MultiCurrencySettings(base_currency=base, currencies=list(currencies), mode=mode)


class TestDefaults:
    def test_get_creates_default_once(self, store, db):
        first = store.get()
        assert first.base_currency == "USD"
        assert first.mode is CurrencyMode.MANUAL
        assert len(first.currencies) == 1
        assert first.currencies[0].is_base and first.currencies[0].exchange_rate == 1.0
        assert first.last_updated is not None
        assert db.get_document(SETTINGS_DOCUMENT_KEY) is not None
        assert store.get() == first


class TestReplace:
    def test_replace_commits_and_stamps(self, store, clock):
        committed = store.replace(settings_with(USD, EUR))
        assert committed.last_updated == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert store.get() == committed
        assert [c.code for c in store.get().currencies] == ["USD", "EUR"]

    def test_last_updated_never_goes_backwards(self, db):
        fixed = datetime(2026, 6, 1, tzinfo=timezone.utc)
        earlier = datetime(2025, 1, 1, tzinfo=timezone.utc)
        times = iter([fixed, earlier])
        store = CurrencySettingsStore(db, clock=lambda: next(times))
        store.replace(settings_with(USD))
        second = store.replace(settings_with(USD, EUR))
        assert second.last_updated == fixed

    def test_mode_switch_goes_through_replace(self, store):
        store.replace(settings_with(USD, EUR))
        switched = store.replace(settings_with(USD, EUR, mode=CurrencyMode.LIVE_SIMULATED))
        assert switched.mode is CurrencyMode.LIVE_SIMULATED
        assert store.get().mode is CurrencyMode.LIVE_SIMULATED

    def test_codes_are_normalized(self, store):
        committed = store.replace(
            MultiCurrencySettings(
                base_currency="usd",
                currencies=[USD, CurrencyConfig(code="eur", exchange_rate=0.9)],
            )
        )
        assert committed.base_currency == "USD"
        assert committed.find("EUR") is not None


class TestInvariants:
    @pytest.mark.parametrize(
        "settings,invariant",
        [
            (settings_with(), "non_empty"),
            (settings_with(USD, EUR.model_copy(update={"code": "EURO"})), "code_format"),
            (settings_with(USD, EUR, EUR), "unique_codes"),
            (settings_with(USD, EUR.model_copy(update={"exchange_rate": 0.0})), "positive_rate"),
            (settings_with(USD, EUR.model_copy(update={"exchange_rate": -1.0})), "positive_rate"),
            (settings_with(USD, EUR.model_copy(update={"exchange_rate": math.nan})), "positive_rate"),
            (settings_with(USD, EUR.model_copy(update={"tax_percent": -5.0})), "non_negative_tax"),
            (settings_with(USD, EUR.model_copy(update={"margin_percent": math.inf})), "finite_margin"),
            (settings_with(EUR, GBP), "single_base"),
            (settings_with(USD, EUR.model_copy(update={"is_base": True, "exchange_rate": 1.0})), "single_base"),
            (settings_with(USD.model_copy(update={"exchange_rate": 1.5}), EUR), "base_rate_is_one"),
            (settings_with(USD, EUR, base="EUR"), "base_currency_matches"),
        ],
    )
    def test_violations_are_named(self, store, settings, invariant):
        with pytest.raises(InvalidConfig) as exc:
            store.replace(settings)
        assert exc.value.invariant == invariant
        assert invariant in str(exc.value)

    def test_failed_replace_leaves_state_unchanged(self, store):
        good = store.replace(settings_with(USD, EUR))
        with pytest.raises(InvalidConfig):
            store.replace(settings_with(EUR, GBP))
        assert store.get() == good

    def test_unknown_rounding_is_rejected_not_defaulted(self):
        with pytest.raises(ValidationError):
            CurrencyConfig(code="EUR", exchange_rate=0.9, rounding="nearest_10")

    def test_catalog_is_valid(self):
        validate_settings(storefront_catalog_settings())

    def test_every_rounding_policy_accepted(self, store):
        configs = [USD] + [
            CurrencyConfig(code=code, exchange_rate=2.0, rounding=policy)
            for code, policy in zip(["AAA", "BBB", "CCC", "DDD", "EEE"], RoundingPolicy)
        ]
        assert len(store.replace(settings_with(*configs)).currencies) == 6


class TestConcurrentWriters:
    def test_stale_write_is_rejected(self, store):
        read_a = store.get()
        read_b = store.get()
        winner = store.replace(
            settings_with(USD, EUR), expected_last_updated=read_a.last_updated
        )
        with pytest.raises(StaleSettings):
            store.replace(settings_with(USD, GBP), expected_last_updated=read_b.last_updated)
        assert store.get() == winner

    def test_racing_threads_one_winner(self, store):
        snapshot = store.get()
        barrier = threading.Barrier(2)
        outcomes = {}

        def write(name, currencies):
            barrier.wait()
            try:
                store.replace(
                    settings_with(*currencies), expected_last_updated=snapshot.last_updated
                )
                outcomes[name] = "ok"
            except StaleSettings:
                outcomes[name] = "stale"

        threads = [
            threading.Thread(target=write, args=("eur", (USD, EUR))),
            threading.Thread(target=write, args=("gbp", (USD, GBP))),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert sorted(outcomes.values()) == ["ok", "stale"]
        winner = next(name for name, result in outcomes.items() if result == "ok")
        codes = [c.code for c in store.get().currencies]
        assert codes == (["USD", "EUR"] if winner == "eur" else ["USD", "GBP"])
