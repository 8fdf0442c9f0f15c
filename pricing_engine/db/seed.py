"""Seeding helpers for currency settings.

``default_currency_settings`` is what the settings store falls back to when
nothing has been saved yet: a lone USD base currency in manual mode.
``seed_currency_catalog`` installs the full storefront catalog (USD base plus
EUR, GBP, AED and UGX) in simulated mode; existing settings are replaced.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pricing_engine.models import (
    CurrencyConfig,
    CurrencyMode,
    MultiCurrencySettings,
    RoundingPolicy,
    DEFAULT_BASE_CURRENCY,
)

if TYPE_CHECKING:  # pragma: no cover
    from pricing_engine.services.currency_store import CurrencySettingsStore

BASE_CURRENCY_CONFIG = CurrencyConfig(
    code=DEFAULT_BASE_CURRENCY,
    name="US Dollar",
    symbol="$",
    exchange_rate=1.0,
    rounding=RoundingPolicy.DECIMALS_2,
    is_base=True,
)

STOREFRONT_CATALOG = (
    BASE_CURRENCY_CONFIG,
    CurrencyConfig(
        code="EUR", name="Euro", symbol="€", exchange_rate=0.92,
        margin_percent=1.5, tax_percent=20, rounding=RoundingPolicy.DECIMALS_2,
    ),
    CurrencyConfig(
        code="GBP", name="British Pound", symbol="£", exchange_rate=0.79,
        margin_percent=2, tax_percent=20, rounding=RoundingPolicy.DECIMALS_2,
    ),
    CurrencyConfig(
        code="AED", name="UAE Dirham", symbol="AED", exchange_rate=3.67,
        margin_percent=0, tax_percent=5, rounding=RoundingPolicy.DECIMALS_2,
    ),
    CurrencyConfig(
        code="UGX", name="Ugandan Shilling", symbol="USh", exchange_rate=3800,
        margin_percent=5, tax_percent=0, rounding=RoundingPolicy.NEAREST_100,
    ),
)


def default_currency_settings() -> MultiCurrencySettings:
    return MultiCurrencySettings(
        base_currency=DEFAULT_BASE_CURRENCY,
        currencies=[BASE_CURRENCY_CONFIG],
        mode=CurrencyMode.MANUAL,
    )


def storefront_catalog_settings(
    mode: CurrencyMode = CurrencyMode.LIVE_SIMULATED,
) -> MultiCurrencySettings:
    return MultiCurrencySettings(
        base_currency=DEFAULT_BASE_CURRENCY,
        currencies=list(STOREFRONT_CATALOG),
        mode=mode,
    )


def seed_currency_catalog(
    store: "CurrencySettingsStore",
    mode: CurrencyMode = CurrencyMode.LIVE_SIMULATED,
) -> MultiCurrencySettings:
    return store.replace(storefront_catalog_settings(mode))
