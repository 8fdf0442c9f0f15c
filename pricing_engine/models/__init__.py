"""Pydantic domain models for the storefront pricing engine."""

from .constants import (
    CurrencyMode,
    RoundingPolicy,
    DEFAULT_BASE_CURRENCY,
)  # re-export
from .currency import CurrencyConfig, MultiCurrencySettings, RateHistoryPoint

__all__ = [
    "CurrencyMode",
    "RoundingPolicy",
    "DEFAULT_BASE_CURRENCY",
    "CurrencyConfig",
    "MultiCurrencySettings",
    "RateHistoryPoint",
]
