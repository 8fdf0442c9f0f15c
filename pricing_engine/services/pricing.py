from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from pricing_engine.core.errors import InvalidAmount, UnknownCurrency
from pricing_engine.models import CurrencyConfig, MultiCurrencySettings, RoundingPolicy
from pricing_engine.services.rounding import apply_rounding, fraction_digits

"""Customer price derivation.

Pipeline, in this order:
    1. convert the base-currency amount with the currency's exchange rate
    2. apply the margin (negative margins are discounts)
    3. round under the currency's policy
    4. compute tax on the *rounded* amount
    5. total = amount + tax, never rounded again
"""


@dataclass(frozen=True)
class PriceBreakdown:
    currency: str
    base_amount: float
    exchange_rate: float
    amount: float
    tax: float
    total: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check_config(config: Optional[CurrencyConfig]) -> CurrencyConfig:
    if config is None or not isinstance(config, CurrencyConfig):
        raise UnknownCurrency("currency configuration is missing")
    rate = getattr(config, "exchange_rate", None)
    if rate is None or not isinstance(rate, (int, float)) or not math.isfinite(rate) or rate <= 0:
        raise UnknownCurrency(f"currency {config.code} has no usable exchange rate")
    if not isinstance(getattr(config, "rounding", None), RoundingPolicy):
        raise UnknownCurrency(f"currency {config.code} has no rounding policy")
    return config


def _check_amount(base_amount: float) -> float:
    if isinstance(base_amount, bool) or not isinstance(base_amount, (int, float)):
        raise InvalidAmount(f"amount must be a number, got {base_amount!r}")
    if not math.isfinite(base_amount) or base_amount <= 0:
        raise InvalidAmount(f"amount must be a positive finite number, got {base_amount!r}")
    return float(base_amount)


def price(base_amount: float, config: Optional[CurrencyConfig]) -> PriceBreakdown:
    base_amount = _check_amount(base_amount)
    config = _check_config(config)
    converted = base_amount * config.exchange_rate
    marked = converted * (1 + config.margin_percent / 100)
    amount = apply_rounding(marked, config.rounding)
    tax = amount * config.tax_percent / 100
    return PriceBreakdown(
        currency=config.code,
        base_amount=base_amount,
        exchange_rate=config.exchange_rate,
        amount=amount,
        tax=tax,
        total=amount + tax,
    )


def price_for(
    base_amount: float, currency_code: str, settings: MultiCurrencySettings
) -> PriceBreakdown:
    # amount checked first so price_for(0, "ZZZ") reports the amount
    _check_amount(base_amount)
    config = settings.find(currency_code or "")
    if config is None:
        raise UnknownCurrency(f"currency {currency_code!r} is not configured")
    return price(base_amount, config)


def format_price(breakdown: PriceBreakdown, config: CurrencyConfig, include_tax: bool = False) -> str:
    """Display string such as ``€1,104.00`` or ``USh 418,000``."""
    value = breakdown.total if include_tax else breakdown.amount
    digits = fraction_digits(config.rounding)
    symbol = config.symbol or config.code
    sep = " " if len(symbol) > 1 else ""
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{sep}{abs(value):,.{digits}f}"


__all__ = ["PriceBreakdown", "price", "price_for", "format_price"]
