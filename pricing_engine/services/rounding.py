"""Money / rounding helpers.

Centralized so pricing, simulation and any display code use identical
rounding semantics. Every policy rounds half away from zero
(``ROUND_HALF_UP`` in :mod:`decimal` terms); negative amounts keep their sign.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Union

from pricing_engine.core.errors import InvalidAmount
from pricing_engine.models.constants import RoundingPolicy

# policy -> quantization step
_STEPS = {
    RoundingPolicy.DECIMALS_2: Decimal("0.01"),
    RoundingPolicy.NEAREST_1: Decimal("1"),
    RoundingPolicy.NEAREST_5: Decimal("5"),
    RoundingPolicy.NEAREST_100: Decimal("100"),
}


def _to_decimal(value: float) -> Decimal:
    # str() keeps the shortest repr, so 2.675 stays 2.675 rather than 2.67499...
    return Decimal(str(value))


def _quantize(d: Decimal, exp: Decimal) -> Decimal:
    with localcontext() as ctx:
        # quantize needs every integer digit plus the kept fraction digits
        ctx.prec = max(ctx.prec, d.adjusted() - exp.as_tuple().exponent + 2)
        return d.quantize(exp, rounding=ROUND_HALF_UP)


def quantize(value: float, step: Decimal) -> float:
    units = _quantize(_to_decimal(value) / step, Decimal("1"))
    return float(units * step)


def round2(value: float) -> float:
    return float(_quantize(_to_decimal(value), Decimal("0.01")))


def round_places(value: float, places: int) -> float:
    return float(_quantize(_to_decimal(value), Decimal(1).scaleb(-places)))


def apply_rounding(amount: float, policy: Union[RoundingPolicy, str]) -> float:
    """Round ``amount`` under the named policy.

    Raises InvalidAmount for NaN / infinite input and ValueError for an
    unrecognized policy name.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount(f"amount must be a number, got {amount!r}")
    if not math.isfinite(amount):
        raise InvalidAmount(f"amount must be finite, got {amount!r}")
    policy = RoundingPolicy(policy)
    if policy is RoundingPolicy.NONE:
        return float(amount)
    if policy is RoundingPolicy.DECIMALS_2:
        return round2(amount)
    return quantize(amount, _STEPS[policy])


def fraction_digits(policy: Union[RoundingPolicy, str]) -> int:
    """Digits shown when formatting an amount rounded under ``policy``."""
    return 2 if RoundingPolicy(policy) is RoundingPolicy.DECIMALS_2 else 0


__all__ = ["apply_rounding", "round2", "round_places", "quantize", "fraction_digits"]
