from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import CurrencyMode, RoundingPolicy


class CurrencyConfig(BaseModel):
    """One supported currency and its pricing rules.

    ``exchange_rate`` is expressed as units of this currency per 1 unit of the
    base currency. Cross-field rules (single base, positive rates, ...) are
    checked by the settings store so the failing invariant can be named.
    """

    code: str = Field(..., description="Three letter currency code (e.g. EUR)")
    name: str = ""
    symbol: str = ""
    exchange_rate: float = Field(..., description="Units per 1 base unit")
    margin_percent: float = 0.0
    tax_percent: float = 0.0
    rounding: RoundingPolicy = RoundingPolicy.DECIMALS_2
    is_active: bool = True
    is_base: bool = False

    model_config = {"frozen": True}

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class MultiCurrencySettings(BaseModel):
    base_currency: str
    currencies: List[CurrencyConfig]
    mode: CurrencyMode = CurrencyMode.MANUAL
    last_updated: Optional[datetime] = None

    model_config = {"frozen": True}

    @field_validator("base_currency")
    @classmethod
    def normalize_base(cls, v: str) -> str:
        return v.strip().upper()

    def find(self, code: str) -> Optional[CurrencyConfig]:
        code = code.strip().upper()
        for config in self.currencies:
            if config.code == code:
                return config
        return None

    def non_base(self) -> List[CurrencyConfig]:
        return [c for c in self.currencies if not c.is_base]

    def active(self) -> List[CurrencyConfig]:
        return [c for c in self.currencies if c.is_active]


class RateHistoryPoint(BaseModel):
    code: str
    rate: float = Field(..., gt=0)
    timestamp: datetime

    model_config = {"frozen": True}
