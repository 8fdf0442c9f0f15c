"""Domain constants and enumerations for validation."""

from enum import Enum


class RoundingPolicy(str, Enum):
    NONE = "none"
    DECIMALS_2 = "decimals_2"
    NEAREST_1 = "nearest_1"
    NEAREST_5 = "nearest_5"
    NEAREST_100 = "nearest_100"


class CurrencyMode(str, Enum):
    MANUAL = "manual"
    LIVE_SIMULATED = "live_simulated"


DEFAULT_BASE_CURRENCY = "USD"
CURRENCY_CODE_PATTERN = r"^[A-Z]{3}$"
