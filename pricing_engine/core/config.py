from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    DATA_DIR, DB_FILENAME, RATE_DRIFT_BOUND, SIMULATION_INTERVAL_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Storefront Pricing Engine"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "pricing.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Rate simulation
    rate_drift_bound: float = 0.02  # +/- 2% per tick
    rate_precision: int = 4
    min_exchange_rate: float = 0.0001
    simulation_interval_seconds: float = 0.0  # 0 disables the background ticker
    simulation_seed: Optional[int] = None

    # Rate history
    rate_history_retention: int = 500  # newest rows kept; 0 keeps everything
    trend_window: int = 20

    def init_post_load(self) -> None:
        """Finalize derived fields, validate tunables and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if not (0 < self.rate_drift_bound < 1):
            raise ValueError(
                f"rate_drift_bound must be in (0, 1), got {self.rate_drift_bound}"
            )
        if self.min_exchange_rate <= 0:
            raise ValueError("min_exchange_rate must be positive")
        if self.rate_history_retention < 0:
            raise ValueError("rate_history_retention cannot be negative")
        if self.trend_window < 2:
            raise ValueError("trend_window must be at least 2")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
