from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Alpaca API (paper endpoint unless overridden)
    alpaca_api_key: str = ""
    alpaca_secret_key: str = ""
    alpaca_base_url: str = "https://paper-api.alpaca.markets"
    alpaca_timeout_seconds: float = 10.0

    # Paper broker used when no Alpaca keys are configured
    paper_starting_cash: float = 100000.0

    # Security
    cors_origins: str = "http://localhost:3000,http://localhost:3002"

    # Automation defaults
    default_watchlist: List[str] = ["AAPL", "MSFT", "GOOGL", "TSLA", "SPY"]
    max_position_size: int = 10  # shares per trade at confidence 1.0
    min_confidence: float = 0.7  # loop execution threshold
    default_interval_minutes: int = 10
    skip_if_busy: bool = True  # skip a tick while the previous cycle is still running
    autostart: bool = False

    # Signal generator
    signal_min_confidence: float = 0.6
    rsi_oversold: int = 30
    rsi_overbought: int = 70

    # Rate limiting delays (seconds)
    batch_delay_seconds: float = 0.1
    trade_delay_seconds: float = 1.0
    cancel_settle_seconds: float = 1.0

    # Synthetic indicator source
    indicator_bucket_seconds: int = 300  # indicators change every 5 minutes
    test_signal_bucket_seconds: int = 180  # injected test signals change every 3 minutes
    synthetic_test_signals: bool = True

    # Logging
    log_level: str = "INFO"

    @field_validator("default_watchlist")
    @classmethod
    def normalize_watchlist(cls, v: List[str]) -> List[str]:
        """Uppercase and strip symbols, dropping blanks"""
        return [s.strip().upper() for s in v if s and s.strip()]

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def has_alpaca_credentials(self) -> bool:
        return bool(self.alpaca_api_key and self.alpaca_secret_key)

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
