"""
Tests for backend/autotrader/config.py and backend/autotrader/exceptions.py
"""

from autotrader.config import Settings
from autotrader.exceptions import (
    BrokerError,
    BrokerUnavailableError,
    InsufficientBuyingPowerError,
    OrderRejectedError,
    RateLimitError,
)


class TestSettings:

    def test_defaults(self, monkeypatch):
        """Happy path: paper endpoint and default loop parameters."""
        for name in ("ALPACA_API_KEY", "ALPACA_SECRET_KEY", "ALPACA_BASE_URL", "MAX_POSITION_SIZE", "MIN_CONFIDENCE"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.alpaca_base_url == "https://paper-api.alpaca.markets"
        assert settings.max_position_size == 10
        assert settings.min_confidence == 0.7
        assert settings.signal_min_confidence == 0.6
        assert settings.has_alpaca_credentials is False

    def test_env_overrides(self, monkeypatch):
        """Happy path: environment variables are case-insensitive."""
        monkeypatch.setenv("alpaca_api_key", "key")
        monkeypatch.setenv("ALPACA_SECRET_KEY", "secret")
        monkeypatch.setenv("SKIP_IF_BUSY", "false")
        settings = Settings(_env_file=None)
        assert settings.has_alpaca_credentials is True
        assert settings.skip_if_busy is False

    def test_watchlist_normalized(self):
        """Edge case: symbols are stripped and uppercased, blanks dropped."""
        settings = Settings(_env_file=None, default_watchlist=[" aapl", "", "msft "])
        assert settings.default_watchlist == ["AAPL", "MSFT"]

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a, http://b ,")
        assert settings.get_cors_origins_list() == ["http://a", "http://b"]


class TestExceptions:

    def test_status_codes(self):
        """Happy path: each broker error carries its HTTP-equivalent status."""
        assert BrokerError().status_code == 502
        assert BrokerUnavailableError().status_code == 503
        assert RateLimitError("slow down").status_code == 429
        rejected = OrderRejectedError("bad qty", broker_status=422)
        assert rejected.status_code == 400
        assert rejected.broker_status == 422
        assert isinstance(rejected, BrokerError)

    def test_insufficient_buying_power_message(self):
        err = InsufficientBuyingPowerError(required=1000.0, available=250.5)
        assert err.message == "Insufficient buying power: required 1000.00, available 250.50"
        assert err.status_code == 400
