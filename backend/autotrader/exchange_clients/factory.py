"""
Broker Client Factory

Picks the broker implementation from configuration: Alpaca when API keys
are configured, otherwise the in-memory paper client.
"""

import logging
from typing import Optional

from autotrader.config import Settings
from autotrader.exchange_clients.alpaca_client import AlpacaClient
from autotrader.exchange_clients.base import BrokerClient
from autotrader.exchange_clients.paper_trading_client import PaperTradingClient, PriceLookup

logger = logging.getLogger(__name__)


def create_broker_client(
    settings: Settings,
    price_lookup: Optional[PriceLookup] = None,
) -> BrokerClient:
    """
    Factory function to create the broker client for this process.

    Args:
        settings: Application settings (credentials, base URL, timeout)
        price_lookup: Async symbol -> price callable used by the paper client
            to fill market orders. Ignored for Alpaca.

    Returns:
        AlpacaClient or PaperTradingClient
    """
    if settings.has_alpaca_credentials:
        return AlpacaClient(
            api_key=settings.alpaca_api_key,
            secret_key=settings.alpaca_secret_key,
            base_url=settings.alpaca_base_url,
            timeout=settings.alpaca_timeout_seconds,
        )

    logger.warning("ALPACA_API_KEY / ALPACA_SECRET_KEY not set - using in-memory paper trading client")
    return PaperTradingClient(
        starting_cash=settings.paper_starting_cash,
        price_lookup=price_lookup,
    )
