"""
Shared test fixtures for the autotrader backend tests.

Provides reusable fixtures for:
- A fixed, in-memory indicator source
- Signal factories
- Mock broker clients
"""

from datetime import datetime, timezone
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from autotrader.exchange_clients.base import BrokerClient, Order, OrderOrigin, OrderSide, OrderType
from autotrader.indicators.base import IndicatorSource, Indicators, InjectedSignal
from autotrader.strategies.signal_generator import Signal, SignalAction

FIXED_TIME = datetime(2024, 1, 2, 15, 30, tzinfo=timezone.utc)


class FixedIndicatorSource(IndicatorSource):
    """Returns preset indicators per symbol; raises for symbols in `failing`."""

    def __init__(
        self,
        indicators: Optional[Dict[str, Indicators]] = None,
        injected: Optional[Dict[str, InjectedSignal]] = None,
        failing: Optional[Dict[str, Exception]] = None,
    ):
        self.indicators = indicators or {}
        self.injected = injected or {}
        self.failing = failing or {}
        self.calls = []

    async def get_indicators(self, symbol: str, at: datetime) -> Indicators:
        self.calls.append(symbol)
        if symbol in self.failing:
            raise self.failing[symbol]
        if symbol not in self.indicators:
            return Indicators(rsi=50.0, sma20=100.0, sma50=100.0, current_price=100.0)
        return self.indicators[symbol]

    def injected_signal(self, symbol: str, at: datetime) -> Optional[InjectedSignal]:
        return self.injected.get(symbol)


# ---------------------------------------------------------------------------
# Indicator / signal factories
# ---------------------------------------------------------------------------


@pytest.fixture
def indicator_source_factory():
    """Build a FixedIndicatorSource from keyword maps."""
    def _make(indicators=None, injected=None, failing=None):
        return FixedIndicatorSource(indicators=indicators, injected=injected, failing=failing)
    return _make


@pytest.fixture
def make_signal():
    """Create a Signal with sensible defaults."""
    def _make(symbol="AAPL", action=SignalAction.BUY, confidence=0.9, should_execute=True):
        return Signal(
            symbol=symbol,
            action=action,
            confidence=confidence,
            reason="test",
            indicators=Indicators(rsi=25.0, sma20=100.0, sma50=95.0, current_price=101.0),
            timestamp=FIXED_TIME,
            should_execute=should_execute,
        )
    return _make


# ---------------------------------------------------------------------------
# Mock broker
# ---------------------------------------------------------------------------


def make_order(order_id="order-1", symbol="AAPL", side=OrderSide.BUY, status="new", origin=OrderOrigin.UNKNOWN):
    return Order(
        id=order_id,
        symbol=symbol,
        side=side,
        qty=1.0,
        type=OrderType.MARKET,
        status=status,
        origin=origin,
    )


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def mock_broker():
    """Create a mock broker client for testing without hitting real APIs."""
    broker = MagicMock(spec=BrokerClient)
    broker.get_open_orders = AsyncMock(return_value=[])
    broker.cancel_order = AsyncMock(return_value=True)
    broker.submit_order = AsyncMock(
        side_effect=lambda request: make_order(
            order_id=f"submitted-{request.symbol}",
            symbol=request.symbol,
            side=request.side,
            status="accepted",
            origin=request.origin,
        )
    )
    broker.list_orders = AsyncMock(return_value=[])
    broker.get_positions = AsyncMock(return_value=[])
    broker.close = AsyncMock()
    broker.is_paper_trading = MagicMock(return_value=True)
    return broker
