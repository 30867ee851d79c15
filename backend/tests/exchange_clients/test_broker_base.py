"""
Tests for backend/autotrader/exchange_clients/base.py

Covers:
- OrderRequest validation and enum coercion
- origin <-> client_order_id mapping
- Order.to_dict serialization
"""

from datetime import datetime, timezone

import pytest

from autotrader.exceptions import ValidationError
from autotrader.exchange_clients.base import (
    Order,
    OrderOrigin,
    OrderRequest,
    OrderSide,
    OrderType,
    TimeInForce,
    build_client_order_id,
    origin_from_client_order_id,
)


class TestOrderRequest:

    def test_defaults_and_coercion(self):
        """Happy path: plain strings become enums; market/day/manual by default."""
        request = OrderRequest(symbol="AAPL", qty=3, side="sell")
        assert request.side is OrderSide.SELL
        assert request.type is OrderType.MARKET
        assert request.time_in_force is TimeInForce.DAY
        assert request.origin is OrderOrigin.MANUAL

    @pytest.mark.parametrize("symbol", ["aapl", "", "AAPL1", "ABCDEFGHIJK", None])
    def test_invalid_symbol(self, symbol):
        """Failure case: symbols must be 1-10 uppercase letters."""
        with pytest.raises(ValidationError):
            OrderRequest(symbol=symbol, qty=1, side="buy")

    @pytest.mark.parametrize("qty", [0, -1, None])
    def test_invalid_qty(self, qty):
        """Failure case: quantity must be positive."""
        with pytest.raises(ValidationError):
            OrderRequest(symbol="AAPL", qty=qty, side="buy")

    def test_stop_limit_needs_both_prices(self):
        """Failure case: stop_limit without a stop price."""
        with pytest.raises(ValidationError, match="stop price"):
            OrderRequest(symbol="AAPL", qty=1, side="buy", type="stop_limit", limit_price=10.0)

    def test_unknown_side_raises(self):
        """Failure case: side outside buy/sell."""
        with pytest.raises(ValueError):
            OrderRequest(symbol="AAPL", qty=1, side="short")


class TestOrigin:

    def test_round_trip_through_client_order_id(self):
        """Happy path: the prefix identifies who placed the order."""
        for origin in (OrderOrigin.AUTOMATION, OrderOrigin.MANUAL):
            assert origin_from_client_order_id(build_client_order_id(origin)) is origin

    def test_ids_are_unique(self):
        """Happy path: every id gets a fresh suffix."""
        assert build_client_order_id(OrderOrigin.AUTOMATION) != build_client_order_id(OrderOrigin.AUTOMATION)

    def test_unknown_origin(self):
        """Edge case: UNKNOWN has no id, foreign ids map to UNKNOWN."""
        assert build_client_order_id(OrderOrigin.UNKNOWN) is None
        assert origin_from_client_order_id(None) is OrderOrigin.UNKNOWN
        assert origin_from_client_order_id("automationX") is OrderOrigin.UNKNOWN


class TestOrderToDict:

    def test_serializes_enums_and_times(self):
        """Happy path: JSON-friendly output."""
        order = Order(
            id="1", symbol="AAPL", side=OrderSide.BUY, qty=1.0, type=OrderType.MARKET,
            status="new", origin=OrderOrigin.MANUAL,
            created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )
        data = order.to_dict()
        assert data["side"] == "buy"
        assert data["origin"] == "manual"
        assert data["created_at"] == "2024-01-02T00:00:00+00:00"
        assert data["filled_at"] is None
