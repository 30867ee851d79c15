"""
Tests for backend/autotrader/exchange_clients/alpaca_client.py

All HTTP requests are mocked by replacing the internal httpx client.

Covers:
- JSON parsing helpers (orders, accounts, timestamps)
- _request() error translation
- order listing, cancellation and submission payloads
- origin attribution through client_order_id
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from autotrader.exceptions import (
    BrokerError,
    BrokerUnavailableError,
    OrderRejectedError,
    RateLimitError,
)
from autotrader.exchange_clients.alpaca_client import (
    AlpacaClient,
    _parse_time,
    parse_account,
    parse_order,
)
from autotrader.exchange_clients.base import OrderOrigin, OrderRequest, OrderSide, OrderType


ORDER_JSON = {
    "id": "61e69015-8549-4bfd-b9c3-01e75843f47d",
    "client_order_id": "automation_0123456789abcdef0123",
    "symbol": "AAPL",
    "side": "buy",
    "qty": "8",
    "type": "market",
    "status": "accepted",
    "filled_qty": "0",
    "filled_avg_price": None,
    "created_at": "2024-01-02T15:30:00.123456789Z",
    "submitted_at": "2024-01-02T15:30:00.1Z",
    "filled_at": None,
}


# =========================================================
# Fixtures
# =========================================================


@pytest.fixture
def alpaca_client():
    """Create an AlpacaClient with a mocked httpx client."""
    client = AlpacaClient(api_key="key", secret_key="secret")
    client._client = AsyncMock(spec=httpx.AsyncClient)
    return client


def _make_response(json_data, status_code=200):
    """Create a mock httpx.Response."""
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.text = str(json_data)
    resp.content = b"" if json_data is None else str(json_data).encode()
    resp.raise_for_status = MagicMock()
    if status_code >= 400:
        http_error = httpx.HTTPStatusError(
            "error", request=MagicMock(), response=resp,
        )
        resp.raise_for_status.side_effect = http_error
    return resp


# =========================================================
# Parsing helpers
# =========================================================


class TestParsing:

    def test_parse_time_truncates_nanoseconds(self):
        """Happy path: nanosecond Z timestamps parse to aware datetimes."""
        parsed = _parse_time("2024-01-02T15:30:00.123456789Z")
        assert parsed == datetime(2024, 1, 2, 15, 30, 0, 123456, tzinfo=timezone.utc)

    def test_parse_time_pads_short_fraction(self):
        """Edge case: one fractional digit."""
        assert _parse_time("2024-01-02T15:30:00.1Z").microsecond == 100000

    def test_parse_time_none_and_garbage(self):
        """Edge case: missing or invalid timestamps become None."""
        assert _parse_time(None) is None
        assert _parse_time("not a time") is None

    def test_parse_order(self):
        """Happy path: string numbers become floats and the origin is recovered."""
        order = parse_order(ORDER_JSON)
        assert order.id == ORDER_JSON["id"]
        assert order.side == OrderSide.BUY
        assert order.type == OrderType.MARKET
        assert order.qty == 8.0
        assert order.filled_avg_price is None
        assert order.origin == OrderOrigin.AUTOMATION

    def test_parse_order_trailing_stop(self):
        """Edge case: trailing stops placed from the Alpaca dashboard still parse."""
        data = dict(ORDER_JSON, type="trailing_stop", order_type="trailing_stop", status="new")
        order = parse_order(data)
        assert order.type == OrderType.TRAILING_STOP
        assert order.to_dict()["type"] == "trailing_stop"

    def test_parse_order_without_client_id_is_unknown(self):
        """Edge case: orders placed outside this app have no origin."""
        data = dict(ORDER_JSON, client_order_id="web-ui-123")
        assert parse_order(data).origin == OrderOrigin.UNKNOWN

    def test_parse_account(self):
        """Happy path: decimal strings become floats."""
        account = parse_account({
            "id": "acct", "account_number": "PA123", "status": "ACTIVE",
            "cash": "1000.50", "buying_power": "2001", "portfolio_value": "1500",
            "daytrade_count": 2, "daytrading_buying_power": "4000",
        })
        assert account.cash == 1000.5
        assert account.buying_power == 2001.0
        assert account.daytrade_count == 2


# =========================================================
# Init / request
# =========================================================


class TestAlpacaClientInit:

    def test_missing_keys_raise(self):
        """Failure case: both keys are required."""
        with pytest.raises(ValueError):
            AlpacaClient(api_key="", secret_key="secret")

    def test_paper_detection(self):
        """Happy path: the paper endpoint is recognised; live is not."""
        assert AlpacaClient("k", "s").is_paper_trading() is True
        assert AlpacaClient("k", "s", base_url="https://api.alpaca.markets/").is_paper_trading() is False


class TestAlpacaRequest:
    """Tests for the _request() HTTP helper."""

    @pytest.mark.asyncio
    async def test_request_success(self, alpaca_client):
        """Happy path: JSON body is returned."""
        alpaca_client._client.request = AsyncMock(return_value=_make_response({"cash": "1"}))
        assert await alpaca_client._request("GET", "/v2/account") == {"cash": "1"}

    @pytest.mark.asyncio
    async def test_request_empty_body(self, alpaca_client):
        """Edge case: 204 responses return None."""
        alpaca_client._client.request = AsyncMock(return_value=_make_response(None, status_code=204))
        assert await alpaca_client._request("DELETE", "/v2/orders/x") is None

    @pytest.mark.asyncio
    async def test_timeout_raises_unavailable(self, alpaca_client):
        """Failure case: timeouts become BrokerUnavailableError (503)."""
        alpaca_client._client.request = AsyncMock(side_effect=httpx.TimeoutException("timed out"))
        with pytest.raises(BrokerUnavailableError) as exc_info:
            await alpaca_client._request("GET", "/v2/account")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_connect_error_raises_unavailable(self, alpaca_client):
        """Failure case: connection refused becomes BrokerUnavailableError."""
        alpaca_client._client.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(BrokerUnavailableError):
            await alpaca_client._request("GET", "/v2/account")

    @pytest.mark.asyncio
    async def test_422_raises_order_rejected_with_message(self, alpaca_client):
        """Failure case: 4xx carries the broker message and status."""
        alpaca_client._client.request = AsyncMock(
            return_value=_make_response({"message": "qty must be > 0"}, status_code=422)
        )
        with pytest.raises(OrderRejectedError, match="qty must be > 0") as exc_info:
            await alpaca_client._request("POST", "/v2/orders")
        assert exc_info.value.broker_status == 422
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_429_raises_rate_limit(self, alpaca_client):
        """Failure case: 429 becomes RateLimitError."""
        alpaca_client._client.request = AsyncMock(
            return_value=_make_response({"message": "too many requests"}, status_code=429)
        )
        with pytest.raises(RateLimitError):
            await alpaca_client._request("GET", "/v2/orders")

    @pytest.mark.asyncio
    async def test_5xx_raises_broker_error(self, alpaca_client):
        """Failure case: 5xx becomes BrokerError (502)."""
        alpaca_client._client.request = AsyncMock(
            return_value=_make_response({"message": "internal"}, status_code=500)
        )
        with pytest.raises(BrokerError) as exc_info:
            await alpaca_client._request("GET", "/v2/account")
        assert exc_info.value.status_code == 502


# =========================================================
# Orders
# =========================================================


class TestAlpacaOrders:

    @pytest.mark.asyncio
    async def test_get_open_orders_filters_by_symbol(self, alpaca_client):
        """Happy path: open orders are requested for the symbol and filtered locally."""
        other = dict(ORDER_JSON, id="other", symbol="MSFT")
        alpaca_client._client.request = AsyncMock(return_value=_make_response([ORDER_JSON, other]))

        orders = await alpaca_client.get_open_orders("AAPL")

        assert [o.id for o in orders] == [ORDER_JSON["id"]]
        _, kwargs = alpaca_client._client.request.call_args
        assert kwargs["params"]["status"] == "open"
        assert kwargs["params"]["symbols"] == "AAPL"

    @pytest.mark.asyncio
    async def test_get_open_orders_with_trailing_stop(self, alpaca_client):
        """Edge case: a trailing stop on the book does not break the open-order query."""
        trailing = dict(ORDER_JSON, type="trailing_stop", side="sell", status="new")
        alpaca_client._client.request = AsyncMock(return_value=_make_response([trailing]))

        orders = await alpaca_client.get_open_orders("AAPL")

        assert len(orders) == 1
        assert orders[0].type == OrderType.TRAILING_STOP
        assert orders[0].side == OrderSide.SELL

    @pytest.mark.asyncio
    async def test_cancel_order(self, alpaca_client):
        """Happy path: DELETE on the order path."""
        alpaca_client._client.request = AsyncMock(return_value=_make_response(None, status_code=204))

        assert await alpaca_client.cancel_order("abc") is True
        alpaca_client._client.request.assert_awaited_once_with("DELETE", "/v2/orders/abc")

    @pytest.mark.asyncio
    async def test_submit_automation_order_payload(self, alpaca_client):
        """Happy path: market/day order tagged with an automation client id."""
        alpaca_client._client.request = AsyncMock(return_value=_make_response(ORDER_JSON))
        request = OrderRequest(symbol="AAPL", qty=8, side="buy", origin=OrderOrigin.AUTOMATION)

        order = await alpaca_client.submit_order(request)

        method, path = alpaca_client._client.request.call_args.args
        payload = alpaca_client._client.request.call_args.kwargs["json"]
        assert (method, path) == ("POST", "/v2/orders")
        assert payload["qty"] == "8"
        assert payload["side"] == "buy"
        assert payload["type"] == "market"
        assert payload["time_in_force"] == "day"
        assert payload["client_order_id"].startswith("automation_")
        assert order.origin == OrderOrigin.AUTOMATION

    @pytest.mark.asyncio
    async def test_submit_keeps_requested_origin_when_not_echoed(self, alpaca_client):
        """Edge case: a response without client_order_id keeps the requested origin."""
        data = dict(ORDER_JSON, client_order_id=None)
        alpaca_client._client.request = AsyncMock(return_value=_make_response(data))

        order = await alpaca_client.submit_order(OrderRequest(symbol="AAPL", qty=1, side="sell"))

        assert order.origin == OrderOrigin.MANUAL

    @pytest.mark.asyncio
    async def test_submit_limit_order_includes_price(self, alpaca_client):
        """Happy path: limit price is sent as a string, fractional qty preserved."""
        alpaca_client._client.request = AsyncMock(return_value=_make_response(ORDER_JSON))
        request = OrderRequest(symbol="AAPL", qty=0.5, side="buy", type="limit", limit_price=150.25)

        await alpaca_client.submit_order(request)

        payload = alpaca_client._client.request.call_args.kwargs["json"]
        assert payload["qty"] == "0.5"
        assert payload["limit_price"] == "150.25"
        assert payload["client_order_id"].startswith("manual_")
