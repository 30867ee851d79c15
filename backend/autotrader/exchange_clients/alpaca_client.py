"""
Alpaca Client

BrokerClient implementation for the Alpaca trading REST API (v2).

- Uses httpx.AsyncClient for HTTP
- Authenticates with APCA-API-KEY-ID / APCA-API-SECRET-KEY headers
- Works against paper or live depending on base_url
- Translates transport and HTTP errors into BrokerError subclasses;
  no retries here, callers treat one failure as one failed item
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from autotrader.exceptions import BrokerError, BrokerUnavailableError, OrderRejectedError, RateLimitError
from autotrader.exchange_clients.base import (
    AccountSnapshot,
    BrokerClient,
    Order,
    OrderOrigin,
    OrderRequest,
    OrderSide,
    OrderType,
    PortfolioHistory,
    Position,
    build_client_order_id,
    origin_from_client_order_id,
)

logger = logging.getLogger(__name__)

PAPER_BASE_URL = "https://paper-api.alpaca.markets"

_FRACTION = re.compile(r"\.(\d+)")


def _to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse Alpaca RFC 3339 timestamps (nanosecond precision, Z suffix)."""
    if not value:
        return None
    text = value.replace("Z", "+00:00")
    # fromisoformat wants exactly microseconds
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable Alpaca timestamp: {value}")
        return None


def parse_order(data: Dict[str, Any]) -> Order:
    """Convert an Alpaca order JSON object into an Order."""
    client_order_id = data.get("client_order_id")
    return Order(
        id=str(data["id"]),
        symbol=data.get("symbol", ""),
        side=OrderSide(data.get("side", "buy")),
        qty=_to_float(data.get("qty")),
        type=OrderType(data.get("type") or data.get("order_type") or "market"),
        status=data.get("status", "unknown"),
        origin=origin_from_client_order_id(client_order_id),
        client_order_id=client_order_id,
        filled_qty=_to_float(data.get("filled_qty")),
        filled_avg_price=_to_float(data.get("filled_avg_price"), default=None),
        created_at=_parse_time(data.get("created_at")),
        submitted_at=_parse_time(data.get("submitted_at")),
        filled_at=_parse_time(data.get("filled_at")),
    )


def parse_account(data: Dict[str, Any]) -> AccountSnapshot:
    return AccountSnapshot(
        id=str(data.get("id", "")),
        account_number=str(data.get("account_number", "")),
        status=data.get("status", "unknown"),
        cash=_to_float(data.get("cash")),
        buying_power=_to_float(data.get("buying_power")),
        portfolio_value=_to_float(data.get("portfolio_value", data.get("equity"))),
        daytrade_count=int(data.get("daytrade_count") or 0),
        daytrading_buying_power=_to_float(data.get("daytrading_buying_power")),
    )


def parse_position(data: Dict[str, Any]) -> Position:
    return Position(
        symbol=data.get("symbol", ""),
        qty=_to_float(data.get("qty")),
        market_value=_to_float(data.get("market_value")),
        avg_entry_price=_to_float(data.get("avg_entry_price")),
        current_price=_to_float(data.get("current_price")),
        unrealized_pl=_to_float(data.get("unrealized_pl")),
        unrealized_plpc=_to_float(data.get("unrealized_plpc")),
    )


class AlpacaClient(BrokerClient):
    """
    BrokerClient for Alpaca.

    Endpoints used:
      GET    /v2/account
      GET    /v2/positions
      GET    /v2/account/portfolio/history
      GET    /v2/orders
      POST   /v2/orders
      DELETE /v2/orders/{id}
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        base_url: str = PAPER_BASE_URL,
        timeout: float = 10.0,
    ):
        if not api_key or not secret_key:
            raise ValueError("AlpacaClient requires api_key and secret_key")
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "APCA-API-KEY-ID": api_key,
                "APCA-API-SECRET-KEY": secret_key,
                "Content-Type": "application/json",
            },
        )
        logger.info(f"AlpacaClient initialized (base_url={self._base_url})")

    async def close(self):
        """Close the underlying httpx client to release connections."""
        if self._client:
            await self._client.aclose()

    def is_paper_trading(self) -> bool:
        return "paper-api" in self._base_url

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Make HTTP request to Alpaca.

        Raises:
            BrokerUnavailableError: Alpaca is unreachable or timed out.
            RateLimitError: Alpaca returned 429.
            OrderRejectedError: Alpaca returned another 4xx.
            BrokerError: Alpaca returned a 5xx.
        """
        logger.debug(f"Alpaca request: {method} {path}")
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            if resp.status_code == 204 or not resp.content:
                return None
            return resp.json()
        except httpx.TimeoutException:
            logger.error(f"Alpaca timeout: {method} {path}")
            raise BrokerUnavailableError("Alpaca API timeout")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = _error_message(e.response)
            logger.error(f"Alpaca HTTP {status}: {method} {path} - {message}")
            if status == 429:
                raise RateLimitError(f"Alpaca rate limit exceeded: {message}")
            if 400 <= status < 500:
                raise OrderRejectedError(f"Alpaca rejected request ({status}): {message}", broker_status=status)
            raise BrokerError(f"Alpaca server error ({status}): {message}")
        except httpx.RequestError as e:
            logger.error(f"Alpaca connection failed: {method} {path}: {e}")
            raise BrokerUnavailableError(f"Alpaca API unavailable: {e}")

    # ==========================================================
    # ACCOUNT
    # ==========================================================

    async def get_account(self) -> AccountSnapshot:
        return parse_account(await self._request("GET", "/v2/account"))

    async def get_positions(self) -> List[Position]:
        data = await self._request("GET", "/v2/positions") or []
        return [parse_position(p) for p in data]

    async def get_portfolio_history(self, period: str = "30D", timeframe: str = "1D") -> PortfolioHistory:
        data = await self._request(
            "GET",
            "/v2/account/portfolio/history",
            params={"period": period, "timeframe": timeframe},
        ) or {}
        return PortfolioHistory(
            timestamps=data.get("timestamp") or [],
            equity=data.get("equity") or [],
            profit_loss=data.get("profit_loss") or [],
            profit_loss_pct=data.get("profit_loss_pct") or [],
            base_value=_to_float(data.get("base_value"), default=None),
            timeframe=data.get("timeframe", timeframe),
        )

    # ==========================================================
    # ORDERS
    # ==========================================================

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        orders = await self.list_orders(status="open", limit=500, symbol=symbol)
        if symbol:
            # Alpaca filters server-side; guard against a broker that ignores the filter
            orders = [o for o in orders if o.symbol == symbol]
        return orders

    async def list_orders(
        self,
        status: str = "all",
        limit: int = 100,
        symbol: Optional[str] = None,
    ) -> List[Order]:
        params: Dict[str, Any] = {"status": status, "limit": limit, "direction": "desc"}
        if symbol:
            params["symbols"] = symbol
        data = await self._request("GET", "/v2/orders", params=params) or []
        return [parse_order(o) for o in data]

    async def cancel_order(self, order_id: str) -> bool:
        await self._request("DELETE", f"/v2/orders/{order_id}")
        logger.info(f"Cancelled Alpaca order {order_id}")
        return True

    async def submit_order(self, request: OrderRequest) -> Order:
        payload: Dict[str, Any] = {
            "symbol": request.symbol,
            "qty": _format_qty(request.qty),
            "side": request.side.value,
            "type": request.type.value,
            "time_in_force": request.time_in_force.value,
        }
        client_order_id = build_client_order_id(request.origin)
        if client_order_id:
            payload["client_order_id"] = client_order_id
        if request.limit_price is not None:
            payload["limit_price"] = str(request.limit_price)
        if request.stop_price is not None:
            payload["stop_price"] = str(request.stop_price)

        data = await self._request("POST", "/v2/orders", json=payload)
        order = parse_order(data)
        if order.origin is OrderOrigin.UNKNOWN:
            # Broker echoed no client id; keep the origin we asked for
            order.origin = request.origin
        return order


def _format_qty(qty: float) -> str:
    if float(qty).is_integer():
        return str(int(qty))
    return str(qty)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    except Exception:
        pass
    try:
        return response.text[:200]
    except Exception:
        return ""
