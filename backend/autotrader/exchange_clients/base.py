"""
BrokerClient Abstract Base Class

This module defines the interface every brokerage client must implement,
plus the plain records those clients return. The automated trader and the
HTTP routers only talk to a BrokerClient, so the Alpaca client and the
in-memory paper client are interchangeable.

Design Philosophy:
- Methods return dataclasses, never raw broker JSON
- Quantities and prices are floats
- Order attribution travels as an explicit OrderOrigin; the mapping to and
  from the broker's client_order_id string lives only in this module
- No retries: a failed call raises BrokerError and the caller decides
"""

import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from autotrader.constants import AUTOMATION_ORDER_PREFIX, MANUAL_ORDER_PREFIX
from autotrader.exceptions import ValidationError

SYMBOL_PATTERN = re.compile(r"^[A-Z]{1,10}$")


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LIMIT = "stop_limit"
    TRAILING_STOP = "trailing_stop"


class TimeInForce(str, Enum):
    DAY = "day"
    GTC = "gtc"
    IOC = "ioc"
    FOK = "fok"


class OrderOrigin(str, Enum):
    """Who placed an order."""
    AUTOMATION = "automation"
    MANUAL = "manual"
    UNKNOWN = "unknown"


_ORIGIN_PREFIXES = {
    OrderOrigin.AUTOMATION: AUTOMATION_ORDER_PREFIX,
    OrderOrigin.MANUAL: MANUAL_ORDER_PREFIX,
}


def build_client_order_id(origin: OrderOrigin) -> Optional[str]:
    """Client order id carrying the origin, or None for UNKNOWN."""
    prefix = _ORIGIN_PREFIXES.get(origin)
    if prefix is None:
        return None
    return f"{prefix}{uuid.uuid4().hex[:20]}"


def origin_from_client_order_id(client_order_id: Optional[str]) -> OrderOrigin:
    if client_order_id:
        for origin, prefix in _ORIGIN_PREFIXES.items():
            if client_order_id.startswith(prefix):
                return origin
    return OrderOrigin.UNKNOWN


@dataclass(frozen=True)
class OrderRequest:
    """A new order to submit."""
    symbol: str
    qty: float
    side: OrderSide
    type: OrderType = OrderType.MARKET
    time_in_force: TimeInForce = TimeInForce.DAY
    origin: OrderOrigin = OrderOrigin.MANUAL
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.symbol, str) or not SYMBOL_PATTERN.match(self.symbol):
            raise ValidationError(f"Symbol must be 1-10 uppercase letters (got {self.symbol!r})")
        if self.qty is None or self.qty <= 0:
            raise ValidationError(f"Quantity must be positive (got {self.qty})")
        # Coerce plain strings so callers can pass "buy" / "market" / "day"
        object.__setattr__(self, "side", OrderSide(self.side))
        object.__setattr__(self, "type", OrderType(self.type))
        object.__setattr__(self, "time_in_force", TimeInForce(self.time_in_force))
        object.__setattr__(self, "origin", OrderOrigin(self.origin))
        if self.type in (OrderType.LIMIT, OrderType.STOP_LIMIT) and self.limit_price is None:
            raise ValidationError(f"{self.type.value} orders require a limit price")
        if self.type in (OrderType.STOP, OrderType.STOP_LIMIT) and self.stop_price is None:
            raise ValidationError(f"{self.type.value} orders require a stop price")


@dataclass
class Order:
    """Broker-side order record."""
    id: str
    symbol: str
    side: OrderSide
    qty: float
    type: OrderType
    status: str
    origin: OrderOrigin = OrderOrigin.UNKNOWN
    client_order_id: Optional[str] = None
    filled_qty: float = 0.0
    filled_avg_price: Optional[float] = None
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["side"] = self.side.value
        data["type"] = self.type.value
        data["origin"] = self.origin.value
        for key in ("created_at", "submitted_at", "filled_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class AccountSnapshot:
    id: str
    account_number: str
    status: str
    cash: float
    buying_power: float
    portfolio_value: float
    daytrade_count: int = 0
    daytrading_buying_power: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Position:
    symbol: str
    qty: float
    market_value: float
    avg_entry_price: float
    current_price: float
    unrealized_pl: float
    unrealized_plpc: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PortfolioHistory:
    timestamps: List[int] = field(default_factory=list)
    equity: List[Optional[float]] = field(default_factory=list)
    profit_loss: List[Optional[float]] = field(default_factory=list)
    profit_loss_pct: List[Optional[float]] = field(default_factory=list)
    base_value: Optional[float] = None
    timeframe: str = "1D"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BrokerClient(ABC):
    """
    Abstract base class for brokerage clients.

    All calls are network calls in a real implementation and may raise
    BrokerError (or a subclass) on failure.
    """

    # ========================================
    # ACCOUNT
    # ========================================

    @abstractmethod
    async def get_account(self) -> AccountSnapshot:
        """Get cash, buying power and portfolio value."""
        pass

    @abstractmethod
    async def get_positions(self) -> List[Position]:
        """Get all open positions."""
        pass

    @abstractmethod
    async def get_portfolio_history(self, period: str = "30D", timeframe: str = "1D") -> PortfolioHistory:
        """Get equity history for the account."""
        pass

    # ========================================
    # ORDERS
    # ========================================

    @abstractmethod
    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        """
        List open orders.

        Args:
            symbol: Only return orders for this symbol when given

        Returns:
            List of open orders
        """
        pass

    @abstractmethod
    async def list_orders(
        self,
        status: str = "all",
        limit: int = 100,
        symbol: Optional[str] = None,
    ) -> List[Order]:
        """List orders of any status, newest first."""
        pass

    @abstractmethod
    async def cancel_order(self, order_id: str) -> bool:
        """
        Cancel an open order.

        Returns:
            True when the broker accepted the cancellation
        """
        pass

    @abstractmethod
    async def submit_order(self, request: OrderRequest) -> Order:
        """
        Submit a new order.

        The implementation tags the order with request.origin so later
        listings report the same origin.
        """
        pass

    # ========================================
    # LIFECYCLE
    # ========================================

    async def close(self) -> None:
        """Release network resources."""
        return None

    @abstractmethod
    def is_paper_trading(self) -> bool:
        pass
