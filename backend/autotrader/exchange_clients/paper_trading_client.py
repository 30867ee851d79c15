"""
Paper Trading Broker Client

Simulates a brokerage account in memory for running without Alpaca keys
and for tests. Market orders fill immediately at the price returned by
price_lookup; without a price lookup (or for limit/stop orders) they stay
open until cancelled. Nothing is persisted across restarts.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from autotrader.exceptions import NotFoundError, OrderRejectedError
from autotrader.exchange_clients.base import (
    AccountSnapshot,
    BrokerClient,
    Order,
    OrderRequest,
    OrderSide,
    OrderType,
    PortfolioHistory,
    Position,
    build_client_order_id,
)

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("new", "accepted", "pending_new", "partially_filled")

PriceLookup = Callable[[str], Awaitable[Optional[float]]]


class PaperTradingClient(BrokerClient):
    """
    Simulated broker client for paper trading.

    State lives on the instance and every mutation runs under one
    asyncio.Lock, so concurrent callers see consistent cash/positions.
    """

    def __init__(self, starting_cash: float = 100000.0, price_lookup: Optional[PriceLookup] = None):
        if starting_cash < 0:
            raise ValueError("starting_cash must be non-negative")
        self.starting_cash = starting_cash
        self.cash = starting_cash
        self.price_lookup = price_lookup
        self._orders: Dict[str, Order] = {}  # order_id -> order, insertion ordered
        self._positions: Dict[str, Dict[str, float]] = {}  # symbol -> {"qty", "cost"}
        self._last_prices: Dict[str, float] = {}
        self._lock = asyncio.Lock()

        logger.info(f"Initialized paper trading client with ${starting_cash:,.2f}")

    def is_paper_trading(self) -> bool:
        return True

    async def _get_price(self, symbol: str) -> Optional[float]:
        if not self.price_lookup:
            return self._last_prices.get(symbol)
        price = await self.price_lookup(symbol)
        if price:
            self._last_prices[symbol] = price
        return price

    # ==========================================================
    # ACCOUNT
    # ==========================================================

    async def get_account(self) -> AccountSnapshot:
        positions = await self.get_positions()
        market_value = sum(p.market_value for p in positions)
        return AccountSnapshot(
            id="paper-account",
            account_number="PAPER",
            status="ACTIVE",
            cash=self.cash,
            buying_power=self.cash,
            portfolio_value=self.cash + market_value,
            daytrade_count=0,
            daytrading_buying_power=self.cash,
        )

    async def get_positions(self) -> List[Position]:
        positions = []
        for symbol, pos in self._positions.items():
            qty = pos["qty"]
            avg_entry = pos["cost"] / qty if qty else 0.0
            current = self._last_prices.get(symbol, avg_entry)
            market_value = qty * current
            unrealized = market_value - pos["cost"]
            positions.append(Position(
                symbol=symbol,
                qty=qty,
                market_value=market_value,
                avg_entry_price=avg_entry,
                current_price=current,
                unrealized_pl=unrealized,
                unrealized_plpc=unrealized / pos["cost"] if pos["cost"] else 0.0,
            ))
        return positions

    async def get_portfolio_history(self, period: str = "30D", timeframe: str = "1D") -> PortfolioHistory:
        account = await self.get_account()
        now = int(datetime.now(timezone.utc).timestamp())
        profit = account.portfolio_value - self.starting_cash
        return PortfolioHistory(
            timestamps=[now],
            equity=[account.portfolio_value],
            profit_loss=[profit],
            profit_loss_pct=[profit / self.starting_cash if self.starting_cash else 0.0],
            base_value=self.starting_cash,
            timeframe=timeframe,
        )

    # ==========================================================
    # ORDERS
    # ==========================================================

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        return [
            o for o in self._orders.values()
            if o.status in OPEN_STATUSES and (symbol is None or o.symbol == symbol)
        ]

    async def list_orders(
        self,
        status: str = "all",
        limit: int = 100,
        symbol: Optional[str] = None,
    ) -> List[Order]:
        orders = list(reversed(list(self._orders.values())))
        if symbol:
            orders = [o for o in orders if o.symbol == symbol]
        if status == "open":
            orders = [o for o in orders if o.status in OPEN_STATUSES]
        elif status == "closed":
            orders = [o for o in orders if o.status not in OPEN_STATUSES]
        return orders[:limit]

    async def cancel_order(self, order_id: str) -> bool:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            if order.status not in OPEN_STATUSES:
                raise OrderRejectedError(f"Order {order_id} is {order.status} and cannot be cancelled", broker_status=422)
            order.status = "canceled"
        logger.info(f"Paper order cancelled: {order_id}")
        return True

    async def submit_order(self, request: OrderRequest) -> Order:
        # Price lookup happens OUTSIDE the lock (may be slow)
        price = None
        if request.type == OrderType.MARKET:
            price = await self._get_price(request.symbol)

        now = datetime.now(timezone.utc)
        client_order_id = build_client_order_id(request.origin)
        order = Order(
            id=f"paper-{uuid.uuid4()}",
            symbol=request.symbol,
            side=request.side,
            qty=float(request.qty),
            type=request.type,
            status="accepted",
            origin=request.origin,
            client_order_id=client_order_id,
            created_at=now,
            submitted_at=now,
        )

        async with self._lock:
            if price:
                self._fill(order, price, now)
            self._orders[order.id] = order

        logger.info(
            f"Paper order {order.status}: {request.side.value.upper()} {request.qty} {request.symbol} "
            f"(order_id: {order.id}, origin: {request.origin.value})"
        )
        return order

    def _fill(self, order: Order, price: float, at: datetime) -> None:
        """Apply a full fill. Caller holds the lock."""
        notional = order.qty * price
        pos = self._positions.get(order.symbol, {"qty": 0.0, "cost": 0.0})

        if order.side == OrderSide.BUY:
            if notional > self.cash:
                raise OrderRejectedError(
                    f"Insufficient buying power. Available: {self.cash:.2f}, Required: {notional:.2f}",
                    broker_status=403,
                )
            self.cash -= notional
            pos["qty"] += order.qty
            pos["cost"] += notional
        else:
            if pos["qty"] < order.qty:
                raise OrderRejectedError(
                    f"Insufficient qty for {order.symbol}. Available: {pos['qty']}, Required: {order.qty}",
                    broker_status=403,
                )
            avg_cost = pos["cost"] / pos["qty"]
            self.cash += notional
            pos["qty"] -= order.qty
            pos["cost"] -= avg_cost * order.qty

        if pos["qty"] > 0:
            self._positions[order.symbol] = pos
        else:
            self._positions.pop(order.symbol, None)

        order.status = "filled"
        order.filled_qty = order.qty
        order.filled_avg_price = price
        order.filled_at = at
