"""
Portfolio Service

Account, position and order-history reads plus manual order placement.
Functions take the BrokerClient explicitly so routers and tests can pass
whichever broker is configured.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from autotrader.constants import MAX_HISTORY_LIMIT
from autotrader.exceptions import InsufficientBuyingPowerError, ValidationError
from autotrader.exchange_clients.base import (
    BrokerClient,
    OrderOrigin,
    OrderRequest,
    OrderSide,
)

logger = logging.getLogger(__name__)

# Buying-power pre-check assumes this price per share (no live quote)
ESTIMATED_SHARE_PRICE = 100.0


async def get_portfolio(broker: BrokerClient) -> Dict[str, Any]:
    """Account balances, open positions and 30-day equity history."""
    logger.info("Fetching portfolio information")
    account, positions, history = await asyncio.gather(
        broker.get_account(),
        broker.get_positions(),
        broker.get_portfolio_history(period="30D", timeframe="1D"),
    )
    return {
        "account": account.to_dict(),
        "positions": [p.to_dict() for p in positions],
        "portfolio_history": history.to_dict(),
        "paper_trading": broker.is_paper_trading(),
    }


async def get_trade_history(
    broker: BrokerClient,
    limit: int = 100,
    offset: int = 0,
    symbol: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Orders of any status, newest first.

    limit is capped at MAX_HISTORY_LIMIT. The broker has no offset
    parameter, so the page is cut from the newest MAX_HISTORY_LIMIT orders;
    a page running past that window comes back short.
    """
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    if offset < 0:
        raise ValidationError("offset must be non-negative")
    if offset >= MAX_HISTORY_LIMIT:
        raise ValidationError(f"offset must be less than {MAX_HISTORY_LIMIT}")

    limit = min(limit, MAX_HISTORY_LIMIT)
    symbol = symbol.strip().upper() if symbol else None
    logger.info(f"Fetching trade history. Limit: {limit}, Offset: {offset}, Symbol: {symbol or 'all'}")

    fetch = min(limit + offset, MAX_HISTORY_LIMIT)
    orders = await broker.list_orders(status="all", limit=fetch, symbol=symbol)
    page = orders[offset:offset + limit]

    return {
        "orders": [o.to_dict() for o in page],
        "pagination": {"limit": limit, "offset": offset, "total": len(page)},
    }


async def get_open_orders(broker: BrokerClient, symbol: Optional[str] = None) -> Dict[str, Any]:
    symbol = symbol.strip().upper() if symbol else None
    orders = await broker.get_open_orders(symbol)
    return {"orders": [o.to_dict() for o in orders], "count": len(orders)}


async def place_manual_order(broker: BrokerClient, request: OrderRequest) -> Dict[str, Any]:
    """
    Submit a user-placed order.

    Buy orders are first checked against buying power using a flat
    per-share estimate.

    Raises:
        InsufficientBuyingPowerError: Estimated cost exceeds buying power
        BrokerError: Broker rejected or failed the order
    """
    if request.origin is not OrderOrigin.MANUAL:
        raise ValidationError("Manual orders must carry the manual origin")

    logger.info(f"Placing {request.side.value} order for {request.qty} shares of {request.symbol}")

    if request.side == OrderSide.BUY:
        account = await broker.get_account()
        estimated_cost = request.qty * ESTIMATED_SHARE_PRICE
        if account.buying_power < estimated_cost:
            logger.warning(f"Insufficient buying power for {request.symbol} order")
            raise InsufficientBuyingPowerError(required=estimated_cost, available=account.buying_power)

    order = await broker.submit_order(request)
    logger.info(f"Order placed successfully. Order ID: {order.id}")

    return {
        "order": order.to_dict(),
        "message": (
            f"{request.side.value.upper()} order for {request.qty:g} shares of "
            f"{request.symbol} placed successfully"
        ),
    }
