"""
Trading Router - Account reads and manual orders

Proxies portfolio, order history and open orders from the broker and
places user-initiated orders (tagged with the manual origin).
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from autotrader.constants import MAX_HISTORY_LIMIT
from autotrader.dependencies import get_broker
from autotrader.exchange_clients.base import BrokerClient, OrderOrigin, OrderRequest
from autotrader.schemas import TradeOrderRequest
from autotrader.services import portfolio_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trading", tags=["trading"])


@router.get("/portfolio")
async def get_portfolio(broker: BrokerClient = Depends(get_broker)) -> Dict[str, Any]:
    """Account balances, positions and 30-day portfolio history."""
    portfolio = await portfolio_service.get_portfolio(broker)
    return {"success": True, "data": portfolio}


@router.get("/history")
async def get_trade_history(
    limit: int = Query(100, ge=1),
    offset: int = Query(0, ge=0),
    symbol: Optional[str] = None,
    broker: BrokerClient = Depends(get_broker),
) -> Dict[str, Any]:
    """Order history, newest first. limit above 500 is capped to 500."""
    history = await portfolio_service.get_trade_history(
        broker, limit=min(limit, MAX_HISTORY_LIMIT), offset=offset, symbol=symbol
    )
    return {"success": True, "data": history["orders"], "pagination": history["pagination"]}


@router.get("/orders/open")
async def get_open_orders(
    symbol: Optional[str] = None,
    broker: BrokerClient = Depends(get_broker),
) -> Dict[str, Any]:
    result = await portfolio_service.get_open_orders(broker, symbol)
    return {"success": True, "data": result["orders"], "count": result["count"]}


@router.post("/trade", status_code=201)
async def place_trade(
    request: TradeOrderRequest,
    broker: BrokerClient = Depends(get_broker),
) -> Dict[str, Any]:
    """
    Place a manual order.

    Buy orders are rejected up front when buying power is below a rough
    $100/share estimate. Broker rejections come back as 400.
    """
    order_request = OrderRequest(
        symbol=request.symbol,
        qty=request.qty,
        side=request.side,
        type=request.type,
        time_in_force=request.time_in_force,
        origin=OrderOrigin.MANUAL,
        limit_price=request.limit_price,
        stop_price=request.stop_price,
    )
    result = await portfolio_service.place_manual_order(broker, order_request)
    return {"success": True, "data": result["order"], "message": result["message"]}
