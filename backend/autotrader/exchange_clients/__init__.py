"""
Broker Client Layer

Every brokerage client implements the BrokerClient abstract base class so
the automated trader and the HTTP routers never depend on a specific broker.

Usage:
    from autotrader.exchange_clients.factory import create_broker_client

    broker = create_broker_client(settings)
    account = await broker.get_account()
"""

from autotrader.exchange_clients.base import (
    AccountSnapshot,
    BrokerClient,
    Order,
    OrderOrigin,
    OrderRequest,
    OrderSide,
    OrderType,
    Position,
    TimeInForce,
)

__all__ = [
    "AccountSnapshot",
    "BrokerClient",
    "Order",
    "OrderOrigin",
    "OrderRequest",
    "OrderSide",
    "OrderType",
    "Position",
    "TimeInForce",
]
