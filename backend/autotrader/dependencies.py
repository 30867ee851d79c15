"""
FastAPI dependencies for the process-wide trading objects.

The objects are built once at startup and stored on app.state; tests swap
them by assigning their own instances to app.state or via
app.dependency_overrides.
"""

from fastapi import Request

from autotrader.exchange_clients.base import BrokerClient
from autotrader.services.automated_trader import AutomatedTrader
from autotrader.strategies.signal_generator import SignalGenerator


def get_broker(request: Request) -> BrokerClient:
    return request.app.state.broker


def get_signal_generator(request: Request) -> SignalGenerator:
    return request.app.state.signal_generator


def get_trader(request: Request) -> AutomatedTrader:
    return request.app.state.trader
