"""
API Routers

One router per area: automation loop control, signals and trading.
"""

from autotrader.routers import automation_router
from autotrader.routers import signals_router
from autotrader.routers import trading_router

__all__ = [
    "automation_router",
    "signals_router",
    "trading_router",
]
