"""Centralized Pydantic schemas for API requests"""

from .automation import StartAutomationRequest, UpdateParametersRequest
from .signals import BatchSignalsRequest
from .trading import TradeOrderRequest

__all__ = [
    # Automation schemas
    "StartAutomationRequest",
    "UpdateParametersRequest",
    # Signal schemas
    "BatchSignalsRequest",
    # Trading schemas
    "TradeOrderRequest",
]
