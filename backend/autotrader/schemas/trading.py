"""Manual trading request schemas"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from autotrader.exchange_clients.base import OrderSide, OrderType, TimeInForce


class TradeOrderRequest(BaseModel):
    symbol: str = Field(..., pattern=r"^[A-Z]{1,10}$")
    qty: float = Field(..., ge=0.01)
    side: OrderSide
    type: OrderType = OrderType.MARKET
    time_in_force: TimeInForce = TimeInForce.DAY
    limit_price: Optional[float] = Field(None, gt=0)
    stop_price: Optional[float] = Field(None, gt=0)

    @field_validator("symbol", mode="before")
    @classmethod
    def strip_symbol(cls, v):
        # Trimmed but not uppercased: lowercase symbols are rejected
        return v.strip() if isinstance(v, str) else v
