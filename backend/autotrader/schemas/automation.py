"""Automation loop request schemas"""
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class StartAutomationRequest(BaseModel):
    symbols: Optional[List[str]] = Field(None, min_length=1)
    interval_minutes: int = Field(10, ge=1, le=1440)

    class Config:
        # Dashboard clients send camelCase (intervalMinutes)
        alias_generator = to_camel
        populate_by_name = True


class UpdateParametersRequest(BaseModel):
    symbols: Optional[List[str]] = Field(None, min_length=1)
    max_position_size: Optional[int] = Field(None, ge=1, le=100)
    min_confidence: Optional[float] = Field(None, ge=0, le=1)
    # Thresholds are applied only when both are given
    rsi_oversold: Optional[int] = Field(None, ge=10, le=40)
    rsi_overbought: Optional[int] = Field(None, ge=60, le=90)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
