"""Signal request schemas"""
from typing import List

from pydantic import BaseModel, Field, field_validator


class BatchSignalsRequest(BaseModel):
    symbols: List[str] = Field(..., min_length=1, max_length=50)

    @field_validator("symbols")
    @classmethod
    def normalize_symbols(cls, v: List[str]) -> List[str]:
        symbols = [s.strip().upper() for s in v if s and s.strip()]
        if not symbols:
            raise ValueError("At least one symbol is required")
        return symbols
