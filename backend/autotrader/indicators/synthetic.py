"""
Synthetic Indicator Source

Stands in for a market-data feed. Values are derived from a time bucket
combined with a hash of the symbol, so every call inside the same bucket
returns the same indicators for a given symbol. The moving-average jitter
comes from a numpy generator seeded with the same value.

Also injects deterministic test BUY/SELL signals on a second, shorter
bucket so the order execution path gets exercised with fake data.
"""

import math
from datetime import datetime
from typing import Optional

import numpy as np

from autotrader.constants import (
    TEST_BUY_CUTOFF,
    TEST_SIGNAL_BASE_CONFIDENCE,
    TEST_SIGNAL_RATE,
)
from autotrader.indicators.base import IndicatorSource, Indicators, InjectedSignal


def symbol_hash(symbol: str) -> int:
    """Sum of character codes."""
    return sum(ord(c) for c in symbol)


def time_bucket(at: datetime, bucket_seconds: int) -> int:
    return int(math.floor(at.timestamp() / bucket_seconds))


class SyntheticIndicatorSource(IndicatorSource):
    """Deterministic fake indicators keyed by (symbol, time bucket)."""

    is_synthetic = True

    def __init__(
        self,
        bucket_seconds: int = 300,
        test_bucket_seconds: int = 180,
        test_signals_enabled: bool = True,
    ):
        if bucket_seconds <= 0 or test_bucket_seconds <= 0:
            raise ValueError("Bucket sizes must be positive")
        self.bucket_seconds = bucket_seconds
        self.test_bucket_seconds = test_bucket_seconds
        self.test_signals_enabled = test_signals_enabled

    def seed_for(self, symbol: str, at: datetime) -> int:
        return (time_bucket(at, self.bucket_seconds) + symbol_hash(symbol)) % 1000

    def compute(self, symbol: str, at: datetime) -> Indicators:
        seed = self.seed_for(symbol, at)

        # RSI roughly in 10-90, clamped to the oscillator range
        rsi = 20 + (seed % 60) + math.sin(seed * 0.1) * 10
        rsi = max(0.0, min(100.0, rsi))

        # Price around $80-$220
        current_price = 100 + (seed % 100) + math.sin(seed * 0.05) * 20

        jitter = np.random.default_rng(seed).uniform(-0.5, 0.5, size=2)
        sma20 = current_price + float(jitter[0]) * 10
        sma50 = current_price + float(jitter[1]) * 15

        return Indicators(
            rsi=float(rsi),
            sma20=float(sma20),
            sma50=float(sma50),
            current_price=float(current_price),
        )

    async def get_indicators(self, symbol: str, at: datetime) -> Indicators:
        return self.compute(symbol, at)

    def injected_signal(self, symbol: str, at: datetime) -> Optional[InjectedSignal]:
        """
        Promote roughly a quarter of HOLD buckets to a test BUY or SELL.

        factor in [0, 0.125)    -> BUY,  confidence 0.5 - 0.5375
        factor in [0.125, 0.25) -> SELL, confidence 0.5 - 0.8
        """
        if not self.test_signals_enabled:
            return None

        bucket = time_bucket(at, self.test_bucket_seconds)
        factor = ((bucket + symbol_hash(symbol)) % 100) / 100

        if factor >= TEST_SIGNAL_RATE:
            return None
        if factor < TEST_BUY_CUTOFF:
            return InjectedSignal("BUY", TEST_SIGNAL_BASE_CONFIDENCE + factor * 0.3)
        return InjectedSignal("SELL", TEST_SIGNAL_BASE_CONFIDENCE + (factor - TEST_BUY_CUTOFF) * 2.4)
