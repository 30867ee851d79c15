"""
RSI Signal Generator

Turns indicators into a BUY/SELL/HOLD decision using RSI mean reversion
with moving-average confirmation.

Confidence model (BUY shown, SELL mirrors it):
    0.6 base
    + 0.3 * (oversold - rsi) / oversold     (distance into the oversold zone)
    + 0.1 if price > SMA20
    + 0.1 if SMA20 > SMA50
    clamped to [0, 1]

Signals are transient records: created per evaluation, never mutated,
consumed immediately by the automated trader or returned to the API.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from autotrader.constants import (
    BASE_CONFIDENCE,
    MA_CONFIRMATION_BOOST,
    RSI_STRENGTH_WEIGHT,
)
from autotrader.exceptions import ValidationError
from autotrader.indicators.base import IndicatorSource, Indicators

logger = logging.getLogger(__name__)


class SignalAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def order_side(self) -> Optional[str]:
        """Broker order side for actionable signals, None for HOLD."""
        if self is SignalAction.HOLD:
            return None
        return self.value.lower()


@dataclass(frozen=True)
class Signal:
    symbol: str
    action: SignalAction
    confidence: float
    reason: str
    indicators: Optional[Indicators]
    timestamp: datetime
    should_execute: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "signal": self.action.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "indicators": self.indicators.to_dict() if self.indicators else None,
            "timestamp": self.timestamp.isoformat(),
            "should_execute": self.should_execute,
        }


def recommended_position_size(confidence: float, max_position_size: int) -> int:
    """Scale shares linearly with confidence, never below one share."""
    return max(1, int(math.floor(confidence * max_position_size)))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SignalGenerator:
    """RSI mean-reversion strategy over a pluggable indicator source."""

    indicator_source: IndicatorSource
    rsi_oversold: int = 30
    rsi_overbought: int = 70
    min_confidence: float = 0.6
    batch_delay_seconds: float = 0.1
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)

    def __post_init__(self):
        validate_thresholds(self.rsi_oversold, self.rsi_overbought)
        _validate_confidence(self.min_confidence)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_thresholds(self, oversold: int, overbought: int) -> None:
        """Replace RSI thresholds; applies from the next evaluation."""
        validate_thresholds(oversold, overbought)
        self.rsi_oversold = oversold
        self.rsi_overbought = overbought
        logger.info(f"RSI thresholds updated: oversold={oversold}, overbought={overbought}")

    def set_min_confidence(self, min_confidence: float) -> None:
        _validate_confidence(min_confidence)
        self.min_confidence = min_confidence

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    def buy_confidence(self, indicators: Indicators, oversold: Optional[float] = None) -> float:
        oversold = self.rsi_oversold if oversold is None else oversold
        confidence = BASE_CONFIDENCE
        rsi_strength = (oversold - indicators.rsi) / oversold
        confidence += rsi_strength * RSI_STRENGTH_WEIGHT
        if indicators.current_price > indicators.sma20:
            confidence += MA_CONFIRMATION_BOOST
        if indicators.sma20 > indicators.sma50:
            confidence += MA_CONFIRMATION_BOOST
        return _clamp(confidence)

    def sell_confidence(self, indicators: Indicators, overbought: Optional[float] = None) -> float:
        overbought = self.rsi_overbought if overbought is None else overbought
        confidence = BASE_CONFIDENCE
        rsi_strength = (indicators.rsi - overbought) / (100 - overbought)
        confidence += rsi_strength * RSI_STRENGTH_WEIGHT
        if indicators.current_price < indicators.sma20:
            confidence += MA_CONFIRMATION_BOOST
        if indicators.sma20 < indicators.sma50:
            confidence += MA_CONFIRMATION_BOOST
        return _clamp(confidence)

    # ------------------------------------------------------------------
    # Signal generation
    # ------------------------------------------------------------------

    async def get_indicators(self, symbol: str) -> Indicators:
        return await self.indicator_source.get_indicators(symbol, self.clock())

    def evaluate(self, symbol: str, indicators: Indicators, at: datetime) -> Signal:
        """Decide on a signal for already-fetched indicators."""
        # Snapshot thresholds so a concurrent update cannot split one evaluation
        oversold = self.rsi_oversold
        overbought = self.rsi_overbought
        rsi = indicators.rsi

        if rsi < oversold:
            action = SignalAction.BUY
            confidence = self.buy_confidence(indicators, oversold)
            reason = f"RSI oversold ({rsi:.2f} < {oversold})"
            if indicators.current_price > indicators.sma20:
                reason += " + Price above SMA20"
        elif rsi > overbought:
            action = SignalAction.SELL
            confidence = self.sell_confidence(indicators, overbought)
            reason = f"RSI overbought ({rsi:.2f} > {overbought})"
            if indicators.current_price < indicators.sma20:
                reason += " + Price below SMA20"
        else:
            action = SignalAction.HOLD
            confidence = 0.0
            reason = f"RSI neutral ({rsi:.2f})"

            injected = self.indicator_source.injected_signal(symbol, at)
            if injected is not None:
                action = SignalAction(injected.action)
                confidence = _clamp(injected.confidence)
                reason = f"Test {action.value} signal from synthetic data (RSI: {rsi:.2f})"

        return Signal(
            symbol=symbol,
            action=action,
            confidence=confidence,
            reason=reason,
            indicators=indicators,
            timestamp=at,
            should_execute=confidence >= self.min_confidence,
        )

    async def generate_signal(self, symbol: str) -> Signal:
        """
        Generate a signal for one symbol.

        Never raises: any failure becomes a HOLD signal with zero confidence
        and the error message in the reason.
        """
        at = self.clock()
        try:
            indicators = await self.indicator_source.get_indicators(symbol, at)
            signal = self.evaluate(symbol, indicators, at)
            logger.info(
                f"RSI signal for {symbol}: {signal.action.value} "
                f"(confidence: {signal.confidence * 100:.1f}%)"
            )
            return signal
        except Exception as e:
            logger.error(f"Error generating RSI signal for {symbol}: {e}")
            return _error_signal(symbol, e, at)

    async def generate_batch(self, symbols: List[str]) -> List[Signal]:
        """Evaluate symbols one at a time, in order, pausing between them."""
        signals = []
        for i, symbol in enumerate(symbols):
            try:
                signals.append(await self.generate_signal(symbol))
            except Exception as e:
                logger.error(f"Error processing {symbol}: {e}")
                signals.append(_error_signal(symbol, e, self.clock()))

            if self.batch_delay_seconds > 0 and i < len(symbols) - 1:
                await asyncio.sleep(self.batch_delay_seconds)

        return signals

    def recommended_position_size(self, confidence: float, max_position_size: int) -> int:
        return recommended_position_size(confidence, max_position_size)


def _error_signal(symbol: str, error: Exception, at: datetime) -> Signal:
    return Signal(
        symbol=symbol,
        action=SignalAction.HOLD,
        confidence=0.0,
        reason=f"Error: {error}",
        indicators=None,
        timestamp=at,
        should_execute=False,
    )


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def validate_thresholds(oversold, overbought) -> None:
    numeric = all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in (oversold, overbought)
    )
    if not numeric or not (0 < oversold < overbought < 100):
        raise ValidationError(
            f"RSI thresholds must satisfy 0 < oversold < overbought < 100 "
            f"(got oversold={oversold}, overbought={overbought})"
        )


def _validate_confidence(value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
        raise ValidationError(f"Confidence must be between 0 and 1 (got {value})")
