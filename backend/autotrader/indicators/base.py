"""
IndicatorSource Abstract Base Class

Defines the interface the signal generator uses to obtain technical
indicators for a symbol. A real market-data implementation only needs
get_indicators(); injected_signal() exists for synthetic sources that inject
occasional BUY/SELL decisions to exercise the execution path.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Indicators:
    """Indicator snapshot for one symbol at one evaluation."""
    rsi: float  # 0-100
    sma20: float
    sma50: float
    current_price: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class InjectedSignal:
    """A BUY/SELL decision injected in place of HOLD."""
    action: str  # "BUY" or "SELL"
    confidence: float


class IndicatorSource(ABC):
    """Provider of per-symbol indicators."""

    is_synthetic: bool = False

    @abstractmethod
    async def get_indicators(self, symbol: str, at: datetime) -> Indicators:
        """
        Get indicators for a symbol as of a point in time.

        Args:
            symbol: Ticker symbol (e.g. "AAPL")
            at: Evaluation time (timezone-aware UTC)

        Returns:
            Indicators snapshot
        """
        pass

    def injected_signal(self, symbol: str, at: datetime) -> Optional[InjectedSignal]:
        """Override for a HOLD decision. Real sources never inject one."""
        return None
