"""
Indicator sources.

The signal generator depends only on IndicatorSource. The synthetic source
is the default until a market-data implementation is plugged in.
"""

from autotrader.indicators.base import IndicatorSource, Indicators, InjectedSignal
from autotrader.indicators.synthetic import SyntheticIndicatorSource

__all__ = ["IndicatorSource", "Indicators", "InjectedSignal", "SyntheticIndicatorSource"]
