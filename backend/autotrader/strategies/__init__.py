from autotrader.strategies.signal_generator import (
    Signal,
    SignalAction,
    SignalGenerator,
    recommended_position_size,
)

__all__ = ["Signal", "SignalAction", "SignalGenerator", "recommended_position_size"]
