"""
Signals Router - RSI signals and indicator lookups
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from autotrader.dependencies import get_signal_generator
from autotrader.exceptions import ValidationError
from autotrader.exchange_clients.base import SYMBOL_PATTERN
from autotrader.schemas import BatchSignalsRequest
from autotrader.strategies.signal_generator import SignalGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/signals", tags=["signals"])


def _normalize_symbol(symbol: str) -> str:
    normalized = symbol.strip().upper()
    if not SYMBOL_PATTERN.match(normalized):
        raise ValidationError(f"Invalid symbol: {symbol}")
    return normalized


@router.post("/batch")
async def get_batch_signals(
    request: BatchSignalsRequest,
    signal_generator: SignalGenerator = Depends(get_signal_generator),
) -> Dict[str, Any]:
    symbols = [_normalize_symbol(s) for s in request.symbols]
    logger.info(f"Generating signals for {len(symbols)} symbols: {', '.join(symbols)}")

    signals = await signal_generator.generate_batch(symbols)
    return {
        "success": True,
        "data": {
            "signals": [s.to_dict() for s in signals],
            "total": len(signals),
            "executable": sum(1 for s in signals if s.should_execute),
        },
    }


@router.get("/indicators/{symbol}")
async def get_indicators(
    symbol: str,
    signal_generator: SignalGenerator = Depends(get_signal_generator),
) -> Dict[str, Any]:
    symbol = _normalize_symbol(symbol)
    logger.info(f"Getting technical indicators for {symbol}")
    indicators = await signal_generator.get_indicators(symbol)
    return {"success": True, "data": {"symbol": symbol, **indicators.to_dict()}}


@router.get("/price/{symbol}")
async def get_price(
    symbol: str,
    signal_generator: SignalGenerator = Depends(get_signal_generator),
) -> Dict[str, Any]:
    symbol = _normalize_symbol(symbol)
    indicators = await signal_generator.get_indicators(symbol)
    return {
        "success": True,
        "data": {
            "symbol": symbol,
            "price": indicators.current_price,
            "synthetic": signal_generator.indicator_source.is_synthetic,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.get("/{symbol}")
async def get_signal(
    symbol: str,
    signal_generator: SignalGenerator = Depends(get_signal_generator),
) -> Dict[str, Any]:
    symbol = _normalize_symbol(symbol)
    logger.info(f"Generating signal for {symbol}")
    signal = await signal_generator.generate_signal(symbol)
    return {"success": True, "data": signal.to_dict()}
