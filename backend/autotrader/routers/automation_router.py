"""
Automation Router - Automated trading loop control

Start/stop the loop, inspect its status, change its parameters and
trigger a cycle by hand.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from autotrader.dependencies import get_signal_generator, get_trader
from autotrader.schemas import StartAutomationRequest, UpdateParametersRequest
from autotrader.services.automated_trader import AutomatedTrader
from autotrader.strategies.signal_generator import SignalGenerator, validate_thresholds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/automation", tags=["automation"])


@router.get("/status")
async def get_automation_status(trader: AutomatedTrader = Depends(get_trader)) -> Dict[str, Any]:
    return {"success": True, "data": trader.get_status()}


@router.post("/start")
async def start_automation(
    request: StartAutomationRequest,
    trader: AutomatedTrader = Depends(get_trader),
) -> Dict[str, Any]:
    """
    Start automated trading.

    Runs the first cycle before responding. Calling this while the loop is
    already running returns the current status without starting a second timer.
    """
    already_running = trader.is_running
    status = await trader.start(symbols=request.symbols, interval_minutes=request.interval_minutes)
    message = (
        "Automated trading is already running"
        if already_running
        else "Automated trading started successfully"
    )
    return {"success": True, "message": message, "data": status}


@router.post("/stop")
async def stop_automation(trader: AutomatedTrader = Depends(get_trader)) -> Dict[str, Any]:
    status = await trader.stop()
    return {"success": True, "message": "Automated trading stopped successfully", "data": status}


@router.put("/parameters")
async def update_parameters(
    request: UpdateParametersRequest,
    trader: AutomatedTrader = Depends(get_trader),
    signal_generator: SignalGenerator = Depends(get_signal_generator),
) -> Dict[str, Any]:
    """
    Update trading parameters.

    RSI thresholds change only when both rsi_oversold and rsi_overbought are
    sent; running loops pick up new values from their next cycle. Nothing
    changes unless every given value is valid.
    """
    apply_thresholds = request.rsi_oversold is not None and request.rsi_overbought is not None
    if apply_thresholds:
        validate_thresholds(request.rsi_oversold, request.rsi_overbought)
    elif request.rsi_oversold is not None or request.rsi_overbought is not None:
        logger.warning("Ignoring RSI threshold update: both rsi_oversold and rsi_overbought are required")

    status = trader.update_parameters(
        symbols=request.symbols,
        max_position_size=request.max_position_size,
        min_confidence=request.min_confidence,
    )
    if apply_thresholds:
        signal_generator.update_thresholds(request.rsi_oversold, request.rsi_overbought)

    status["rsi_oversold"] = signal_generator.rsi_oversold
    status["rsi_overbought"] = signal_generator.rsi_overbought
    return {"success": True, "message": "Trading parameters updated successfully", "data": status}


@router.post("/check")
async def run_trading_check(trader: AutomatedTrader = Depends(get_trader)) -> Dict[str, Any]:
    """Run one trading cycle now, whether or not the loop is running."""
    report = await trader.run_cycle()
    message = (
        "Trading check skipped: a cycle is already in progress"
        if report.skipped
        else "Trading check completed successfully"
    )
    return {"success": True, "message": message, "data": report.to_dict()}
