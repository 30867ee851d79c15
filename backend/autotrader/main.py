import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autotrader.config import Settings, settings
from autotrader.exceptions import AppError, InsufficientBuyingPowerError
from autotrader.exchange_clients.factory import create_broker_client
from autotrader.indicators import SyntheticIndicatorSource
from autotrader.logging_config import setup_logging
from autotrader.routers import automation_router, signals_router, trading_router
from autotrader.services.automated_trader import AutomatedTrader
from autotrader.strategies import SignalGenerator

logger = logging.getLogger(__name__)

app = FastAPI(title="Alpaca Signal Trader")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def register_exception_handlers(target: FastAPI) -> None:
    """Translate domain errors and request validation into the JSON envelope."""

    @target.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        content: Dict[str, Any] = {"success": False, "error": exc.message}
        if isinstance(exc, InsufficientBuyingPowerError):
            content["required"] = exc.required
            content["available"] = exc.available
        return JSONResponse(status_code=exc.status_code, content=content)

    @target.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Request validation failed on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Validation failed", "details": _jsonable_errors(exc)},
        )


def _jsonable_errors(exc: RequestValidationError):
    # ctx may hold exception instances that JSONResponse cannot encode
    return [
        {key: value for key, value in error.items() if key in ("loc", "msg", "type")}
        for error in exc.errors()
    ]


register_exception_handlers(app)

# Include all routers
app.include_router(automation_router.router)
app.include_router(signals_router.router)
app.include_router(trading_router.router)


def build_trading_components(config: Settings) -> Dict[str, Any]:
    """
    Construct the indicator source, signal generator, broker and trader.

    Each process owns exactly one of each; they live on app.state.
    """
    indicator_source = SyntheticIndicatorSource(
        bucket_seconds=config.indicator_bucket_seconds,
        test_bucket_seconds=config.test_signal_bucket_seconds,
        test_signals_enabled=config.synthetic_test_signals,
    )
    signal_generator = SignalGenerator(
        indicator_source=indicator_source,
        rsi_oversold=config.rsi_oversold,
        rsi_overbought=config.rsi_overbought,
        min_confidence=config.signal_min_confidence,
        batch_delay_seconds=config.batch_delay_seconds,
    )

    async def price_lookup(symbol: str) -> Optional[float]:
        indicators = await indicator_source.get_indicators(symbol, datetime.now(timezone.utc))
        return indicators.current_price

    broker = create_broker_client(config, price_lookup=price_lookup)
    trader = AutomatedTrader(
        signal_generator=signal_generator,
        broker=broker,
        watched_symbols=config.default_watchlist,
        max_position_size=config.max_position_size,
        min_confidence=config.min_confidence,
        trade_delay_seconds=config.trade_delay_seconds,
        cancel_settle_seconds=config.cancel_settle_seconds,
        skip_if_busy=config.skip_if_busy,
    )
    return {
        "indicator_source": indicator_source,
        "signal_generator": signal_generator,
        "broker": broker,
        "trader": trader,
    }


# Startup/Shutdown events
@app.on_event("startup")
async def startup_event():
    setup_logging(settings.log_level)
    logger.info("🚀 Starting Alpaca Signal Trader")

    components = build_trading_components(settings)
    for name, component in components.items():
        setattr(app.state, name, component)

    broker = components["broker"]
    mode = "paper" if broker.is_paper_trading() else "LIVE"
    logger.info(f"Broker: {type(broker).__name__} ({mode} trading)")

    app.state.autostart_task = None
    if settings.autostart:
        logger.info("Autostart enabled - starting automated trading")
        app.state.autostart_task = asyncio.create_task(
            components["trader"].start(interval_minutes=settings.default_interval_minutes)
        )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("🛑 Shutting down - waiting for in-flight trading cycles...")

    autostart_task = getattr(app.state, "autostart_task", None)
    if autostart_task and not autostart_task.done():
        try:
            await asyncio.wait_for(autostart_task, timeout=30.0)
        except asyncio.TimeoutError:
            logger.warning("Autostart did not finish before shutdown")

    trader = getattr(app.state, "trader", None)
    if trader:
        await trader.shutdown(timeout=30.0)

    broker = getattr(app.state, "broker", None)
    if broker:
        await broker.close()

    logger.info("🛑 Shutdown complete")


@app.get("/health")
async def health_check(request: Request):
    trader = getattr(request.app.state, "trader", None)
    broker = getattr(request.app.state, "broker", None)
    return {
        "status": "ok",
        "automation_running": bool(trader and trader.is_running),
        "paper_trading": broker.is_paper_trading() if broker else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
