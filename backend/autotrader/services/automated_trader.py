"""
Automated Trader Service

Periodically evaluates signals for the watchlist and places market orders
for the confident ones.

Lifecycle:
- start() runs one cycle immediately, then arms a single recurring timer
- stop() cancels the timer; a cycle already in flight runs to completion
- each cycle runs as its own task, so cancelling the timer never cuts an
  order placement in half

Overlapping cycles (a slow cycle outlasting the interval) are skipped when
skip_if_busy is set, and allowed otherwise.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from autotrader.constants import MAX_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES
from autotrader.exceptions import ValidationError
from autotrader.exchange_clients.base import (
    SYMBOL_PATTERN,
    BrokerClient,
    OrderOrigin,
    OrderRequest,
    OrderSide,
    OrderType,
    TimeInForce,
)
from autotrader.strategies.signal_generator import (
    Signal,
    SignalAction,
    SignalGenerator,
    recommended_position_size,
)

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60

DEFAULT_WATCHLIST = ["AAPL", "MSFT", "GOOGL", "TSLA", "SPY"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TradeResult:
    """Outcome of executing one signal."""
    success: bool
    signal: Signal
    position_size: int = 0
    order_id: Optional[str] = None
    error: Optional[str] = None
    cancelled_order_ids: List[str] = field(default_factory=list)
    failed_cancellations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "signal": self.signal.to_dict(),
            "position_size": self.position_size,
            "cancelled_order_ids": list(self.cancelled_order_ids),
            "failed_cancellations": list(self.failed_cancellations),
        }
        if self.success:
            data["order_id"] = self.order_id
        else:
            data["error"] = self.error
        return data


@dataclass
class CycleReport:
    """Summary of one evaluation cycle."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    signals_evaluated: int = 0
    executable: int = 0
    results: List[TradeResult] = field(default_factory=list)
    buy_count: int = 0
    sell_count: int = 0
    skipped: bool = False
    error: Optional[str] = None

    @property
    def executed(self) -> int:
        return sum(1 for r in self.results if r.success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "signals_evaluated": self.signals_evaluated,
            "executable": self.executable,
            "executed": self.executed,
            "buy_count": self.buy_count,
            "sell_count": self.sell_count,
            "skipped": self.skipped,
            "error": self.error,
            "results": [r.to_dict() for r in self.results],
        }


class AutomatedTrader:
    """
    Signal-driven trading loop for a single account and watchlist.

    All state is mutated from the event loop only; a cycle copies the
    parameters it needs when it starts, so update_parameters() takes
    effect from the next cycle.
    """

    def __init__(
        self,
        signal_generator: SignalGenerator,
        broker: BrokerClient,
        watched_symbols: Optional[List[str]] = None,
        max_position_size: int = 10,
        min_confidence: float = 0.7,
        trade_delay_seconds: float = 1.0,
        cancel_settle_seconds: float = 1.0,
        skip_if_busy: bool = True,
    ):
        self.signal_generator = signal_generator
        self.broker = broker
        self.watched_symbols = _normalize_symbols(
            watched_symbols if watched_symbols is not None else DEFAULT_WATCHLIST
        )
        self.max_position_size = _validate_position_size(max_position_size)
        self.min_confidence = _validate_confidence(min_confidence)
        self.trade_delay_seconds = trade_delay_seconds
        self.cancel_settle_seconds = cancel_settle_seconds
        self.skip_if_busy = skip_if_busy

        self.is_running = False
        self.interval_minutes: Optional[float] = None
        self.cycles_completed = 0
        self.skipped_ticks = 0
        self.last_cycle: Optional[CycleReport] = None

        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()
        self._active_cycles = 0
        self._run_generation = 0  # bumped on every start; a stale start never arms a timer

    # ==========================================================
    # LIFECYCLE
    # ==========================================================

    async def start(self, symbols: Optional[List[str]] = None, interval_minutes: Any = 10) -> Dict[str, Any]:
        """
        Start automated trading.

        Args:
            symbols: Replaces the watchlist when given
            interval_minutes: Minutes between cycles, clamped to [1, 1440]

        Returns:
            Current status. Calling start() while running is a no-op.
        """
        if self.is_running:
            logger.warning("Automated trading is already running")
            return self.get_status()

        new_symbols = _normalize_symbols(symbols) if symbols is not None else None
        interval = _clamp_interval(interval_minutes)

        if new_symbols is not None:
            self.watched_symbols = new_symbols
        self.interval_minutes = interval
        self.is_running = True
        self._run_generation += 1
        generation = self._run_generation

        logger.info(f"Starting automated trading for symbols: {', '.join(self.watched_symbols)}")
        logger.info(f"Check interval: {interval} minutes (skip_if_busy={self.skip_if_busy})")

        # First cycle runs now; shielded so a cancelled caller doesn't cut it short
        try:
            await asyncio.shield(self._launch_cycle())
        except asyncio.CancelledError:
            # The cycle carries on in its own task; keep the loop consistent
            if self.is_running and generation == self._run_generation:
                self._arm_timer(interval)
                logger.warning("Start request cancelled during the first cycle; timer armed anyway")
            raise

        if not self.is_running or generation != self._run_generation:
            logger.info("Automated trading was stopped during the first cycle; timer not armed")
            return self.get_status()

        self._arm_timer(interval)
        logger.info("✅ Automated trading started")
        return self.get_status()

    async def stop(self) -> Dict[str, Any]:
        """Stop scheduling new cycles. A cycle already in flight finishes."""
        if not self.is_running:
            logger.warning("Automated trading is not running")
            return self.get_status()

        self.is_running = False
        timer = self._timer_task
        self._timer_task = None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

        logger.info("🛑 Automated trading stopped")
        return self.get_status()

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Stop and wait for in-flight cycles; cancel whatever outlives timeout."""
        if self.is_running:
            await self.stop()

        pending = set(self._cycle_tasks)
        if not pending:
            return

        logger.info(f"Waiting for {len(pending)} in-flight trading cycle(s) to finish")
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            logger.warning("Trading cycle did not finish before shutdown timeout, cancelling")
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    def _arm_timer(self, interval_minutes: float) -> None:
        self._timer_task = asyncio.create_task(self._timer_loop(interval_minutes))

    def _launch_cycle(self) -> asyncio.Task:
        task = asyncio.create_task(self.run_cycle())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
        return task

    async def _timer_loop(self, interval_minutes: float):
        """Fire a cycle every interval, measured from the previous tick."""
        period = interval_minutes * SECONDS_PER_MINUTE
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + period

        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            if not self.is_running:
                return
            self._launch_cycle()

            next_tick += period
            now = loop.time()
            if next_tick <= now:
                # Event loop stalled past whole periods; drop the missed ticks
                missed = int((now - next_tick) // period) + 1
                next_tick += missed * period
                logger.warning(f"Trading timer fell behind, dropped {missed} tick(s)")

    # ==========================================================
    # CYCLE
    # ==========================================================

    async def run_cycle(self) -> CycleReport:
        """
        Evaluate the watchlist and execute confident signals, one at a time.

        Never raises; failures are logged and recorded on the report.
        """
        if self.skip_if_busy and self._active_cycles > 0:
            now = _utcnow()
            self.skipped_ticks += 1
            logger.warning("Previous trading cycle still running, skipping this tick")
            return CycleReport(started_at=now, finished_at=now, skipped=True)

        self._active_cycles += 1
        report = CycleReport(started_at=_utcnow())

        # Parameters are fixed for the whole cycle
        symbols = list(self.watched_symbols)
        max_position_size = self.max_position_size
        min_confidence = self.min_confidence

        try:
            logger.info("Checking trading signals...")
            signals = await self.signal_generator.generate_batch(symbols)
            report.signals_evaluated = len(signals)

            executable = [
                s for s in signals
                if s.should_execute and s.confidence >= min_confidence and s.action != SignalAction.HOLD
            ]
            report.executable = len(executable)
            report.buy_count = sum(1 for s in executable if s.action == SignalAction.BUY)
            report.sell_count = sum(1 for s in executable if s.action == SignalAction.SELL)
            logger.info(f"Found {len(executable)} executable signals out of {len(signals)} total")

            for i, signal in enumerate(executable):
                result = await self.execute_trade(signal, max_position_size=max_position_size)
                report.results.append(result)

                if self.trade_delay_seconds > 0 and i < len(executable) - 1:
                    await asyncio.sleep(self.trade_delay_seconds)

            logger.info(
                f"Trading cycle complete: {report.buy_count} BUY signals, {report.sell_count} SELL signals "
                f"({report.executed} orders placed)"
            )
        except Exception as e:
            logger.error(f"Error in automated trading cycle: {e}", exc_info=True)
            report.error = str(e)
        finally:
            self._active_cycles -= 1
            report.finished_at = _utcnow()
            self.cycles_completed += 1
            self.last_cycle = report

        return report

    async def execute_trade(self, signal: Signal, max_position_size: Optional[int] = None) -> TradeResult:
        """
        Place a market order for one signal.

        Opposite-side open orders on the symbol are cancelled first so the
        new order cannot cross them. Never raises.
        """
        size_cap = max_position_size if max_position_size is not None else self.max_position_size
        side = signal.action.order_side
        if side is None:
            return TradeResult(success=False, signal=signal, error="HOLD signals are not executable")

        position_size = recommended_position_size(signal.confidence, size_cap)
        result = TradeResult(success=False, signal=signal, position_size=position_size)
        order_side = OrderSide(side)

        logger.info(
            f"Executing {signal.action.value} order for {position_size} shares of {signal.symbol} "
            f"(confidence: {signal.confidence * 100:.1f}%)"
        )

        try:
            open_orders = await self.broker.get_open_orders(signal.symbol)
            opposing = [o for o in open_orders if o.symbol == signal.symbol and o.side != order_side]

            if opposing:
                logger.info(
                    f"Cancelling {len(opposing)} opposite side orders for {signal.symbol} to prevent wash trade"
                )
                for order in opposing:
                    try:
                        await self.broker.cancel_order(order.id)
                        result.cancelled_order_ids.append(order.id)
                        logger.info(f"Cancelled order {order.id} for {signal.symbol}")
                    except Exception as e:
                        result.failed_cancellations.append(order.id)
                        logger.warning(f"Failed to cancel order {order.id}: {e}")

                if self.cancel_settle_seconds > 0:
                    await asyncio.sleep(self.cancel_settle_seconds)

            order = await self.broker.submit_order(OrderRequest(
                symbol=signal.symbol,
                qty=position_size,
                side=order_side,
                type=OrderType.MARKET,
                time_in_force=TimeInForce.DAY,
                origin=OrderOrigin.AUTOMATION,
            ))
        except Exception as e:
            logger.error(f"Failed to execute trade for {signal.symbol}: {e}")
            result.error = str(e)
            return result

        result.success = True
        result.order_id = order.id
        logger.info(
            f"Order placed successfully: {order.id} {side.upper()} {position_size} {signal.symbol} "
            f"(confidence: {signal.confidence:.2f}, reason: {signal.reason})"
        )
        return result

    # ==========================================================
    # STATUS / PARAMETERS
    # ==========================================================

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "watched_symbols": list(self.watched_symbols),
            "max_position_size": self.max_position_size,
            "min_confidence": self.min_confidence,
            "schedule_state": "Running" if self.is_running else "Stopped",
            "interval_minutes": self.interval_minutes,
            "skip_if_busy": self.skip_if_busy,
            "cycle_in_progress": self._active_cycles > 0,
            "cycles_completed": self.cycles_completed,
            "skipped_ticks": self.skipped_ticks,
            "last_cycle": self.last_cycle.to_dict() if self.last_cycle else None,
        }

    def update_parameters(
        self,
        symbols: Optional[List[str]] = None,
        max_position_size: Optional[int] = None,
        min_confidence: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Merge new parameters into the loop state.

        All given values are validated before any is applied. A running
        loop picks them up on its next cycle.
        """
        new_symbols = _normalize_symbols(symbols) if symbols is not None else None
        if max_position_size is not None:
            _validate_position_size(max_position_size)
        if min_confidence is not None:
            _validate_confidence(min_confidence)

        if new_symbols is None and max_position_size is None and min_confidence is None:
            return self.get_status()

        if new_symbols is not None:
            self.watched_symbols = new_symbols
        if max_position_size is not None:
            self.max_position_size = max_position_size
        if min_confidence is not None:
            self.min_confidence = min_confidence

        logger.info(
            f"Trading parameters updated: symbols={self.watched_symbols}, "
            f"max_position_size={self.max_position_size}, min_confidence={self.min_confidence}"
        )
        if self.is_running:
            logger.info("New parameters will be applied in the next trading cycle")
        return self.get_status()


def _normalize_symbols(symbols) -> List[str]:
    """Uppercase, strip and de-duplicate (order preserved)."""
    if isinstance(symbols, str) or not isinstance(symbols, (list, tuple)) or not symbols:
        raise ValidationError("Symbols must be a non-empty list")

    normalized: List[str] = []
    for raw in symbols:
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError(f"Invalid symbol: {raw!r}")
        symbol = raw.strip().upper()
        if not SYMBOL_PATTERN.match(symbol):
            raise ValidationError(f"Invalid symbol: {raw!r}")
        if symbol not in normalized:
            normalized.append(symbol)
    return normalized


def _clamp_interval(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ValidationError(f"Interval must be a number of minutes (got {value!r})")
    return max(MIN_INTERVAL_MINUTES, min(MAX_INTERVAL_MINUTES, value))


def _validate_position_size(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"max_position_size must be an integer >= 1 (got {value!r})")
    return value


def _validate_confidence(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
        raise ValidationError(f"min_confidence must be between 0 and 1 (got {value!r})")
    return value
