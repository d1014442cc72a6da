from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Dict, Optional, Tuple

from premarket.candles.aggregator import CandleAggregator
from premarket.candles.sinks import CandleSink
from premarket.models.market import Candle

log = logging.getLogger("flush_scheduler")


class FlushScheduler:
    """
    Background loop:
    every interval_seconds, push the open candle (if any) to the sink.

    Runs on its own clock, independent of how often ticks arrive.
    The open candle may be re-sent many times before it closes; the sink
    upsert is idempotent so that is harmless.

    Closed candles go out immediately through emit_closed(). If the sink is
    down at that moment they stay pending and are re-sent (oldest first,
    before the open candle) on the next flush until the sink accepts them.
    """

    def __init__(
        self,
        aggregator: CandleAggregator,
        sink: CandleSink,
        symbol_getter: Callable[[], Optional[str]],
        interval_seconds: float = 5.0,
    ):
        self.aggregator = aggregator
        self.sink = sink
        self.symbol_getter = symbol_getter
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        # bucket_start -> (symbol, closed candle) not yet accepted by the sink
        self._pending: Dict[int, Tuple[str, Candle]] = {}

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._loop(), name="flush-scheduler")
        log.info("Flush scheduler started interval=%.1fs", self.interval_seconds)

    async def stop(self) -> None:
        self._stopped = True
        self._pending.clear()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        log.info("Flush scheduler stopped")

    def reset(self, symbol: Optional[str] = None) -> None:
        """Tracked symbol changed: closed candles of the old symbol are never sent."""
        self._pending.clear()

    def emit_closed(self, candle: Candle) -> None:
        """Hand a just-closed candle to the sink now, keeping it if the sink fails."""
        if self._stopped:
            return
        symbol = self.symbol_getter()
        if symbol is None:
            return
        self._pending[candle.bucket_start] = (symbol, candle.snapshot())
        self._send_pending()

    def flush_once(self) -> Optional[Candle]:
        """Push pending closed candles, then the open candle. Returns the open candle sent (None if nothing)."""
        if self._stopped:
            return None

        if not self._send_pending():
            # Sink down: skip this interval, the next one re-sends.
            return None

        candle = self.aggregator.current_candle()
        symbol = self.symbol_getter()
        if candle is None or symbol is None:
            return None

        try:
            self.sink.upsert(symbol, candle)
        except Exception as e:
            log.warning("Flush failed symbol=%s bucket=%s error=%r", symbol, candle.bucket_start, e)
            return None
        return candle

    def _send_pending(self) -> bool:
        symbol = self.symbol_getter()
        for bucket in sorted(self._pending):
            pending_symbol, candle = self._pending[bucket]
            if pending_symbol != symbol:
                del self._pending[bucket]
                continue
            try:
                self.sink.upsert(pending_symbol, candle)
            except Exception as e:
                log.warning(
                    "Closed candle not delivered, will retry symbol=%s bucket=%s error=%r",
                    pending_symbol,
                    bucket,
                    e,
                )
                return False
            del self._pending[bucket]
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.flush_once()
