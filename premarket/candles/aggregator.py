from __future__ import annotations

import logging
import math
import threading
from typing import Callable, Optional

from premarket.models.market import Candle, MalformedTickError, Tick, bucket_start_for

log = logging.getLogger("candle_aggregator")


class CandleAggregator:
    """
    Folds ticks into the currently open 1m candle.

    - ticks in the open minute (or older, out-of-order) update the open candle
    - a tick from a later minute closes the open candle, hands it to on_close,
      then opens a new candle at the tick price
    - reset() drops the open candle without emitting it (symbol change)

    The aggregator owns the open candle; readers only get snapshots.
    """

    def __init__(self, on_close: Optional[Callable[[Candle], None]] = None):
        self.on_close = on_close
        self._open: Optional[Candle] = None
        self._lock = threading.Lock()

    def ingest(self, tick: Tick) -> None:
        self._validate(tick)
        bucket = bucket_start_for(tick.ts_ms)

        closed: Optional[Candle] = None
        with self._lock:
            current = self._open
            if current is None:
                self._open = Candle.from_tick(tick)
            elif bucket > current.bucket_start:
                closed = current
                self._open = Candle.from_tick(tick)
            else:
                # Same minute, or a late tick for an earlier minute.
                current.update(tick.price)

        if closed is not None:
            self._emit(closed)

    def current_candle(self) -> Optional[Candle]:
        with self._lock:
            if self._open is None:
                return None
            return self._open.snapshot()

    def reset(self) -> None:
        with self._lock:
            self._open = None

    def _emit(self, candle: Candle) -> None:
        if self.on_close is None:
            return
        try:
            self.on_close(candle)
        except Exception as e:
            log.warning("Emitting closed candle failed bucket=%s error=%r", candle.bucket_start, e)

    @staticmethod
    def _validate(tick: Tick) -> None:
        price = tick.price
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise MalformedTickError(f"invalid price: {price!r}")
        if not math.isfinite(price) or price <= 0:
            raise MalformedTickError(f"invalid price: {price!r}")
        if tick.ts_ms < 0:
            raise MalformedTickError(f"negative timestamp: {tick.ts_ms!r}")
