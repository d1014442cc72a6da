from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from premarket.models.market import Candle

log = logging.getLogger("candle_sinks")


class CandleSink(ABC):
    """
    Rendering sink contract.

    upsert() is keyed by candle.bucket_start: sending the same candle twice
    must leave the sink as if it was sent once, and a later upsert for the
    same bucket replaces the earlier one.
    """

    @abstractmethod
    def upsert(self, symbol: str, candle: Candle) -> None:
        raise NotImplementedError

    def reset(self, symbol: str) -> None:
        """Tracked symbol changed; drop whatever is displayed."""


class CandleSeries(CandleSink):
    """
    In-memory chart series for the tracked symbol.

    series[bucket_start] -> latest candle seen for that minute
    Holds at most max_points candles (oldest dropped first).
    """

    def __init__(self, max_points: int = 500):
        self.max_points = max_points
        self.symbol: Optional[str] = None
        self._series: Dict[int, Candle] = {}

    def upsert(self, symbol: str, candle: Candle) -> None:
        if self.symbol is not None and symbol != self.symbol:
            log.warning("Dropping candle for stale symbol=%s (tracking %s)", symbol, self.symbol)
            return
        self.symbol = symbol
        self._series[candle.bucket_start] = candle.snapshot()

        if len(self._series) > self.max_points:
            for key in sorted(self._series)[: len(self._series) - self.max_points]:
                del self._series[key]

    def reset(self, symbol: str) -> None:
        self.symbol = symbol
        self._series.clear()

    def candles(self) -> List[Candle]:
        return [self._series[k] for k in sorted(self._series)]

    def get(self, bucket_start: int) -> Optional[Candle]:
        return self._series.get(bucket_start)


class CandleBroadcaster(CandleSink):
    """
    Pushes candle upserts to connected UI clients.

    Each client gets its own bounded queue; the WebSocket route drains it.
    A slow client loses messages instead of blocking the pipeline.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._clients: Set[asyncio.Queue] = set()

    def register(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._clients.add(queue)
        log.info("UI client connected clients=%d", len(self._clients))
        return queue

    def unregister(self, queue: asyncio.Queue) -> None:
        self._clients.discard(queue)
        log.info("UI client disconnected clients=%d", len(self._clients))

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def upsert(self, symbol: str, candle: Candle) -> None:
        self._publish({"type": "candle", "symbol": symbol, "candle": candle.to_dict()})

    def reset(self, symbol: str) -> None:
        self._publish({"type": "reset", "symbol": symbol})

    def _publish(self, message: dict) -> None:
        for queue in list(self._clients):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                log.warning("UI client queue full, dropping %s message", message["type"])


class FanoutSink(CandleSink):
    """Forwards every call to each sink in order. Errors propagate."""

    def __init__(self, *sinks: CandleSink):
        self.sinks = list(sinks)

    def upsert(self, symbol: str, candle: Candle) -> None:
        for sink in self.sinks:
            sink.upsert(symbol, candle)

    def reset(self, symbol: str) -> None:
        for sink in self.sinks:
            sink.reset(symbol)
