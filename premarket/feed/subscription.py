from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import websockets

from premarket.candles.aggregator import CandleAggregator
from premarket.candles.sinks import CandleSink
from premarket.feed.tick_source import TickSource
from premarket.models.market import ConnectionState, Tick
from premarket.providers.base import MarketDataProvider

log = logging.getLogger("subscription_manager")


@dataclass
class Backoff:
    """Capped exponential reconnect delay: initial, initial*factor, ... up to maximum."""
    initial: float = 1.0
    factor: float = 2.0
    maximum: float = 30.0
    _current: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        self._current = self.initial

    def next_delay(self) -> float:
        delay = self._current
        self._current = min(self._current * self.factor, self.maximum)
        return delay

    def reset(self) -> None:
        self._current = self.initial


class SubscriptionManager:
    """
    Owns the single active subscription.

    set_symbol():
    - tears down the current TickSource
    - resets the aggregator, the on_reset hook and the sink
      (no stale candle survives a switch)
    - starts a connection loop for the new symbol

    The connection loop reconnects with capped exponential backoff after
    every error/close until the symbol changes or stop() is called.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        aggregator: CandleAggregator,
        sink: Optional[CandleSink] = None,
        backoff: Optional[Backoff] = None,
        connect: Callable[..., Any] = websockets.connect,
        on_reset: Optional[Callable[[str], None]] = None,
    ):
        self.provider = provider
        self.aggregator = aggregator
        self.sink = sink
        self.backoff = backoff or Backoff()
        self._connect = connect
        self.on_reset = on_reset

        self.symbol: Optional[str] = None
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self.last_error: Optional[str] = None

        self._generation = 0
        self._source: Optional[TickSource] = None
        self._task: Optional[asyncio.Task] = None

    async def set_symbol(self, new_symbol: str) -> bool:
        """Switch the tracked symbol. Returns False when nothing changed."""
        symbol = (new_symbol or "").strip().upper()
        if not symbol:
            raise ValueError("symbol must not be empty")
        if symbol == self.symbol:
            return False

        previous = self.symbol
        old_source, old_task = self._detach()

        self.aggregator.reset()
        if self.on_reset is not None:
            self.on_reset(symbol)
        if self.sink is not None:
            self.sink.reset(symbol)
        self.symbol = symbol
        self.reconnect_attempts = 0
        self.last_error = None
        self.backoff.reset()
        generation = self._generation

        await self._teardown(old_source, old_task)
        if generation != self._generation:
            # Another switch happened while the old feed was closing.
            return True

        self._task = asyncio.create_task(self._run(symbol, generation), name=f"feed-{symbol}")
        log.warning("Tracking symbol=%s (was %s)", symbol, previous)
        return True

    async def stop(self) -> None:
        old_source, old_task = self._detach()
        await self._teardown(old_source, old_task)
        self.aggregator.reset()
        log.info("Subscription manager stopped symbol=%s", self.symbol)
        self.symbol = None

    def status(self) -> dict:
        return {
            "symbol": self.symbol,
            "state": self.state.value,
            "connected": self.state == ConnectionState.SUBSCRIBED,
            "reconnect_attempts": self.reconnect_attempts,
            "last_error": self.last_error,
        }

    # -------------------------
    # Internals
    # -------------------------
    def _detach(self):
        """Invalidate the running subscription. Synchronous, so no tick can slip in."""
        self._generation += 1
        source, task = self._source, self._task
        self._source = None
        self._task = None
        self.state = ConnectionState.DISCONNECTED
        return source, task

    async def _teardown(self, source: Optional[TickSource], task: Optional[asyncio.Task]) -> None:
        if source is not None:
            await source.close()
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, symbol: str, generation: int) -> None:
        while generation == self._generation:
            source = TickSource(
                provider=self.provider,
                symbol=symbol,
                on_tick=lambda tick: self._on_tick(generation, tick),
                on_state=lambda state: self._on_state(generation, state),
                connect=self._connect,
            )
            self._source = source
            await source.run()

            if generation != self._generation:
                return
            if source.last_error:
                self.last_error = source.last_error
            if source.was_subscribed:
                self.backoff.reset()

            delay = self.backoff.next_delay()
            self.reconnect_attempts += 1
            log.warning(
                "Feed disconnected symbol=%s, reconnect #%d in %.1fs",
                symbol,
                self.reconnect_attempts,
                delay,
            )
            await asyncio.sleep(delay)

    def _on_tick(self, generation: int, tick: Tick) -> None:
        if generation != self._generation:
            return
        self.aggregator.ingest(tick)

    def _on_state(self, generation: int, state: ConnectionState) -> None:
        if generation != self._generation:
            return
        self.state = state
        if state == ConnectionState.SUBSCRIBED:
            self.last_error = None
