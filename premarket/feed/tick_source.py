from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import websockets

from premarket.models.market import ConnectionState, MalformedMessageError, MalformedTickError, Tick
from premarket.providers.base import MarketDataProvider

log = logging.getLogger("tick_source")


class TickSource:
    """
    One streaming connection for one symbol.

    run() walks the state machine once:
      DISCONNECTED -> CONNECTING -> SUBSCRIBED -> (ERROR | CLOSED) -> DISCONNECTED
    and returns. It never retries on its own; SubscriptionManager decides
    when to build the next TickSource.

    After close(), on_tick is never called again.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        symbol: str,
        on_tick: Callable[[Tick], None],
        on_state: Optional[Callable[[ConnectionState], None]] = None,
        connect: Callable[..., Any] = websockets.connect,
        close_timeout: float = 2.0,
    ):
        self.provider = provider
        self.symbol = symbol
        self.on_tick = on_tick
        self.on_state = on_state
        self._connect = connect
        self.close_timeout = close_timeout

        self.state = ConnectionState.DISCONNECTED
        self.was_subscribed = False
        self.last_error: Optional[str] = None
        self.ticks_received = 0
        self.dropped_messages = 0

        self._ws: Optional[Any] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self) -> None:
        if self._closed:
            return

        self._set_state(ConnectionState.CONNECTING)
        try:
            async with self._connect(
                self.provider.ws_url(),
                ping_interval=20,
                ping_timeout=20,
                close_timeout=self.close_timeout,
            ) as ws:
                self._ws = ws
                if self._closed:
                    return

                await ws.send(self.provider.subscribe_message(self.symbol))
                self.was_subscribed = True
                self._set_state(ConnectionState.SUBSCRIBED)
                log.warning("Feed subscribed symbol=%s", self.symbol)

                async for raw in ws:
                    if self._closed:
                        break
                    self._handle_message(raw)

            self._set_state(ConnectionState.CLOSED)
            log.warning("Feed closed symbol=%s", self.symbol)
        except Exception as e:
            self.last_error = repr(e)
            self._set_state(ConnectionState.ERROR)
            log.warning("Feed error symbol=%s error=%r", self.symbol, e)
        finally:
            self._ws = None
            self._set_state(ConnectionState.DISCONNECTED)

    async def close(self) -> None:
        """Unsubscribe and close. Safe to call at any time, more than once."""
        if self._closed:
            return
        self._closed = True

        ws = self._ws
        if ws is None:
            return
        try:
            await asyncio.wait_for(self._unsubscribe_and_close(ws), timeout=self.close_timeout)
        except asyncio.TimeoutError:
            log.info("Feed close for symbol=%s timed out after %.1fs", self.symbol, self.close_timeout)
        except Exception as e:
            log.info("Feed close for symbol=%s did not complete cleanly: %r", self.symbol, e)

    async def _unsubscribe_and_close(self, ws: Any) -> None:
        if self.was_subscribed:
            await ws.send(self.provider.unsubscribe_message(self.symbol))
        await ws.close()

    def _handle_message(self, raw: Any) -> None:
        try:
            ticks = self.provider.parse_message(raw)
        except MalformedMessageError as e:
            self.dropped_messages += 1
            log.warning("Dropping malformed feed message symbol=%s error=%s", self.symbol, e)
            return

        for tick in ticks:
            if self._closed:
                return
            try:
                self.on_tick(tick)
            except MalformedTickError as e:
                log.warning("Dropping malformed tick symbol=%s error=%s", self.symbol, e)
                continue
            self.ticks_received += 1

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.state = state
        if self.on_state is not None and not self._closed:
            self.on_state(state)
