from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

BUCKET_MS = 60_000


def bucket_start_for(ts_ms: int) -> int:
    """Start of the one-minute bucket (epoch seconds) that ts_ms falls into."""
    return (ts_ms // BUCKET_MS) * 60


class MalformedTickError(ValueError):
    """Tick rejected before it could touch the open candle."""


class MalformedMessageError(ValueError):
    """Feed frame that could not be parsed at all."""


class ConnectionState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    SUBSCRIBED = "SUBSCRIBED"
    ERROR = "ERROR"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class Tick:
    """
    Tick = a single trade from the live feed.

    ts_ms: trade time, milliseconds since epoch
    price: traded price
    symbol: symbol reported by the feed (informational only)
    """
    ts_ms: int
    price: float
    symbol: Optional[str] = None


@dataclass
class Candle:
    """
    One-minute OHLC candle.

    bucket_start: start of the minute in epoch seconds (chart "time")
    open/high/low/close: prices folded into this minute
    """
    bucket_start: int
    open: float
    high: float
    low: float
    close: float

    @classmethod
    def from_tick(cls, tick: Tick) -> "Candle":
        return cls(
            bucket_start=bucket_start_for(tick.ts_ms),
            open=tick.price,
            high=tick.price,
            low=tick.price,
            close=tick.price,
        )

    def update(self, price: float) -> None:
        """Fold one more trade price into this candle."""
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price

    def snapshot(self) -> "Candle":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "time": self.bucket_start,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }
