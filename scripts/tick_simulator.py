from __future__ import annotations

import random
import time

from premarket.candles.aggregator import CandleAggregator
from premarket.models.market import Candle, Tick


def run(symbol: str = "NVDA", seconds: int = 360) -> None:
    """
    Generates fake ticks for `seconds` seconds and feeds them into CandleAggregator.

    - We simulate 1 tick per second.
    - Price does a random walk (moves up/down a bit each tick).
    - Every closed 1m candle is printed as it is emitted.
    """
    closed: list[Candle] = []

    def on_close(candle: Candle) -> None:
        closed.append(candle)
        print(
            f"[CLOSED 1m] {symbol} t={candle.bucket_start} "
            f"O={candle.open} H={candle.high} L={candle.low} C={candle.close}"
        )

    aggregator = CandleAggregator(on_close=on_close)

    # Start at the current minute boundary so candles look clean.
    ts_ms = (int(time.time()) // 60) * 60_000

    price = 100.0

    print(f"Simulating ticks for {symbol} for {seconds} seconds...\n")

    for _ in range(seconds):
        price += random.uniform(-0.2, 0.2)
        aggregator.ingest(Tick(ts_ms=ts_ms, price=round(price, 2), symbol=symbol))
        ts_ms += 1000

    current = aggregator.current_candle()

    print("\nDone.")
    print(f"Closed 1m candles: {len(closed)}")
    print(f"Open candle: {current.to_dict() if current else None}")


if __name__ == "__main__":
    run()
