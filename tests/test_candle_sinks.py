import asyncio
import unittest

from premarket.candles.sinks import CandleBroadcaster, CandleSeries, FanoutSink
from premarket.models.market import Candle

from fakes import RecordingSink


def candle(bucket, o=100.0, h=100.0, l=100.0, c=100.0):
    return Candle(bucket_start=bucket, open=o, high=h, low=l, close=c)


class TestCandleSeries(unittest.TestCase):
    def test_repeated_upsert_is_idempotent(self):
        series = CandleSeries()
        series.upsert("NVDA", candle(0))
        series.upsert("NVDA", candle(0))

        self.assertEqual(series.candles(), [candle(0)])

    def test_later_upsert_finalizes_bucket(self):
        series = CandleSeries()
        series.upsert("NVDA", candle(0, h=101.0, c=101.0))
        series.upsert("NVDA", candle(0, h=105.0, l=95.0, c=97.0))

        self.assertEqual(series.get(0), candle(0, h=105.0, l=95.0, c=97.0))
        self.assertEqual(len(series.candles()), 1)

    def test_stored_candle_is_independent_of_caller(self):
        series = CandleSeries()
        c = candle(0)
        series.upsert("NVDA", c)
        c.close = 1.0
        self.assertEqual(series.get(0).close, 100.0)

    def test_candles_sorted_and_bounded(self):
        series = CandleSeries(max_points=3)
        for bucket in (240, 0, 60, 180, 120):
            series.upsert("NVDA", candle(bucket))

        self.assertEqual([c.bucket_start for c in series.candles()], [120, 180, 240])

    def test_reset_clears_and_switches_symbol(self):
        series = CandleSeries()
        series.upsert("NVDA", candle(0))
        series.reset("AAPL")

        self.assertEqual(series.candles(), [])
        self.assertEqual(series.symbol, "AAPL")

        series.upsert("NVDA", candle(60))
        self.assertEqual(series.candles(), [])


class TestCandleBroadcaster(unittest.IsolatedAsyncioTestCase):
    async def test_upsert_and_reset_reach_every_client(self):
        hub = CandleBroadcaster()
        q1 = hub.register()
        q2 = hub.register()

        hub.upsert("NVDA", candle(60))
        hub.reset("AAPL")

        for q in (q1, q2):
            self.assertEqual(
                await q.get(),
                {"type": "candle", "symbol": "NVDA", "candle": candle(60).to_dict()},
            )
            self.assertEqual(await q.get(), {"type": "reset", "symbol": "AAPL"})

    async def test_full_queue_drops_instead_of_raising(self):
        hub = CandleBroadcaster(queue_size=1)
        q = hub.register()
        hub.upsert("NVDA", candle(0))
        hub.upsert("NVDA", candle(60))

        self.assertEqual(q.qsize(), 1)
        self.assertEqual((await q.get())["candle"]["time"], 0)

    async def test_unregistered_client_gets_nothing(self):
        hub = CandleBroadcaster()
        q = hub.register()
        hub.unregister(q)
        hub.upsert("NVDA", candle(0))

        self.assertEqual(hub.client_count, 0)
        with self.assertRaises(asyncio.QueueEmpty):
            q.get_nowait()


class TestFanoutSink(unittest.TestCase):
    def test_forwards_to_all(self):
        a, b = RecordingSink(), RecordingSink()
        fan = FanoutSink(a, b)
        fan.upsert("NVDA", candle(0))
        fan.reset("AAPL")

        for sink in (a, b):
            self.assertEqual(sink.upserts, [("NVDA", candle(0))])
            self.assertEqual(sink.resets, ["AAPL"])

    def test_errors_propagate(self):
        bad = RecordingSink()
        bad.fail = True
        with self.assertRaises(RuntimeError):
            FanoutSink(RecordingSink(), bad).upsert("NVDA", candle(0))


if __name__ == "__main__":
    unittest.main()
