import os
import tempfile
import unittest
from unittest import mock

_TMP = tempfile.TemporaryDirectory()
os.environ["FINNHUB_API_TOKEN"] = "test-token"
os.environ["POSITIONS_PATH"] = os.path.join(_TMP.name, "positions.json")
os.environ.pop("OPENAI_API_KEY", None)

import httpx  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from premarket import state  # noqa: E402
from premarket.api.routes import router  # noqa: E402
from premarket.models.news import Headline  # noqa: E402

app = FastAPI()
app.include_router(router)


def tearDownModule():
    _TMP.cleanup()


class TestApiRoutes(unittest.TestCase):
    """Routes only; the live feed and flush loop are not started here."""

    def setUp(self):
        self.client = TestClient(app)
        state.aggregator.reset()
        state.flusher.reset()
        state.series.reset(None)

    def tearDown(self):
        state.manager.symbol = None
        state.aggregator.reset()

    def test_status_reports_disconnected_feed(self):
        resp = self.client.get("/status")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["state"], "DISCONNECTED")
        self.assertFalse(body["connected"])
        self.assertFalse(body["flushing"])

    def test_simulated_ticks_build_current_candle(self):
        for ts, price in ((0, 100.0), (30_000, 105.0), (59_999, 95.0)):
            resp = self.client.post("/dev/simulate_tick", params={"price": price, "ts_ms": ts})
            self.assertEqual(resp.status_code, 200)

        resp = self.client.get("/candles/current")
        self.assertEqual(
            resp.json()["candle"],
            {"time": 0, "open": 100.0, "high": 105.0, "low": 95.0, "close": 95.0},
        )

    def test_minute_roll_lists_closed_candle_in_series(self):
        state.manager.symbol = "NVDA"
        for ts, price in ((0, 100.0), (61_000, 110.0)):
            resp = self.client.post("/dev/simulate_tick", params={"price": price, "ts_ms": ts})
            self.assertEqual(resp.status_code, 200)

        body = self.client.get("/candles").json()
        self.assertEqual(body["symbol"], "NVDA")
        self.assertEqual(
            body["candles"],
            [{"time": 0, "open": 100.0, "high": 100.0, "low": 100.0, "close": 100.0}],
        )
        self.assertEqual(body["current"]["time"], 60)
        self.assertEqual(body["current"]["close"], 110.0)

    def test_bad_tick_rejected(self):
        self.client.post("/dev/simulate_tick", params={"price": 10.0, "ts_ms": 0})
        resp = self.client.post("/dev/simulate_tick", params={"price": -5.0, "ts_ms": 1000})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.client.get("/candles").json()["current"]["low"], 10.0)

    def test_blank_ticker_rejected(self):
        resp = self.client.put("/ticker", params={"symbol": "  "})
        self.assertEqual(resp.status_code, 400)

    def test_positions_roundtrip(self):
        resp = self.client.post("/positions", json={"symbol": "nvda", "qty": 3, "price": 101.25})
        self.assertEqual(resp.status_code, 200)
        self.assertIn({"qty": 3.0, "price": 101.25}, resp.json()["NVDA"])
        self.assertIn("NVDA", self.client.get("/positions").json())

    def test_brief_without_key_is_unavailable(self):
        resp = self.client.post("/api/brief", params={"tickers": "NVDA,AAPL"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "AI brief unavailable")

    def test_news(self):
        headlines = [Headline(id=1, headline="Chips rally", url="https://n/1", sentiment="Bullish")]
        with mock.patch.object(state.provider, "fetch_news", return_value=headlines) as fetch:
            resp = self.client.get("/news", params={"ticker": "nvda"})

        fetch.assert_called_once_with("NVDA", limit=20)
        self.assertEqual(resp.json()["news"][0]["headline"], "Chips rally")

    def test_news_upstream_failure(self):
        with mock.patch.object(state.provider, "fetch_news", side_effect=httpx.ConnectError("down")):
            resp = self.client.get("/news", params={"ticker": "NVDA"})
        self.assertEqual(resp.status_code, 502)


if __name__ == "__main__":
    unittest.main()
