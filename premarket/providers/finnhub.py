from __future__ import annotations

import json
import logging
import os
from datetime import date, timedelta
from typing import Any, List, Optional, Union

import httpx

from premarket.models.market import MalformedMessageError, Tick
from premarket.models.news import Headline
from premarket.providers.base import MarketDataProvider

log = logging.getLogger("finnhub_provider")


class FinnhubProvider(MarketDataProvider):
    """
    Finnhub Provider (WS + REST).

    WS:
    - live trade ticks for one subscribed symbol (1m candle building)

    REST:
    - company news headlines for the tracked symbol
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        ws_url: Optional[str] = None,
        news_lookback_days: int = 3,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_token = api_token or os.getenv("FINNHUB_API_TOKEN")
        if not self.api_token:
            raise RuntimeError("Missing Finnhub API token. Set FINNHUB_API_TOKEN in your .env.")

        self.base_url = (base_url or os.getenv("FINNHUB_BASE_URL") or "https://finnhub.io/api/v1").rstrip("/")
        self._ws_base = (ws_url or os.getenv("FINNHUB_WS_URL") or "wss://ws.finnhub.io").strip()
        self.news_lookback_days = news_lookback_days

        timeout_s = float(os.getenv("FINNHUB_TIMEOUT_SECONDS", "10"))
        self._client = client or httpx.Client(timeout=timeout_s)

    # -------------------------
    # WS protocol
    # -------------------------
    def ws_url(self) -> str:
        if "token=" in self._ws_base:
            return self._ws_base
        sep = "&" if "?" in self._ws_base else "?"
        return f"{self._ws_base}{sep}token={self.api_token}"

    def subscribe_message(self, symbol: str) -> str:
        return json.dumps({"type": "subscribe", "symbol": symbol})

    def unsubscribe_message(self, symbol: str) -> str:
        return json.dumps({"type": "unsubscribe", "symbol": symbol})

    def parse_message(self, raw: Union[str, bytes]) -> List[Tick]:
        """
        Parses one WS frame.

        Trade frames look like:
          {"type": "trade", "data": [{"s": "NVDA", "p": 120.5, "t": 1718000000000, "v": 10}]}
        Only t (ms) and p are used. Records missing either are skipped.
        Ping frames and other control frames carry no ticks.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedMessageError(f"not JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedMessageError(f"unexpected frame type: {type(data).__name__}")

        kind = data.get("type")
        if kind == "error":
            log.warning("Finnhub WS error msg=%s", data.get("msg"))
            return []
        if kind != "trade":
            return []

        records = data.get("data")
        if not isinstance(records, list):
            raise MalformedMessageError("trade frame without data list")

        ticks: List[Tick] = []
        for rec in records:
            if not isinstance(rec, dict):
                continue
            p = rec.get("p")
            t = rec.get("t")
            if p is None or t is None or isinstance(p, bool) or isinstance(t, bool):
                continue
            try:
                ticks.append(Tick(ts_ms=int(t), price=float(p), symbol=rec.get("s")))
            except (TypeError, ValueError, OverflowError):
                log.debug("Skipping unparseable trade record %s", rec)
                continue
        return ticks

    # -------------------------
    # REST: news
    # -------------------------
    def fetch_news(self, symbol: str, limit: int = 20) -> List[Headline]:
        """
        Finnhub company news endpoint:
          GET {base_url}/company-news?symbol=NVDA&from=YYYY-MM-DD&to=YYYY-MM-DD&token=...
        """
        today = date.today()
        params = {
            "symbol": symbol,
            "from": (today - timedelta(days=self.news_lookback_days)).isoformat(),
            "to": today.isoformat(),
            "token": self.api_token,
        }
        resp = self._client.get(f"{self.base_url}/company-news", params=params)
        resp.raise_for_status()

        data = resp.json()
        if not isinstance(data, list):
            log.warning("Unexpected news payload type symbol=%s type=%s", symbol, type(data))
            return []

        out: List[Headline] = []
        for row in data:
            headline = self._to_headline(row)
            if headline is not None:
                out.append(headline)
            if len(out) >= limit:
                break
        return out

    @staticmethod
    def _to_headline(row: Any) -> Optional[Headline]:
        if not isinstance(row, dict):
            return None
        if row.get("id") is None or not row.get("headline") or not row.get("url"):
            return None

        sentiment = "Bearish" if str(row.get("sentiment", "")).lower() == "bearish" else "Bullish"
        try:
            return Headline(
                id=int(row["id"]),
                headline=str(row["headline"]),
                url=str(row["url"]),
                source=row.get("source"),
                datetime=row.get("datetime"),
                sentiment=sentiment,
            )
        except (TypeError, ValueError):
            return None

    def close(self) -> None:
        self._client.close()
