from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from premarket.models.market import MalformedTickError, Tick
from premarket.models.positions import Lot
from premarket.state import aggregator, briefs, broadcaster, flusher, ledger, manager, provider, series, settings

log = logging.getLogger("api")

router = APIRouter()


@router.get("/status")
def status():
    """
    Connection status for the UI shell:
    - feed state (DISCONNECTED / CONNECTING / SUBSCRIBED ...)
    - reconnect attempts since the last symbol switch
    - whether the flush loop is alive
    """
    return {
        **manager.status(),
        "flushing": flusher.running,
        "ui_clients": broadcaster.client_count,
    }


@router.put("/ticker")
async def set_ticker(symbol: str = Query(..., description="Ticker symbol, e.g., NVDA")):
    try:
        changed = await manager.set_symbol(symbol)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "changed": changed, "symbol": manager.symbol}


@router.get("/candles")
def candles():
    current = aggregator.current_candle()
    return {
        "symbol": manager.symbol,
        "candles": [c.to_dict() for c in series.candles()],
        "current": current.to_dict() if current else None,
    }


@router.get("/candles/current")
def current_candle():
    current = aggregator.current_candle()
    return {"symbol": manager.symbol, "candle": current.to_dict() if current else None}


@router.post("/dev/simulate_tick")
async def dev_simulate_tick(
    price: float = Query(..., description="Tick price"),
    ts_ms: Optional[int] = Query(None, description="Trade time in ms (default: now)"),
):
    """
    Dev-only helper:
    Feeds ONE tick into the aggregator inside the running API process.
    """
    tick = Tick(ts_ms=ts_ms if ts_ms is not None else int(time.time() * 1000), price=price)
    try:
        aggregator.ingest(tick)
    except MalformedTickError as e:
        raise HTTPException(status_code=400, detail=str(e))
    current = aggregator.current_candle()
    return {"ok": True, "candle": current.to_dict() if current else None}


@router.get("/news")
def news(ticker: Optional[str] = Query(None, description="Ticker symbol (default: tracked symbol)")):
    symbol = (ticker or manager.symbol or "").strip().upper()
    if not symbol:
        raise HTTPException(status_code=400, detail="no ticker given and none tracked")
    try:
        headlines = provider.fetch_news(symbol, limit=settings.news_limit)
    except httpx.HTTPError as e:
        log.warning("News fetch failed symbol=%s error=%r", symbol, e)
        raise HTTPException(status_code=502, detail="news provider unavailable")
    return {"ticker": symbol, "news": [h.model_dump() for h in headlines]}


@router.get("/positions")
def positions():
    return ledger.positions()


@router.post("/positions")
def add_position(lot: Lot):
    try:
        return ledger.add_lot(lot.symbol, lot.qty, lot.price)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/api/brief", response_class=PlainTextResponse)
def brief(tickers: Optional[str] = Query(None, description="Comma-separated tickers (default: held positions)")):
    symbols = [s.strip().upper() for s in (tickers or "").split(",") if s.strip()]
    if not symbols:
        symbols = ledger.symbols()
    try:
        return briefs.brief(symbols)
    except httpx.HTTPError as e:
        log.warning("Brief request failed tickers=%s error=%r", symbols, e)
        return "Cannot fetch AI brief"


@router.websocket("/ws/candles")
async def candles_ws(websocket: WebSocket):
    """
    Push channel for the chart:
    - one "snapshot" message with the current series
    - then every "candle" upsert and "reset" (symbol switch) as they happen
    """
    await websocket.accept()
    queue = broadcaster.register()
    try:
        await websocket.send_json(
            {
                "type": "snapshot",
                "symbol": manager.symbol,
                "candles": [c.to_dict() for c in series.candles()],
            }
        )
        while True:
            message = await queue.get()
            await websocket.send_json(message)
    except WebSocketDisconnect:
        log.debug("Candle push client disconnected")
    finally:
        broadcaster.unregister(queue)
