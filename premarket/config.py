# premarket/config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Loads variables from a local .env file into environment variables (dev only).
load_dotenv()


@dataclass(frozen=True)
class Settings:
    # App config
    app_env: str
    log_level: str
    provider: str
    default_ticker: str

    # Provider config (Finnhub)
    finnhub_base_url: str
    finnhub_api_token: str
    finnhub_ws_url: str

    # Candle pipeline
    flush_interval_seconds: float
    reconnect_initial_seconds: float
    reconnect_max_seconds: float
    series_max_points: int

    # News
    news_limit: int
    news_lookback_days: int

    # AI brief (OpenAI-compatible chat completions)
    openai_api_key: Optional[str]
    openai_base_url: str
    brief_model: str

    # Local position ledger
    positions_path: str


def get_settings() -> Settings:
    """
    Reads env vars and returns a Settings object.
    """
    token = os.getenv("FINNHUB_API_TOKEN", "").strip()
    if not token:
        raise RuntimeError("FINNHUB_API_TOKEN is missing. Add it to .env")

    return Settings(
        app_env=os.getenv("APP_ENV", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        provider=os.getenv("PROVIDER", "FINNHUB"),
        default_ticker=os.getenv("DEFAULT_TICKER", "NVDA"),
        finnhub_base_url=os.getenv("FINNHUB_BASE_URL", "https://finnhub.io/api/v1"),
        finnhub_api_token=token,
        finnhub_ws_url=os.getenv("FINNHUB_WS_URL", "wss://ws.finnhub.io"),
        flush_interval_seconds=float(os.getenv("FLUSH_INTERVAL_SECONDS", "5")),
        reconnect_initial_seconds=float(os.getenv("RECONNECT_INITIAL_SECONDS", "1")),
        reconnect_max_seconds=float(os.getenv("RECONNECT_MAX_SECONDS", "30")),
        series_max_points=int(os.getenv("SERIES_MAX_POINTS", "500")),
        news_limit=int(os.getenv("NEWS_LIMIT", "20")),
        news_lookback_days=int(os.getenv("NEWS_LOOKBACK_DAYS", "3")),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        brief_model=os.getenv("BRIEF_MODEL", "gpt-4o-mini"),
        positions_path=os.getenv("POSITIONS_PATH", "positions.json"),
    )
