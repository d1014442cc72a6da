from premarket.config import get_settings
from premarket.providers.base import MarketDataProvider
from premarket.providers.finnhub import FinnhubProvider


def get_provider() -> MarketDataProvider:
    """
    Provider loader / factory.

    Reads PROVIDER from config and returns an instance of the selected provider.
    This is the single place that knows about concrete providers.
    """
    settings = get_settings()
    provider_name = settings.provider.strip().upper()

    if provider_name == "FINNHUB":
        return FinnhubProvider(
            api_token=settings.finnhub_api_token,
            base_url=settings.finnhub_base_url,
            ws_url=settings.finnhub_ws_url,
            news_lookback_days=settings.news_lookback_days,
        )

    raise ValueError(f"Unknown PROVIDER='{settings.provider}'. Expected: FINNHUB")
