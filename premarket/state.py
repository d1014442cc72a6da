from premarket.briefs.client import BriefClient
from premarket.candles.aggregator import CandleAggregator
from premarket.candles.sinks import CandleBroadcaster, CandleSeries, FanoutSink
from premarket.config import get_settings
from premarket.feed.subscription import Backoff, SubscriptionManager
from premarket.jobs.flush import FlushScheduler
from premarket.positions.ledger import PositionLedger
from premarket.providers.loader import get_provider

settings = get_settings()
provider = get_provider()

# Rendering side: chart series for REST readers + push to WebSocket clients
series = CandleSeries(max_points=settings.series_max_points)
broadcaster = CandleBroadcaster()
sink = FanoutSink(series, broadcaster)

# Candle pipeline for the single tracked symbol
aggregator = CandleAggregator()
manager = SubscriptionManager(
    provider=provider,
    aggregator=aggregator,
    sink=sink,
    backoff=Backoff(
        initial=settings.reconnect_initial_seconds,
        maximum=settings.reconnect_max_seconds,
    ),
)

flusher = FlushScheduler(
    aggregator=aggregator,
    sink=sink,
    symbol_getter=lambda: manager.symbol,
    interval_seconds=settings.flush_interval_seconds,
)

# Closed minutes go out at once (kept pending by the flusher if the sink fails);
# a symbol switch drops whatever is still pending.
aggregator.on_close = flusher.emit_closed
manager.on_reset = flusher.reset

# Collaborators around the pipeline
ledger = PositionLedger(settings.positions_path)
briefs = BriefClient(
    api_key=settings.openai_api_key,
    base_url=settings.openai_base_url,
    model=settings.brief_model,
)
