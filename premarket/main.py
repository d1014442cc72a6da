import logging

from fastapi import FastAPI

from premarket.api.routes import router as api_router
from premarket.config import get_settings
from premarket.state import briefs, flusher, manager, provider

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title="Pre-Market Dashboard API", version="0.1.0")
app.include_router(api_router)


@app.on_event("startup")
async def _startup():
    # Live feed for the default ticker + fixed-cadence candle flush
    await manager.set_symbol(settings.default_ticker)
    flusher.start()


@app.on_event("shutdown")
async def _shutdown():
    await flusher.stop()
    await manager.stop()
    provider.close()
    briefs.close()


@app.get("/health")
def health():
    return {
        "status": "ok",
        "app_env": settings.app_env,
        "provider_config": settings.provider,
        "provider_loaded": provider.__class__.__name__,
        "feed": manager.status(),
    }
