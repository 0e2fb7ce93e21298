"""
FastAPI app entrypoint.

WavePing notification engine: cron-triggered reminders, digests and schedule refresh.
Nothing is scheduled in-process; an external cron calls the /cron routes.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from waveping.api.routes import cron
from waveping.config import settings
from waveping.core.engine_config import get_engine_config

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_engine_config()
    if not settings.cron_secret:
        logger.warning("CRON_SECRET is not set: /cron routes will answer 500")
    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN is not set: sends will fail with 503")
    logger.info(
        "WavePing ready (tz=%s, window=±%s min, max_concurrency=%s)",
        config.business_timezone,
        config.window_minutes,
        config.max_concurrency,
    )
    yield


app = FastAPI(title="WavePing", version="0.1.0", lifespan=lifespan)

app.include_router(cron.router, prefix="/cron", tags=["cron"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "WavePing notification engine", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
