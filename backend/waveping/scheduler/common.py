"""
Per-invocation wiring shared by the jobs: store session, push channel, clock, time budget.

Each invocation builds these fresh and checks configuration before any work, so a missing
bot token or an unreachable store fails fast with ConfigurationError.
"""
import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from waveping.config import settings
from waveping.core.clock import BusinessClock
from waveping.core.engine_config import EngineConfig
from waveping.core.errors import ConfigurationError
from waveping.db.session import SessionLocal
from waveping.services.telegram import TelegramChannel

logger = logging.getLogger(__name__)


def open_store() -> Session:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except OperationalError as e:
        db.close()
        raise ConfigurationError(f"Subscription database unreachable: {e.orig}") from e
    return db


def build_channel(config: EngineConfig) -> TelegramChannel:
    return TelegramChannel(
        settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        timeout=config.channel_timeout_seconds,
        max_chars=config.message_max_chars,
    )


def build_clock(config: EngineConfig) -> BusinessClock:
    return BusinessClock(config.business_timezone)


def invocation_deadline(config: EngineConfig) -> float:
    """time.monotonic() value after which no new channel call starts."""
    return time.monotonic() + config.invocation_budget_seconds
