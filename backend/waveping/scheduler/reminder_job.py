"""Runs every 30 min (external cron): send lead-time reminders whose window is open."""
import logging
from datetime import datetime

from waveping.core.engine_config import get_engine_config
from waveping.scheduler.common import build_channel, build_clock, invocation_deadline, open_store
from waveping.services.reminders import run_reminders

logger = logging.getLogger(__name__)


def run_reminder_job(now: datetime | None = None) -> dict:
    config = get_engine_config()
    deadline = invocation_deadline(config)
    clock = build_clock(config)
    channel = build_channel(config)
    db = open_store()
    try:
        summary = run_reminders(db, channel, config, clock, now, deadline=deadline)
        return summary.as_dict()
    except Exception as e:
        logger.exception("Reminder job failed: %s", e)
        db.rollback()
        raise
    finally:
        db.close()
