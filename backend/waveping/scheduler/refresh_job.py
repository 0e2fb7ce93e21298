"""
Schedule refresh: apply one upstream acquisition, then send change-triggered alerts.

The acquisition is either pushed to us (POST /cron/refresh-schedule) or pulled from a
ScheduleSource (CLI). Alerts go out in the same invocation, right after the diff commits.
"""
import logging
from datetime import date

from waveping.core.engine_config import get_engine_config
from waveping.scheduler.common import build_channel, build_clock, invocation_deadline, open_store
from waveping.services.changes import Acquisition, ScheduleSource, apply_acquisition, notify_changes

logger = logging.getLogger(__name__)


def run_refresh_job(acquisition: Acquisition) -> dict:
    config = get_engine_config()
    deadline = invocation_deadline(config)
    clock = build_clock(config)
    channel = build_channel(config)
    db = open_store()
    try:
        result = apply_acquisition(db, acquisition, config)
        alerts = notify_changes(db, result.promotions, channel, config, clock, deadline=deadline)
        return {"refresh": result.as_dict(), "alerts": alerts.as_dict()}
    except Exception as e:
        logger.exception("Refresh job failed: %s", e)
        db.rollback()
        raise
    finally:
        db.close()


def run_refresh_from_source(source: ScheduleSource, start_date: date, end_date: date) -> dict:
    events = source.fetch(start_date, end_date)
    logger.info("Fetched %s upstream events for %s..%s", len(events), start_date, end_date)
    return run_refresh_job(Acquisition(start_date, end_date, list(events)))
