"""Morning (e.g. 07:00) and evening (e.g. 19:00) digests, triggered by external cron."""
import logging

from waveping.core.engine_config import get_engine_config
from waveping.scheduler.common import build_channel, build_clock, invocation_deadline, open_store
from waveping.services.digest import run_digest

logger = logging.getLogger(__name__)


def run_digest_job(digest_type: str) -> dict:
    config = get_engine_config()
    deadline = invocation_deadline(config)
    clock = build_clock(config)
    channel = build_channel(config)
    db = open_store()
    try:
        return run_digest(db, digest_type, channel, config, clock, deadline=deadline).as_dict()
    except Exception as e:
        logger.exception("Digest job (%s) failed: %s", digest_type, e)
        db.rollback()
        raise
    finally:
        db.close()
