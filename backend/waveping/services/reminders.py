"""
Lead-time reminders: one pass per trigger.

For every lead time, the window [now + offset - tol, now + offset + tol] is open; each active
session whose start falls inside a window the subscriber enabled becomes a candidate, unless
the ledger already holds (subscriber, event, lead_time). Windows are wider than the trigger
period, so a session is seen by at least one run per lead time; the ledger makes the
overlapping runs send it once.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from waveping.core.clock import BusinessClock
from waveping.core.engine_config import EngineConfig
from waveping.services.dispatcher import Candidate, DispatchSummary, dispatch
from waveping.services.ledger import sent_keys
from waveping.services.matching import matches, matching_lead_times
from waveping.services.subscribers import load_active_events, load_subscribers
from waveping.services.telegram import PushChannel

logger = logging.getLogger(__name__)


def collect_reminder_candidates(
    db: Session, config: EngineConfig, clock: BusinessClock, now: datetime | None = None
) -> list[Candidate]:
    now = now or clock.now()
    windows = clock.windows(now, config.window_minutes)
    first_day = min(w.start for w in windows.values()).date()
    last_day = max(w.end for w in windows.values()).date()

    events = load_active_events(db, first_day, last_day)
    if not events:
        return []
    subscribers = load_subscribers(db)
    if not subscribers:
        return []
    done = sent_keys(db, (e.id for e in events))

    candidates: list[Candidate] = []
    for event in events:
        for sub in subscribers:
            if not matches(event, sub):
                continue
            for tag in sorted(matching_lead_times(event, sub, windows, clock)):
                if (sub.id, event.id, tag) in done:
                    continue
                candidates.append(Candidate(sub, event, tag))
    logger.debug(
        "Reminder scan at %s: %s events, %s subscribers, %s candidates",
        now.isoformat(),
        len(events),
        len(subscribers),
        len(candidates),
    )
    return candidates


def run_reminders(
    db: Session,
    channel: PushChannel,
    config: EngineConfig,
    clock: BusinessClock,
    now: datetime | None = None,
    *,
    deadline: float | None = None,
) -> DispatchSummary:
    """Collect due reminders and dispatch them. Safe to run concurrently with itself."""
    candidates = collect_reminder_candidates(db, config, clock, now)
    if not candidates:
        logger.info("No reminders due")
        return DispatchSummary()
    return dispatch(db, candidates, channel, config, deadline=deadline)
