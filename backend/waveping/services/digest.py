"""
Morning / evening digests: one summary message per subscriber listing every matching session
in the digest's date range. Lead-time windows and the send ledger are not consulted; the
digest identity (subscriber, digest_type, business date) in digest_records makes a second
run on the same day a no-op.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from waveping.core.clock import BusinessClock
from waveping.core.constants import DIGEST_MORNING, DIGEST_TYPES
from waveping.core.engine_config import EngineConfig
from waveping.db.upsert import insert_ignore
from waveping.models.digest_record import DigestRecord
from waveping.services.dispatcher import OutboundMessage, deliver_all
from waveping.services.matching import events_for_subscriber
from waveping.services.messages import render_digest
from waveping.services.subscribers import load_active_events, load_digest_subscribers
from waveping.services.telegram import PushChannel
from waveping.services.types import EventSnapshot

logger = logging.getLogger(__name__)

_DIGEST_IDENTITY = ["subscriber_id", "digest_type", "digest_date"]


@dataclass
class DigestSummary:
    digest_type: str
    digest_date: date
    subscribers: int = 0
    sent: int = 0
    failed: int = 0
    already_sent: int = 0
    no_events: int = 0
    deferred: int = 0

    def as_dict(self) -> dict:
        return {
            "digest_type": self.digest_type,
            "digest_date": self.digest_date.isoformat(),
            "subscribers": self.subscribers,
            "sent": self.sent,
            "failed": self.failed,
            "already_sent": self.already_sent,
            "no_events": self.no_events,
            "deferred": self.deferred,
        }


def digest_range(digest_type: str, today: date, config: EngineConfig) -> tuple[date, date]:
    """Morning: today only. Evening: tomorrow .. tomorrow + evening_lookahead_days."""
    if digest_type == DIGEST_MORNING:
        return today, today
    tomorrow = today + timedelta(days=1)
    return tomorrow, tomorrow + timedelta(days=config.evening_lookahead_days)


def digest_events(
    db: Session, digest_type: str, config: EngineConfig, clock: BusinessClock, now: datetime
) -> list[EventSnapshot]:
    today = now.date()
    start, end = digest_range(digest_type, today, config)
    events = load_active_events(db, start, end)
    if digest_type == DIGEST_MORNING:
        # sessions that already started this morning are not worth listing
        events = [e for e in events if clock.localize(e.date, e.start_time) >= now]
    return events


def _already_delivered(db: Session, digest_type: str, digest_date: date) -> set[str]:
    rows = (
        db.query(DigestRecord.subscriber_id)
        .filter(DigestRecord.digest_type == digest_type, DigestRecord.digest_date == digest_date)
        .all()
    )
    return {r[0] for r in rows}


def _record_digest(db: Session, subscriber_id: str, digest_type: str, digest_date: date, count: int) -> bool:
    try:
        written = insert_ignore(
            db,
            DigestRecord,
            {
                "subscriber_id": subscriber_id,
                "digest_type": digest_type,
                "digest_date": digest_date,
                "event_count": count,
            },
            _DIGEST_IDENTITY,
        )
        db.commit()
    except SQLAlchemyError as e:
        logger.error("Digest record write failed for subscriber %s: %s", subscriber_id, e)
        db.rollback()
        return True
    return written


def run_digest(
    db: Session,
    digest_type: str,
    channel: PushChannel,
    config: EngineConfig,
    clock: BusinessClock,
    *,
    now: datetime | None = None,
    deadline: float | None = None,
) -> DigestSummary:
    if digest_type not in DIGEST_TYPES:
        raise ValueError(f"Unknown digest type {digest_type!r}; expected one of {DIGEST_TYPES}")
    now = (now or clock.now()).astimezone(clock.tz)
    today = now.date()
    summary = DigestSummary(digest_type=digest_type, digest_date=today)

    subscribers = load_digest_subscribers(db, digest_type)
    summary.subscribers = len(subscribers)
    if not subscribers:
        logger.info("Digest %s: no subscribers", digest_type)
        return summary

    events = digest_events(db, digest_type, config, clock, now)
    delivered = _already_delivered(db, digest_type, today)

    messages: list[OutboundMessage] = []
    counts: dict[str, int] = {}
    for sub in subscribers:
        if sub.id in delivered:
            summary.already_sent += 1
            continue
        matching = events_for_subscriber(events, sub)
        if not matching:
            summary.no_events += 1
            continue
        text, buttons = render_digest(digest_type, matching, config, today)
        messages.append((sub.id, sub.chat_id, text, buttons))
        counts[sub.id] = len(matching)

    for sub_id, result in deliver_all(channel, messages, config.max_concurrency, deadline=deadline):
        if result is None:
            summary.deferred += 1
        elif result:
            if _record_digest(db, sub_id, digest_type, today, counts[sub_id]):
                summary.sent += 1
            else:
                logger.info("Digest %s for subscriber %s was recorded by a concurrent run", digest_type, sub_id)
                summary.already_sent += 1
        else:
            logger.warning("Digest %s send failed for subscriber %s", digest_type, sub_id)
            summary.failed += 1

    logger.info("Digest done: %s", summary.as_dict())
    return summary
