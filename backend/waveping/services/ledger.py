"""
Send ledger: which (subscriber, event, lead_time) triples have already been delivered.

Written only after the channel confirms delivery. record_sent is a single
INSERT ... ON CONFLICT DO NOTHING against the unique triple and commits immediately, so a
crash later in the run cannot lose a delivered record. A conflict means another (overlapping)
invocation won the race; callers treat it as "already sent", never as an error.
"""
import logging
from typing import Iterable

from sqlalchemy.orm import Session

from waveping.db.upsert import insert_ignore
from waveping.models.send_record import SendRecord

logger = logging.getLogger(__name__)

SendKey = tuple[str, str, str]  # (subscriber_id, event_id, lead_time)

_UNIQUE_TRIPLE = ["subscriber_id", "event_id", "lead_time"]


def already_sent(db: Session, subscriber_id: str, event_id: str, lead_time: str) -> bool:
    return (
        db.query(SendRecord.id)
        .filter(
            SendRecord.subscriber_id == subscriber_id,
            SendRecord.event_id == event_id,
            SendRecord.lead_time == lead_time,
        )
        .first()
        is not None
    )


def sent_keys(db: Session, event_ids: Iterable[str]) -> set[SendKey]:
    """All ledger triples for these events, in one query (pre-filter for a batch)."""
    ids = list(set(event_ids))
    if not ids:
        return set()
    rows = (
        db.query(SendRecord.subscriber_id, SendRecord.event_id, SendRecord.lead_time)
        .filter(SendRecord.event_id.in_(ids))
        .all()
    )
    return {(r[0], r[1], r[2]) for r in rows}


def record_sent(db: Session, subscriber_id: str, event_id: str, lead_time: str) -> bool:
    """
    Record a confirmed delivery. Returns True if this call wrote the row, False if the
    triple was already recorded (duplicate delivery race).
    """
    written = insert_ignore(
        db,
        SendRecord,
        {"subscriber_id": subscriber_id, "event_id": event_id, "lead_time": lead_time},
        _UNIQUE_TRIPLE,
    )
    db.commit()
    if not written:
        logger.info(
            "Ledger already had subscriber=%s event=%s lead_time=%s (concurrent run delivered it)",
            subscriber_id,
            event_id,
            lead_time,
        )
    return written
