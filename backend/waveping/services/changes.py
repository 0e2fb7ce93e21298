"""
Schedule refresh and change-triggered alerts.

apply_acquisition diffs one upstream acquisition (all sessions for a date range) against the
stored snapshot, writes each session with a compare-and-set claim, records one change_records
row per claimed transition and marks sessions that disappeared from the range as inactive.
An acquisition with no usable sessions cancels nothing. Two capacity transitions are promoted
to immediate alerts:
  old == became_available_threshold (0) and new > 0      -> became_available
  old > filling_fast_threshold (3) and new <= threshold   -> filling_fast
notify_changes turns promotions into dispatcher candidates for every subscriber whose
criteria match, regardless of lead-time preferences, keyed by the synthetic tag so each
alert goes out once per (subscriber, event).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from waveping.core.clock import BusinessClock
from waveping.core.constants import (
    BECAME_AVAILABLE,
    CHANGE_CANCELLED,
    CHANGE_CAPACITY_DECREASED,
    CHANGE_CAPACITY_INCREASED,
    CHANGE_NEW,
    FILLING_FAST,
)
from waveping.core.engine_config import EngineConfig
from waveping.core.errors import MalformedEventError
from waveping.db.upsert import insert_ignore
from waveping.models.availability_event import AvailabilityEvent
from waveping.models.change_record import ChangeRecord
from waveping.services.dispatcher import Candidate, DispatchSummary, dispatch
from waveping.services.ledger import sent_keys
from waveping.services.matching import eligible_subscribers
from waveping.services.subscribers import load_subscribers
from waveping.services.telegram import PushChannel
from waveping.services.types import EventSnapshot, parse_event

logger = logging.getLogger(__name__)


class ScheduleSource(Protocol):
    """Upstream calendar collaborator. Returns raw event dicts for parse_event."""

    def fetch(self, start_date: date, end_date: date) -> list[dict[str, Any]]:
        ...


@dataclass(frozen=True)
class Acquisition:
    """Everything upstream lists for start_date..end_date (inclusive)."""
    start_date: date
    end_date: date
    events: list[dict[str, Any]]


@dataclass(frozen=True)
class Change:
    event_id: str
    kind: str
    old_spots: int | None
    new_spots: int | None


@dataclass(frozen=True)
class Promotion:
    event: EventSnapshot
    alert_tag: str


@dataclass
class RefreshResult:
    received: int = 0
    skipped: int = 0
    unchanged: int = 0
    changes: list[Change] = field(default_factory=list)
    promotions: list[Promotion] = field(default_factory=list)

    def count(self, kind: str) -> int:
        return sum(1 for c in self.changes if c.kind == kind)

    def as_dict(self) -> dict[str, int]:
        return {
            "received": self.received,
            "skipped": self.skipped,
            "unchanged": self.unchanged,
            "new": self.count(CHANGE_NEW),
            "capacity_increased": self.count(CHANGE_CAPACITY_INCREASED),
            "capacity_decreased": self.count(CHANGE_CAPACITY_DECREASED),
            "cancelled": self.count(CHANGE_CANCELLED),
            "promotions": len(self.promotions),
        }


def classify_capacity(old: int | None, new: int | None) -> str | None:
    """
    Capacity transition kind, or None when unchanged (raw values equal).
    None counts as 0 for direction; a tie (None vs 0) is a decrease.
    """
    if old == new:
        return None
    if (new or 0) > (old or 0):
        return CHANGE_CAPACITY_INCREASED
    return CHANGE_CAPACITY_DECREASED


def promotion_for(old: int | None, new: int | None, config: EngineConfig) -> str | None:
    """Alert tag for a capacity transition on a known session. Unknown capacity never promotes."""
    if old is None or new is None:
        return None
    if old == config.became_available_threshold and new > config.became_available_threshold:
        return BECAME_AVAILABLE
    if old > config.filling_fast_threshold >= new:
        return FILLING_FAST
    return None


def _parse_all(raw_events: list[Any], result: RefreshResult) -> tuple[dict[str, EventSnapshot], set[str]]:
    """Parsed snapshots by id, plus ids of listed records that could not be parsed."""
    parsed: dict[str, EventSnapshot] = {}
    unreadable: set[str] = set()
    for raw in raw_events:
        try:
            snap = parse_event(raw)
        except MalformedEventError as e:
            logger.warning("Skipping malformed upstream event: %s", e)
            result.skipped += 1
            if e.event_id:
                unreadable.add(e.event_id)
            continue
        parsed[snap.id] = snap  # last listing of a duplicate wins
    return parsed, unreadable


def claim_transition(
    db: Session,
    snap: EventSnapshot,
    prev_spots: int | None,
    prev_active: bool | None,
) -> bool:
    """
    Write snap over the stored row only if the row still holds what this refresh read
    (prev_active None means no row existed). Returns False when another refresh got there
    first; the caller then records nothing for this session.
    """
    values = snap.to_row()
    values["is_active"] = True
    if prev_active is None:
        return insert_ignore(db, AvailabilityEvent, values, ["id"])
    del values["id"]
    values["last_updated"] = func.now()
    q = db.query(AvailabilityEvent).filter(
        AvailabilityEvent.id == snap.id,
        AvailabilityEvent.is_active.is_(prev_active),
    )
    if prev_spots is None:
        q = q.filter(AvailabilityEvent.spots_available.is_(None))
    else:
        q = q.filter(AvailabilityEvent.spots_available == prev_spots)
    return q.update(values, synchronize_session=False) == 1


def _claim_cancellation(db: Session, event_id: str) -> bool:
    updated = (
        db.query(AvailabilityEvent)
        .filter(AvailabilityEvent.id == event_id, AvailabilityEvent.is_active.is_(True))
        .update({"is_active": False, "last_updated": func.now()}, synchronize_session=False)
    )
    return updated == 1


def _add_change(db: Session, result: RefreshResult, change: Change) -> None:
    result.changes.append(change)
    db.add(
        ChangeRecord(
            event_id=change.event_id,
            change_type=change.kind,
            old_spots=change.old_spots,
            new_spots=change.new_spots,
        )
    )


def apply_acquisition(db: Session, acquisition: Acquisition, config: EngineConfig) -> RefreshResult:
    """
    Persist one acquisition and report what changed. Commits once at the end.

    Every write is conditional on the row still matching what was read, so two overlapping
    refreshes produce one change record (and one promotion) per transition.
    """
    result = RefreshResult(received=len(acquisition.events))
    parsed, unreadable = _parse_all(acquisition.events, result)

    existing: dict[str, tuple[int | None, bool]] = {}
    if parsed:
        rows = (
            db.query(AvailabilityEvent.id, AvailabilityEvent.spots_available, AvailabilityEvent.is_active)
            .filter(AvailabilityEvent.id.in_(list(parsed)))
            .all()
        )
        existing = {r[0]: (r[1], r[2]) for r in rows}

    for event_id, snap in parsed.items():
        new_spots = snap.available_capacity
        prev_spots, prev_active = existing.get(event_id, (None, None))
        tag = None
        if not prev_active:
            change = Change(event_id, CHANGE_NEW, prev_spots, new_spots)
        else:
            kind = classify_capacity(prev_spots, new_spots)
            change = Change(event_id, kind, prev_spots, new_spots) if kind else None
            tag = promotion_for(prev_spots, new_spots, config)

        if not claim_transition(db, snap, prev_spots, prev_active):
            logger.info("Session %s changed under a concurrent refresh; leaving its transition to that run", event_id)
            result.unchanged += 1
            continue
        if tag:
            result.promotions.append(Promotion(snap, tag))
        if change is None:
            result.unchanged += 1
            continue
        _add_change(db, result, change)

    if parsed:
        # Anything still active in the covered range but not listed any more is gone
        listed = list(set(parsed) | unreadable)
        missing = (
            db.query(AvailabilityEvent.id, AvailabilityEvent.spots_available)
            .filter(
                AvailabilityEvent.is_active.is_(True),
                AvailabilityEvent.date >= acquisition.start_date,
                AvailabilityEvent.date <= acquisition.end_date,
                AvailabilityEvent.id.notin_(listed),
            )
            .all()
        )
        for event_id, spots in missing:
            if _claim_cancellation(db, event_id):
                _add_change(db, result, Change(event_id, CHANGE_CANCELLED, spots, spots))
    else:
        logger.warning(
            "Acquisition for %s..%s had no usable sessions (%s received); not cancelling anything",
            acquisition.start_date,
            acquisition.end_date,
            result.received,
        )

    db.commit()
    logger.info(
        "Schedule refresh %s..%s: %s",
        acquisition.start_date,
        acquisition.end_date,
        result.as_dict(),
    )
    return result


def change_candidates(
    db: Session, promotions: list[Promotion], clock: BusinessClock, now: datetime | None = None
) -> list[Candidate]:
    """Candidates for every coarsely eligible subscriber, minus ledger hits and started sessions."""
    now = now or clock.now()
    live = [p for p in promotions if clock.localize(p.event.date, p.event.start_time) > now]
    if not live:
        return []
    subscribers = load_subscribers(db)
    done = sent_keys(db, (p.event.id for p in live))
    candidates = []
    for promo in live:
        for sub in eligible_subscribers(promo.event, subscribers):
            if (sub.id, promo.event.id, promo.alert_tag) not in done:
                candidates.append(Candidate(sub, promo.event, promo.alert_tag))
    return candidates


def notify_changes(
    db: Session,
    promotions: list[Promotion],
    channel: PushChannel,
    config: EngineConfig,
    clock: BusinessClock,
    *,
    now: datetime | None = None,
    deadline: float | None = None,
) -> DispatchSummary:
    candidates = change_candidates(db, promotions, clock, now)
    if not candidates:
        return DispatchSummary()
    logger.info("Change alerts: %s promotion(s) -> %s candidate(s)", len(promotions), len(candidates))
    return dispatch(db, candidates, channel, config, deadline=deadline)
