"""
Dispatcher: render a batch of (subscriber, event, lead_time) candidates and push them
through the channel with bounded concurrency.

Workers only perform the channel call. Rendering, weather lookup and every ledger write
happen in the calling thread (the Session is not shared with workers). A candidate is
recorded only after the channel confirms delivery; anything not delivered stays
unrecorded and is picked up by the next run while its window is still open.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Iterable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from waveping.core.constants import CHANGE_ALERT_TAGS
from waveping.core.engine_config import EngineConfig
from waveping.services.ledger import SendKey, record_sent, sent_keys
from waveping.services.messages import render_change_alert, render_reminder
from waveping.services.telegram import Buttons, PushChannel
from waveping.services.types import EventSnapshot, SubscriberCriteria
from waveping.services.weather import weather_by_date

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class Candidate:
    subscriber: SubscriberCriteria
    event: EventSnapshot
    lead_time: str

    @property
    def key(self) -> SendKey:
        return (self.subscriber.id, self.event.id, self.lead_time)


@dataclass(frozen=True)
class DispatchOutcome:
    candidate: Candidate
    outcome: Outcome


@dataclass
class DispatchSummary:
    outcomes: list[DispatchOutcome] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for o in self.outcomes if o.outcome == outcome)

    @property
    def sent(self) -> int:
        return self.count(Outcome.SENT)

    @property
    def failed(self) -> int:
        return self.count(Outcome.FAILED)

    @property
    def skipped_duplicate(self) -> int:
        return self.count(Outcome.SKIPPED_DUPLICATE)

    @property
    def deferred(self) -> int:
        return self.count(Outcome.DEFERRED)

    @property
    def attempted(self) -> int:
        """Candidates handled this run: sent, failed or found in the ledger."""
        return len(self.outcomes) - self.deferred

    def as_dict(self) -> dict[str, int]:
        return {
            "attempted": self.attempted,
            "sent": self.sent,
            "failed": self.failed,
            "skipped_duplicate": self.skipped_duplicate,
            "deferred": self.deferred,
        }


# (key, chat_id, text, buttons)
OutboundMessage = tuple[Hashable, int, str, Buttons | None]


def _send_one(
    channel: PushChannel, chat_id: int, text: str, buttons: Buttons | None, deadline: float | None
) -> bool | None:
    """Worker body. None = deadline passed before the call started."""
    if deadline is not None and time.monotonic() >= deadline:
        return None
    try:
        return bool(channel.send(chat_id, text, buttons))
    except Exception as e:
        logger.warning("Channel send to chat %s raised: %s", chat_id, e, exc_info=True)
        return False


def deliver_all(
    channel: PushChannel,
    messages: Iterable[OutboundMessage],
    max_workers: int,
    *,
    deadline: float | None = None,
) -> Iterator[tuple[Hashable, bool | None]]:
    """
    Send every message with at most max_workers channel calls in flight.
    Yields (key, result) in the calling thread as calls complete: True delivered,
    False failed, None deferred (deadline reached before the call started).
    """
    messages = list(messages)
    if not messages:
        return
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(messages)))) as executor:
        future_to_key = {
            executor.submit(_send_one, channel, chat_id, text, buttons, deadline): key
            for key, chat_id, text, buttons in messages
        }
        for future in as_completed(future_to_key):
            yield future_to_key[future], future.result()


def _render(candidate: Candidate, config: EngineConfig, weather: dict[Any, dict[str, Any]]) -> tuple[str, Buttons]:
    conditions = weather.get(candidate.event.date)
    if candidate.lead_time in CHANGE_ALERT_TAGS:
        return render_change_alert(candidate.event, candidate.lead_time, config, conditions)
    return render_reminder(candidate.event, candidate.lead_time, config, conditions)


def _record(db: Session, candidate: Candidate) -> Outcome:
    try:
        written = record_sent(db, *candidate.key)
    except SQLAlchemyError as e:
        # Delivered but not recorded: the next run may repeat this one message.
        logger.error("Ledger write failed for %s after delivery: %s", candidate.key, e)
        db.rollback()
        return Outcome.SENT
    return Outcome.SENT if written else Outcome.SKIPPED_DUPLICATE


def dispatch(
    db: Session,
    candidates: Iterable[Candidate],
    channel: PushChannel,
    config: EngineConfig,
    *,
    deadline: float | None = None,
) -> DispatchSummary:
    """
    Deliver each candidate once. deadline is a time.monotonic() value; candidates whose
    call has not started by then are returned as deferred.
    """
    by_key: dict[SendKey, Candidate] = {}
    for c in candidates:
        by_key.setdefault(c.key, c)
    summary = DispatchSummary()
    if not by_key:
        return summary

    # Ledger hits are never sent again, whatever the caller filtered
    done = sent_keys(db, (c.event.id for c in by_key.values()))
    for key in [k for k in by_key if k in done]:
        summary.outcomes.append(DispatchOutcome(by_key.pop(key), Outcome.SKIPPED_DUPLICATE))
    if not by_key:
        logger.info("Dispatch done: %s", summary.as_dict())
        return summary

    weather = weather_by_date(db, (c.event.date for c in by_key.values()))
    messages: list[OutboundMessage] = []
    for key, c in by_key.items():
        text, buttons = _render(c, config, weather)
        messages.append((key, c.subscriber.chat_id, text, buttons))

    for key, result in deliver_all(channel, messages, config.max_concurrency, deadline=deadline):
        candidate = by_key[key]
        if result is None:
            outcome = Outcome.DEFERRED
        elif result:
            outcome = _record(db, candidate)
        else:
            logger.warning(
                "Send failed for subscriber=%s event=%s lead_time=%s (retry next run)",
                *candidate.key,
            )
            outcome = Outcome.FAILED
        summary.outcomes.append(DispatchOutcome(candidate, outcome))

    if summary.deferred:
        logger.warning("Invocation budget reached: deferred %s candidate(s) to the next run", summary.deferred)
    logger.info("Dispatch done: %s", summary.as_dict())
    return summary
