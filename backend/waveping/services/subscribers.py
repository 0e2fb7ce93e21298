"""Read side of the subscription store: enabled subscribers as SubscriberCriteria, and active events."""
import logging
from datetime import date

from sqlalchemy.orm import Session

from waveping.core.constants import DIGEST_BOTH
from waveping.models.availability_event import AvailabilityEvent
from waveping.models.subscriber import Subscriber
from waveping.services.types import EventSnapshot, SubscriberCriteria

logger = logging.getLogger(__name__)


def load_subscribers(db: Session) -> list[SubscriberCriteria]:
    """Every subscriber with notifications on."""
    rows = db.query(Subscriber).filter(Subscriber.notification_enabled.is_(True)).all()
    return [SubscriberCriteria.from_row(r) for r in rows]


def load_digest_subscribers(db: Session, digest_type: str) -> list[SubscriberCriteria]:
    """Enabled subscribers whose digest preference is digest_type or both."""
    rows = (
        db.query(Subscriber)
        .filter(
            Subscriber.notification_enabled.is_(True),
            Subscriber.digest.in_([digest_type, DIGEST_BOTH]),
        )
        .all()
    )
    return [SubscriberCriteria.from_row(r) for r in rows]


def load_active_events(db: Session, start: date, end: date) -> list[EventSnapshot]:
    """Active sessions dated start..end inclusive, in start order."""
    rows = (
        db.query(AvailabilityEvent)
        .filter(
            AvailabilityEvent.is_active.is_(True),
            AvailabilityEvent.date >= start,
            AvailabilityEvent.date <= end,
        )
        .order_by(AvailabilityEvent.date.asc(), AvailabilityEvent.start_time.asc())
        .all()
    )
    logger.debug("Loaded %s active events for %s..%s", len(rows), start, end)
    return [EventSnapshot.from_row(r) for r in rows]
