"""
Subscription matching: one pure predicate shared by reminders, digests and change alerts.

Coarse eligibility (matches) looks at level / side / day / time window / capacity only.
Per-lead-time eligibility (matching_lead_times) then asks which of the subscriber's enabled
lead times currently have the session start inside their notification window.

All dimensions are AND-ed. Inside a dimension any listed value is enough, and an empty
list means "no restriction" except for levels, which are required.
"""
from __future__ import annotations

from typing import Iterable, Mapping

from waveping.core.clock import BusinessClock, NotificationWindow
from waveping.core.constants import SIDE_ANY
from waveping.services.types import EventSnapshot, SubscriberCriteria


def _level_ok(event: EventSnapshot, sub: SubscriberCriteria) -> bool:
    return event.level in sub.levels


def _side_ok(event: EventSnapshot, sub: SubscriberCriteria) -> bool:
    if event.side is None or not sub.sides:
        return True
    return event.side in sub.sides or SIDE_ANY in sub.sides


def _day_ok(event: EventSnapshot, sub: SubscriberCriteria) -> bool:
    return not sub.days or event.date.weekday() in sub.days


def _time_ok(event: EventSnapshot, sub: SubscriberCriteria) -> bool:
    if not sub.time_windows:
        return True
    return any(w.contains(event.start_time) for w in sub.time_windows)


def _capacity_ok(event: EventSnapshot, sub: SubscriberCriteria) -> bool:
    # Unknown capacity is optimistically treated as available
    return event.available_capacity is None or event.available_capacity >= sub.min_capacity


def matches(event: EventSnapshot, sub: SubscriberCriteria) -> bool:
    """True if the subscriber wants to hear about this session at all (timing aside)."""
    return (
        sub.enabled
        and _level_ok(event, sub)
        and _side_ok(event, sub)
        and _day_ok(event, sub)
        and _time_ok(event, sub)
        and _capacity_ok(event, sub)
    )


def matching_lead_times(
    event: EventSnapshot,
    sub: SubscriberCriteria,
    windows: Mapping[str, NotificationWindow],
    clock: BusinessClock,
) -> set[str]:
    """Subscriber's enabled lead times whose window currently contains the session start."""
    if not sub.lead_times:
        return set()
    start = clock.localize(event.date, event.start_time)
    return {tag for tag in sub.lead_times if tag in windows and windows[tag].contains(start)}


def eligible_subscribers(
    event: EventSnapshot, subscribers: Iterable[SubscriberCriteria]
) -> list[SubscriberCriteria]:
    return [sub for sub in subscribers if matches(event, sub)]


def events_for_subscriber(
    events: Iterable[EventSnapshot], sub: SubscriberCriteria
) -> list[EventSnapshot]:
    """Matching events in start order (digest view)."""
    return sorted(
        (e for e in events if matches(e, sub)),
        key=lambda e: (e.date, e.start_time, e.name),
    )
