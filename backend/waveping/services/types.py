"""Normalized, read-only views of events and subscribers. Same shape regardless of where the row came from.

Upstream collaborators hand us loose dicts; parse_event turns one into an EventSnapshot or
raises MalformedEventError. Matching and rendering only ever see these frozen types.
"""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from waveping.core.constants import (
    DIGEST_NONE,
    DIGEST_PREFERENCES,
    KNOWN_LEVELS,
    LEAD_TIME_TAGS,
    SIDE_ANY,
    SIDE_LEFT,
    SIDE_RIGHT,
)
from waveping.core.errors import MalformedEventError

logger = logging.getLogger(__name__)

_SIDE_ALIASES = {
    "l": SIDE_LEFT,
    "left": SIDE_LEFT,
    "r": SIDE_RIGHT,
    "right": SIDE_RIGHT,
    "a": SIDE_ANY,
    "any": SIDE_ANY,
}
_LEVEL_SEP = re.compile(r"[\s\-]+")


def event_identity(day: date, start: time, name: str) -> str:
    """Stable event key: one id per date + start time + session name. 12-char hash."""
    raw = f"{day.isoformat()}-{start.strftime('%H:%M')}-{name}"
    return hashlib.md5(raw.encode()).hexdigest()[:12]


def normalize_level(value: str) -> str:
    """'Advanced Plus' / 'advanced-plus' -> 'advanced_plus'."""
    return _LEVEL_SEP.sub("_", value.strip().lower())


def normalize_side(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip().lower()
    if not s:
        return None
    return _SIDE_ALIASES.get(s)


def parse_clock(value: Any) -> time:
    """'08:00', '08:00:00' or a time object -> time. Raises ValueError."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    s = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid clock time {value!r}")


def _optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise MalformedEventError(f"{field} is not a number: {value!r}") from None
    if n < 0:
        raise MalformedEventError(f"{field} is negative: {n}")
    return n


def _infer_level(name: str) -> str | None:
    """Pick the longest known level contained in the session name (e.g. 'Advanced Plus Left')."""
    normalized = normalize_level(name)
    found = [lvl for lvl in KNOWN_LEVELS if lvl in normalized]
    return max(found, key=len) if found else None


@dataclass(frozen=True)
class EventSnapshot:
    id: str
    date: date
    start_time: time
    name: str
    level: str
    end_time: time | None = None
    side: str | None = None
    total_capacity: int | None = None
    available_capacity: int | None = None
    book_url: str | None = None
    instructor: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Any) -> "EventSnapshot":
        return cls(
            id=row.id,
            date=row.date,
            start_time=row.start_time,
            end_time=row.end_time,
            name=row.session_name,
            level=row.level,
            side=row.side,
            total_capacity=row.total_spots,
            available_capacity=row.spots_available,
            book_url=row.book_url,
            instructor=row.instructor,
            is_active=bool(row.is_active),
        )

    def to_row(self) -> dict[str, Any]:
        """Column values for availability_events."""
        return {
            "id": self.id,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "session_name": self.name,
            "level": self.level,
            "side": self.side,
            "total_spots": self.total_capacity,
            "spots_available": self.available_capacity,
            "book_url": self.book_url,
            "instructor": self.instructor,
            "is_active": self.is_active,
        }


def parse_event(raw: dict[str, Any]) -> EventSnapshot:
    """
    Build an EventSnapshot from one upstream record.
    Required: date (YYYY-MM-DD), start_time (HH:MM), session_name (or name).
    level defaults to the known level found in the name. spots_available may be null.
    Raises MalformedEventError for anything unusable; its event_id is set once the identity
    fields have parsed.
    """
    if not isinstance(raw, dict):
        raise MalformedEventError(f"Event record must be an object, got {type(raw).__name__}")
    name = (raw.get("session_name") or raw.get("name") or "").strip()
    if not name:
        raise MalformedEventError("session_name is required")
    try:
        day = raw["date"] if isinstance(raw.get("date"), date) else date.fromisoformat(str(raw.get("date") or "").strip())
    except ValueError:
        raise MalformedEventError(f"Invalid date {raw.get('date')!r} for {name!r}") from None
    try:
        start = parse_clock(raw.get("start_time"))
    except ValueError:
        raise MalformedEventError(f"Invalid start_time {raw.get('start_time')!r} for {name!r}") from None
    end = None
    if raw.get("end_time"):
        try:
            end = parse_clock(raw["end_time"])
        except ValueError:
            logger.debug("Ignoring bad end_time %r for %s", raw["end_time"], name)

    event_id = event_identity(day, start, name)
    try:
        return _build_snapshot(raw, event_id, day, start, end, name)
    except MalformedEventError as e:
        raise MalformedEventError(str(e), event_id=event_id) from None


def _build_snapshot(raw, event_id, day, start, end, name) -> EventSnapshot:
    level_raw = raw.get("level")
    level = normalize_level(level_raw) if isinstance(level_raw, str) and level_raw.strip() else _infer_level(name)
    if not level:
        raise MalformedEventError(f"No level for session {name!r}")
    if level not in KNOWN_LEVELS:
        logger.debug("Unknown level %s for session %s (kept as-is)", level, name)

    side = normalize_side(raw.get("side"))
    if side == SIDE_ANY:
        side = None  # "any" is a subscriber wildcard; an event without a side is unrestricted

    return EventSnapshot(
        id=event_id,
        date=day,
        start_time=start,
        end_time=end,
        name=name,
        level=level,
        side=side,
        total_capacity=_optional_int(raw.get("total_spots"), "total_spots"),
        available_capacity=_optional_int(raw.get("spots_available"), "spots_available"),
        book_url=(raw.get("book_url") or None),
        instructor=(raw.get("instructor") or None),
    )


@dataclass(frozen=True)
class TimeWindow:
    """Half-open clock interval [start, end)."""
    start: time
    end: time

    def contains(self, t: time) -> bool:
        return self.start <= t < self.end


@dataclass(frozen=True)
class SubscriberCriteria:
    id: str
    chat_id: int
    enabled: bool = True
    min_capacity: int = 1
    levels: frozenset[str] = frozenset()
    sides: frozenset[str] = frozenset()
    days: frozenset[int] = frozenset()
    time_windows: tuple[TimeWindow, ...] = ()
    lead_times: frozenset[str] = frozenset()
    digest: str = DIGEST_NONE

    @classmethod
    def from_row(cls, row: Any) -> "SubscriberCriteria":
        windows = []
        for pair in row.time_windows or []:
            try:
                start, end = parse_clock(pair[0]), parse_clock(pair[1])
            except (TypeError, ValueError, IndexError):
                logger.warning("Subscriber %s: skipping malformed time window %r", row.id, pair)
                continue
            if end <= start:
                logger.warning("Subscriber %s: skipping empty time window %r", row.id, pair)
                continue
            windows.append(TimeWindow(start, end))
        sides = {normalize_side(s) for s in row.sides or []}
        days = set()
        for d in row.days or []:
            try:
                days.add(int(d))
            except (TypeError, ValueError):
                logger.warning("Subscriber %s: skipping malformed day %r", row.id, d)
        digest = row.digest if row.digest in DIGEST_PREFERENCES else DIGEST_NONE
        sides = frozenset(s for s in sides if s)
        days = frozenset(d for d in days if 0 <= d <= 6)
        # A listed restriction with no valid value left must not read as "no restriction"
        unreadable = [
            name
            for name, raw, kept in (
                ("sides", row.sides, sides),
                ("days", row.days, days),
                ("time_windows", row.time_windows, windows),
            )
            if raw and not kept
        ]
        enabled = bool(row.notification_enabled)
        if enabled and unreadable:
            logger.warning(
                "Subscriber %s: no valid %s in a non-empty preference; disabling until fixed",
                row.id,
                ", ".join(unreadable),
            )
            enabled = False
        return cls(
            id=row.id,
            chat_id=int(row.telegram_chat_id),
            enabled=enabled,
            min_capacity=int(row.min_spots if row.min_spots is not None else 1),
            levels=frozenset(normalize_level(lvl) for lvl in row.levels or [] if isinstance(lvl, str)),
            sides=sides,
            days=days,
            time_windows=tuple(windows),
            lead_times=frozenset(t for t in row.lead_times or [] if t in LEAD_TIME_TAGS),
            digest=digest,
        )
