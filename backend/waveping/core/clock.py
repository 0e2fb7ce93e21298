"""
Business-timezone clock and notification windows.

Sessions are published as civil date + time at the park (Europe/London, BST/GMT).
All "now" and "session start" instants are aware datetimes in that zone. Python
adds a timedelta to an aware datetime on its wall-clock fields, so now + 24h lands on
the same civil time tomorrow even across a DST change.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from waveping.core.constants import LEAD_TIME_OFFSETS
from waveping.core.errors import ConfigurationError


@dataclass(frozen=True)
class NotificationWindow:
    """Closed interval [start, end] around a target instant."""
    target: datetime
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


class BusinessClock:
    """Current time and session instants in the business timezone.

    now_fn lets tests pin the clock; it must return an aware datetime (any zone).
    """

    def __init__(self, tz_name: str = "Europe/London", now_fn: Callable[[], datetime] | None = None):
        try:
            self.tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown business timezone {tz_name!r}") from e
        self._now_fn = now_fn

    def now(self) -> datetime:
        if self._now_fn is None:
            return datetime.now(self.tz)
        return self._now_fn().astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def localize(self, day: date, at: time) -> datetime:
        """Civil date + time at the park -> aware datetime."""
        return datetime.combine(day, at.replace(tzinfo=None), tzinfo=self.tz)

    def target_instants(self, now: datetime | None = None) -> dict[str, datetime]:
        """Lead-time tag -> now + offset, wall-clock arithmetic in the business zone."""
        now = (now or self.now()).astimezone(self.tz)
        return {tag: now + offset for tag, offset in LEAD_TIME_OFFSETS.items()}

    @staticmethod
    def window(target: datetime, tolerance_minutes: int) -> NotificationWindow:
        tol = timedelta(minutes=tolerance_minutes)
        return NotificationWindow(target=target, start=target - tol, end=target + tol)

    def windows(self, now: datetime | None = None, tolerance_minutes: int = 45) -> dict[str, NotificationWindow]:
        """One tolerance window per lead-time tag."""
        return {
            tag: self.window(target, tolerance_minutes)
            for tag, target in self.target_instants(now).items()
        }
