"""Pytest fixtures: in-memory SQLite store, fixed business clock, recording push channel.

The engine code only needs a Session; tests build their own engine instead of importing
waveping.db.session, so nothing here touches DATABASE_URL.
"""
import threading
from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import waveping.models  # noqa: F401  (register tables)
from waveping.core.clock import BusinessClock
from waveping.core.engine_config import EngineConfig
from waveping.db.base import Base
from waveping.models.availability_event import AvailabilityEvent
from waveping.models.subscriber import Subscriber
from waveping.services.types import EventSnapshot, event_identity

LONDON = BusinessClock("Europe/London").tz

# Saturday 14 June 2025, 10:00 BST
NOW = datetime(2025, 6, 14, 10, 0, tzinfo=LONDON)
TODAY = NOW.date()


class FakeChannel:
    """PushChannel that records every send. Chats in fail_chats get False; raise_chats raise."""

    def __init__(self, fail_chats=(), raise_chats=()):
        self.sent = []
        self.fail_chats = set(fail_chats)
        self.raise_chats = set(raise_chats)
        self._lock = threading.Lock()

    def send(self, chat_id, text, buttons=None):
        if chat_id in self.raise_chats:
            raise RuntimeError("boom")
        if chat_id in self.fail_chats:
            return False
        with self._lock:
            self.sent.append((chat_id, text, buttons))
        return True

    @property
    def chat_ids(self):
        return [s[0] for s in self.sent]


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def clock():
    return BusinessClock("Europe/London", now_fn=lambda: NOW)


@pytest.fixture
def config():
    return EngineConfig(max_concurrency=4)


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def make_subscriber(db):
    counter = iter(range(1000, 100000))

    def _make(**kw):
        values = {
            "telegram_chat_id": next(counter),
            "notification_enabled": True,
            "min_spots": 1,
            "levels": ["beginner"],
            "sides": [],
            "days": [],
            "time_windows": [],
            "lead_times": [],
            "digest": "none",
        }
        values.update(kw)
        row = Subscriber(**values)
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def make_event(db):
    def _make(day=None, start="10:00", name="Beginner Session", **kw) -> EventSnapshot:
        day = day or date(2025, 6, 15)
        start_t = time.fromisoformat(start)
        values = {
            "id": event_identity(day, start_t, name),
            "date": day,
            "start_time": start_t,
            "end_time": None,
            "session_name": name,
            "level": "beginner",
            "side": None,
            "total_spots": 20,
            "spots_available": 10,
            "book_url": None,
            "instructor": None,
            "is_active": True,
        }
        values.update(kw)
        row = AvailabilityEvent(**values)
        db.add(row)
        db.commit()
        return EventSnapshot.from_row(row)

    return _make


def raw_event(day="2025-06-15", start="10:00", name="Beginner Session", **kw):
    """One upstream record as the schedule collaborator hands it over."""
    raw = {"date": day, "start_time": start, "session_name": name, "level": "beginner", "spots_available": 10}
    raw.update(kw)
    return raw
