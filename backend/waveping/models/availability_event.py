"""Bookable session scraped from the upstream calendar. One row per event id, never deleted.

id = md5("{date}-{HH:MM}-{name}")[:12] so re-acquisition of the same entry maps to the same row.
is_active goes false when a fresh acquisition covering the date no longer lists it.
spots_available NULL = unknown (treated as potentially available).
"""
from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, Text, Time
from sqlalchemy.sql import func

from waveping.db.base import Base


class AvailabilityEvent(Base):
    __tablename__ = "availability_events"

    id = Column(String(32), primary_key=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)
    session_name = Column(String(256), nullable=False)
    level = Column(String(64), nullable=False, index=True)
    side = Column(String(1), nullable=True)  # L | R | NULL
    total_spots = Column(Integer, nullable=True)
    spots_available = Column(Integer, nullable=True)
    book_url = Column(Text, nullable=True)
    instructor = Column(String(128), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    first_seen = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_availability_events_date_start", "date", "start_time"),)
