"""Subscriber: Telegram chat + notification preferences.

Written only by the setup/editing flow (bot); the engine reads it.
Preference sets are JSON arrays; an empty array means "no restriction" for that
dimension (levels excepted: no levels matches nothing).
  levels: ["beginner", ...]   sides: ["L", "R", "A"]   days: [0..6] (0 = Monday)
  time_windows: [["06:00", "12:00"], ...] half-open   lead_times: ["24h", "2h", ...]
"""
import uuid

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from waveping.db.base import Base


class Subscriber(Base):
    __tablename__ = "subscribers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    telegram_chat_id = Column(BigInteger, nullable=False, unique=True, index=True)
    telegram_username = Column(String(64), nullable=True)
    notification_enabled = Column(Boolean, nullable=False, default=True)
    min_spots = Column(Integer, nullable=False, default=1)
    levels = Column(JSON, nullable=False, default=list)
    sides = Column(JSON, nullable=False, default=list)
    days = Column(JSON, nullable=False, default=list)
    time_windows = Column(JSON, nullable=False, default=list)
    lead_times = Column(JSON, nullable=False, default=list)
    digest = Column(String(16), nullable=False, default="none")  # none | morning | evening | both
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
