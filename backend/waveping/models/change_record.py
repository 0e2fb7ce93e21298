"""Audit trail of detected transitions per event (new / capacity up / capacity down / cancelled). Append-only."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from waveping.db.base import Base


class ChangeRecord(Base):
    __tablename__ = "change_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(32), ForeignKey("availability_events.id"), nullable=False, index=True)
    change_type = Column(String(32), nullable=False)
    old_spots = Column(Integer, nullable=True)
    new_spots = Column(Integer, nullable=True)
    detected_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
