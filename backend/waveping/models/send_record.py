"""Send ledger: one row per delivered (subscriber, event, lead_time). Append-only.

lead_time holds a lead-time tag ("24h", ...) or a change-alert tag ("became_available",
"filling_fast"). The unique constraint is the exactly-once contract; a duplicate insert
means another invocation already delivered it.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from waveping.db.base import Base


class SendRecord(Base):
    __tablename__ = "send_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(String(36), ForeignKey("subscribers.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(String(32), ForeignKey("availability_events.id"), nullable=False, index=True)
    lead_time = Column(String(32), nullable=False)
    sent_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("subscriber_id", "event_id", "lead_time", name="uq_send_records_subscriber_event_lead"),
    )
