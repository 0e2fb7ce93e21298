"""One row per delivered digest: (subscriber, digest_type, digest_date) is the digest identity.

A second digest run on the same business day finds the row and sends nothing.
"""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from waveping.db.base import Base


class DigestRecord(Base):
    __tablename__ = "digest_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(String(36), ForeignKey("subscribers.id", ondelete="CASCADE"), nullable=False, index=True)
    digest_type = Column(String(16), nullable=False)  # morning | evening
    digest_date = Column(Date, nullable=False)
    event_count = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("subscriber_id", "digest_type", "digest_date", name="uq_digest_records_subscriber_type_date"),
    )
