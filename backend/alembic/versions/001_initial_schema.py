"""Initial WavePing schema: subscribers, sessions, send/change/digest ledgers, weather cache

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "subscribers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("telegram_chat_id", sa.BigInteger(), nullable=False),
        sa.Column("telegram_username", sa.String(64), nullable=True),
        sa.Column("notification_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("min_spots", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("levels", sa.JSON(), nullable=False),
        sa.Column("sides", sa.JSON(), nullable=False),
        sa.Column("days", sa.JSON(), nullable=False),
        sa.Column("time_windows", sa.JSON(), nullable=False),
        sa.Column("lead_times", sa.JSON(), nullable=False),
        sa.Column("digest", sa.String(16), nullable=False, server_default="none"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_subscribers_telegram_chat_id", "subscribers", ["telegram_chat_id"], unique=True)

    op.create_table(
        "availability_events",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("session_name", sa.String(256), nullable=False),
        sa.Column("level", sa.String(64), nullable=False),
        sa.Column("side", sa.String(1), nullable=True),
        sa.Column("total_spots", sa.Integer(), nullable=True),
        sa.Column("spots_available", sa.Integer(), nullable=True),
        sa.Column("book_url", sa.Text(), nullable=True),
        sa.Column("instructor", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("first_seen", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_availability_events_date_start", "availability_events", ["date", "start_time"])
    op.create_index("ix_availability_events_level", "availability_events", ["level"])
    op.create_index("ix_availability_events_is_active", "availability_events", ["is_active"])

    op.create_table(
        "send_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "subscriber_id",
            sa.String(36),
            sa.ForeignKey("subscribers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_id", sa.String(32), sa.ForeignKey("availability_events.id"), nullable=False),
        sa.Column("lead_time", sa.String(32), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("subscriber_id", "event_id", "lead_time", name="uq_send_records_subscriber_event_lead"),
    )
    op.create_index("ix_send_records_subscriber_id", "send_records", ["subscriber_id"])
    op.create_index("ix_send_records_event_id", "send_records", ["event_id"])

    op.create_table(
        "change_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(32), sa.ForeignKey("availability_events.id"), nullable=False),
        sa.Column("change_type", sa.String(32), nullable=False),
        sa.Column("old_spots", sa.Integer(), nullable=True),
        sa.Column("new_spots", sa.Integer(), nullable=True),
        sa.Column("detected_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_change_records_event_id", "change_records", ["event_id"])
    op.create_index("ix_change_records_detected_at", "change_records", ["detected_at"])

    op.create_table(
        "digest_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "subscriber_id",
            sa.String(36),
            sa.ForeignKey("subscribers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("digest_type", sa.String(16), nullable=False),
        sa.Column("digest_date", sa.Date(), nullable=False),
        sa.Column("event_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("subscriber_id", "digest_type", "digest_date", name="uq_digest_records_subscriber_type_date"),
    )
    op.create_index("ix_digest_records_subscriber_id", "digest_records", ["subscriber_id"])

    op.create_table(
        "weather_cache",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date(), nullable=False, unique=True),
        sa.Column("air_temp", sa.Numeric(4, 1), nullable=True),
        sa.Column("water_temp", sa.Numeric(4, 1), nullable=True),
        sa.Column("wind_speed", sa.Integer(), nullable=True),
        sa.Column("wind_direction", sa.String(8), nullable=True),
        sa.Column("conditions", sa.String(128), nullable=True),
        sa.Column("cached_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("weather_cache")
    op.drop_index("ix_digest_records_subscriber_id", table_name="digest_records")
    op.drop_table("digest_records")
    op.drop_index("ix_change_records_detected_at", table_name="change_records")
    op.drop_index("ix_change_records_event_id", table_name="change_records")
    op.drop_table("change_records")
    op.drop_index("ix_send_records_event_id", table_name="send_records")
    op.drop_index("ix_send_records_subscriber_id", table_name="send_records")
    op.drop_table("send_records")
    op.drop_index("ix_availability_events_is_active", table_name="availability_events")
    op.drop_index("ix_availability_events_level", table_name="availability_events")
    op.drop_index("ix_availability_events_date_start", table_name="availability_events")
    op.drop_table("availability_events")
    op.drop_index("ix_subscribers_telegram_chat_id", table_name="subscribers")
    op.drop_table("subscribers")
