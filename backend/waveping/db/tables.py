"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts that the
registered models match this list exactly.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "subscribers",
    "availability_events",
    "send_records",
    "change_records",
    "digest_records",
    "weather_cache",
)
