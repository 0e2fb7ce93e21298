from waveping.db.base import Base
from waveping.db.session import engine, SessionLocal
from waveping.db.tables import ALL_TABLE_NAMES

__all__ = ["engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
