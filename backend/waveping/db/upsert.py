"""
Dialect-aware INSERT ... ON CONFLICT helpers.

Idempotent writes rely on database uniqueness constraints, not in-process locks, so the
same statement has to run on PostgreSQL (production) and SQLite (tests).
"""
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def insert_for(db: Session) -> Any:
    """Return the dialect's insert() that supports on_conflict_do_nothing / do_update."""
    dialect = db.get_bind().dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"No ON CONFLICT insert for database dialect {dialect!r}") from None


def insert_ignore(db: Session, model: Any, values: dict[str, Any], index_elements: list[str]) -> bool:
    """
    INSERT ... ON CONFLICT (index_elements) DO NOTHING.
    Returns True if a row was written, False if the unique key already existed.
    Caller owns the commit.
    """
    stmt = insert_for(db)(model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    result = db.execute(stmt)
    return (result.rowcount or 0) == 1
