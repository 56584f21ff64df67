"""
Single-statement conditional writes.

SQLite and PostgreSQL both speak INSERT ... ON CONFLICT; SQLAlchemy exposes
it through their dialect-specific insert() constructs. Other backends are
rejected rather than emulated with check-then-insert.
"""

from typing import Any, Dict, Iterable, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from academy.common.errors import StorageError

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _dialect_insert(db: Session, model):
    name = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(name)
    if insert is None:
        raise StorageError(f"ON CONFLICT writes are not supported on '{name}'")
    return insert(model)


def insert_or_ignore(
    db: Session,
    model,
    values: Dict[str, Any],
    conflict_on: Sequence[str],
) -> bool:
    """
    Insert one row unless it collides on `conflict_on`.
    Returns True when a row was written.
    """
    stmt = (
        _dialect_insert(db, model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=list(conflict_on))
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def insert_or_update(
    db: Session,
    model,
    values: Dict[str, Any],
    conflict_on: Sequence[str],
    update_columns: Iterable[str],
) -> None:
    stmt = _dialect_insert(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_on),
        set_={col: stmt.excluded[col] for col in update_columns},
    )
    db.execute(stmt)
