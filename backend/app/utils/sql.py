# backend/app/utils/sql.py
"""
SQL utility functions.

This module provides one upsert contract over the dialect-specific
INSERT ... ON CONFLICT constructs of PostgreSQL and SQLite:
- upsert_statement: Build an insert-or-update / insert-or-ignore statement

Both dialects spell the clause the same way (`excluded.<column>` refers to
the row that failed to insert), so callers never branch on the backend.

Usage:
    from app.utils.sql import upsert_statement

    stmt = upsert_statement(
        db, Ownership, rows,
        index_elements=["user_id", "item_id"],
        update_columns=["count"],
    )
    db.execute(stmt)
"""

from typing import Any, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def upsert_statement(
        db: Session,
        model: type,
        rows: Sequence[dict[str, Any]],
        index_elements: Sequence[str],
        update_columns: Sequence[str] | None = None,
):
    """
    Build a bulk upsert for the session's dialect.

    Args:
        db: Session whose bind decides the dialect
        model: Mapped ORM class
        rows: Column-name -> value dicts (at least one)
        index_elements: Columns of the unique constraint that may conflict
        update_columns: Columns overwritten on conflict; None or empty means
            the conflicting row is left untouched (insert-or-ignore)

    Returns:
        Executable INSERT ... ON CONFLICT statement

    Raises:
        NotImplementedError: Dialect without ON CONFLICT support
        ValueError: No rows given

    Example:
        >>> stmt = upsert_statement(db, Item, [{"id": "1", "name": "Case"}], ["id"])
        >>> db.execute(stmt)   # INSERT ... ON CONFLICT (id) DO NOTHING
    """
    if not rows:
        raise ValueError("upsert_statement requires at least one row")

    dialect = db.get_bind().dialect.name
    insert_fn = _INSERT_BY_DIALECT.get(dialect)
    if insert_fn is None:
        raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")

    stmt = insert_fn(model).values(list(rows))

    if not update_columns:
        return stmt.on_conflict_do_nothing(index_elements=list(index_elements))

    return stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={column: stmt.excluded[column] for column in update_columns},
    )
