# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE.

PostgreSQL and SQLite share the ON CONFLICT syntax, but SQLAlchemy exposes
it through dialect-specific insert constructs. This module picks the right
one for the session's bind.
"""

from typing import Any, Iterable, Sequence

from sqlalchemy import ColumnElement
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.dml import Insert

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UnsupportedDialectError(Exception):
    """Raised when the bound database has no ON CONFLICT support."""

    pass


def dialect_insert(db: AsyncSession, table: Any) -> Insert:
    """Create a dialect-specific INSERT for the session's database.

    Args:
        db: Async session bound to the target database.
        table: Mapped class or Table to insert into.

    Returns:
        An insert construct exposing on_conflict_do_update.

    Raises:
        UnsupportedDialectError: If the dialect has no upsert support here.
    """
    dialect_name = db.get_bind().dialect.name
    factory = _DIALECT_INSERTS.get(dialect_name)
    if factory is None:
        raise UnsupportedDialectError(f"Upsert is not supported on dialect '{dialect_name}'")
    return factory(table)


def build_upsert(
    db: AsyncSession,
    table: Any,
    rows: Sequence[dict[str, Any]],
    conflict_columns: Iterable[str],
    update_columns: Iterable[str],
    where: ColumnElement[bool] | None = None,
) -> Insert:
    """Build a multi-row upsert keyed on a unique constraint.

    Args:
        db: Async session bound to the target database.
        table: Mapped class or Table to insert into.
        rows: Column/value mappings, one per row.
        conflict_columns: Columns of the unique constraint to conflict on.
        update_columns: Columns overwritten from the incoming row on conflict.
        where: Optional guard; conflicting rows failing it are left untouched.

    Returns:
        The upsert statement, ready for .returning() or execution.
    """
    stmt = dialect_insert(db, table).values(list(rows))
    set_ = {column: stmt.excluded[column] for column in update_columns}
    return stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_=set_,
        where=where,
    )
