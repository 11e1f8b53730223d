# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the shared relational store.

Example:
    from gradeflow.infrastructure.database import get_session

    async with get_session() as session:
        result = await session.execute(select(Grade))
"""

from gradeflow.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    get_engine,
    get_session,
    get_sessionmaker,
    init_database,
)
from gradeflow.infrastructure.database.upsert import (
    UnsupportedDialectError,
    build_upsert,
    dialect_insert,
)

__all__ = [
    "DatabaseError",
    "close_database",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_database",
    "UnsupportedDialectError",
    "build_upsert",
    "dialect_insert",
]
