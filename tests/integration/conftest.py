# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for grade workflow integration tests.

Tests run against an in-memory SQLite database through aiosqlite. The
schema is created from the ORM metadata for every test.
"""

from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gradeflow.domains.access.guard import TenantGuard
from gradeflow.domains.grading.service import GradingService
from gradeflow.infrastructure.database.models import Base, Grade, GradeAuditLog, SubmissionBatch
from gradeflow.infrastructure.events import EventBus, EventData

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory engine with the grading schema."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for one test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def event_bus() -> AsyncGenerator[EventBus, None]:
    """Started event bus, drained and stopped after the test."""
    bus = EventBus(max_queue_size=100)
    await bus.start()
    yield bus
    await bus.stop()


@pytest.fixture
def published(event_bus: EventBus) -> list[EventData]:
    """Every grade event delivered by the bus during the test."""
    events: list[EventData] = []

    async def collect(event: EventData) -> None:
        events.append(event)

    event_bus.subscribe("grades.*", collect)
    return events


@pytest.fixture
def service(db_session: AsyncSession, guard: TenantGuard, event_bus: EventBus) -> GradingService:
    """Grading service wired to the test database, guard and bus."""
    return GradingService(db_session, guard=guard, event_bus=event_bus)


@pytest.fixture
def load_grades(db_session: AsyncSession) -> Callable[..., Awaitable[list[Grade]]]:
    """Reload grade rows from the database, bypassing the identity map."""

    async def load(ids: list[str] | None = None) -> list[Grade]:
        query = select(Grade).order_by(Grade.student_id, Grade.subject_id)
        if ids is not None:
            query = query.where(Grade.id.in_(ids))
        result = await db_session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    return load


@pytest.fixture
def load_batches(db_session: AsyncSession) -> Callable[[], Awaitable[list[SubmissionBatch]]]:
    """Reload submission batch rows from the database."""

    async def load() -> list[SubmissionBatch]:
        result = await db_session.execute(
            select(SubmissionBatch)
            .order_by(SubmissionBatch.school_id, SubmissionBatch.class_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    return load


@pytest.fixture
def load_audit_logs(db_session: AsyncSession) -> Callable[[], Awaitable[list[GradeAuditLog]]]:
    """Reload grade audit rows, oldest first."""

    async def load() -> list[GradeAuditLog]:
        result = await db_session.execute(
            select(GradeAuditLog)
            .order_by(GradeAuditLog.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    return load
