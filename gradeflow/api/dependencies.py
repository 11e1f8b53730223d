# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

Dependencies are used to:
- Get database sessions
- Get the authenticated user and the acting grade workflow actor
- Get service instances wired to the application's guard and event bus

Example:
    @router.post("/approve")
    async def approve_grades(
        actor: Actor = Depends(require_actor),
        service: GradingService = Depends(get_grading_service),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradeflow.api.middleware.auth import CurrentUser, get_current_user
from gradeflow.core.config import get_settings
from gradeflow.domains.access.guard import TenantGuard
from gradeflow.domains.access.permissions import Actor
from gradeflow.domains.grading.service import GradingService
from gradeflow.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)
from gradeflow.infrastructure.events import EventBus

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for the shared database.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_actor(user: CurrentUser = Depends(require_auth)) -> Actor:
    """Require a user whose role takes part in the grade workflow.

    Raises:
        HTTPException: If the token's role is unknown.
    """
    actor = user.to_actor()
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{user.role}' has no access to grades",
        )
    return actor


# =========================================================================
# Service Dependencies
# =========================================================================


def get_event_bus(request: Request) -> EventBus | None:
    """Event bus owned by the application lifespan, if running."""
    return getattr(request.app.state, "event_bus", None)


def get_tenant_guard(request: Request) -> TenantGuard:
    """Tenant guard shared by the application."""
    guard = getattr(request.app.state, "tenant_guard", None)
    if guard is None:
        guard = TenantGuard()
        request.app.state.tenant_guard = guard
    return guard


def get_grading_service(
    db: AsyncSession = Depends(get_db),
    guard: TenantGuard = Depends(get_tenant_guard),
    event_bus: EventBus | None = Depends(get_event_bus),
) -> GradingService:
    """Grading service bound to the request's session."""
    return GradingService(
        db=db,
        guard=guard,
        event_bus=event_bus,
        letter_scale=get_settings().grading.letter_scale,
    )
