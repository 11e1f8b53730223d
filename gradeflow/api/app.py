# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the GradeFlow API.

Run with:
    uvicorn gradeflow.api.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradeflow import __version__
from gradeflow.api.dependencies import close_db, init_db
from gradeflow.api.middleware.auth import AuthMiddleware
from gradeflow.api.routes import health
from gradeflow.api.v1 import router as v1_router
from gradeflow.core.config import get_settings
from gradeflow.domains.access.guard import TenantGuard
from gradeflow.infrastructure.database.connection import DatabaseError
from gradeflow.infrastructure.events import EventBus
from gradeflow.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: database pool, workflow event bus.
    Shutdown: event bus (draining queued events first), database pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    logger.info(
        "Starting GradeFlow API (environment=%s, debug=%s)",
        settings.environment,
        settings.debug,
    )

    # =========================================================================
    # Startup
    # =========================================================================

    try:
        await init_db()
        logger.info("Database connection initialized")
    except DatabaseError as e:
        logger.warning("Failed to initialize database connection: %s", str(e))

    event_bus = EventBus(max_queue_size=settings.grading.event_queue_size)
    await event_bus.start()
    app.state.event_bus = event_bus

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    await event_bus.stop()
    event_bus.clear()
    app.state.event_bus = None

    await close_db()
    logger.info("Shutting down GradeFlow API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="GradeFlow API",
        description="Grade lifecycle and approval workflow for multi-school deployments",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Disable automatic redirects from /path to /path/
        # This prevents 307 redirects that lose Authorization headers
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.tenant_guard = TenantGuard()
    app.state.event_bus = None

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================
    app.add_middleware(AuthMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
