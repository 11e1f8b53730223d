# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    grades: Grade lifecycle and approval workflow endpoints.
"""

from fastapi import APIRouter

from gradeflow.api.v1 import grades

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(grades.router, prefix="/grades", tags=["Grades"])

__all__ = ["router"]
