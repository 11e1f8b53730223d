# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the grade workflow."""

from gradeflow.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    generate_uuid,
)
from gradeflow.infrastructure.database.models.grade import (
    BATCH_NATURAL_KEY,
    GRADE_NATURAL_KEY,
    Grade,
    GradeAuditLog,
    GradeStatus,
    SubmissionBatch,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "generate_uuid",
    "Grade",
    "GradeAuditLog",
    "GradeStatus",
    "SubmissionBatch",
    "GRADE_NATURAL_KEY",
    "BATCH_NATURAL_KEY",
]
