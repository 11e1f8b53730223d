# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading domain package.

This package provides the grade lifecycle and approval workflow:
- Validation of proposed grades
- Batch aggregation (grade upsert and submission summaries)
- Status transitions (submit, approve, reject, release, override)
- Approval view (batches, released grades, grade sheets)
"""

from gradeflow.domains.grading.exceptions import (
    AccessDeniedError,
    EmptySubmissionError,
    GradeLockedError,
    GradeNotFoundError,
    GradeValidationError,
    GradingError,
    TenantIntegrityError,
    Violation,
)
from gradeflow.domains.grading.keys import BatchKey
from gradeflow.domains.grading.service import GradingService

__all__ = [
    "GradingService",
    "BatchKey",
    "GradingError",
    "GradeValidationError",
    "GradeLockedError",
    "EmptySubmissionError",
    "AccessDeniedError",
    "TenantIntegrityError",
    "GradeNotFoundError",
    "Violation",
]
