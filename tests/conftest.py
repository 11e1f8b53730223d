# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests (in-memory SQLite through aiosqlite)
"""

from typing import Any, Callable

import pytest

from gradeflow.domains.access.audit import AccessDecision
from gradeflow.domains.access.guard import TenantGuard
from gradeflow.domains.access.permissions import Actor, Role
from gradeflow.models.grading import GradeEntryInput, GradeSubmissionRequest

SCHOOL_A = "school-a"
SCHOOL_B = "school-b"


class RecordingAuditSink:
    """Audit sink keeping decisions in memory for assertions."""

    def __init__(self) -> None:
        self.decisions: list[AccessDecision] = []

    def record(self, decision: AccessDecision) -> None:
        self.decisions.append(decision)

    @property
    def denied(self) -> list[AccessDecision]:
        return [d for d in self.decisions if not d.allowed]


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (in-memory database)"
    )


# =============================================================================
# Access Fixtures
# =============================================================================


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    """Provide an audit sink that records decisions."""
    return RecordingAuditSink()


@pytest.fixture
def guard(audit_sink: RecordingAuditSink) -> TenantGuard:
    """Provide a tenant guard auditing into audit_sink."""
    return TenantGuard(audit_sink=audit_sink)


@pytest.fixture
def teacher() -> Actor:
    """Teacher of school A."""
    return Actor(id="teacher-1", role=Role.TEACHER, school_id=SCHOOL_A)


@pytest.fixture
def other_teacher() -> Actor:
    """Second teacher of school A."""
    return Actor(id="teacher-2", role=Role.TEACHER, school_id=SCHOOL_A)


@pytest.fixture
def teacher_b() -> Actor:
    """Teacher of school B."""
    return Actor(id="teacher-b1", role=Role.TEACHER, school_id=SCHOOL_B)


@pytest.fixture
def principal() -> Actor:
    """Principal of school A."""
    return Actor(id="principal-1", role=Role.PRINCIPAL, school_id=SCHOOL_A)


@pytest.fixture
def principal_b() -> Actor:
    """Principal of school B."""
    return Actor(id="principal-b1", role=Role.PRINCIPAL, school_id=SCHOOL_B)


@pytest.fixture
def parent() -> Actor:
    """Parent in school A."""
    return Actor(id="parent-1", role=Role.PARENT, school_id=SCHOOL_A)


@pytest.fixture
def platform_admin() -> Actor:
    """Platform administrator, not bound to a school."""
    return Actor(id="admin-1", role=Role.PLATFORM_ADMIN, school_id=None)


# =============================================================================
# Helper Fixtures
# =============================================================================


def _build_submission(
    entries: list[tuple[str, str, float, float]],
    class_id: str = "C1",
    term: str = "T1",
    exam_type: str = "MID",
    **extra: Any,
) -> GradeSubmissionRequest:
    """Build a submission from (student, subject, score, max_score) tuples."""
    return GradeSubmissionRequest(
        class_id=class_id,
        term=term,
        exam_type=exam_type,
        entries=[
            GradeEntryInput(student_id=s, subject_id=subj, score=score, max_score=max_score)
            for s, subj, score, max_score in entries
        ],
        **extra,
    )


@pytest.fixture
def make_submission() -> Callable[..., GradeSubmissionRequest]:
    """Factory building submissions from (student, subject, score, max) tuples."""
    return _build_submission


@pytest.fixture
def two_grade_submission() -> GradeSubmissionRequest:
    """Two valid grades for class C1, term T1, exam MID."""
    return _build_submission([("student-1", "math", 85, 100), ("student-2", "math", 42, 50)])
