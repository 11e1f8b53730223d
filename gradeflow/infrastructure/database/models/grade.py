# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade workflow tables.

Tables:
- grades: one row per (school, student, subject, class, term, exam type,
  submitting teacher). percentage is generated by the database.
- grade_submission_batches: per-teacher submission summary, one row per
  (school, class, term, exam type, teacher).
- grade_audit_logs: one row per applied status transition or override.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Computed,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from gradeflow.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from gradeflow.utils.datetime import utc_now


class GradeStatus(str, Enum):
    """Lifecycle states of a grade row."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    RELEASED = "released"


# Natural key of a grade row; also the upsert conflict target.
GRADE_NATURAL_KEY = (
    "school_id",
    "student_id",
    "subject_id",
    "class_id",
    "term",
    "exam_type",
    "submitted_by",
)

# Natural key of a submission batch.
BATCH_NATURAL_KEY = (
    "school_id",
    "class_id",
    "term",
    "exam_type",
    "submitted_by",
)

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in GradeStatus)


class Grade(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A single subject score for one student in one assessment."""

    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint(*GRADE_NATURAL_KEY, name="uq_grades_natural_key"),
        CheckConstraint("max_score > 0", name="ck_grades_max_score_positive"),
        CheckConstraint("score >= 0 AND score <= max_score", name="ck_grades_score_bounds"),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_grades_status"),
        Index("ix_grades_batch", *BATCH_NATURAL_KEY),
        Index("ix_grades_school_status", "school_id", "status"),
    )

    school_id: Mapped[str] = mapped_column(String(36), nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    term: Mapped[str] = mapped_column(String(50), nullable=False)
    exam_type: Mapped[str] = mapped_column(String(50), nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(36), nullable=False)

    score: Mapped[float] = mapped_column(Float, nullable=False)
    max_score: Mapped[float] = mapped_column(Float, nullable=False)
    percentage: Mapped[float] = mapped_column(
        Float,
        Computed("score * 100.0 / max_score", persisted=True),
    )
    letter_grade: Mapped[str | None] = mapped_column(String(5), nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GradeStatus.DRAFT.value,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    principal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<Grade {self.id} {self.student_id}/{self.subject_id} {self.status}>"


class SubmissionBatch(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Summary of one teacher's submission for a class, term and exam type."""

    __tablename__ = "grade_submission_batches"
    __table_args__ = (
        UniqueConstraint(*BATCH_NATURAL_KEY, name="uq_grade_submission_batches_key"),
        Index("ix_grade_submission_batches_school_status", "school_id", "status"),
    )

    school_id: Mapped[str] = mapped_column(String(36), nullable=False)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    term: Mapped[str] = mapped_column(String(50), nullable=False)
    exam_type: Mapped[str] = mapped_column(String(50), nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(36), nullable=False)

    batch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    total_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grades_entered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GradeStatus.DRAFT.value,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SubmissionBatch {self.batch_name} {self.status}>"


class GradeAuditLog(UUIDPrimaryKeyMixin, Base):
    """Append-only record of applied grade transitions and overrides."""

    __tablename__ = "grade_audit_logs"
    __table_args__ = (Index("ix_grade_audit_logs_school_created", "school_id", "created_at"),)

    school_id: Mapped[str] = mapped_column(String(36), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    grade_ids: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    affected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
