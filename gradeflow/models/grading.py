# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the grade workflow.

Entry fields are deliberately loose (optional, unconstrained numbers): the
validation engine inspects every entry and reports all violations together,
so a submission is never rejected on its first bad field.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GradeEntryInput(BaseModel):
    """One proposed score for a student in a subject."""

    student_id: str | None = None
    subject_id: str | None = None
    score: float | None = None
    max_score: float | None = None
    comments: str | None = None


class GradeSubmissionRequest(BaseModel):
    """A teacher's set of scores for one class, term and exam type.

    school_id defaults to the acting teacher's school.
    class_size, when given, is recorded as the batch's total_students.
    """

    school_id: str | None = None
    class_id: str | None = None
    term: str | None = None
    exam_type: str | None = None
    entries: list[GradeEntryInput] = Field(default_factory=list)
    class_size: int | None = Field(default=None, ge=0)


class BatchKeyResponse(BaseModel):
    """Identity of a submission batch."""

    school_id: str
    class_id: str
    term: str
    exam_type: str
    submitted_by: str


class SaveResult(BaseModel):
    """Outcome of saving or submitting a set of grades."""

    saved_count: int
    grade_ids: list[str]
    batch_key: BatchKeyResponse


class GradeIdsRequest(BaseModel):
    """Grade ids to act on, with an optional reviewer note."""

    grade_ids: list[str] = Field(default_factory=list)
    notes: str | None = None


class TransitionResponse(BaseModel):
    """Outcome of a status transition.

    no_action is true when none of the requested ids was eligible.
    """

    updated_count: int
    grade_ids: list[str]
    from_status: str
    to_status: str
    no_action: bool = False


class OverrideRequest(BaseModel):
    """A principal's replacement score for one grade."""

    new_score: float
    notes: str | None = None


class GradeResponse(BaseModel):
    """A persisted grade row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str
    student_id: str
    subject_id: str
    class_id: str
    term: str
    exam_type: str
    submitted_by: str
    score: float
    max_score: float
    percentage: float | None = None
    letter_grade: str | None = None
    comments: str | None = None
    status: str
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    released_by: str | None = None
    released_at: datetime | None = None
    principal_notes: str | None = None
    original_score: float | None = None


class BatchSummary(BaseModel):
    """A logical submission batch as shown to a reviewing principal."""

    school_id: str
    class_id: str
    term: str
    exam_type: str
    submitted_by: str
    subject_ids: list[str]
    grades_entered: int
    latest_submitted_at: datetime | None = None
    status: str
    status_counts: dict[str, int]
    is_mixed: bool
    grade_ids: list[str]
    batch_id: str | None = None
    batch_name: str | None = None
    total_students: int | None = None


class BatchListResponse(BaseModel):
    """Response for batch list endpoints."""

    batches: list[BatchSummary]
    total: int


class GradeListResponse(BaseModel):
    """Response for grade list endpoints."""

    grades: list[GradeResponse]
    total: int


class WorkflowSummary(BaseModel):
    """Per-status grade counts for one school."""

    school_id: str
    counts: dict[str, int]
    total: int


class GradeAuditEntry(BaseModel):
    """One applied transition or override touching a grade."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    action: str
    from_status: str
    to_status: str
    actor_id: str
    actor_role: str
    affected_count: int
    notes: str | None = None
    created_at: datetime


class GradeAuditHistoryResponse(BaseModel):
    """Audit trail of one grade, oldest first."""

    grade_id: str
    entries: list[GradeAuditEntry]
    total: int
