# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read side of the grade workflow.

Grades are stored flat, one row per student and subject. Principals review
them as batches: everything one teacher entered for a class, term and exam
type. This module regroups the rows into those batches and serves the other
read models (released grades, grade sheets, status counts, audit history).
It never writes.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import Text, cast, func, select
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gradeflow.domains.grading.exceptions import GradeNotFoundError
from gradeflow.domains.grading.keys import BatchKey
from gradeflow.domains.grading.status import representative_status
from gradeflow.infrastructure.database.connection import DatabaseError
from gradeflow.infrastructure.database.models import (
    Grade,
    GradeAuditLog,
    GradeStatus,
    SubmissionBatch,
)
from gradeflow.models.grading import (
    BatchSummary,
    GradeAuditEntry,
    GradeAuditHistoryResponse,
    GradeResponse,
    WorkflowSummary,
)
from gradeflow.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)


class _BatchGroup:
    """Accumulates the rows of one batch key."""

    def __init__(self, key: BatchKey) -> None:
        self.key = key
        self.subject_ids: list[str] = []
        self.grade_ids: list[str] = []
        self.status_counts: Counter[str] = Counter()
        self.latest_submitted_at: datetime | None = None

    def add(self, grade: Grade) -> None:
        self.grade_ids.append(grade.id)
        if grade.subject_id not in self.subject_ids:
            self.subject_ids.append(grade.subject_id)
        self.status_counts[grade.status] += 1
        submitted_at = ensure_utc(grade.submitted_at)
        if submitted_at is not None and (
            self.latest_submitted_at is None or submitted_at > self.latest_submitted_at
        ):
            self.latest_submitted_at = submitted_at

    def to_summary(self, batch: SubmissionBatch | None) -> BatchSummary:
        return BatchSummary(
            **self.key.as_dict(),
            subject_ids=self.subject_ids,
            grades_entered=len(self.grade_ids),
            latest_submitted_at=self.latest_submitted_at,
            status=representative_status(self.status_counts).value,
            status_counts=dict(self.status_counts),
            is_mixed=len(self.status_counts) > 1,
            grade_ids=self.grade_ids,
            batch_id=batch.id if batch is not None else None,
            batch_name=batch.batch_name if batch is not None else None,
            total_students=batch.total_students if batch is not None else None,
        )


def group_into_batches(
    grades: Iterable[Grade],
    batches: Iterable[SubmissionBatch] = (),
) -> list[BatchSummary]:
    """Group flat grade rows by batch key.

    Groups are ordered by latest submission time, newest first; groups that
    were never submitted come last.

    Args:
        grades: Grade rows, any order.
        batches: Stored batch summaries to attach by key.

    Returns:
        One summary per batch key present in grades.
    """
    groups: dict[BatchKey, _BatchGroup] = {}
    for grade in grades:
        key = BatchKey.from_row(grade)
        if key not in groups:
            groups[key] = _BatchGroup(key)
        groups[key].add(grade)

    stored = {BatchKey.from_row(batch): batch for batch in batches}

    ordered = sorted(
        groups.values(),
        key=lambda g: (g.latest_submitted_at is not None, g.latest_submitted_at or datetime.min),
        reverse=True,
    )
    return [group.to_summary(stored.get(group.key)) for group in ordered]


class ApprovalView:
    """Read-only queries over grades and submission batches.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the view.

        Args:
            db: Async database session.
        """
        self.db = db

    async def list_pending_batches(self, school_id: str) -> list[BatchSummary]:
        """Batches with grades awaiting approval in a school."""
        return await self.list_batches(school_id, [GradeStatus.SUBMITTED])

    async def list_batches(
        self,
        school_id: str,
        statuses: Iterable[GradeStatus] | None = None,
    ) -> list[BatchSummary]:
        """Batches of a school, optionally limited to grades in some states.

        Args:
            school_id: School to read.
            statuses: Only grades in these states are grouped. All if None.

        Returns:
            Batch summaries, newest submission first.
        """
        query = select(Grade).where(Grade.school_id == school_id)
        status_values = [s.value for s in statuses] if statuses else None
        if status_values:
            query = query.where(Grade.status.in_(status_values))
        query = query.order_by(
            Grade.class_id, Grade.term, Grade.exam_type, Grade.subject_id, Grade.student_id
        )

        grades = (
            await self._execute(query.execution_options(populate_existing=True), "list batches")
        ).scalars().all()
        if not grades:
            return []

        batches = (
            await self._execute(
                select(SubmissionBatch)
                .where(SubmissionBatch.school_id == school_id)
                .execution_options(populate_existing=True),
                "list batches",
            )
        ).scalars().all()

        return group_into_batches(grades, batches)

    async def get_released_grades(self, school_id: str, student_id: str) -> list[GradeResponse]:
        """Released grades of one student. Unreleased grades are never returned."""
        result = await self._execute(
            select(Grade)
            .where(
                Grade.school_id == school_id,
                Grade.student_id == student_id,
                Grade.status == GradeStatus.RELEASED.value,
            )
            .order_by(Grade.term, Grade.exam_type, Grade.subject_id)
            .execution_options(populate_existing=True),
            "read released grades",
        )
        return [GradeResponse.model_validate(grade) for grade in result.scalars().all()]

    async def get_grade_sheet(
        self,
        school_id: str,
        class_id: str,
        term: str,
        exam_type: str,
        subject_id: str | None = None,
    ) -> list[GradeResponse]:
        """All grades of a class for one term and exam type, in any state."""
        query = select(Grade).where(
            Grade.school_id == school_id,
            Grade.class_id == class_id,
            Grade.term == term,
            Grade.exam_type == exam_type.strip().upper(),
        )
        if subject_id:
            query = query.where(Grade.subject_id == subject_id)
        result = await self._execute(
            query.order_by(Grade.subject_id, Grade.student_id).execution_options(
                populate_existing=True
            ),
            "read grade sheet",
        )
        return [GradeResponse.model_validate(grade) for grade in result.scalars().all()]

    async def get_workflow_summary(self, school_id: str) -> WorkflowSummary:
        """Number of grades per status in a school."""
        result = await self._execute(
            select(Grade.status, func.count(Grade.id))
            .where(Grade.school_id == school_id)
            .group_by(Grade.status),
            "count grades",
        )
        counts = {status.value: 0 for status in GradeStatus}
        for status, count in result.all():
            counts[status] = count
        return WorkflowSummary(school_id=school_id, counts=counts, total=sum(counts.values()))

    async def get_grade_audit_history(
        self,
        school_id: str,
        grade_id: str,
    ) -> GradeAuditHistoryResponse:
        """Transitions and overrides applied to one grade, oldest first.

        Args:
            school_id: School the grade must belong to.
            grade_id: Grade to read the trail of.

        Returns:
            The audit entries naming the grade.

        Raises:
            GradeNotFoundError: If the grade is not in the school.
            DatabaseError: If the store fails.
        """
        found = (
            await self._execute(
                select(Grade.id).where(Grade.id == grade_id, Grade.school_id == school_id),
                "read grade audit history",
            )
        ).scalar_one_or_none()
        if found is None:
            raise GradeNotFoundError(f"Grade {grade_id} not found")

        # grade_ids is a JSON list; the text match narrows, the membership
        # check below decides.
        logs = (
            await self._execute(
                select(GradeAuditLog)
                .where(
                    GradeAuditLog.school_id == school_id,
                    cast(GradeAuditLog.grade_ids, Text).contains(f'"{grade_id}"'),
                )
                .order_by(GradeAuditLog.created_at, GradeAuditLog.id)
                .execution_options(populate_existing=True),
                "read grade audit history",
            )
        ).scalars().all()

        entries = [
            GradeAuditEntry.model_validate(log)
            for log in logs
            if grade_id in (log.grade_ids or [])
        ]
        return GradeAuditHistoryResponse(grade_id=grade_id, entries=entries, total=len(entries))

    async def _execute(self, statement: Any, what: str) -> Result[Any]:
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Failed to %s: %s", what, str(e))
            raise DatabaseError(f"Failed to {what}", e) from e
