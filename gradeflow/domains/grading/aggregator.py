# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch aggregator: persists grade entries and their submission summary.

Grades are upserted on their natural key, so saving the same entries twice
overwrites instead of duplicating. After the grades are committed the owning
SubmissionBatch row is recomputed from the grades table. A failure while
writing the summary is logged and does not undo the committed grades.

A draft save into a batch that already has a summary only updates its
counts; status, name and submission time stay as they were.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gradeflow.domains.grading.exceptions import GradeLockedError, Violation
from gradeflow.domains.grading.keys import BatchKey
from gradeflow.domains.grading.status import LOCKED_STATUSES, representative_status
from gradeflow.domains.grading.validation import ValidatedSubmission
from gradeflow.infrastructure.database.connection import DatabaseError
from gradeflow.infrastructure.database.models import (
    BATCH_NATURAL_KEY,
    GRADE_NATURAL_KEY,
    Grade,
    GradeStatus,
    SubmissionBatch,
    generate_uuid,
)
from gradeflow.infrastructure.database.upsert import build_upsert
from gradeflow.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class SaveMode(str, Enum):
    """How a set of entries is persisted."""

    DRAFT = "draft"
    SUBMIT = "submit"

    @property
    def target_status(self) -> GradeStatus:
        return GradeStatus.DRAFT if self is SaveMode.DRAFT else GradeStatus.SUBMITTED

    @property
    def overwritable(self) -> tuple[GradeStatus, ...]:
        """Existing states a save in this mode may replace."""
        if self is SaveMode.DRAFT:
            return (GradeStatus.DRAFT,)
        return tuple(status for status in GradeStatus if status not in LOCKED_STATUSES)


_GRADE_UPDATE_COLUMNS = (
    "score",
    "max_score",
    "letter_grade",
    "comments",
    "status",
    "submitted_at",
    "updated_at",
)

_BATCH_UPDATE_COLUMNS = (
    "batch_name",
    "total_students",
    "grades_entered",
    "status",
    "submitted_at",
    "updated_at",
)


@dataclass
class SaveOutcome:
    """Result of persisting a validated submission."""

    batch_key: BatchKey
    grade_ids: list[str] = field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return len(self.grade_ids)


def batch_filter(key: BatchKey, model: type = Grade):
    """WHERE clause selecting the rows of one batch key."""
    return and_(
        model.school_id == key.school_id,
        model.class_id == key.class_id,
        model.term == key.term,
        model.exam_type == key.exam_type,
        model.submitted_by == key.submitted_by,
    )


def batch_name_for(key: BatchKey) -> str:
    """Display name of a batch, e.g. "Term 1 - MIDTERM - 2025-03-14"."""
    return f"{key.term} - {key.exam_type} - {utc_now().date().isoformat()}"


class BatchAggregator:
    """Writes grade rows and keeps SubmissionBatch summaries in step.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the aggregator.

        Args:
            db: Async database session.
        """
        self.db = db

    async def save(
        self,
        submission: ValidatedSubmission,
        mode: SaveMode,
        class_size: int | None = None,
    ) -> SaveOutcome:
        """Upsert a validated submission and refresh its batch summary.

        Args:
            submission: Entries that passed validation.
            mode: Draft save or submission for approval.
            class_size: Number of students in the class, if known.

        Returns:
            Ids of the saved grades and the batch key.

        Raises:
            GradeLockedError: If any entry would overwrite a reviewed grade.
            DatabaseError: If the grade write fails.
        """
        key = submission.batch_key
        await self._ensure_not_locked(submission, mode)

        now = utc_now()
        rows = [
            {
                **key.as_dict(),
                "id": generate_uuid(),
                "student_id": entry.student_id,
                "subject_id": entry.subject_id,
                "score": entry.score,
                "max_score": entry.max_score,
                "letter_grade": entry.letter_grade,
                "comments": entry.comments,
                "status": mode.target_status.value,
                "submitted_at": now if mode is SaveMode.SUBMIT else None,
                "created_at": now,
                "updated_at": now,
            }
            for entry in submission.entries
        ]

        # Re-states the lock rule so a review landing between the check
        # above and this write is not overwritten.
        stmt = build_upsert(
            self.db,
            Grade,
            rows,
            conflict_columns=GRADE_NATURAL_KEY,
            update_columns=_GRADE_UPDATE_COLUMNS,
            where=Grade.status.in_([s.value for s in mode.overwritable]),
        ).returning(Grade.id)

        try:
            result = await self.db.execute(stmt)
            grade_ids = list(result.scalars().all())
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError("Failed to save grades", e) from e

        if len(grade_ids) != len(rows):
            await self.db.rollback()
            raise GradeLockedError(
                [],
                message="Some grades were reviewed while this submission was being saved",
            )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError("Failed to save grades", e) from e

        logger.info(
            "Saved %d grades as %s for batch %s/%s/%s by %s",
            len(grade_ids),
            mode.target_status.value,
            key.class_id,
            key.term,
            key.exam_type,
            key.submitted_by,
        )

        await self.refresh_batches(
            [key],
            class_size=class_size,
            rename=mode is SaveMode.SUBMIT,
            counts_only=mode is SaveMode.DRAFT,
        )
        return SaveOutcome(batch_key=key, grade_ids=grade_ids)

    async def refresh_batches(
        self,
        keys: Iterable[BatchKey],
        class_size: int | None = None,
        rename: bool = False,
        counts_only: bool = False,
    ) -> None:
        """Recompute SubmissionBatch rows from the grades table.

        Failures are logged and suppressed: the grades they summarize are
        already committed and the summary is rebuilt on the next write.

        Args:
            keys: Batches to recompute.
            class_size: Number of students in the class, if known.
            rename: Stamp the batch name with today's date.
            counts_only: Keep the status, name and submitted_at of an
                existing summary and refresh only its counts.
        """
        for key in sorted(set(keys)):
            try:
                await self._refresh_batch(key, class_size, rename, counts_only)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.warning(
                    "Failed to update submission batch %s/%s/%s for %s: %s",
                    key.class_id,
                    key.term,
                    key.exam_type,
                    key.submitted_by,
                    str(e),
                )

    async def _ensure_not_locked(self, submission: ValidatedSubmission, mode: SaveMode) -> None:
        try:
            result = await self.db.execute(
                select(Grade.student_id, Grade.subject_id, Grade.status).where(
                    batch_filter(submission.batch_key),
                    Grade.status.not_in([s.value for s in mode.overwritable]),
                )
            )
            blocked = {(row.student_id, row.subject_id): row.status for row in result.all()}
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError("Failed to read existing grades", e) from e
        if not blocked:
            return

        violations = [
            Violation(
                field="status",
                code="locked",
                message=f"grade is already {blocked[(entry.student_id, entry.subject_id)]}",
                index=index,
                student_id=entry.student_id,
                subject_id=entry.subject_id,
            )
            for index, entry in enumerate(submission.entries)
            if (entry.student_id, entry.subject_id) in blocked
        ]
        if violations:
            raise GradeLockedError(
                violations,
                message=f"{len(violations)} grades can no longer be changed",
            )

    async def _refresh_batch(
        self,
        key: BatchKey,
        class_size: int | None,
        rename: bool,
        counts_only: bool = False,
    ) -> None:
        totals = (
            await self.db.execute(
                select(
                    func.count(Grade.id),
                    func.count(func.distinct(Grade.student_id)),
                    func.max(Grade.submitted_at),
                ).where(batch_filter(key))
            )
        ).one()
        grades_entered, distinct_students, last_submitted_at = totals
        if grades_entered == 0:
            return

        status_rows = await self.db.execute(
            select(Grade.status, func.count(Grade.id))
            .where(batch_filter(key))
            .group_by(Grade.status)
        )
        status = representative_status({row[0]: row[1] for row in status_rows.all()})

        existing = (
            await self.db.execute(
                select(
                    SubmissionBatch.batch_name,
                    SubmissionBatch.total_students,
                    SubmissionBatch.status,
                    SubmissionBatch.submitted_at,
                ).where(batch_filter(key, SubmissionBatch))
            )
        ).one_or_none()

        if class_size is not None:
            total_students = class_size
        elif existing is not None:
            total_students = max(existing.total_students, distinct_students)
        else:
            total_students = distinct_students

        if existing is not None and counts_only:
            batch_name = existing.batch_name
            status_value = existing.status
            submitted_at = existing.submitted_at
        else:
            if existing is not None and not rename:
                batch_name = existing.batch_name
            else:
                batch_name = batch_name_for(key)
            status_value = status.value
            submitted_at = last_submitted_at

        now = utc_now()
        row = {
            **key.as_dict(),
            "id": generate_uuid(),
            "batch_name": batch_name,
            "total_students": total_students,
            "grades_entered": grades_entered,
            "status": status_value,
            "submitted_at": submitted_at,
            "created_at": now,
            "updated_at": now,
        }
        await self.db.execute(
            build_upsert(
                self.db,
                SubmissionBatch,
                [row],
                conflict_columns=BATCH_NATURAL_KEY,
                update_columns=_BATCH_UPDATE_COLUMNS,
            )
        )
