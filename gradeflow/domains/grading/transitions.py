# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Status transition service for the grade state machine.

A transition request names grade ids, the transition and the actor. Ids
whose current status does not allow the transition are dropped; if nothing
is left the call is a no-op rather than an error. The remaining rows are
re-checked against the actor's school, then moved with a single UPDATE that
repeats the status precondition, and the change is audited in the same
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gradeflow.domains.access.guard import TenantGuard
from gradeflow.domains.access.permissions import Actor
from gradeflow.domains.grading.exceptions import (
    GradeNotFoundError,
    GradeValidationError,
    TenantIntegrityError,
)
from gradeflow.domains.grading.keys import BatchKey
from gradeflow.domains.grading.status import OVERRIDE, Transition
from gradeflow.domains.grading.validation import GradeValidator
from gradeflow.infrastructure.database.connection import DatabaseError
from gradeflow.infrastructure.database.models import Grade, GradeAuditLog, GradeStatus
from gradeflow.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """Outcome of applying a transition.

    Attributes:
        transition: The transition that was requested.
        grade_ids: Ids that actually changed state.
        batch_keys: Batches owning the changed grades.
        school_id: School of the changed grades.
        from_status: State the changed grades were in before the transition.
    """

    transition: Transition
    grade_ids: list[str] = field(default_factory=list)
    batch_keys: set[BatchKey] = field(default_factory=set)
    school_id: str | None = None
    from_status: str | None = None

    @property
    def updated_count(self) -> int:
        return len(self.grade_ids)

    @property
    def no_action(self) -> bool:
        """True when no requested grade was eligible for the transition."""
        return not self.grade_ids


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(i for i in ids if i))


class StatusTransitionService:
    """Applies grade state transitions atomically.

    Attributes:
        db: Async database session.
        guard: Tenant guard re-validating school scope on loaded rows.
        validator: Used to re-validate and re-grade overridden scores.
    """

    def __init__(
        self,
        db: AsyncSession,
        guard: TenantGuard,
        validator: GradeValidator | None = None,
    ) -> None:
        """Initialize the transition service.

        Args:
            db: Async database session.
            guard: Tenant guard.
            validator: Validator for overrides. Defaults to the standard scale.
        """
        self.db = db
        self.guard = guard
        self.validator = validator or GradeValidator()

    async def apply(
        self,
        transition: Transition,
        grade_ids: Iterable[str],
        actor: Actor,
        notes: str | None = None,
    ) -> TransitionResult:
        """Apply a transition to a set of grades.

        Args:
            transition: Edge of the state machine to apply.
            grade_ids: Grades to move.
            actor: Acting user.
            notes: Reviewer note stored with approvals and rejections.

        Returns:
            The ids that changed. Empty (no_action) if none were eligible.

        Raises:
            TenantIntegrityError: If an eligible grade belongs to a school
                the actor may not touch. Nothing is changed.
            DatabaseError: If the store fails. Nothing is changed.
        """
        ids = _unique(grade_ids)
        result = TransitionResult(transition=transition)
        if not ids:
            return result

        try:
            rows = (
                await self.db.execute(
                    select(
                        Grade.id,
                        Grade.school_id,
                        Grade.class_id,
                        Grade.term,
                        Grade.exam_type,
                        Grade.submitted_by,
                        Grade.status,
                    )
                    .where(Grade.id.in_(ids))
                    .with_for_update()
                )
            ).all()

            eligible = [
                row
                for row in rows
                if row.status in transition.from_values
                and (not transition.owner_only or row.submitted_by == actor.id)
            ]
            if not eligible:
                await self.db.rollback()
                logger.info(
                    "No grades eligible for %s (%d requested by %s)",
                    transition.name,
                    len(ids),
                    actor.id,
                )
                return result

            await self._ensure_same_school(actor, (row.school_id for row in eligible), transition)

            now = utc_now()
            values = {
                "status": transition.to_status.value,
                "updated_at": now,
                **self._stamp(transition, actor, now, notes),
            }
            updated = await self.db.execute(
                update(Grade)
                .where(
                    Grade.id.in_([row.id for row in eligible]),
                    Grade.status.in_(transition.from_values),
                )
                .values(**values)
                .returning(Grade.id)
                .execution_options(synchronize_session=False)
            )
            changed = set(updated.scalars().all())
            if not changed:
                await self.db.rollback()
                return result

            changed_rows = [row for row in eligible if row.id in changed]
            result.grade_ids = [row.id for row in changed_rows]
            result.batch_keys = {BatchKey.from_row(row) for row in changed_rows}
            result.school_id = changed_rows[0].school_id
            # Transitions applied in bulk have a single source state.
            result.from_status = changed_rows[0].status

            self.db.add(
                GradeAuditLog(
                    school_id=result.school_id,
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    action=transition.name,
                    from_status=result.from_status,
                    to_status=transition.to_status.value,
                    grade_ids=result.grade_ids,
                    affected_count=result.updated_count,
                    notes=notes,
                    created_at=now,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to {transition.name} grades", e) from e

        logger.info(
            "Applied %s to %d grades in school %s by %s",
            transition.name,
            result.updated_count,
            result.school_id,
            actor.id,
        )
        return result

    async def override(
        self,
        grade_id: str,
        new_score: float,
        actor: Actor,
        notes: str | None = None,
    ) -> TransitionResult:
        """Replace the score of a submitted or approved grade.

        The teacher's original score is kept in original_score, the letter
        grade is recomputed and the grade ends up approved.

        Args:
            grade_id: Grade to override.
            new_score: Replacement score.
            actor: Acting principal.
            notes: Reason for the override.

        Returns:
            The overridden id, or no_action if the grade is in another state.

        Raises:
            GradeNotFoundError: If the grade does not exist in the actor's school.
            GradeValidationError: If the new score is out of bounds.
            DatabaseError: If the store fails.
        """
        result = TransitionResult(transition=OVERRIDE)

        try:
            row = (
                await self.db.execute(
                    select(
                        Grade.id,
                        Grade.school_id,
                        Grade.class_id,
                        Grade.term,
                        Grade.exam_type,
                        Grade.submitted_by,
                        Grade.status,
                        Grade.score,
                        Grade.max_score,
                        Grade.original_score,
                        Grade.principal_notes,
                    )
                    .where(Grade.id == grade_id)
                    .with_for_update()
                )
            ).one_or_none()

            if row is None or not self.guard.can_access(
                actor.role,
                actor.school_id,
                row.school_id,
                actor_id=actor.id,
                action=OVERRIDE.action,
            ):
                await self.db.rollback()
                raise GradeNotFoundError(f"Grade {grade_id} not found")

            violations = self.validator.validate_score(new_score, row.max_score)
            if violations:
                await self.db.rollback()
                raise GradeValidationError(violations)

            result.from_status = row.status
            if row.status not in OVERRIDE.from_values:
                await self.db.rollback()
                logger.info("Grade %s is %s, override skipped", grade_id, row.status)
                return result

            now = utc_now()
            updated = await self.db.execute(
                update(Grade)
                .where(Grade.id == grade_id, Grade.status.in_(OVERRIDE.from_values))
                .values(
                    score=new_score,
                    original_score=row.original_score if row.original_score is not None else row.score,
                    letter_grade=self.validator.letter_grade(new_score, row.max_score),
                    status=GradeStatus.APPROVED.value,
                    approved_by=actor.id,
                    approved_at=now,
                    principal_notes=notes if notes is not None else row.principal_notes,
                    updated_at=now,
                )
                .returning(Grade.id)
                .execution_options(synchronize_session=False)
            )
            if updated.scalar_one_or_none() is None:
                await self.db.rollback()
                return result

            result.grade_ids = [row.id]
            result.batch_keys = {BatchKey.from_row(row)}
            result.school_id = row.school_id

            self.db.add(
                GradeAuditLog(
                    school_id=row.school_id,
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    action=OVERRIDE.name,
                    from_status=row.status,
                    to_status=GradeStatus.APPROVED.value,
                    grade_ids=[row.id],
                    affected_count=1,
                    notes=notes or f"score {row.score} -> {new_score}",
                    created_at=now,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError("Failed to override grade", e) from e

        logger.info(
            "Grade %s overridden %s -> %s by %s",
            grade_id,
            row.score,
            new_score,
            actor.id,
        )
        return result

    async def _ensure_same_school(
        self,
        actor: Actor,
        school_ids: Iterable[str],
        transition: Transition,
    ) -> None:
        foreign = self.guard.foreign_schools(actor, school_ids)
        if foreign:
            await self.db.rollback()
            logger.error(
                "Tenant integrity violation: %s by %s (school %s) selected grades of %s",
                transition.name,
                actor.id,
                actor.school_id,
                sorted(foreign),
            )
            raise TenantIntegrityError(foreign)

    @staticmethod
    def _stamp(
        transition: Transition,
        actor: Actor,
        now: datetime,
        notes: str | None,
    ) -> dict[str, Any]:
        """Columns recording who moved the grade and when."""
        target = transition.to_status
        if target is GradeStatus.SUBMITTED:
            return {"submitted_at": now}
        if target in (GradeStatus.APPROVED, GradeStatus.REJECTED):
            return {"approved_by": actor.id, "approved_at": now, "principal_notes": notes}
        if target is GradeStatus.RELEASED:
            return {"released_by": actor.id, "released_at": now}
        return {}
