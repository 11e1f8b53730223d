# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading service: the operations exposed by the grade workflow.

This module provides the GradingService class for:
- Saving drafts and submitting grades for approval
- Approving, rejecting, releasing and overriding grades
- Reading pending batches, released grades, grade sheets, status counts
  and a grade's audit history

Every operation is authorized against the permission matrix and the actor's
school before anything is read or written. Successful writes are announced
on the event bus.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from gradeflow.domains.access.guard import TenantGuard
from gradeflow.domains.access.permissions import Actor, GradeAction
from gradeflow.domains.grading.aggregator import BatchAggregator, SaveMode, SaveOutcome
from gradeflow.domains.grading.approval_view import ApprovalView
from gradeflow.domains.grading.exceptions import AccessDeniedError
from gradeflow.domains.grading.status import APPROVE, REJECT, RELEASE, SUBMIT, Transition
from gradeflow.domains.grading.transitions import StatusTransitionService, TransitionResult
from gradeflow.domains.grading.validation import GradeValidator
from gradeflow.infrastructure.database.models import GradeStatus
from gradeflow.infrastructure.events import EventBus, EventTypes
from gradeflow.models.grading import (
    BatchKeyResponse,
    BatchSummary,
    GradeAuditHistoryResponse,
    GradeResponse,
    GradeSubmissionRequest,
    SaveResult,
    TransitionResponse,
    WorkflowSummary,
)

logger = logging.getLogger(__name__)

_TRANSITION_EVENTS = {
    SUBMIT.name: EventTypes.Grades.SUBMITTED,
    APPROVE.name: EventTypes.Grades.APPROVED,
    REJECT.name: EventTypes.Grades.REJECTED,
    RELEASE.name: EventTypes.Grades.RELEASED,
}


class GradingService:
    """Service for the grade lifecycle and approval workflow.

    Attributes:
        db: Async database session.
        guard: Tenant guard for access decisions.
        event_bus: Bus receiving workflow events, if any.
        validator: Validation engine.
        aggregator: Writer of grades and batch summaries.
        transitions: State machine.
        view: Read models.
    """

    def __init__(
        self,
        db: AsyncSession,
        guard: TenantGuard | None = None,
        event_bus: EventBus | None = None,
        letter_scale: str = "standard",
    ) -> None:
        """Initialize grading service.

        Args:
            db: Async database session.
            guard: Tenant guard. Defaults to one auditing to the log.
            event_bus: Bus for workflow events. Events are skipped if None.
            letter_scale: Boundary table for letter grades.
        """
        self.db = db
        self.guard = guard or TenantGuard()
        self.event_bus = event_bus
        self.validator = GradeValidator(letter_scale)
        self.aggregator = BatchAggregator(db)
        self.transitions = StatusTransitionService(db, self.guard, self.validator)
        self.view = ApprovalView(db)

    # =========================================================================
    # Teacher operations
    # =========================================================================

    async def save_draft(self, request: GradeSubmissionRequest, actor: Actor) -> SaveResult:
        """Save grades as drafts, invisible to reviewers.

        Args:
            request: Proposed grades.
            actor: Acting teacher.

        Returns:
            Saved grade ids and their batch key.

        Raises:
            AccessDeniedError: If the actor may not save drafts for the school.
            EmptySubmissionError: If the request has no entries.
            GradeValidationError: If any entry is invalid.
            GradeLockedError: If an entry would overwrite a non-draft grade.
        """
        return await self._save(request, actor, SaveMode.DRAFT)

    async def submit_for_approval(self, request: GradeSubmissionRequest, actor: Actor) -> SaveResult:
        """Save grades and submit them for principal approval.

        Raises:
            AccessDeniedError: If the actor may not submit for the school.
            EmptySubmissionError: If the request has no entries.
            GradeValidationError: If any entry is invalid.
            GradeLockedError: If an entry would overwrite a reviewed grade.
        """
        return await self._save(request, actor, SaveMode.SUBMIT)

    async def submit_drafts(self, grade_ids: Iterable[str], actor: Actor) -> TransitionResponse:
        """Submit previously saved drafts of the acting teacher."""
        return await self._transition(SUBMIT, grade_ids, actor)

    # =========================================================================
    # Principal operations
    # =========================================================================

    async def approve(
        self,
        grade_ids: Iterable[str],
        actor: Actor,
        notes: str | None = None,
    ) -> TransitionResponse:
        """Approve submitted grades.

        Raises:
            AccessDeniedError: If the actor may not approve grades.
            TenantIntegrityError: If a grade belongs to another school.
        """
        return await self._transition(APPROVE, grade_ids, actor, notes)

    async def reject(
        self,
        grade_ids: Iterable[str],
        actor: Actor,
        notes: str | None = None,
    ) -> TransitionResponse:
        """Reject submitted grades, recording the reason."""
        return await self._transition(REJECT, grade_ids, actor, notes)

    async def release(self, grade_ids: Iterable[str], actor: Actor) -> TransitionResponse:
        """Release approved grades to parents and students."""
        return await self._transition(RELEASE, grade_ids, actor)

    async def override(
        self,
        grade_id: str,
        new_score: float,
        actor: Actor,
        notes: str | None = None,
    ) -> TransitionResponse:
        """Replace a grade's score and approve it.

        Raises:
            AccessDeniedError: If the actor may not override grades.
            GradeNotFoundError: If the grade is not in the actor's school.
            GradeValidationError: If the new score is out of bounds.
        """
        self._authorize(actor, GradeAction.OVERRIDE_GRADES, actor.school_id)
        result = await self.transitions.override(grade_id, new_score, actor, notes)
        await self._after_transition(
            result,
            EventTypes.Grades.OVERRIDDEN,
            actor,
            {"new_score": new_score},
        )
        return self._to_response(result)

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_pending_batches(self, school_id: str, actor: Actor) -> list[BatchSummary]:
        """Batches awaiting approval in a school."""
        self._authorize(actor, GradeAction.VIEW_GRADEBOOK, school_id)
        return await self.view.list_pending_batches(school_id)

    async def list_batches(
        self,
        school_id: str,
        actor: Actor,
        statuses: Iterable[GradeStatus] | None = None,
    ) -> list[BatchSummary]:
        """Batches of a school, optionally filtered by grade status."""
        self._authorize(actor, GradeAction.VIEW_GRADEBOOK, school_id)
        return await self.view.list_batches(school_id, statuses)

    async def get_released_grades(
        self,
        student_id: str,
        school_id: str,
        actor: Actor,
    ) -> list[GradeResponse]:
        """Released grades of a student."""
        self._authorize(actor, GradeAction.VIEW_RELEASED, school_id)
        return await self.view.get_released_grades(school_id, student_id)

    async def get_grade_sheet(
        self,
        school_id: str,
        class_id: str,
        term: str,
        exam_type: str,
        actor: Actor,
        subject_id: str | None = None,
    ) -> list[GradeResponse]:
        """Grades of a class for one term and exam type."""
        self._authorize(actor, GradeAction.VIEW_GRADEBOOK, school_id)
        return await self.view.get_grade_sheet(school_id, class_id, term, exam_type, subject_id)

    async def get_workflow_summary(self, school_id: str, actor: Actor) -> WorkflowSummary:
        """Number of grades per status in a school."""
        self._authorize(actor, GradeAction.VIEW_GRADEBOOK, school_id)
        return await self.view.get_workflow_summary(school_id)

    async def get_grade_audit_history(
        self,
        grade_id: str,
        school_id: str,
        actor: Actor,
    ) -> GradeAuditHistoryResponse:
        """Transitions and overrides applied to one grade.

        Raises:
            AccessDeniedError: If the actor may not read the school's gradebook.
            GradeNotFoundError: If the grade is not in the school.
        """
        self._authorize(actor, GradeAction.VIEW_GRADEBOOK, school_id)
        return await self.view.get_grade_audit_history(school_id, grade_id)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _authorize(self, actor: Actor, action: GradeAction, school_id: str | None) -> None:
        if not self.guard.authorize(actor, action, school_id):
            raise AccessDeniedError(action.value, school_id)

    async def _save(
        self,
        request: GradeSubmissionRequest,
        actor: Actor,
        mode: SaveMode,
    ) -> SaveResult:
        action = GradeAction.SAVE_DRAFT if mode is SaveMode.DRAFT else GradeAction.SUBMIT_GRADES
        school_id = request.school_id or actor.school_id
        self._authorize(actor, action, school_id)

        submission = self.validator.validate(request, school_id=school_id, submitted_by=actor.id)
        outcome = await self.aggregator.save(submission, mode, class_size=request.class_size)

        event_type = EventTypes.Grades.DRAFTED if mode is SaveMode.DRAFT else EventTypes.Grades.SUBMITTED
        await self._publish(
            event_type,
            school_id,
            {
                **outcome.batch_key.as_dict(),
                "grade_ids": outcome.grade_ids,
                "count": outcome.saved_count,
                "actor_id": actor.id,
            },
        )
        return self._to_save_result(outcome)

    async def _transition(
        self,
        transition: Transition,
        grade_ids: Iterable[str],
        actor: Actor,
        notes: str | None = None,
    ) -> TransitionResponse:
        self._authorize(actor, transition.action, actor.school_id)
        result = await self.transitions.apply(transition, grade_ids, actor, notes)
        await self._after_transition(result, _TRANSITION_EVENTS[transition.name], actor)
        return self._to_response(result)

    async def _after_transition(
        self,
        result: TransitionResult,
        event_type: str,
        actor: Actor,
        extra: dict[str, Any] | None = None,
    ) -> None:
        if result.no_action:
            return
        await self.aggregator.refresh_batches(result.batch_keys)
        await self._publish(
            event_type,
            result.school_id,
            {
                "grade_ids": result.grade_ids,
                "count": result.updated_count,
                "actor_id": actor.id,
                **(extra or {}),
            },
        )

    async def _publish(self, event_type: str, school_id: str | None, payload: dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.publish(event_type, payload, school_id=school_id)

    @staticmethod
    def _to_save_result(outcome: SaveOutcome) -> SaveResult:
        return SaveResult(
            saved_count=outcome.saved_count,
            grade_ids=outcome.grade_ids,
            batch_key=BatchKeyResponse(**outcome.batch_key.as_dict()),
        )

    @staticmethod
    def _to_response(result: TransitionResult) -> TransitionResponse:
        return TransitionResponse(
            updated_count=result.updated_count,
            grade_ids=result.grade_ids,
            from_status=result.from_status or result.transition.from_values[0],
            to_status=result.transition.to_status.value,
            no_action=result.no_action,
        )
