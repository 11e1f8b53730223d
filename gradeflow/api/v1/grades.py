# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade workflow API endpoints.

Teacher endpoints:
- POST /drafts - Save grades as drafts
- POST /submissions - Save grades and submit them for approval
- POST /submit - Submit previously saved drafts

Principal endpoints:
- GET /batches/pending - Batches awaiting approval
- GET /batches - Batches in any (or the given) states
- POST /approve - Approve submitted grades
- POST /reject - Reject submitted grades
- POST /release - Release approved grades
- POST /{grade_id}/override - Replace a grade's score and approve it

Read endpoints:
- GET /released - Released grades of a student
- GET /sheet - Grades of a class for a term and exam type
- GET /summary - Grade counts per status
- GET /{grade_id}/history - Audit trail of a grade

school_id query parameters default to the caller's own school.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from gradeflow.api.dependencies import get_grading_service, require_actor
from gradeflow.domains.access.permissions import Actor
from gradeflow.domains.grading.exceptions import (
    AccessDeniedError,
    EmptySubmissionError,
    GradeLockedError,
    GradeNotFoundError,
    GradeValidationError,
    GradingError,
    TenantIntegrityError,
)
from gradeflow.domains.grading.service import GradingService
from gradeflow.infrastructure.database.connection import DatabaseError
from gradeflow.infrastructure.database.models import GradeStatus
from gradeflow.models.grading import (
    BatchListResponse,
    GradeAuditHistoryResponse,
    GradeIdsRequest,
    GradeListResponse,
    GradeSubmissionRequest,
    OverrideRequest,
    SaveResult,
    TransitionResponse,
    WorkflowSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http_exception(error: Exception) -> HTTPException:
    """Translate a grading or store error into an HTTP error.

    Args:
        error: Error raised by the grading service.

    Returns:
        The HTTPException to raise.
    """
    if isinstance(error, GradeLockedError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(error), "violations": [v.to_dict() for v in error.violations]},
        )
    if isinstance(error, GradeValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(error), "violations": [v.to_dict() for v in error.violations]},
        )
    if isinstance(error, EmptySubmissionError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, AccessDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, TenantIntegrityError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Selected grades do not all belong to your school",
        )
    if isinstance(error, GradeNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grade not found")
    if isinstance(error, DatabaseError):
        logger.error("Grade store failure: %s", error)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Grade store unavailable",
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


# ============================================================================
# Teacher Endpoints
# ============================================================================


@router.post(
    "/drafts",
    response_model=SaveResult,
    status_code=status.HTTP_201_CREATED,
    summary="Save draft grades",
)
async def save_drafts(
    data: GradeSubmissionRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> SaveResult:
    """Save grades as drafts.

    Drafts can be edited freely and are not visible to reviewers.

    Args:
        data: Proposed grades.
        actor: Acting teacher.
        service: Grading service.

    Returns:
        Saved grade ids and batch key.

    Raises:
        HTTPException: On validation, permission or store errors.
    """
    logger.info("Saving %d draft grades by %s", len(data.entries), actor.id)

    try:
        return await service.save_draft(data, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


@router.post(
    "/submissions",
    response_model=SaveResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit grades for approval",
)
async def submit_grades(
    data: GradeSubmissionRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> SaveResult:
    """Save grades and submit them for principal approval.

    Args:
        data: Proposed grades.
        actor: Acting teacher.
        service: Grading service.

    Returns:
        Saved grade ids and batch key.

    Raises:
        HTTPException: On validation, permission or store errors.
    """
    logger.info("Submitting %d grades by %s", len(data.entries), actor.id)

    try:
        return await service.submit_for_approval(data, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


@router.post("/submit", response_model=TransitionResponse, summary="Submit saved drafts")
async def submit_drafts(
    data: GradeIdsRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> TransitionResponse:
    """Submit drafts previously saved by the caller."""
    try:
        return await service.submit_drafts(data.grade_ids, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


# ============================================================================
# Principal Endpoints
# ============================================================================


@router.get("/batches/pending", response_model=BatchListResponse, summary="Pending batches")
async def list_pending_batches(
    school_id: str | None = Query(None, description="Defaults to the caller's school"),
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> BatchListResponse:
    """List batches with grades awaiting approval."""
    try:
        batches = await service.list_pending_batches(school_id or actor.school_id, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e
    return BatchListResponse(batches=batches, total=len(batches))


@router.get("/batches", response_model=BatchListResponse, summary="List batches")
async def list_batches(
    school_id: str | None = Query(None, description="Defaults to the caller's school"),
    status_filter: list[GradeStatus] | None = Query(None, alias="status"),
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> BatchListResponse:
    """List batches, optionally only grades in the given states."""
    try:
        batches = await service.list_batches(school_id or actor.school_id, actor, status_filter)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e
    return BatchListResponse(batches=batches, total=len(batches))


@router.post("/approve", response_model=TransitionResponse, summary="Approve grades")
async def approve_grades(
    data: GradeIdsRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> TransitionResponse:
    """Approve submitted grades.

    Grades that are not currently submitted are skipped; if none qualify
    the response reports no_action.

    Args:
        data: Grade ids and optional approval note.
        actor: Acting principal.
        service: Grading service.

    Returns:
        Transition outcome.

    Raises:
        HTTPException: On permission, tenant or store errors.
    """
    logger.info("Approving %d grades by %s", len(data.grade_ids), actor.id)

    try:
        return await service.approve(data.grade_ids, actor, data.notes)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


@router.post("/reject", response_model=TransitionResponse, summary="Reject grades")
async def reject_grades(
    data: GradeIdsRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> TransitionResponse:
    """Reject submitted grades with a reason."""
    logger.info("Rejecting %d grades by %s", len(data.grade_ids), actor.id)

    try:
        return await service.reject(data.grade_ids, actor, data.notes)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


@router.post("/release", response_model=TransitionResponse, summary="Release results")
async def release_grades(
    data: GradeIdsRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> TransitionResponse:
    """Release approved grades to parents and students."""
    logger.info("Releasing %d grades by %s", len(data.grade_ids), actor.id)

    try:
        return await service.release(data.grade_ids, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


@router.post(
    "/{grade_id}/override",
    response_model=TransitionResponse,
    summary="Override a grade",
)
async def override_grade(
    grade_id: str,
    data: OverrideRequest,
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> TransitionResponse:
    """Replace a submitted or approved grade's score and approve it."""
    logger.info("Overriding grade %s by %s", grade_id, actor.id)

    try:
        return await service.override(grade_id, data.new_score, actor, data.notes)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


# ============================================================================
# Read Endpoints
# ============================================================================


@router.get("/released", response_model=GradeListResponse, summary="Released grades")
async def get_released_grades(
    student_id: str = Query(..., description="Student whose grades to read"),
    school_id: str | None = Query(None, description="Defaults to the caller's school"),
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> GradeListResponse:
    """Released grades of a student. Unreleased grades are never shown."""
    try:
        grades = await service.get_released_grades(student_id, school_id or actor.school_id, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e
    return GradeListResponse(grades=grades, total=len(grades))


@router.get("/sheet", response_model=GradeListResponse, summary="Grade sheet")
async def get_grade_sheet(
    class_id: str = Query(...),
    term: str = Query(...),
    exam_type: str = Query(...),
    subject_id: str | None = Query(None),
    school_id: str | None = Query(None, description="Defaults to the caller's school"),
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> GradeListResponse:
    """All grades of a class for one term and exam type."""
    try:
        grades = await service.get_grade_sheet(
            school_id or actor.school_id,
            class_id,
            term,
            exam_type,
            actor,
            subject_id=subject_id,
        )
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e
    return GradeListResponse(grades=grades, total=len(grades))


@router.get("/summary", response_model=WorkflowSummary, summary="Workflow summary")
async def get_workflow_summary(
    school_id: str | None = Query(None, description="Defaults to the caller's school"),
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> WorkflowSummary:
    """Number of grades per status."""
    try:
        return await service.get_workflow_summary(school_id or actor.school_id, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e


@router.get(
    "/{grade_id}/history",
    response_model=GradeAuditHistoryResponse,
    summary="Grade audit history",
)
async def get_grade_audit_history(
    grade_id: str,
    school_id: str | None = Query(None, description="Defaults to the caller's school"),
    actor: Actor = Depends(require_actor),
    service: GradingService = Depends(get_grading_service),
) -> GradeAuditHistoryResponse:
    """Transitions and overrides applied to a grade, oldest first."""
    try:
        return await service.get_grade_audit_history(grade_id, school_id or actor.school_id, actor)
    except (GradingError, DatabaseError) as e:
        raise _to_http_exception(e) from e
