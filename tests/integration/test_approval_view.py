# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the read side of the grade workflow."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from gradeflow.domains.access.permissions import Actor, Role
from gradeflow.domains.grading.approval_view import ApprovalView, group_into_batches
from gradeflow.domains.grading.exceptions import AccessDeniedError, GradeNotFoundError
from gradeflow.infrastructure.database.connection import DatabaseError
from gradeflow.infrastructure.database.models import GradeStatus


def _grade(grade_id, student_id, status, submitted_at=None, submitted_by="t1", exam_type="MID"):
    return SimpleNamespace(
        id=grade_id,
        school_id="s1",
        class_id="C1",
        term="T1",
        exam_type=exam_type,
        submitted_by=submitted_by,
        student_id=student_id,
        subject_id="math",
        status=status,
        submitted_at=submitted_at,
    )


class TestGroupIntoBatches:
    """Tests for regrouping flat rows into batches."""

    def test_groups_by_key(self) -> None:
        now = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)
        grades = [
            _grade("g1", "s1", "submitted", now),
            _grade("g2", "s2", "submitted", now),
            _grade("g3", "s1", "submitted", now, submitted_by="t2"),
        ]

        batches = group_into_batches(grades)

        assert sorted(b.grades_entered for b in batches) == [1, 2]
        assert {b.submitted_by for b in batches} == {"t1", "t2"}

    def test_newest_first_unsubmitted_last(self) -> None:
        now = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)
        grades = [
            _grade("g1", "s1", "draft", None, exam_type="QUIZ"),
            _grade("g2", "s1", "submitted", now - timedelta(days=1), exam_type="MID"),
            _grade("g3", "s1", "submitted", now, exam_type="FINAL"),
        ]

        batches = group_into_batches(grades)

        assert [b.exam_type for b in batches] == ["FINAL", "MID", "QUIZ"]
        assert batches[0].latest_submitted_at == now
        assert batches[-1].latest_submitted_at is None

    def test_mixed_status(self) -> None:
        """A batch in several states reports the least advanced one."""
        grades = [
            _grade("g1", "s1", "approved"),
            _grade("g2", "s2", "submitted"),
            _grade("g3", "s3", "approved"),
        ]

        (batch,) = group_into_batches(grades)

        assert batch.status == "submitted"
        assert batch.is_mixed
        assert batch.status_counts == {"approved": 2, "submitted": 1}

    def test_naive_timestamps_are_utc(self) -> None:
        naive = datetime(2025, 3, 14, 9, 0)

        (batch,) = group_into_batches([_grade("g1", "s1", "submitted", naive)])

        assert batch.latest_submitted_at == naive.replace(tzinfo=timezone.utc)


class TestPendingBatches:
    """Tests for the principal's approval queue."""

    @pytest.mark.asyncio
    async def test_lists_submitted_batches(
        self, service, teacher, other_teacher, principal, make_submission
    ) -> None:
        await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100), ("s2", "math", 42, 50)], class_size=25),
            teacher,
        )
        await service.submit_for_approval(make_submission([("s1", "art", 7, 10)]), other_teacher)

        batches = await service.list_pending_batches("school-a", principal)

        assert len(batches) == 2
        own = next(b for b in batches if b.submitted_by == teacher.id)
        assert own.grades_entered == 2
        assert own.status == "submitted"
        assert own.subject_ids == ["math"]
        assert own.total_students == 25
        assert own.batch_id is not None
        assert own.batch_name.startswith("T1 - MID")
        assert not own.is_mixed

    @pytest.mark.asyncio
    async def test_drafts_are_not_pending(
        self, service, teacher, principal, two_grade_submission
    ) -> None:
        await service.save_draft(two_grade_submission, teacher)

        assert await service.list_pending_batches("school-a", principal) == []

    @pytest.mark.asyncio
    async def test_partially_approved_batch_stays_pending(
        self, service, teacher, principal, two_grade_submission
    ) -> None:
        """Only the still-submitted grades are offered for approval."""
        saved = await service.submit_for_approval(two_grade_submission, teacher)
        await service.approve(saved.grade_ids[:1], principal)

        (batch,) = await service.list_pending_batches("school-a", principal)

        assert batch.grade_ids == saved.grade_ids[1:]
        assert batch.grades_entered == 1

    @pytest.mark.asyncio
    async def test_scoped_to_school(
        self, service, teacher, teacher_b, principal, principal_b, two_grade_submission
    ) -> None:
        await service.submit_for_approval(two_grade_submission, teacher)
        await service.submit_for_approval(two_grade_submission, teacher_b)

        batches_a = await service.list_pending_batches("school-a", principal)
        batches_b = await service.list_pending_batches("school-b", principal_b)

        assert [b.school_id for b in batches_a] == ["school-a"]
        assert [b.school_id for b in batches_b] == ["school-b"]

    @pytest.mark.asyncio
    async def test_other_school_denied(self, service, principal) -> None:
        with pytest.raises(AccessDeniedError):
            await service.list_pending_batches("school-b", principal)

    @pytest.mark.asyncio
    async def test_platform_admin_reads_any_school(
        self, service, teacher_b, platform_admin, two_grade_submission
    ) -> None:
        await service.submit_for_approval(two_grade_submission, teacher_b)

        batches = await service.list_pending_batches("school-b", platform_admin)

        assert len(batches) == 1

    @pytest.mark.asyncio
    async def test_parent_cannot_see_gradebook(self, service, parent) -> None:
        with pytest.raises(AccessDeniedError):
            await service.list_pending_batches("school-a", parent)


class TestListBatches:
    """Tests for batch listing with a status filter."""

    @pytest.mark.asyncio
    async def test_status_filter(
        self, service, teacher, principal, make_submission
    ) -> None:
        saved = await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100)]), teacher
        )
        await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100)], exam_type="FINAL"), teacher
        )
        await service.approve(saved.grade_ids, principal)

        approved = await service.list_batches("school-a", principal, [GradeStatus.APPROVED])
        everything = await service.list_batches("school-a", principal)

        assert [b.exam_type for b in approved] == ["MID"]
        assert sorted(b.exam_type for b in everything) == ["FINAL", "MID"]


class TestReleasedGrades:
    """Tests for the parent and student view."""

    @pytest.mark.asyncio
    async def test_only_released_grades(
        self, service, teacher, principal, parent, make_submission
    ) -> None:
        saved = await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100), ("s1", "physics", 30, 50)]), teacher
        )
        await service.approve(saved.grade_ids, principal)

        assert await service.get_released_grades("s1", "school-a", parent) == []

        await service.release(saved.grade_ids, principal)
        grades = await service.get_released_grades("s1", "school-a", parent)

        assert [g.subject_id for g in grades] == ["math", "physics"]
        assert all(g.status == "released" for g in grades)
        assert grades[1].percentage == 60.0

    @pytest.mark.asyncio
    async def test_parent_of_other_school_denied(self, service) -> None:
        outsider = Actor(id="parent-b", role=Role.PARENT, school_id="school-b")

        with pytest.raises(AccessDeniedError):
            await service.get_released_grades("s1", "school-a", outsider)


class TestGradeSheet:
    """Tests for the class grade sheet."""

    @pytest.mark.asyncio
    async def test_sheet_includes_every_state(
        self, service, teacher, make_submission
    ) -> None:
        await service.submit_for_approval(make_submission([("s1", "math", 85, 100)]), teacher)
        await service.save_draft(make_submission([("s2", "math", 40, 100)]), teacher)

        sheet = await service.get_grade_sheet("school-a", "C1", "T1", "mid", teacher)

        assert [(g.student_id, g.status) for g in sheet] == [
            ("s1", "submitted"),
            ("s2", "draft"),
        ]

    @pytest.mark.asyncio
    async def test_subject_filter(self, service, teacher, make_submission) -> None:
        await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100), ("s1", "art", 5, 10)]), teacher
        )

        sheet = await service.get_grade_sheet(
            "school-a", "C1", "T1", "MID", teacher, subject_id="art"
        )

        assert [g.subject_id for g in sheet] == ["art"]


class TestWorkflowSummary:
    """Tests for per-status counts."""

    @pytest.mark.asyncio
    async def test_counts(self, service, teacher, principal, make_submission) -> None:
        saved = await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100), ("s2", "math", 40, 100)]), teacher
        )
        await service.save_draft(make_submission([("s3", "math", 10, 100)], exam_type="QUIZ"), teacher)
        await service.approve(saved.grade_ids[:1], principal)

        summary = await service.get_workflow_summary("school-a", principal)

        assert summary.counts == {
            "draft": 1,
            "submitted": 1,
            "approved": 1,
            "rejected": 0,
            "released": 0,
        }
        assert summary.total == 3

    @pytest.mark.asyncio
    async def test_empty_school(self, service, principal_b) -> None:
        summary = await service.get_workflow_summary("school-b", principal_b)

        assert summary.total == 0
        assert set(summary.counts) == {s.value for s in GradeStatus}


class TestGradeAuditHistory:
    """Tests for reading the transitions applied to one grade."""

    @pytest.mark.asyncio
    async def test_history_in_order(self, service, teacher, principal, make_submission) -> None:
        saved = await service.submit_for_approval(
            make_submission([("s1", "math", 85, 100), ("s2", "math", 40, 100)]), teacher
        )
        target, other = saved.grade_ids
        await service.approve([target, other], principal, notes="Checked")
        await service.override(target, 90, principal, notes="Recount")
        await service.release([target], principal)

        history = await service.get_grade_audit_history(target, "school-a", principal)

        assert history.grade_id == target
        assert [(e.action, e.from_status, e.to_status) for e in history.entries] == [
            ("approve", "submitted", "approved"),
            ("override", "approved", "approved"),
            ("release", "approved", "released"),
        ]
        assert history.entries[0].notes == "Checked"
        assert history.entries[0].affected_count == 2
        assert history.total == 3

        untouched = await service.get_grade_audit_history(other, "school-a", principal)
        assert [e.action for e in untouched.entries] == ["approve"]

    @pytest.mark.asyncio
    async def test_new_grade_has_empty_history(self, service, teacher, make_submission) -> None:
        saved = await service.save_draft(make_submission([("s1", "math", 85, 100)]), teacher)

        history = await service.get_grade_audit_history(saved.grade_ids[0], "school-a", teacher)

        assert history.entries == []
        assert history.total == 0

    @pytest.mark.asyncio
    async def test_grade_of_other_school_not_found(
        self, service, teacher, principal_b, make_submission
    ) -> None:
        saved = await service.submit_for_approval(make_submission([("s1", "math", 85, 100)]), teacher)

        with pytest.raises(GradeNotFoundError):
            await service.get_grade_audit_history(saved.grade_ids[0], "school-b", principal_b)

    @pytest.mark.asyncio
    async def test_other_school_denied(self, service, principal_b) -> None:
        with pytest.raises(AccessDeniedError):
            await service.get_grade_audit_history("any-id", "school-a", principal_b)

    @pytest.mark.asyncio
    async def test_parent_denied(self, service, parent) -> None:
        with pytest.raises(AccessDeniedError):
            await service.get_grade_audit_history("any-id", "school-a", parent)


class TestStoreFailures:
    """Tests for reads against a failing store."""

    @pytest.mark.asyncio
    async def test_read_failure_is_store_error(self, db_session) -> None:
        view = ApprovalView(db_session)
        failure = OperationalError("SELECT grades", {}, Exception("connection lost"))

        with patch.object(db_session, "execute", AsyncMock(side_effect=failure)):
            with pytest.raises(DatabaseError):
                await view.list_pending_batches("school-a")
            with pytest.raises(DatabaseError):
                await view.get_workflow_summary("school-a")
            with pytest.raises(DatabaseError):
                await view.get_grade_audit_history("school-a", "g1")
