# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the grade workflow API.

Requests go through the full middleware stack with real JWT tokens; the
database dependency is pointed at the in-memory test database.
"""

from typing import AsyncGenerator
from unittest.mock import patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from gradeflow.api.app import create_app
from gradeflow.api.dependencies import get_db
from gradeflow.core.config import get_settings
from gradeflow.domains.auth.jwt import JWTManager

GRADES = "/api/v1/grades"


def _auth(user_id: str, role: str, school_id: str | None = "school-a") -> dict[str, str]:
    token = JWTManager(get_settings().jwt).create_access_token(user_id, role=role, school_id=school_id)
    return {"Authorization": f"Bearer {token}"}


TEACHER = _auth("teacher-1", "teacher")
PRINCIPAL = _auth("principal-1", "principal")
PRINCIPAL_B = _auth("principal-b1", "principal", "school-b")
PARENT = _auth("parent-1", "parent")

SUBMISSION = {
    "class_id": "C1",
    "term": "T1",
    "exam_type": "mid",
    "entries": [
        {"student_id": "student-1", "subject_id": "math", "score": 85, "max_score": 100},
        {"student_id": "student-2", "subject_id": "math", "score": 42, "max_score": 50},
    ],
}


@pytest.fixture
def app(session_factory, guard) -> FastAPI:
    """Application wired to the test database and guard."""
    application = create_app()
    application.state.tenant_guard = guard

    async def override_get_db() -> AsyncGenerator:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client calling the application in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _submit(client: AsyncClient) -> list[str]:
    response = await client.post(f"{GRADES}/submissions", json=SUBMISSION, headers=TEACHER)
    assert response.status_code == 201
    return response.json()["grade_ids"]


class TestAuthentication:
    """Tests for token handling on grade endpoints."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient) -> None:
        response = await client.post(f"{GRADES}/submissions", json=SUBMISSION)

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient) -> None:
        response = await client.get(
            f"{GRADES}/summary", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_role(self, client: AsyncClient) -> None:
        response = await client.get(f"{GRADES}/summary", headers=_auth("u1", "librarian"))

        assert response.status_code == 403


class TestTeacherEndpoints:
    """Tests for saving and submitting grades over HTTP."""

    @pytest.mark.asyncio
    async def test_submit(self, client: AsyncClient) -> None:
        response = await client.post(f"{GRADES}/submissions", json=SUBMISSION, headers=TEACHER)

        assert response.status_code == 201
        data = response.json()
        assert data["saved_count"] == 2
        assert data["batch_key"] == {
            "school_id": "school-a",
            "class_id": "C1",
            "term": "T1",
            "exam_type": "MID",
            "submitted_by": "teacher-1",
        }

    @pytest.mark.asyncio
    async def test_validation_errors_are_listed(self, client: AsyncClient) -> None:
        body = {
            **SUBMISSION,
            "entries": [
                {"student_id": "student-1", "subject_id": "math", "score": 120, "max_score": 100},
                {"student_id": "student-2", "subject_id": "math", "score": 70, "max_score": 100},
            ],
        }

        response = await client.post(f"{GRADES}/submissions", json=body, headers=TEACHER)

        assert response.status_code == 422
        violations = response.json()["detail"]["violations"]
        assert [(v["index"], v["code"]) for v in violations] == [(0, "above_max")]

    @pytest.mark.asyncio
    async def test_oversized_fields_are_validation_errors(self, client: AsyncClient) -> None:
        body = {**SUBMISSION, "exam_type": "X" * 51}

        response = await client.post(f"{GRADES}/submissions", json=body, headers=TEACHER)

        assert response.status_code == 422
        violations = response.json()["detail"]["violations"]
        assert [(v["field"], v["code"]) for v in violations] == [("exam_type", "too_long")]

    @pytest.mark.asyncio
    async def test_empty_submission(self, client: AsyncClient) -> None:
        body = {**SUBMISSION, "entries": []}

        response = await client.post(f"{GRADES}/drafts", json=body, headers=TEACHER)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_principal_cannot_submit(self, client: AsyncClient) -> None:
        response = await client.post(f"{GRADES}/submissions", json=SUBMISSION, headers=PRINCIPAL)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_locked_grades_conflict(self, client: AsyncClient) -> None:
        ids = await _submit(client)
        await client.post(f"{GRADES}/approve", json={"grade_ids": ids}, headers=PRINCIPAL)

        response = await client.post(f"{GRADES}/submissions", json=SUBMISSION, headers=TEACHER)

        assert response.status_code == 409
        assert {v["code"] for v in response.json()["detail"]["violations"]} == {"locked"}

    @pytest.mark.asyncio
    async def test_submit_drafts(self, client: AsyncClient) -> None:
        draft = await client.post(f"{GRADES}/drafts", json=SUBMISSION, headers=TEACHER)
        ids = draft.json()["grade_ids"]

        response = await client.post(f"{GRADES}/submit", json={"grade_ids": ids}, headers=TEACHER)

        assert response.status_code == 200
        assert response.json()["updated_count"] == 2


class TestPrincipalEndpoints:
    """Tests for the approval workflow over HTTP."""

    @pytest.mark.asyncio
    async def test_full_workflow(self, client: AsyncClient) -> None:
        ids = await _submit(client)

        pending = await client.get(f"{GRADES}/batches/pending", headers=PRINCIPAL)
        assert pending.status_code == 200
        assert pending.json()["total"] == 1
        assert sorted(pending.json()["batches"][0]["grade_ids"]) == sorted(ids)

        approved = await client.post(
            f"{GRADES}/approve", json={"grade_ids": ids, "notes": "ok"}, headers=PRINCIPAL
        )
        assert approved.json()["updated_count"] == 2

        again = await client.post(f"{GRADES}/approve", json={"grade_ids": ids}, headers=PRINCIPAL)
        assert again.status_code == 200
        assert again.json()["no_action"] is True

        released = await client.post(f"{GRADES}/release", json={"grade_ids": ids}, headers=PRINCIPAL)
        assert released.json()["to_status"] == "released"

        grades = await client.get(
            f"{GRADES}/released", params={"student_id": "student-1"}, headers=PARENT
        )
        assert grades.status_code == 200
        assert grades.json()["total"] == 1
        assert grades.json()["grades"][0]["score"] == 85

    @pytest.mark.asyncio
    async def test_batches_status_filter(self, client: AsyncClient) -> None:
        ids = await _submit(client)
        await client.post(f"{GRADES}/reject", json={"grade_ids": ids}, headers=PRINCIPAL)

        rejected = await client.get(
            f"{GRADES}/batches", params={"status": "rejected"}, headers=PRINCIPAL
        )
        submitted = await client.get(
            f"{GRADES}/batches", params={"status": "submitted"}, headers=PRINCIPAL
        )

        assert rejected.json()["total"] == 1
        assert submitted.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_other_school_ids_conflict(self, client: AsyncClient) -> None:
        ids = await _submit(client)

        response = await client.post(f"{GRADES}/approve", json={"grade_ids": ids}, headers=PRINCIPAL_B)

        assert response.status_code == 409
        sheet = await client.get(
            f"{GRADES}/sheet",
            params={"class_id": "C1", "term": "T1", "exam_type": "MID"},
            headers=PRINCIPAL,
        )
        assert {g["status"] for g in sheet.json()["grades"]} == {"submitted"}

    @pytest.mark.asyncio
    async def test_other_school_read_denied(self, client: AsyncClient) -> None:
        response = await client.get(
            f"{GRADES}/batches/pending", params={"school_id": "school-b"}, headers=PRINCIPAL
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_override(self, client: AsyncClient) -> None:
        ids = await _submit(client)

        response = await client.post(
            f"{GRADES}/{ids[0]}/override",
            json={"new_score": 1, "notes": "re-marked"},
            headers=PRINCIPAL,
        )

        assert response.status_code == 200
        assert response.json()["to_status"] == "approved"

    @pytest.mark.asyncio
    async def test_override_unknown_grade(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{GRADES}/missing/override", json={"new_score": 1}, headers=PRINCIPAL
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_grade_history(self, client: AsyncClient) -> None:
        ids = await _submit(client)
        await client.post(f"{GRADES}/approve", json={"grade_ids": ids}, headers=PRINCIPAL)
        await client.post(f"{GRADES}/{ids[0]}/override", json={"new_score": 1}, headers=PRINCIPAL)

        response = await client.get(f"{GRADES}/{ids[0]}/history", headers=PRINCIPAL)

        assert response.status_code == 200
        data = response.json()
        assert data["grade_id"] == ids[0]
        assert [(e["action"], e["from_status"]) for e in data["entries"]] == [
            ("approve", "submitted"),
            ("override", "approved"),
        ]
        assert data["total"] == 2

    @pytest.mark.asyncio
    async def test_grade_history_not_visible_to_other_school(self, client: AsyncClient) -> None:
        ids = await _submit(client)

        response = await client.get(f"{GRADES}/{ids[0]}/history", headers=PRINCIPAL_B)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_summary(self, client: AsyncClient) -> None:
        await _submit(client)

        response = await client.get(f"{GRADES}/summary", headers=PRINCIPAL)

        assert response.status_code == 200
        assert response.json()["counts"]["submitted"] == 2
        assert response.json()["total"] == 2


class TestHealth:
    """Tests for the health endpoints."""

    @pytest.mark.asyncio
    async def test_health_is_public(self, app: FastAPI, client: AsyncClient, db_engine, event_bus) -> None:
        app.state.event_bus = event_bus

        with patch("gradeflow.api.routes.health.get_engine", return_value=db_engine):
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["event_bus"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_degraded_without_bus(self, client: AsyncClient, db_engine) -> None:
        with patch("gradeflow.api.routes.health.get_engine", return_value=db_engine):
            response = await client.get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["components"]["event_bus"]["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_ready(self, client: AsyncClient, db_engine) -> None:
        with patch("gradeflow.api.routes.health.get_engine", return_value=db_engine):
            response = await client.get("/health/ready")

        assert response.json()["ready"] is True
