# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request/response models for GradeFlow."""

from gradeflow.models.grading import (
    BatchKeyResponse,
    BatchListResponse,
    BatchSummary,
    GradeEntryInput,
    GradeIdsRequest,
    GradeListResponse,
    GradeResponse,
    GradeSubmissionRequest,
    OverrideRequest,
    SaveResult,
    TransitionResponse,
    WorkflowSummary,
)

__all__ = [
    "BatchKeyResponse",
    "BatchListResponse",
    "BatchSummary",
    "GradeEntryInput",
    "GradeIdsRequest",
    "GradeListResponse",
    "GradeResponse",
    "GradeSubmissionRequest",
    "OverrideRequest",
    "SaveResult",
    "TransitionResponse",
    "WorkflowSummary",
]
