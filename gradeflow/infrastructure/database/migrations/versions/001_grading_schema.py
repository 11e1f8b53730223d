# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Create the grade workflow schema.

Tables:
- grades: subject scores with workflow status and generated percentage
- grade_submission_batches: per-teacher submission summaries
- grade_audit_logs: applied transitions and overrides

Revision ID: 001_grading_schema
Revises:
Create Date: 2025-01-20
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_grading_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create grades, grade_submission_batches and grade_audit_logs."""

    op.create_table(
        "grades",
        sa.Column("id", sa.String(36), nullable=False),
        # Scope (natural key)
        sa.Column("school_id", sa.String(36), nullable=False),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("subject_id", sa.String(36), nullable=False),
        sa.Column("class_id", sa.String(36), nullable=False),
        sa.Column("term", sa.String(50), nullable=False),
        sa.Column("exam_type", sa.String(50), nullable=False),
        sa.Column("submitted_by", sa.String(36), nullable=False),
        # Measurement
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("max_score", sa.Float, nullable=False),
        sa.Column(
            "percentage",
            sa.Float,
            sa.Computed("score * 100.0 / max_score", persisted=True),
        ),
        sa.Column("letter_grade", sa.String(5), nullable=True),
        sa.Column("comments", sa.Text, nullable=True),
        # Workflow
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_by", sa.String(36), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("principal_notes", sa.Text, nullable=True),
        sa.Column("original_score", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "school_id",
            "student_id",
            "subject_id",
            "class_id",
            "term",
            "exam_type",
            "submitted_by",
            name="uq_grades_natural_key",
        ),
        sa.CheckConstraint("max_score > 0", name="ck_grades_max_score_positive"),
        sa.CheckConstraint("score >= 0 AND score <= max_score", name="ck_grades_score_bounds"),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected', 'released')",
            name="ck_grades_status",
        ),
    )
    op.create_index("ix_grades_student_id", "grades", ["student_id"])
    op.create_index(
        "ix_grades_batch",
        "grades",
        ["school_id", "class_id", "term", "exam_type", "submitted_by"],
    )
    op.create_index("ix_grades_school_status", "grades", ["school_id", "status"])

    op.create_table(
        "grade_submission_batches",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("school_id", sa.String(36), nullable=False),
        sa.Column("class_id", sa.String(36), nullable=False),
        sa.Column("term", sa.String(50), nullable=False),
        sa.Column("exam_type", sa.String(50), nullable=False),
        sa.Column("submitted_by", sa.String(36), nullable=False),
        sa.Column("batch_name", sa.String(200), nullable=False),
        sa.Column("total_students", sa.Integer, nullable=False, server_default="0"),
        sa.Column("grades_entered", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "school_id",
            "class_id",
            "term",
            "exam_type",
            "submitted_by",
            name="uq_grade_submission_batches_key",
        ),
    )
    op.create_index(
        "ix_grade_submission_batches_school_status",
        "grade_submission_batches",
        ["school_id", "status"],
    )

    op.create_table(
        "grade_audit_logs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("school_id", sa.String(36), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("actor_role", sa.String(30), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("from_status", sa.String(20), nullable=False),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("grade_ids", sa.JSON, nullable=False),
        sa.Column("affected_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_grade_audit_logs_school_created",
        "grade_audit_logs",
        ["school_id", "created_at"],
    )


def downgrade() -> None:
    """Drop the grade workflow schema."""
    op.drop_index("ix_grade_audit_logs_school_created", table_name="grade_audit_logs")
    op.drop_table("grade_audit_logs")
    op.drop_index(
        "ix_grade_submission_batches_school_status",
        table_name="grade_submission_batches",
    )
    op.drop_table("grade_submission_batches")
    op.drop_index("ix_grades_school_status", table_name="grades")
    op.drop_index("ix_grades_batch", table_name="grades")
    op.drop_index("ix_grades_student_id", table_name="grades")
    op.drop_table("grades")
