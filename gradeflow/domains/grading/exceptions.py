# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the grading domain.

Store failures are not redefined here: they surface as
gradeflow.infrastructure.database.DatabaseError with the SQLAlchemy error
attached.
"""

from dataclasses import asdict, dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class Violation:
    """One reason a proposed grade entry was refused.

    Attributes:
        field: Offending field name.
        code: Machine-readable violation code.
        message: Human-readable description.
        index: Position of the entry in the submission, None for
            submission-level fields.
        student_id: Student of the offending entry, when known.
        subject_id: Subject of the offending entry, when known.
    """

    field: str
    code: str
    message: str
    index: int | None = None
    student_id: str | None = None
    subject_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class GradingError(Exception):
    """Base exception for grading errors."""

    pass


class GradeValidationError(GradingError):
    """Raised when proposed grades violate bounds or required fields.

    Attributes:
        violations: Every violation found in the submission.
    """

    def __init__(self, violations: Iterable[Violation], message: str | None = None) -> None:
        self.violations = list(violations)
        super().__init__(message or f"{len(self.violations)} grade entries failed validation")


class GradeLockedError(GradeValidationError):
    """Raised when a save would overwrite grades that were already reviewed."""

    pass


class EmptySubmissionError(GradingError):
    """Raised when a submission contains no entries."""

    pass


class AccessDeniedError(GradingError):
    """Raised when the actor may not perform the action on the school.

    Attributes:
        action: Action that was refused.
        school_id: School the action targeted.
    """

    def __init__(self, action: str, school_id: str | None, message: str | None = None) -> None:
        self.action = action
        self.school_id = school_id
        super().__init__(message or f"Not allowed to {action} for school {school_id}")


class TenantIntegrityError(GradingError):
    """Raised when grades selected for a transition belong to another school.

    Attributes:
        foreign_school_ids: Schools the actor may not touch.
    """

    def __init__(self, foreign_school_ids: Iterable[str]) -> None:
        self.foreign_school_ids = sorted(foreign_school_ids)
        super().__init__("Grades outside the actor's school were selected")


class GradeNotFoundError(GradingError):
    """Raised when a grade does not exist or is not visible to the actor."""

    pass
