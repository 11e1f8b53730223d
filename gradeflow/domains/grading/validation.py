# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Validation engine for proposed grade entries.

Every entry is checked and every violation is collected before anything is
refused, so a teacher sees all problems of a submission at once. Accepted
entries carry their percentage and letter grade. No I/O happens here.

Letter grades come from a fixed boundary table:

    standard: A+ >= 90, A >= 80, B+ >= 70, B >= 60, C+ >= 50,
              C >= 40, D+ >= 30, D >= 20, E below
    igcse:    A* >= 90, A >= 80, B >= 70, C >= 60, D >= 50,
              E >= 40, F >= 30, G >= 20, U below
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from gradeflow.domains.grading.exceptions import (
    EmptySubmissionError,
    GradeValidationError,
    Violation,
)
from gradeflow.domains.grading.keys import BatchKey
from gradeflow.infrastructure.database.models import Grade
from gradeflow.models.grading import GradeEntryInput, GradeSubmissionRequest

LetterScale = tuple[tuple[float, str], ...]

STANDARD_SCALE: LetterScale = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C+"),
    (40, "C"),
    (30, "D+"),
    (20, "D"),
    (0, "E"),
)

IGCSE_SCALE: LetterScale = (
    (90, "A*"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
    (40, "E"),
    (30, "F"),
    (20, "G"),
    (0, "U"),
)

LETTER_SCALES: dict[str, LetterScale] = {
    "standard": STANDARD_SCALE,
    "igcse": IGCSE_SCALE,
}


def compute_percentage(score: float, max_score: float) -> float:
    """Percentage of max_score achieved, as the database derives it."""
    return score * 100.0 / max_score


def letter_grade_for(percentage: float, scale: LetterScale = STANDARD_SCALE) -> str:
    """Map a percentage onto a boundary table."""
    for threshold, letter in scale:
        if percentage >= threshold:
            return letter
    return scale[-1][1]


@dataclass(frozen=True)
class ValidatedEntry:
    """A grade entry that passed validation."""

    student_id: str
    subject_id: str
    score: float
    max_score: float
    percentage: float
    letter_grade: str
    comments: str | None = None


@dataclass(frozen=True)
class ValidatedSubmission:
    """A submission whose every entry passed validation."""

    batch_key: BatchKey
    entries: tuple[ValidatedEntry, ...]


# Longest value each key field accepts, taken from its grades column.
MAX_LENGTHS: dict[str, int] = {
    name: Grade.__table__.c[name].type.length
    for name in ("class_id", "term", "exam_type", "student_id", "subject_id")
}


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _check_length(field_name: str, value: str) -> list[Violation]:
    limit = MAX_LENGTHS[field_name]
    if len(value) <= limit:
        return []
    return [
        Violation(
            field_name,
            "too_long",
            f"{field_name} must be at most {limit} characters",
        )
    ]


class GradeValidator:
    """Validates grade submissions against bounds and required fields.

    Attributes:
        letter_scale: Boundary table used for letter grades.
    """

    def __init__(self, letter_scale: str = "standard") -> None:
        """Initialize the validator.

        Args:
            letter_scale: Name of the boundary table ("standard" or "igcse").

        Raises:
            ValueError: If the scale name is unknown.
        """
        if letter_scale not in LETTER_SCALES:
            raise ValueError(f"Unknown letter scale: {letter_scale}")
        self.letter_scale = LETTER_SCALES[letter_scale]

    def validate(
        self,
        request: GradeSubmissionRequest,
        school_id: str,
        submitted_by: str,
    ) -> ValidatedSubmission:
        """Validate a whole submission.

        Args:
            request: Proposed entries with their class, term and exam type.
            school_id: School the grades belong to.
            submitted_by: Teacher entering the grades.

        Returns:
            The validated submission with derived fields filled in.

        Raises:
            EmptySubmissionError: If the submission has no entries.
            GradeValidationError: If any entry or context field is invalid.
        """
        if not request.entries:
            raise EmptySubmissionError("Submission contains no grade entries")

        violations: list[Violation] = []

        class_id = _clean(request.class_id)
        term = _clean(request.term)
        exam_type = _clean(request.exam_type)
        for field_name, value in (("class_id", class_id), ("term", term), ("exam_type", exam_type)):
            if value is None:
                violations.append(
                    Violation(field=field_name, code="missing", message=f"{field_name} is required")
                )
            else:
                violations.extend(_check_length(field_name, value))

        entries: list[ValidatedEntry] = []
        seen: set[tuple[str, str]] = set()
        for index, entry in enumerate(request.entries):
            entry_violations = self._check_entry(index, entry, seen)
            if entry_violations:
                violations.extend(entry_violations)
                continue
            entries.append(self._derive(entry))

        if violations:
            raise GradeValidationError(violations)

        batch_key = BatchKey(
            school_id=school_id,
            class_id=class_id,
            term=term,
            exam_type=exam_type.upper(),
            submitted_by=submitted_by,
        )
        return ValidatedSubmission(batch_key=batch_key, entries=tuple(entries))

    def validate_score(self, score: float | None, max_score: float | None) -> list[Violation]:
        """Check a single score against its maximum.

        Returns:
            Violations found, empty when the score is acceptable.
        """
        violations: list[Violation] = []

        max_ok = False
        if max_score is None:
            violations.append(Violation("max_score", "missing", "max_score is required"))
        elif not math.isfinite(max_score) or max_score <= 0:
            violations.append(Violation("max_score", "not_positive", "max_score must be greater than 0"))
        else:
            max_ok = True

        if score is None:
            violations.append(Violation("score", "missing", "score is required"))
        elif not math.isfinite(score):
            violations.append(Violation("score", "not_finite", "score must be a finite number"))
        elif score < 0:
            violations.append(Violation("score", "below_zero", "score must not be negative"))
        elif max_ok and score > max_score:
            violations.append(
                Violation("score", "above_max", f"score {score} exceeds max_score {max_score}")
            )

        return violations

    def letter_grade(self, score: float, max_score: float) -> str:
        """Letter grade for a score already known to be valid."""
        return letter_grade_for(compute_percentage(score, max_score), self.letter_scale)

    def _check_entry(
        self,
        index: int,
        entry: GradeEntryInput,
        seen: set[tuple[str, str]],
    ) -> list[Violation]:
        student_id = _clean(entry.student_id)
        subject_id = _clean(entry.subject_id)
        found: list[Violation] = []

        if student_id is None:
            found.append(Violation("student_id", "missing", "student_id is required"))
        else:
            found.extend(_check_length("student_id", student_id))
        if subject_id is None:
            found.append(Violation("subject_id", "missing", "subject_id is required"))
        else:
            found.extend(_check_length("subject_id", subject_id))
        found.extend(self.validate_score(entry.score, entry.max_score))

        if student_id is not None and subject_id is not None:
            pair = (student_id, subject_id)
            if pair in seen:
                found.append(
                    Violation(
                        "student_id",
                        "duplicate",
                        "student and subject appear more than once in this submission",
                    )
                )
            seen.add(pair)

        return [
            Violation(
                field=v.field,
                code=v.code,
                message=v.message,
                index=index,
                student_id=student_id,
                subject_id=subject_id,
            )
            for v in found
        ]

    def _derive(self, entry: GradeEntryInput) -> ValidatedEntry:
        percentage = compute_percentage(entry.score, entry.max_score)
        return ValidatedEntry(
            student_id=_clean(entry.student_id),
            subject_id=_clean(entry.subject_id),
            score=entry.score,
            max_score=entry.max_score,
            percentage=percentage,
            letter_grade=letter_grade_for(percentage, self.letter_scale),
            comments=_clean(entry.comments),
        )
