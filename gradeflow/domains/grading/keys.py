# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Natural key of a submission batch."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True, order=True)
class BatchKey:
    """Identifies one teacher's submission for a class, term and exam type."""

    school_id: str
    class_id: str
    term: str
    exam_type: str
    submitted_by: str

    @classmethod
    def from_row(cls, row: Any) -> "BatchKey":
        """Build the key from any object carrying the key attributes."""
        return cls(
            school_id=row.school_id,
            class_id=row.class_id,
            term=row.term,
            exam_type=row.exam_type,
            submitted_by=row.submitted_by,
        )

    def as_dict(self) -> dict[str, str]:
        return asdict(self)
