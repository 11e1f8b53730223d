# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade lifecycle states and the transitions between them.

    draft --submit--> submitted --approve--> approved --release--> released
                          |
                          +------reject----> rejected

approved, rejected and released rows are reviewed: a teacher save can no
longer overwrite them. released is terminal.
"""

from dataclasses import dataclass
from typing import Mapping

from gradeflow.domains.access.permissions import GradeAction
from gradeflow.infrastructure.database.models.grade import GradeStatus

LOCKED_STATUSES: frozenset[GradeStatus] = frozenset(
    {GradeStatus.APPROVED, GradeStatus.REJECTED, GradeStatus.RELEASED}
)

# Used when a batch's rows are in different states; the least advanced
# state present represents the batch.
STATUS_PRECEDENCE: tuple[GradeStatus, ...] = (
    GradeStatus.DRAFT,
    GradeStatus.SUBMITTED,
    GradeStatus.REJECTED,
    GradeStatus.APPROVED,
    GradeStatus.RELEASED,
)


@dataclass(frozen=True)
class Transition:
    """One edge of the grade state machine.

    Attributes:
        name: Action name recorded in the audit log.
        action: Permission required to apply it.
        from_statuses: States a grade must currently be in.
        to_status: State the grade ends in.
        owner_only: Only the teacher who entered the grade may apply it.
    """

    name: str
    action: GradeAction
    from_statuses: tuple[GradeStatus, ...]
    to_status: GradeStatus
    owner_only: bool = False

    @property
    def from_values(self) -> list[str]:
        return [status.value for status in self.from_statuses]


SUBMIT = Transition(
    name="submit",
    action=GradeAction.SUBMIT_GRADES,
    from_statuses=(GradeStatus.DRAFT,),
    to_status=GradeStatus.SUBMITTED,
    owner_only=True,
)
APPROVE = Transition(
    name="approve",
    action=GradeAction.APPROVE_GRADES,
    from_statuses=(GradeStatus.SUBMITTED,),
    to_status=GradeStatus.APPROVED,
)
REJECT = Transition(
    name="reject",
    action=GradeAction.REJECT_GRADES,
    from_statuses=(GradeStatus.SUBMITTED,),
    to_status=GradeStatus.REJECTED,
)
RELEASE = Transition(
    name="release",
    action=GradeAction.RELEASE_RESULTS,
    from_statuses=(GradeStatus.APPROVED,),
    to_status=GradeStatus.RELEASED,
)
OVERRIDE = Transition(
    name="override",
    action=GradeAction.OVERRIDE_GRADES,
    from_statuses=(GradeStatus.SUBMITTED, GradeStatus.APPROVED),
    to_status=GradeStatus.APPROVED,
)


def representative_status(status_counts: Mapping[str, int]) -> GradeStatus:
    """Pick the status that represents a group of grades.

    Args:
        status_counts: Number of grades per status value.

    Returns:
        The least advanced status with a non-zero count, or draft for
        an empty group.
    """
    for status in STATUS_PRECEDENCE:
        if status_counts.get(status.value, 0) > 0:
            return status
    return GradeStatus.DRAFT
