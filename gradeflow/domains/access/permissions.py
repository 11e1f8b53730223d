# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Roles, grade actions and the role permission matrix.

The matrix is the single source of truth for which role may perform which
grade action. It is plain data so it can be audited and tested exhaustively.
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Roles known to the grade workflow."""

    PLATFORM_ADMIN = "platform_admin"
    SCHOOL_OWNER = "school_owner"
    PRINCIPAL = "principal"
    TEACHER = "teacher"
    PARENT = "parent"
    FINANCE_OFFICER = "finance_officer"


class GradeAction(str, Enum):
    """Operations guarded by the permission matrix."""

    VIEW_GRADEBOOK = "view_gradebook"
    SAVE_DRAFT = "save_draft"
    SUBMIT_GRADES = "submit_grades"
    APPROVE_GRADES = "approve_grades"
    REJECT_GRADES = "reject_grades"
    RELEASE_RESULTS = "release_results"
    OVERRIDE_GRADES = "override_grades"
    VIEW_RELEASED = "view_released"


# Roles whose access is not bound to a single school.
PLATFORM_ROLES: frozenset[Role] = frozenset({Role.PLATFORM_ADMIN})

PERMISSION_MATRIX: dict[GradeAction, frozenset[Role]] = {
    GradeAction.VIEW_GRADEBOOK: frozenset(
        {Role.PLATFORM_ADMIN, Role.SCHOOL_OWNER, Role.PRINCIPAL, Role.TEACHER}
    ),
    GradeAction.SAVE_DRAFT: frozenset({Role.TEACHER}),
    GradeAction.SUBMIT_GRADES: frozenset({Role.TEACHER}),
    GradeAction.APPROVE_GRADES: frozenset({Role.PRINCIPAL}),
    GradeAction.REJECT_GRADES: frozenset({Role.PRINCIPAL}),
    GradeAction.RELEASE_RESULTS: frozenset({Role.PRINCIPAL}),
    GradeAction.OVERRIDE_GRADES: frozenset({Role.PRINCIPAL}),
    GradeAction.VIEW_RELEASED: frozenset(
        {Role.PLATFORM_ADMIN, Role.SCHOOL_OWNER, Role.PRINCIPAL, Role.TEACHER, Role.PARENT}
    ),
}


def is_permitted(role: Role, action: GradeAction) -> bool:
    """Check the matrix for a (role, action) pair."""
    return role in PERMISSION_MATRIX.get(action, frozenset())


def is_platform_role(role: Role) -> bool:
    """Platform roles may act on any school."""
    return role in PLATFORM_ROLES


@dataclass(frozen=True)
class Actor:
    """The authenticated identity performing a grade operation.

    Attributes:
        id: User ID.
        role: Role the user acts in.
        school_id: School the user belongs to. None for platform roles.
    """

    id: str
    role: Role
    school_id: str | None = None

    @property
    def is_platform(self) -> bool:
        return is_platform_role(self.role)

    def can(self, action: GradeAction) -> bool:
        """Whether the actor's role is permitted to perform an action."""
        return is_permitted(self.role, action)
