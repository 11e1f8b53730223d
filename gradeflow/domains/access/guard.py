# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant guard for cross-school access decisions.

The guard answers two questions and records every answer:
- may this role touch data of that school (can_access)
- may this actor perform this action on that school (authorize)

It never raises; callers decide which domain error a refusal maps to.
"""

from typing import Iterable

from gradeflow.domains.access.audit import AccessDecision, AuditSink, LoggingAuditSink
from gradeflow.domains.access.permissions import (
    Actor,
    GradeAction,
    Role,
    is_platform_role,
)


class TenantGuard:
    """Evaluates and audits tenant access decisions.

    Attributes:
        audit_sink: Receiver of every decision.
    """

    def __init__(self, audit_sink: AuditSink | None = None) -> None:
        """Initialize the guard.

        Args:
            audit_sink: Receiver of decisions. Defaults to the structured log.
        """
        self.audit_sink = audit_sink or LoggingAuditSink()

    def can_access(
        self,
        role: Role,
        actor_school_id: str | None,
        target_school_id: str | None,
        *,
        actor_id: str | None = None,
        action: GradeAction | None = None,
    ) -> bool:
        """Decide whether a role may access a school's data.

        Platform roles may access every school. School-scoped roles may only
        access their own school, and never when either school is unknown.

        Args:
            role: Role of the actor.
            actor_school_id: School the actor belongs to.
            target_school_id: School owning the data.
            actor_id: Acting user, recorded in the audit trail.
            action: Action being attempted, recorded in the audit trail.

        Returns:
            True if access is allowed.
        """
        if is_platform_role(role):
            allowed, reason = True, "platform_role"
        elif actor_school_id is None or target_school_id is None:
            allowed, reason = False, "missing_school"
        elif actor_school_id == target_school_id:
            allowed, reason = True, "same_school"
        else:
            allowed, reason = False, "cross_school"

        self._record(actor_id, role, actor_school_id, target_school_id, action, allowed, reason)
        return allowed

    def authorize(self, actor: Actor, action: GradeAction, target_school_id: str | None) -> bool:
        """Decide whether an actor may perform an action on a school.

        Checks the permission matrix first, then tenant scope. Exactly one
        decision is recorded per call.

        Returns:
            True if the action is allowed.
        """
        if not actor.can(action):
            self._record(
                actor.id,
                actor.role,
                actor.school_id,
                target_school_id,
                action,
                False,
                "role_not_permitted",
            )
            return False

        return self.can_access(
            actor.role,
            actor.school_id,
            target_school_id,
            actor_id=actor.id,
            action=action,
        )

    def foreign_schools(self, actor: Actor, school_ids: Iterable[str]) -> set[str]:
        """Return the schools in a set of rows the actor may not touch.

        Used to re-validate tenant scope on rows loaded from the store.
        Each distinct school is decided (and recorded) once.
        """
        return {
            school_id
            for school_id in set(school_ids)
            if not self.can_access(actor.role, actor.school_id, school_id, actor_id=actor.id)
        }

    def _record(
        self,
        actor_id: str | None,
        role: Role,
        actor_school_id: str | None,
        target_school_id: str | None,
        action: GradeAction | None,
        allowed: bool,
        reason: str,
    ) -> None:
        decision = AccessDecision(
            actor_id=actor_id,
            role=role.value,
            actor_school_id=actor_school_id,
            target_school_id=target_school_id,
            action=action.value if action is not None else None,
            allowed=allowed,
            reason=reason,
        )
        self.audit_sink.record(decision)
