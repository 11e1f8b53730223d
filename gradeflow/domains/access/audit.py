# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit sink for tenant access decisions.

Every decision taken by the TenantGuard is handed to an AuditSink. The
default sink writes one structured log event per decision; deployments that
need durable access logs can inject their own sink.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

from gradeflow.utils.datetime import utc_now
from gradeflow.utils.logging import AUDIT_LOGGER, get_logger


@dataclass(frozen=True)
class AccessDecision:
    """One access decision as recorded in the audit trail.

    Attributes:
        actor_id: Acting user, when known.
        role: Role the actor acted in.
        actor_school_id: School the actor belongs to.
        target_school_id: School owning the data being accessed.
        action: Grade action being attempted, when the check is tied to one.
        allowed: Outcome of the decision.
        reason: Short machine-readable reason for the outcome.
        decided_at: When the decision was taken.
    """

    actor_id: str | None
    role: str
    actor_school_id: str | None
    target_school_id: str | None
    action: str | None
    allowed: bool
    reason: str
    decided_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["decided_at"] = self.decided_at.isoformat()
        return data


class AuditSink(Protocol):
    """Receiver of access decisions."""

    def record(self, decision: AccessDecision) -> None:
        ...


class LoggingAuditSink:
    """Writes access decisions to the structured log.

    Granted decisions are logged at info level, denials at warning level.
    """

    def __init__(self, logger_name: str = AUDIT_LOGGER) -> None:
        self._logger = get_logger(logger_name)

    def record(self, decision: AccessDecision) -> None:
        fields = decision.to_dict()
        if decision.allowed:
            self._logger.info("access.granted", **fields)
        else:
            self._logger.warning("access.denied", **fields)
