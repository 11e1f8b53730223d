# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access domain package.

This package decides who may touch which grades:
- Role and GradeAction enums with the declarative permission matrix
- TenantGuard for cross-school access decisions
- Audit sinks receiving every decision
"""

from gradeflow.domains.access.audit import AccessDecision, AuditSink, LoggingAuditSink
from gradeflow.domains.access.guard import TenantGuard
from gradeflow.domains.access.permissions import (
    PERMISSION_MATRIX,
    PLATFORM_ROLES,
    Actor,
    GradeAction,
    Role,
    is_permitted,
    is_platform_role,
)

__all__ = [
    "AccessDecision",
    "AuditSink",
    "LoggingAuditSink",
    "TenantGuard",
    "PERMISSION_MATRIX",
    "PLATFORM_ROLES",
    "Actor",
    "GradeAction",
    "Role",
    "is_permitted",
    "is_platform_role",
]
