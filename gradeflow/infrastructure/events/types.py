# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions for GradeFlow."""


class EventTypes:
    """All event types in GradeFlow organized by domain."""

    class Grades:
        """Grade workflow events, published after the write is committed."""

        DRAFTED = "grades.drafted"
        SUBMITTED = "grades.submitted"
        APPROVED = "grades.approved"
        REJECTED = "grades.rejected"
        RELEASED = "grades.released"
        OVERRIDDEN = "grades.overridden"
