# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure for GradeFlow.

Components:
- EventBus: Queued in-memory pub/sub with pattern matching
- EventTypes: Centralized event type constants
"""

from gradeflow.infrastructure.events.bus import EventBus, EventData, EventHandler
from gradeflow.infrastructure.events.types import EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventTypes",
]
