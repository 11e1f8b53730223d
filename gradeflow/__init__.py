# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""GradeFlow Backend.

Grade lifecycle and approval workflow for multi-tenant school management:
teacher entry, principal approval and parent-visible release of subject
scores, with strict per-school isolation.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
