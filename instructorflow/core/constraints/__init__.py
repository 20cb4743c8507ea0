# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Screen constraint evaluation."""

from instructorflow.core.constraints.engine import (
    ConstraintDecision,
    ConstraintReason,
    ScreenAction,
    completion_requirements,
    effective_status,
    evaluate,
    mastery_met,
    prune_requests,
    time_on_screen,
)

__all__ = [
    "ConstraintDecision",
    "ConstraintReason",
    "ScreenAction",
    "evaluate",
    "completion_requirements",
    "effective_status",
    "mastery_met",
    "prune_requests",
    "time_on_screen",
]
