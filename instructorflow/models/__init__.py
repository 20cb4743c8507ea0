# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain models for sessions, screens, interactions and learner memory."""

from instructorflow.models.interaction import (
    TERMINAL_STATES,
    Interaction,
    InteractionState,
    InvalidTransitionError,
    TeachingMetadata,
)
from instructorflow.models.memory import (
    LearnedConcept,
    LearnerMemory,
    MasteryLevel,
    Misconception,
    ProgressMarker,
)
from instructorflow.models.screen import (
    CompletionResult,
    Hint,
    LessonPlan,
    RequirementKind,
    ScreenConstraints,
    ScreenContent,
    ScreenPlan,
    ScreenProgress,
    ScreenState,
    ScreenStatus,
    ScreenType,
    ScreenView,
    UnlockRequirement,
)
from instructorflow.models.session import Session, SessionState
from instructorflow.models.validation import (
    Severity,
    TierOutcome,
    ValidationAction,
    ValidationResult,
    Violation,
)

__all__ = [
    "Session",
    "SessionState",
    "ScreenState",
    "ScreenStatus",
    "ScreenType",
    "ScreenContent",
    "ScreenConstraints",
    "ScreenProgress",
    "ScreenPlan",
    "LessonPlan",
    "RequirementKind",
    "UnlockRequirement",
    "Hint",
    "CompletionResult",
    "ScreenView",
    "Interaction",
    "InteractionState",
    "InvalidTransitionError",
    "TeachingMetadata",
    "TERMINAL_STATES",
    "LearnerMemory",
    "LearnedConcept",
    "MasteryLevel",
    "Misconception",
    "ProgressMarker",
    "Severity",
    "ValidationAction",
    "ValidationResult",
    "Violation",
    "TierOutcome",
]
