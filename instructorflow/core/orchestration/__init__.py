# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session orchestration.

This package sequences learner activity on screens:
- SessionOrchestrator: the public operations (start, submit, hint, complete)
- InteractionCoordinator: per-session epochs, supersession and locking
- state_machine: screen status transitions and derived views

Architecture:
    caller -> SessionOrchestrator -> constraints / prompts / LLM / validation
                     |
              InteractionCoordinator (epoch, lock)
                     |
                StoragePort (atomic commit)

Usage:
    from instructorflow.core.orchestration import SessionOrchestrator

    orchestrator = SessionOrchestrator(storage, generator)
    stream = await orchestrator.submit_interaction(session_id, screen_id, "int-1", text)
"""

from instructorflow.core.orchestration import state_machine
from instructorflow.core.orchestration.coordinator import (
    Admission,
    InteractionCoordinator,
    SupersededInteraction,
)
from instructorflow.core.orchestration.errors import (
    AlreadyActiveError,
    ConstraintViolationError,
    DuplicateInteractionError,
    NoHintsRemainingError,
    OrchestrationError,
    RequirementsNotMetError,
    ScreenLockedError,
    ScreenNotActiveError,
    ScreenNotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from instructorflow.core.orchestration.events import (
    TERMINAL_EVENTS,
    EventType,
    InteractionEvent,
)
from instructorflow.core.orchestration.orchestrator import SessionOrchestrator
from instructorflow.core.orchestration.state_machine import ScreenTransitionError

__all__ = [
    # Orchestrator
    "SessionOrchestrator",
    # Coordinator
    "InteractionCoordinator",
    "Admission",
    "SupersededInteraction",
    # Events
    "EventType",
    "InteractionEvent",
    "TERMINAL_EVENTS",
    # State machine
    "state_machine",
    "ScreenTransitionError",
    # Errors
    "OrchestrationError",
    "SessionNotFoundError",
    "ScreenNotFoundError",
    "SessionNotActiveError",
    "ScreenLockedError",
    "ScreenNotActiveError",
    "AlreadyActiveError",
    "ConstraintViolationError",
    "NoHintsRemainingError",
    "RequirementsNotMetError",
    "DuplicateInteractionError",
]
