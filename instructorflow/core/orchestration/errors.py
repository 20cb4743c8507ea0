# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Orchestration errors.

Every error an orchestrator operation raises derives from
OrchestrationError and carries a learner-safe message. Storage failures are
the exception: StorageError propagates unchanged so callers can retry.
"""

from typing import Optional, Sequence

from instructorflow.core.constraints.engine import ConstraintReason
from instructorflow.models.screen import UnlockRequirement


class OrchestrationError(Exception):
    """Base class for orchestration errors.

    Attributes:
        message: Learner-safe description.
        session_id: Session involved, if any.
        screen_id: Screen involved, if any.
    """

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        screen_id: Optional[str] = None,
    ):
        self.message = message
        self.session_id = session_id
        self.screen_id = screen_id
        super().__init__(self.message)


class SessionNotFoundError(OrchestrationError):
    pass


class ScreenNotFoundError(OrchestrationError):
    pass


class SessionNotActiveError(OrchestrationError):
    """The session is paused, completed or abandoned."""


class ScreenLockedError(OrchestrationError):
    """The screen's prerequisites are not all completed."""


class AlreadyActiveError(OrchestrationError):
    """Another screen in the session is active or blocked.

    Attributes:
        active_screen_id: The screen currently occupying the session.
    """

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        screen_id: Optional[str] = None,
        active_screen_id: Optional[str] = None,
    ):
        super().__init__(message, session_id, screen_id)
        self.active_screen_id = active_screen_id


class ScreenNotActiveError(OrchestrationError):
    """The screen is not in a state that accepts the operation."""


class ConstraintViolationError(OrchestrationError):
    """A screen constraint rejected the operation before any generation.

    Attributes:
        reason: The first failing constraint.
        retry_after: Seconds until retrying could succeed, when knowable.
    """

    def __init__(
        self,
        reason: ConstraintReason,
        message: str,
        retry_after: Optional[float] = None,
        session_id: Optional[str] = None,
        screen_id: Optional[str] = None,
    ):
        super().__init__(message, session_id, screen_id)
        self.reason = reason
        self.retry_after = retry_after


class NoHintsRemainingError(OrchestrationError):
    """Every hint for the screen has been used."""


class RequirementsNotMetError(OrchestrationError):
    """Completion requirements are not satisfied.

    Attributes:
        unmet: Requirements that are not met.
    """

    def __init__(
        self,
        message: str,
        unmet: Sequence[UnlockRequirement],
        session_id: Optional[str] = None,
        screen_id: Optional[str] = None,
    ):
        super().__init__(message, session_id, screen_id)
        self.unmet = list(unmet)


class DuplicateInteractionError(OrchestrationError):
    """An interaction with the same id was already submitted.

    Attributes:
        interaction_id: The duplicated id.
    """

    def __init__(
        self,
        interaction_id: str,
        session_id: Optional[str] = None,
        screen_id: Optional[str] = None,
    ):
        super().__init__(f"Interaction {interaction_id} was already submitted", session_id, screen_id)
        self.interaction_id = interaction_id
