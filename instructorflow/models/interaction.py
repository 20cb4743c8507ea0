# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interaction model.

An interaction is one learner submission and its generation and validation
lifecycle. transition() is the only way its state changes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from instructorflow.models.validation import Violation
from instructorflow.utils.datetime import utc_now


class InteractionState(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    VALIDATING = "validating"
    REGENERATING = "regenerating"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {InteractionState.COMMITTED, InteractionState.CANCELLED, InteractionState.FAILED}
)

_ALLOWED_TRANSITIONS: dict[InteractionState, frozenset[InteractionState]] = {
    InteractionState.PENDING: frozenset(
        {InteractionState.GENERATING, InteractionState.CANCELLED, InteractionState.FAILED}
    ),
    InteractionState.GENERATING: frozenset(
        {InteractionState.VALIDATING, InteractionState.CANCELLED, InteractionState.FAILED}
    ),
    InteractionState.VALIDATING: frozenset(
        {
            InteractionState.REGENERATING,
            InteractionState.COMMITTED,
            InteractionState.CANCELLED,
            InteractionState.FAILED,
        }
    ),
    InteractionState.REGENERATING: frozenset(
        {InteractionState.VALIDATING, InteractionState.CANCELLED, InteractionState.FAILED}
    ),
}


class InvalidTransitionError(ValueError):
    """Raised on a move out of a terminal state or along an undefined edge."""

    def __init__(self, interaction_id: str, current: InteractionState, target: InteractionState):
        self.interaction_id = interaction_id
        self.current = current
        self.target = target
        super().__init__(
            f"Interaction {interaction_id}: cannot move from {current.value} to {target.value}"
        )


class TeachingMetadata(BaseModel):
    """What the instructor did in a response.

    Attributes:
        technique: Dominant technique (questioning, hinting, correcting,
            explaining, encouraging)
        concepts: Concepts the exchange touched
        asked_verification_question: Response checks understanding
        correction_attempt: Response tries to correct a misconception
        struggle_level: low, medium or high
    """

    technique: str = "questioning"
    concepts: list[str] = Field(default_factory=list)
    asked_verification_question: bool = False
    correction_attempt: bool = False
    struggle_level: str = "low"


class Interaction(BaseModel):
    """One submission on a screen.

    Attributes:
        id: Caller-assigned id, unique per submission
        session_id: Owning session
        screen_id: Screen the submission was made on
        generation_epoch: Epoch assigned at admission
        input_text: Raw learner text
        state: Lifecycle state
        result_text: Text shown to the learner (committed response or fallback)
        violations: Violations of the last validated draft
        regenerations: Regenerations used
        transient_retries: Transient generation retries used
        score: Score 0-100 derived for a committed response
        consumed_attempt: Whether this interaction counted as a screen attempt
        failure_reason: Internal reason for a failed interaction; never shown
        teaching_metadata: What the instructor did
    """

    id: str
    session_id: str
    screen_id: str
    generation_epoch: int
    input_text: str
    state: InteractionState = InteractionState.PENDING
    result_text: Optional[str] = None
    violations: list[Violation] = Field(default_factory=list)
    regenerations: int = 0
    transient_retries: int = 0
    score: Optional[int] = None
    consumed_attempt: bool = False
    failure_reason: Optional[str] = None
    teaching_metadata: Optional[TeachingMetadata] = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_transition(self, target: InteractionState) -> bool:
        return target in _ALLOWED_TRANSITIONS.get(self.state, frozenset())

    def transition(self, target: InteractionState, at: Optional[datetime] = None) -> None:
        """Move to a new state.

        Args:
            target: State to move to.
            at: Time of the move; stamped as completed_at for terminal states.

        Raises:
            InvalidTransitionError: If the move is not allowed.
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self.id, self.state, target)
        self.state = target
        if target in TERMINAL_STATES:
            self.completed_at = at or utc_now()
