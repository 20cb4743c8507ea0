# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Screen models.

A screen is one lesson phase with its own unlock rules, constraints and
progress. ScreenStatus is the single source of truth for where a screen is
in its lifecycle; every boolean a caller needs (can_submit, can_complete
and so on) is derived into a ScreenView on demand.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ScreenStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    ACTIVE = "active"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class ScreenType(str, Enum):
    CONCEPT_INTRODUCTION = "concept_introduction"
    GUIDED_PRACTICE = "guided_practice"
    INDEPENDENT_PRACTICE = "independent_practice"
    MISCONCEPTION_CORRECTION = "misconception_correction"
    ASSESSMENT = "assessment"
    MASTERY_CHECK = "mastery_check"


class ScreenContent(BaseModel):
    """What the learner works on.

    Attributes:
        concept: Concept the screen practices
        learning_objective: Objective for this screen
        problem: Problem statement shown to the learner
        instructions: How the learner should respond
        expected_answer: Reference answer; never shown, used to detect leaks
        hints_available: Number of hints the learner may request
    """

    concept: str
    learning_objective: str = ""
    problem: str = ""
    instructions: str = ""
    expected_answer: Optional[str] = None
    hints_available: int = Field(default=3, ge=0)


class ScreenConstraints(BaseModel):
    """Externally enforced rules for a screen."""

    min_time_seconds: int = Field(default=0, ge=0)
    required_attempts: int = Field(default=1, ge=0)
    mastery_threshold: int = Field(default=70, ge=0, le=100)
    max_attempts: int = Field(default=5, ge=1)
    cooldown_seconds: int = Field(default=0, ge=0)
    rate_limit_per_minute: int = Field(default=10, ge=1)


class ScreenProgress(BaseModel):
    """Progress counters, mutated only when an interaction is committed.

    recent_requests holds the timestamps of admitted submissions and hint
    requests inside the rate-limit window.
    """

    attempts: int = 0
    best_score: int = 0
    time_spent_seconds: float = 0.0
    started_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    hints_used: int = 0
    recent_requests: list[datetime] = Field(default_factory=list)
    concepts_demonstrated: list[str] = Field(default_factory=list)


class ScreenState(BaseModel):
    """Durable state of one screen within a session."""

    id: str
    session_id: str
    screen_type: ScreenType
    state: ScreenStatus = ScreenStatus.LOCKED
    prerequisite_screen_ids: list[str] = Field(default_factory=list)
    content: ScreenContent
    constraints: ScreenConstraints = Field(default_factory=ScreenConstraints)
    progress: ScreenProgress = Field(default_factory=ScreenProgress)
    blocked_until: Optional[datetime] = None
    blocked_reason: Optional[str] = None
    mastery_achieved: bool = False
    completed_at: Optional[datetime] = None

    @property
    def occupies_session(self) -> bool:
        """Whether this screen is the session's single active-or-blocked screen."""
        return self.state in (ScreenStatus.ACTIVE, ScreenStatus.BLOCKED)

    @property
    def hints_remaining(self) -> int:
        return max(self.content.hints_available - self.progress.hints_used, 0)


class ScreenPlan(BaseModel):
    """One screen of a lesson plan, as handed to create_session."""

    id: Optional[str] = None
    screen_type: ScreenType
    content: ScreenContent
    constraints: ScreenConstraints = Field(default_factory=ScreenConstraints)
    prerequisite_screen_ids: list[str] = Field(default_factory=list)


class LessonPlan(BaseModel):
    """Materialized lesson plan for a new session.

    When prerequisites are omitted on every screen, each screen requires the
    one before it.
    """

    subject: str
    topic: str
    learning_objective: str = ""
    screens: list[ScreenPlan] = Field(..., min_length=1)
    sequential: bool = True


class RequirementKind(str, Enum):
    MIN_TIME = "min_time"
    ATTEMPTS = "attempts"
    MASTERY = "mastery"


class UnlockRequirement(BaseModel):
    """One completion requirement and whether it is currently met."""

    model_config = ConfigDict(frozen=True)

    kind: RequirementKind
    met: bool
    current: float
    required: float
    description: str


class Hint(BaseModel):
    """A hint returned to the learner."""

    model_config = ConfigDict(frozen=True)

    screen_id: str
    level: int
    text: str
    hints_remaining: int
    generated: bool


class CompletionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    screen_id: str
    mastery_achieved: bool
    next_screen_id: Optional[str] = None
    session_completed: bool = False


class ScreenView(BaseModel):
    """Booleans derived from (status, progress, constraints) at one instant."""

    model_config = ConfigDict(frozen=True)

    screen_id: str
    state: ScreenStatus
    is_unlocked: bool
    is_active: bool
    is_blocked: bool
    is_completed: bool
    can_start: bool
    can_submit: bool
    can_request_hint: bool
    can_complete: bool
    attempts_remaining: int
    hints_remaining: int
    retry_after_seconds: Optional[float] = None
    requirements: tuple[UnlockRequirement, ...] = ()
