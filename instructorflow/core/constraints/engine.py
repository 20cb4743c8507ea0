# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Screen constraint evaluation.

evaluate() decides whether an action is allowed on a screen right now. It is
a pure function of (screen, action, now): it reads nothing else and changes
nothing. Checks run in a fixed order and the first failure wins:

1. Screen state (active for submit/hint/complete, unlocked or active for start)
2. Rate limit over a sliding window (submit, hint)
3. Cooldown since the last attempt (submit)
4. Maximum attempts (submit)
5. Minimum time on screen (complete)

A blocked screen whose blocked_until has passed is evaluated as active; the
orchestrator moves it back to active when it observes this.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from instructorflow.models.screen import (
    RequirementKind,
    ScreenState,
    ScreenStatus,
    UnlockRequirement,
)
from instructorflow.utils.datetime import ensure_utc, seconds_between, seconds_to_human

DEFAULT_RATE_WINDOW_SECONDS = 60.0


class ScreenAction(str, Enum):
    START = "start"
    SUBMIT = "submit"
    HINT = "hint"
    COMPLETE = "complete"


class ConstraintReason(str, Enum):
    SCREEN_NOT_ACTIVE = "SCREEN_NOT_ACTIVE"
    SCREEN_LOCKED = "SCREEN_LOCKED"
    RATE_LIMITED = "RATE_LIMITED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    MAX_ATTEMPTS_REACHED = "MAX_ATTEMPTS_REACHED"
    MIN_TIME_NOT_MET = "MIN_TIME_NOT_MET"


class ConstraintDecision(BaseModel):
    """Result of evaluating one action.

    Attributes:
        allowed: Whether the action may proceed
        violated_constraint: First failing check, if any
        retry_after: Seconds until the same action could pass, when knowable
        message: Learner-facing explanation
    """

    model_config = ConfigDict(frozen=True)

    allowed: bool
    violated_constraint: Optional[ConstraintReason] = None
    retry_after: Optional[float] = None
    message: str = ""

    @classmethod
    def allow(cls) -> "ConstraintDecision":
        return cls(allowed=True)

    @classmethod
    def deny(
        cls,
        reason: ConstraintReason,
        message: str,
        retry_after: Optional[float] = None,
    ) -> "ConstraintDecision":
        return cls(allowed=False, violated_constraint=reason, retry_after=retry_after, message=message)


def effective_status(screen: ScreenState, now: datetime) -> ScreenStatus:
    """Status after applying an expired block."""
    if (
        screen.state == ScreenStatus.BLOCKED
        and screen.blocked_until is not None
        and ensure_utc(screen.blocked_until) <= ensure_utc(now)
    ):
        return ScreenStatus.ACTIVE
    return screen.state


def time_on_screen(screen: ScreenState, now: datetime) -> float:
    """Seconds the learner has spent on the screen so far."""
    if screen.progress.started_at is None:
        return screen.progress.time_spent_seconds
    return max(seconds_between(screen.progress.started_at, now), screen.progress.time_spent_seconds)


def _retry_after_seconds(seconds: float) -> str:
    return seconds_to_human(max(int(seconds + 0.999), 1))


def _check_state(screen: ScreenState, action: ScreenAction, now: datetime) -> Optional[ConstraintDecision]:
    status = effective_status(screen, now)

    if action == ScreenAction.START:
        if status in (ScreenStatus.UNLOCKED, ScreenStatus.ACTIVE):
            return None
        if status == ScreenStatus.LOCKED:
            return ConstraintDecision.deny(
                ConstraintReason.SCREEN_LOCKED,
                "Finish the earlier screens to unlock this one.",
            )
        if status == ScreenStatus.BLOCKED:
            retry_after = seconds_between(now, screen.blocked_until) if screen.blocked_until else None
            return ConstraintDecision.deny(
                ConstraintReason.SCREEN_NOT_ACTIVE,
                "This screen is paused for a moment.",
                retry_after=retry_after,
            )
        return ConstraintDecision.deny(
            ConstraintReason.SCREEN_NOT_ACTIVE,
            "This screen is already complete.",
        )

    if status == ScreenStatus.ACTIVE:
        return None
    if status == ScreenStatus.LOCKED:
        return ConstraintDecision.deny(
            ConstraintReason.SCREEN_LOCKED,
            "Finish the earlier screens to unlock this one.",
        )
    if status == ScreenStatus.BLOCKED and screen.blocked_until is not None:
        retry_after = seconds_between(now, screen.blocked_until)
        return ConstraintDecision.deny(
            ConstraintReason.SCREEN_NOT_ACTIVE,
            f"Take a short break. You can continue in {_retry_after_seconds(retry_after)}.",
            retry_after=retry_after,
        )
    return ConstraintDecision.deny(
        ConstraintReason.SCREEN_NOT_ACTIVE,
        "Start this screen before working on it.",
    )


def _check_rate_limit(
    screen: ScreenState,
    now: datetime,
    window_seconds: float,
) -> Optional[ConstraintDecision]:
    window_start = ensure_utc(now) - timedelta(seconds=window_seconds)
    in_window = sorted(
        ensure_utc(ts) for ts in screen.progress.recent_requests if ensure_utc(ts) > window_start
    )
    limit = screen.constraints.rate_limit_per_minute
    if len(in_window) < limit:
        return None

    # The window frees up when the oldest request that keeps it full ages out
    oldest_blocking = in_window[len(in_window) - limit]
    retry_after = max(seconds_between(now, oldest_blocking + timedelta(seconds=window_seconds)), 0.0)
    return ConstraintDecision.deny(
        ConstraintReason.RATE_LIMITED,
        f"You're going a little fast. Try again in {_retry_after_seconds(retry_after)}.",
        retry_after=retry_after,
    )


def _check_cooldown(screen: ScreenState, now: datetime) -> Optional[ConstraintDecision]:
    cooldown = screen.constraints.cooldown_seconds
    last = screen.progress.last_attempt_at
    if cooldown <= 0 or last is None:
        return None

    elapsed = seconds_between(last, now)
    if elapsed >= cooldown:
        return None

    retry_after = cooldown - elapsed
    return ConstraintDecision.deny(
        ConstraintReason.COOLDOWN_ACTIVE,
        f"Take a moment to think it over. You can try again in {_retry_after_seconds(retry_after)}.",
        retry_after=retry_after,
    )


def _check_max_attempts(screen: ScreenState) -> Optional[ConstraintDecision]:
    if screen.progress.attempts < screen.constraints.max_attempts:
        return None
    return ConstraintDecision.deny(
        ConstraintReason.MAX_ATTEMPTS_REACHED,
        "You've used all attempts for this screen.",
    )


def _check_min_time(screen: ScreenState, now: datetime) -> Optional[ConstraintDecision]:
    required = screen.constraints.min_time_seconds
    spent = time_on_screen(screen, now)
    if spent >= required:
        return None

    retry_after = required - spent
    return ConstraintDecision.deny(
        ConstraintReason.MIN_TIME_NOT_MET,
        f"Spend a little more time here first ({_retry_after_seconds(retry_after)} to go).",
        retry_after=retry_after,
    )


def evaluate(
    screen: ScreenState,
    action: ScreenAction,
    now: datetime,
    rate_window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS,
) -> ConstraintDecision:
    """Decide whether an action is allowed on a screen.

    Args:
        screen: Current screen state.
        action: Proposed action.
        now: Evaluation time.
        rate_window_seconds: Width of the sliding rate-limit window.

    Returns:
        ConstraintDecision for the first failing check, or an allow.
    """
    decision = _check_state(screen, action, now)
    if decision is not None:
        return decision

    if action in (ScreenAction.SUBMIT, ScreenAction.HINT):
        decision = _check_rate_limit(screen, now, rate_window_seconds)
        if decision is not None:
            return decision

    if action == ScreenAction.SUBMIT:
        decision = _check_cooldown(screen, now) or _check_max_attempts(screen)
        if decision is not None:
            return decision

    if action == ScreenAction.COMPLETE:
        decision = _check_min_time(screen, now)
        if decision is not None:
            return decision

    return ConstraintDecision.allow()


def mastery_met(screen: ScreenState) -> bool:
    return screen.progress.best_score >= screen.constraints.mastery_threshold


def completion_requirements(screen: ScreenState, now: datetime) -> list[UnlockRequirement]:
    """List what completing the screen requires and whether each is met.

    Mastery is satisfied either by reaching the mastery threshold or by using
    every allowed attempt; in the latter case the screen completes without
    mastery.
    """
    constraints = screen.constraints
    progress = screen.progress
    spent = time_on_screen(screen, now)

    return [
        UnlockRequirement(
            kind=RequirementKind.MIN_TIME,
            met=spent >= constraints.min_time_seconds,
            current=round(spent, 3),
            required=constraints.min_time_seconds,
            description=f"Spend at least {seconds_to_human(constraints.min_time_seconds)} on this screen",
        ),
        UnlockRequirement(
            kind=RequirementKind.ATTEMPTS,
            met=progress.attempts >= constraints.required_attempts,
            current=progress.attempts,
            required=constraints.required_attempts,
            description=f"Make at least {constraints.required_attempts} attempt(s)",
        ),
        UnlockRequirement(
            kind=RequirementKind.MASTERY,
            met=mastery_met(screen) or progress.attempts >= constraints.max_attempts,
            current=progress.best_score,
            required=constraints.mastery_threshold,
            description=f"Reach a score of {constraints.mastery_threshold} or use every attempt",
        ),
    ]


def prune_requests(
    requests: list[datetime],
    now: datetime,
    window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS,
) -> list[datetime]:
    """Drop request timestamps that fell out of the rate-limit window."""
    window_start = ensure_utc(now) - timedelta(seconds=window_seconds)
    return [ts for ts in requests if ensure_utc(ts) > window_start]
