# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Screen state machine.

    locked --(prerequisites completed)--> unlocked --(start)--> active
    active --(rate limit / cooldown hit)--> blocked --(blocked_until passed)--> active
    active --(complete)--> completed

At most one screen per session is active or blocked. These helpers mutate a
ScreenState in place; callers hold the session lock and persist the result.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from instructorflow.core.constraints.engine import (
    ConstraintDecision,
    ConstraintReason,
    ScreenAction,
    completion_requirements,
    effective_status,
    evaluate,
    time_on_screen,
)
from instructorflow.models.screen import ScreenState, ScreenStatus, ScreenView
from instructorflow.utils.datetime import ensure_utc

BLOCKING_REASONS = frozenset({ConstraintReason.RATE_LIMITED, ConstraintReason.COOLDOWN_ACTIVE})

_ALLOWED: dict[ScreenStatus, frozenset[ScreenStatus]] = {
    ScreenStatus.LOCKED: frozenset({ScreenStatus.UNLOCKED}),
    ScreenStatus.UNLOCKED: frozenset({ScreenStatus.ACTIVE}),
    ScreenStatus.ACTIVE: frozenset({ScreenStatus.BLOCKED, ScreenStatus.COMPLETED}),
    ScreenStatus.BLOCKED: frozenset({ScreenStatus.ACTIVE}),
    ScreenStatus.COMPLETED: frozenset(),
}


class ScreenTransitionError(ValueError):
    def __init__(self, screen_id: str, current: ScreenStatus, target: ScreenStatus):
        self.screen_id = screen_id
        self.current = current
        self.target = target
        super().__init__(f"Screen {screen_id}: cannot move from {current.value} to {target.value}")


def transition(screen: ScreenState, target: ScreenStatus) -> None:
    """Move a screen along a defined edge.

    Raises:
        ScreenTransitionError: On an undefined edge.
    """
    if target not in _ALLOWED[screen.state]:
        raise ScreenTransitionError(screen.id, screen.state, target)
    screen.state = target


def prerequisites_met(screen: ScreenState, screens: Iterable[ScreenState]) -> bool:
    completed = {s.id for s in screens if s.state == ScreenStatus.COMPLETED}
    return all(p in completed for p in screen.prerequisite_screen_ids)


def occupying_screen(screens: Iterable[ScreenState]) -> Optional[ScreenState]:
    """The session's active or blocked screen, if any."""
    for screen in screens:
        if screen.occupies_session:
            return screen
    return None


def activate(screen: ScreenState, now: datetime) -> None:
    """unlocked -> active; starts the time-on-screen clock."""
    transition(screen, ScreenStatus.ACTIVE)
    if screen.progress.started_at is None:
        screen.progress.started_at = now


def release_expired_block(screen: ScreenState, now: datetime) -> bool:
    """blocked -> active once blocked_until has passed.

    Returns:
        True if the screen was released.
    """
    if screen.state != ScreenStatus.BLOCKED or effective_status(screen, now) != ScreenStatus.ACTIVE:
        return False
    transition(screen, ScreenStatus.ACTIVE)
    screen.blocked_until = None
    screen.blocked_reason = None
    return True


def block(screen: ScreenState, decision: ConstraintDecision, now: datetime) -> bool:
    """active -> blocked for a rate-limit or cooldown decision.

    Returns:
        True if the screen was blocked.
    """
    if (
        screen.state != ScreenStatus.ACTIVE
        or decision.violated_constraint not in BLOCKING_REASONS
        or not decision.retry_after
    ):
        return False

    transition(screen, ScreenStatus.BLOCKED)
    screen.blocked_until = ensure_utc(now) + timedelta(seconds=decision.retry_after)
    screen.blocked_reason = decision.violated_constraint.value
    return True


def complete(screen: ScreenState, mastery_achieved: bool, now: datetime) -> None:
    transition(screen, ScreenStatus.COMPLETED)
    screen.mastery_achieved = mastery_achieved
    screen.completed_at = now
    screen.progress.time_spent_seconds = time_on_screen(screen, now)


def unlock_ready(screens: list[ScreenState]) -> list[ScreenState]:
    """Unlock every locked screen whose prerequisites are now completed.

    Returns:
        The screens that changed.
    """
    changed = []
    for screen in screens:
        if screen.state == ScreenStatus.LOCKED and prerequisites_met(screen, screens):
            transition(screen, ScreenStatus.UNLOCKED)
            changed.append(screen)
    return changed


def derive_screen_view(
    screen: ScreenState,
    now: datetime,
    session_active: bool = True,
    session_occupied_by: Optional[str] = None,
    rate_window_seconds: float = 60.0,
) -> ScreenView:
    """Compute every boolean a caller needs about a screen at one instant.

    Args:
        screen: Screen to describe.
        now: Evaluation time.
        session_active: Whether the owning session is active.
        session_occupied_by: Id of the session's active or blocked screen.
        rate_window_seconds: Width of the sliding rate-limit window.
    """
    status = effective_status(screen, now)

    def allowed(action: ScreenAction) -> ConstraintDecision:
        return evaluate(screen, action, now, rate_window_seconds)

    submit = allowed(ScreenAction.SUBMIT)
    requirements = tuple(completion_requirements(screen, now))
    free_for_start = session_occupied_by in (None, screen.id)

    retry_after = None
    if not submit.allowed and submit.retry_after:
        retry_after = submit.retry_after

    return ScreenView(
        screen_id=screen.id,
        state=status,
        is_unlocked=status != ScreenStatus.LOCKED,
        is_active=status == ScreenStatus.ACTIVE,
        is_blocked=status == ScreenStatus.BLOCKED,
        is_completed=status == ScreenStatus.COMPLETED,
        can_start=session_active and free_for_start and allowed(ScreenAction.START).allowed,
        can_submit=session_active and submit.allowed,
        can_request_hint=(
            session_active and screen.hints_remaining > 0 and allowed(ScreenAction.HINT).allowed
        ),
        can_complete=(
            session_active
            and allowed(ScreenAction.COMPLETE).allowed
            and all(r.met for r in requirements)
        ),
        attempts_remaining=max(screen.constraints.max_attempts - screen.progress.attempts, 0),
        hints_remaining=screen.hints_remaining,
        retry_after_seconds=retry_after,
        requirements=requirements,
    )
