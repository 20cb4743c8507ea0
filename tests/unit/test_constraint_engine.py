# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for screen constraint evaluation."""

from datetime import datetime, timedelta, timezone

import pytest

from instructorflow.core.constraints import (
    ConstraintReason,
    ScreenAction,
    completion_requirements,
    effective_status,
    evaluate,
    prune_requests,
)
from instructorflow.models.screen import (
    RequirementKind,
    ScreenConstraints,
    ScreenContent,
    ScreenProgress,
    ScreenState,
    ScreenStatus,
    ScreenType,
)

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def make_screen(
    state: ScreenStatus = ScreenStatus.ACTIVE,
    constraints: ScreenConstraints | None = None,
    progress: ScreenProgress | None = None,
    **kwargs,
) -> ScreenState:
    return ScreenState(
        id="screen-1",
        session_id="session-1",
        screen_type=ScreenType.GUIDED_PRACTICE,
        state=state,
        content=ScreenContent(concept="fractions"),
        constraints=constraints or ScreenConstraints(),
        progress=progress or ScreenProgress(started_at=NOW - timedelta(minutes=5)),
        **kwargs,
    )


class TestStateCheck:
    """Tests for the screen state check."""

    @pytest.mark.parametrize("action", [ScreenAction.SUBMIT, ScreenAction.HINT, ScreenAction.COMPLETE])
    def test_unlocked_screen_rejects_work(self, action: ScreenAction) -> None:
        """Test that work on a screen that was never started is rejected."""
        decision = evaluate(make_screen(ScreenStatus.UNLOCKED), action, NOW)

        assert not decision.allowed
        assert decision.violated_constraint == ConstraintReason.SCREEN_NOT_ACTIVE

    def test_locked_screen_reports_locked(self) -> None:
        """Test that a locked screen names the lock as the reason."""
        decision = evaluate(make_screen(ScreenStatus.LOCKED), ScreenAction.START, NOW)

        assert decision.violated_constraint == ConstraintReason.SCREEN_LOCKED

    @pytest.mark.parametrize("state", [ScreenStatus.UNLOCKED, ScreenStatus.ACTIVE])
    def test_start_allowed_on_unlocked_or_active(self, state: ScreenStatus) -> None:
        """Test that start is allowed on unlocked and active screens."""
        assert evaluate(make_screen(state), ScreenAction.START, NOW).allowed

    def test_completed_screen_rejects_start(self) -> None:
        """Test that a completed screen cannot be started again."""
        decision = evaluate(make_screen(ScreenStatus.COMPLETED), ScreenAction.START, NOW)

        assert decision.violated_constraint == ConstraintReason.SCREEN_NOT_ACTIVE

    def test_blocked_screen_reports_retry_after(self) -> None:
        """Test that a live block reports when it ends."""
        screen = make_screen(
            ScreenStatus.BLOCKED,
            blocked_until=NOW + timedelta(seconds=12),
            blocked_reason="COOLDOWN_ACTIVE",
        )

        decision = evaluate(screen, ScreenAction.SUBMIT, NOW)

        assert decision.violated_constraint == ConstraintReason.SCREEN_NOT_ACTIVE
        assert decision.retry_after == pytest.approx(12.0)

    def test_expired_block_is_evaluated_as_active(self) -> None:
        """Test that a block whose time has passed no longer blocks."""
        screen = make_screen(ScreenStatus.BLOCKED, blocked_until=NOW - timedelta(seconds=1))

        assert effective_status(screen, NOW) == ScreenStatus.ACTIVE
        assert evaluate(screen, ScreenAction.SUBMIT, NOW).allowed


class TestRateLimit:
    """Tests for the sliding-window rate limit."""

    def test_allows_below_limit(self) -> None:
        """Test that requests below the limit pass."""
        screen = make_screen(
            constraints=ScreenConstraints(rate_limit_per_minute=3),
            progress=ScreenProgress(recent_requests=[NOW - timedelta(seconds=10)] * 2),
        )

        assert evaluate(screen, ScreenAction.SUBMIT, NOW).allowed

    def test_rejects_at_limit_with_retry_after(self) -> None:
        """Test that a full window rejects until its oldest entry ages out."""
        screen = make_screen(
            constraints=ScreenConstraints(rate_limit_per_minute=2),
            progress=ScreenProgress(
                recent_requests=[NOW - timedelta(seconds=50), NOW - timedelta(seconds=5)],
            ),
        )

        decision = evaluate(screen, ScreenAction.SUBMIT, NOW)

        assert decision.violated_constraint == ConstraintReason.RATE_LIMITED
        assert decision.retry_after == pytest.approx(10.0)

    def test_requests_outside_window_are_ignored(self) -> None:
        """Test that requests older than the window do not count."""
        screen = make_screen(
            constraints=ScreenConstraints(rate_limit_per_minute=1),
            progress=ScreenProgress(recent_requests=[NOW - timedelta(seconds=61)]),
        )

        assert evaluate(screen, ScreenAction.HINT, NOW).allowed

    def test_complete_is_not_rate_limited(self) -> None:
        """Test that completion ignores the rate limit."""
        screen = make_screen(
            constraints=ScreenConstraints(rate_limit_per_minute=1),
            progress=ScreenProgress(
                started_at=NOW - timedelta(minutes=5),
                recent_requests=[NOW],
            ),
        )

        assert evaluate(screen, ScreenAction.COMPLETE, NOW).allowed

    def test_prune_requests_drops_old_timestamps(self) -> None:
        """Test that pruning keeps only timestamps inside the window."""
        recent = [NOW - timedelta(seconds=90), NOW - timedelta(seconds=30), NOW]

        assert prune_requests(recent, NOW, 60) == recent[1:]


class TestPrecedence:
    """Tests for the fixed check order."""

    def test_rate_limit_wins_over_cooldown_and_max_attempts(self) -> None:
        """Test that the rate limit is reported when every check fails."""
        screen = make_screen(
            constraints=ScreenConstraints(rate_limit_per_minute=1, cooldown_seconds=30, max_attempts=1),
            progress=ScreenProgress(
                attempts=1,
                last_attempt_at=NOW - timedelta(seconds=5),
                recent_requests=[NOW - timedelta(seconds=5)],
            ),
        )

        decision = evaluate(screen, ScreenAction.SUBMIT, NOW)

        assert decision.violated_constraint == ConstraintReason.RATE_LIMITED

    def test_cooldown_wins_over_max_attempts(self) -> None:
        """Test that cooldown is reported before max attempts."""
        screen = make_screen(
            constraints=ScreenConstraints(cooldown_seconds=30, max_attempts=1),
            progress=ScreenProgress(attempts=1, last_attempt_at=NOW - timedelta(seconds=10)),
        )

        decision = evaluate(screen, ScreenAction.SUBMIT, NOW)

        assert decision.violated_constraint == ConstraintReason.COOLDOWN_ACTIVE
        assert decision.retry_after == pytest.approx(20.0)

    def test_max_attempts_after_cooldown_expires(self) -> None:
        """Test that max attempts is reported once the cooldown is over."""
        screen = make_screen(
            constraints=ScreenConstraints(cooldown_seconds=30, max_attempts=1),
            progress=ScreenProgress(attempts=1, last_attempt_at=NOW - timedelta(seconds=31)),
        )

        decision = evaluate(screen, ScreenAction.SUBMIT, NOW)

        assert decision.violated_constraint == ConstraintReason.MAX_ATTEMPTS_REACHED
        assert decision.retry_after is None

    def test_state_wins_over_everything(self) -> None:
        """Test that the state check runs first."""
        screen = make_screen(
            ScreenStatus.COMPLETED,
            constraints=ScreenConstraints(rate_limit_per_minute=1),
            progress=ScreenProgress(recent_requests=[NOW]),
        )

        decision = evaluate(screen, ScreenAction.SUBMIT, NOW)

        assert decision.violated_constraint == ConstraintReason.SCREEN_NOT_ACTIVE


class TestMinTime:
    """Tests for minimum time on screen."""

    def test_min_time_only_applies_to_completion(self) -> None:
        """Test that submissions are not held back by min time."""
        screen = make_screen(
            constraints=ScreenConstraints(min_time_seconds=600),
            progress=ScreenProgress(started_at=NOW - timedelta(seconds=30)),
        )

        assert evaluate(screen, ScreenAction.SUBMIT, NOW).allowed

        decision = evaluate(screen, ScreenAction.COMPLETE, NOW)
        assert decision.violated_constraint == ConstraintReason.MIN_TIME_NOT_MET
        assert decision.retry_after == pytest.approx(570.0)

    def test_evaluate_has_no_side_effects(self) -> None:
        """Test that evaluation leaves the screen untouched."""
        screen = make_screen(constraints=ScreenConstraints(rate_limit_per_minute=1))
        before = screen.model_dump()

        evaluate(screen, ScreenAction.SUBMIT, NOW)
        evaluate(screen, ScreenAction.COMPLETE, NOW)

        assert screen.model_dump() == before


class TestCompletionRequirements:
    """Tests for completion requirements."""

    def test_all_met(self) -> None:
        """Test a screen that satisfies every requirement."""
        screen = make_screen(progress=ScreenProgress(started_at=NOW - timedelta(minutes=5), attempts=1, best_score=90))

        requirements = completion_requirements(screen, NOW)

        assert {r.kind for r in requirements} == set(RequirementKind)
        assert all(r.met for r in requirements)

    def test_mastery_met_by_exhausting_attempts(self) -> None:
        """Test that using every attempt satisfies the mastery requirement."""
        screen = make_screen(
            constraints=ScreenConstraints(max_attempts=2, mastery_threshold=80),
            progress=ScreenProgress(started_at=NOW - timedelta(minutes=5), attempts=2, best_score=30),
        )

        mastery = next(r for r in completion_requirements(screen, NOW) if r.kind == RequirementKind.MASTERY)

        assert mastery.met

    def test_unmet_attempts(self) -> None:
        """Test that too few attempts is reported."""
        screen = make_screen(constraints=ScreenConstraints(required_attempts=2))

        unmet = [r.kind for r in completion_requirements(screen, NOW) if not r.met]

        assert RequirementKind.ATTEMPTS in unmet
