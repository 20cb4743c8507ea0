# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the screen state machine and derived views."""

from datetime import datetime, timedelta, timezone

import pytest

from instructorflow.core.constraints import ConstraintDecision, ConstraintReason
from instructorflow.core.orchestration import ScreenTransitionError, state_machine
from instructorflow.models.interaction import Interaction, InteractionState, InvalidTransitionError
from instructorflow.models.screen import (
    ScreenConstraints,
    ScreenContent,
    ScreenProgress,
    ScreenState,
    ScreenStatus,
    ScreenType,
)

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def make_screen(
    screen_id: str = "screen-1",
    state: ScreenStatus = ScreenStatus.LOCKED,
    prerequisites: list[str] | None = None,
    **kwargs,
) -> ScreenState:
    return ScreenState(
        id=screen_id,
        session_id="session-1",
        screen_type=ScreenType.GUIDED_PRACTICE,
        state=state,
        prerequisite_screen_ids=prerequisites or [],
        content=ScreenContent(concept="fractions", hints_available=2),
        **kwargs,
    )


class TestTransitions:
    """Tests for screen status transitions."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (ScreenStatus.LOCKED, ScreenStatus.ACTIVE),
            (ScreenStatus.UNLOCKED, ScreenStatus.COMPLETED),
            (ScreenStatus.COMPLETED, ScreenStatus.ACTIVE),
            (ScreenStatus.BLOCKED, ScreenStatus.COMPLETED),
        ],
    )
    def test_undefined_edges_raise(self, current: ScreenStatus, target: ScreenStatus) -> None:
        """Test that undefined edges are refused."""
        screen = make_screen(state=current)

        with pytest.raises(ScreenTransitionError):
            state_machine.transition(screen, target)

        assert screen.state == current

    def test_activate_starts_clock_once(self) -> None:
        """Test that activation records the start time only the first time."""
        screen = make_screen(state=ScreenStatus.UNLOCKED)

        state_machine.activate(screen, NOW)

        assert screen.state == ScreenStatus.ACTIVE
        assert screen.progress.started_at == NOW

    def test_unlock_ready_follows_prerequisites(self) -> None:
        """Test that only screens with completed prerequisites unlock."""
        first = make_screen("a", ScreenStatus.COMPLETED)
        second = make_screen("b", prerequisites=["a"])
        third = make_screen("c", prerequisites=["a", "b"])

        changed = state_machine.unlock_ready([first, second, third])

        assert [s.id for s in changed] == ["b"]
        assert third.state == ScreenStatus.LOCKED

    def test_occupying_screen(self) -> None:
        """Test that an active or blocked screen occupies the session."""
        screens = [make_screen("a", ScreenStatus.COMPLETED), make_screen("b", ScreenStatus.BLOCKED)]

        assert state_machine.occupying_screen(screens).id == "b"
        assert state_machine.occupying_screen(screens[:1]) is None


class TestBlocking:
    """Tests for blocking and release."""

    def test_block_on_cooldown(self) -> None:
        """Test that a cooldown decision blocks until it expires."""
        screen = make_screen(state=ScreenStatus.ACTIVE)
        decision = ConstraintDecision.deny(ConstraintReason.COOLDOWN_ACTIVE, "wait", retry_after=15)

        assert state_machine.block(screen, decision, NOW)

        assert screen.state == ScreenStatus.BLOCKED
        assert screen.blocked_until == NOW + timedelta(seconds=15)
        assert screen.blocked_reason == "COOLDOWN_ACTIVE"

    def test_max_attempts_does_not_block(self) -> None:
        """Test that non-temporal denials leave the screen active."""
        screen = make_screen(state=ScreenStatus.ACTIVE)
        decision = ConstraintDecision.deny(ConstraintReason.MAX_ATTEMPTS_REACHED, "done")

        assert not state_machine.block(screen, decision, NOW)
        assert screen.state == ScreenStatus.ACTIVE

    def test_release_after_expiry(self) -> None:
        """Test that a block is released only once blocked_until has passed."""
        screen = make_screen(
            state=ScreenStatus.BLOCKED,
            blocked_until=NOW + timedelta(seconds=10),
            blocked_reason="RATE_LIMITED",
        )

        assert not state_machine.release_expired_block(screen, NOW)
        assert state_machine.release_expired_block(screen, NOW + timedelta(seconds=10))
        assert screen.state == ScreenStatus.ACTIVE
        assert screen.blocked_until is None
        assert screen.blocked_reason is None


class TestScreenView:
    """Tests for derive_screen_view."""

    def test_unlocked_screen(self) -> None:
        """Test the view of a screen that can be started."""
        view = state_machine.derive_screen_view(make_screen(state=ScreenStatus.UNLOCKED), NOW)

        assert view.is_unlocked
        assert view.can_start
        assert not view.can_submit
        assert not view.can_complete

    def test_start_blocked_by_other_active_screen(self) -> None:
        """Test that can_start is false while another screen occupies the session."""
        view = state_machine.derive_screen_view(
            make_screen(state=ScreenStatus.UNLOCKED),
            NOW,
            session_occupied_by="screen-0",
        )

        assert not view.can_start

    def test_active_screen_counts(self) -> None:
        """Test remaining attempts, hints and completion for an active screen."""
        screen = make_screen(
            state=ScreenStatus.ACTIVE,
            constraints=ScreenConstraints(max_attempts=3),
            progress=ScreenProgress(
                started_at=NOW - timedelta(minutes=1),
                attempts=1,
                best_score=90,
                hints_used=1,
            ),
        )

        view = state_machine.derive_screen_view(screen, NOW)

        assert view.can_submit
        assert view.can_request_hint
        assert view.can_complete
        assert view.attempts_remaining == 2
        assert view.hints_remaining == 1

    def test_blocked_screen_reports_retry(self) -> None:
        """Test that a blocked screen reports when it frees up."""
        screen = make_screen(
            state=ScreenStatus.BLOCKED,
            blocked_until=NOW + timedelta(seconds=30),
            blocked_reason="RATE_LIMITED",
        )

        view = state_machine.derive_screen_view(screen, NOW)

        assert view.is_blocked
        assert not view.can_submit
        assert view.retry_after_seconds == pytest.approx(30.0)

    def test_inactive_session_disables_actions(self) -> None:
        """Test that nothing is possible while the session is paused."""
        screen = make_screen(state=ScreenStatus.ACTIVE, progress=ScreenProgress(started_at=NOW))

        view = state_machine.derive_screen_view(screen, NOW, session_active=False)

        assert view.is_active
        assert not view.can_submit
        assert not view.can_request_hint


class TestInteractionTransitions:
    """Tests for the interaction lifecycle."""

    def test_happy_path(self) -> None:
        """Test pending through committed, stamping completion."""
        interaction = Interaction(
            id="i1", session_id="s1", screen_id="screen-1", generation_epoch=1, input_text="a"
        )

        for target in (
            InteractionState.GENERATING,
            InteractionState.VALIDATING,
            InteractionState.REGENERATING,
            InteractionState.VALIDATING,
            InteractionState.COMMITTED,
        ):
            interaction.transition(target, NOW)

        assert interaction.is_terminal
        assert interaction.completed_at == NOW

    @pytest.mark.parametrize(
        "terminal", [InteractionState.COMMITTED, InteractionState.CANCELLED, InteractionState.FAILED]
    )
    def test_terminal_states_are_final(self, terminal: InteractionState) -> None:
        """Test that nothing leaves a terminal state."""
        interaction = Interaction(
            id="i1", session_id="s1", screen_id="screen-1", generation_epoch=1, input_text="a", state=terminal
        )

        with pytest.raises(InvalidTransitionError):
            interaction.transition(InteractionState.GENERATING)

    def test_cannot_commit_without_validation(self) -> None:
        """Test that generating cannot jump straight to committed."""
        interaction = Interaction(
            id="i1",
            session_id="s1",
            screen_id="screen-1",
            generation_epoch=1,
            input_text="a",
            state=InteractionState.GENERATING,
        )

        assert not interaction.can_transition(InteractionState.COMMITTED)
