# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- A manually advanced clock
- A scripted generation port whose streams can be held open
- Sample profiles, lesson plans and an in-memory orchestrator
"""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

import pytest

from instructorflow.core.config.settings import OrchestrationSettings
from instructorflow.core.intelligence.llm.port import CancellationToken, GenerationError
from instructorflow.core.orchestration import SessionOrchestrator
from instructorflow.core.profiles.manager import ProfileManager
from instructorflow.core.profiles.models import (
    InstructorProfile,
    ProfileBehavior,
    ProfileIdentity,
    ProfileTemplates,
)
from instructorflow.core.prompts.request import StructuredRequest
from instructorflow.infrastructure.storage.memory import InMemoryStorage
from instructorflow.models.screen import (
    LessonPlan,
    ScreenConstraints,
    ScreenContent,
    ScreenPlan,
    ScreenType,
)

# A response every default rule accepts
GOOD_RESPONSE = (
    "Nice start, you compared the two fractions carefully. "
    "What do you get when you rewrite both with the same denominator?"
)

# Trips direct_answer (high tier)
REVEALING_RESPONSE = "The answer is 3/4. Can you see why?"

# Trips out_of_scope (critical tier)
OFF_TOPIC_RESPONSE = "Let's talk about politics instead. What do you think?"


# =============================================================================
# Clock
# =============================================================================


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
        self._monotonic = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds


# =============================================================================
# Generation port
# =============================================================================


Script = Union[str, list[str], GenerationError]


class ScriptedGenerator:
    """GenerationPort that replays scripted responses in call order.

    Each script entry is a full response (streamed word by word), an explicit
    chunk list, or a GenerationError to raise. When the script runs out the
    fallback response is used. hold() makes the next call wait on an event
    before streaming, so tests can interleave submissions.
    """

    def __init__(self, script: Optional[list[Script]] = None, fallback: str = GOOD_RESPONSE) -> None:
        self.script: list[Script] = list(script or [])
        self.fallback = fallback
        self.requests: list[StructuredRequest] = []
        self.started = asyncio.Event()
        self._gates: list[asyncio.Event] = []

    def hold(self) -> asyncio.Event:
        """Hold the next generation call until the returned event is set."""
        gate = asyncio.Event()
        self._gates.append(gate)
        return gate

    async def generate_stream(
        self,
        request: StructuredRequest,
        deadline: float,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        self.requests.append(request)
        self.started.set()

        gate = self._gates.pop(0) if self._gates else None
        entry = self.script.pop(0) if self.script else self.fallback

        if gate is not None:
            await gate.wait()
        if isinstance(entry, GenerationError):
            raise entry

        chunks = entry if isinstance(entry, list) else _split_words(entry)
        for chunk in chunks:
            if cancel_token.is_cancelled:
                return
            yield chunk
            await asyncio.sleep(0)


def _split_words(text: str) -> list[str]:
    words = text.split(" ")
    return [w + " " for w in words[:-1]] + [words[-1]]


# =============================================================================
# Profiles and plans
# =============================================================================


@pytest.fixture
def profiles_dir() -> Path:
    """Get the actual profiles configuration directory."""
    return Path(__file__).parent.parent / "config" / "profiles"


@pytest.fixture
def sample_profile() -> InstructorProfile:
    """Create a profile with a known fallback and hint templates."""
    return InstructorProfile(
        id="test_guide",
        name="Test Guide",
        description="A profile for unit testing",
        identity=ProfileIdentity(
            role="a patient fractions tutor",
            character="Calm and encouraging.",
        ),
        behavior=ProfileBehavior(max_response_words=60),
        forbidden_topics=("politics",),
        banned_phrases=("Obviously",),
        templates=ProfileTemplates(
            safe_fallback="Let's look at this together. What is the question asking?",
            hint_intro="Hint:",
            level_hints=(
                "Read the problem again.",
                "Which part of {concept} applies?",
                "Apply {concept} to the first step.",
            ),
        ),
    )


@pytest.fixture
def profile_manager(sample_profile: InstructorProfile) -> ProfileManager:
    """ProfileManager holding only the sample profile."""
    manager = ProfileManager(auto_load=False)
    manager.register(sample_profile)
    return manager


def make_plan(
    screens: int = 2,
    constraints: Optional[ScreenConstraints] = None,
    expected_answer: Optional[str] = "3/4",
) -> LessonPlan:
    """Build a sequential fractions lesson with the given number of screens."""
    return LessonPlan(
        subject="mathematics",
        topic="fractions",
        learning_objective="Compare and add simple fractions",
        screens=[
            ScreenPlan(
                id=f"screen-{i + 1}",
                screen_type=ScreenType.GUIDED_PRACTICE,
                content=ScreenContent(
                    concept="equivalent fractions",
                    problem="Which is larger, 1/2 or the sum 1/4 + 1/2?",
                    instructions="Explain your reasoning.",
                    expected_answer=expected_answer,
                    hints_available=3,
                ),
                constraints=(constraints or ScreenConstraints()).model_copy(),
            )
            for i in range(screens)
        ],
    )


@pytest.fixture
def lesson_plan() -> LessonPlan:
    return make_plan()


# =============================================================================
# Orchestrator
# =============================================================================


@pytest.fixture
def orchestration_settings() -> OrchestrationSettings:
    """Fast settings: no backoff delay, short deadline."""
    return OrchestrationSettings(
        generation_deadline_seconds=5.0,
        transient_retries=2,
        backoff_base_seconds=0.0,
        backoff_max_seconds=0.0,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def orchestrator(
    storage: InMemoryStorage,
    generator: ScriptedGenerator,
    profile_manager: ProfileManager,
    clock: ManualClock,
    orchestration_settings: OrchestrationSettings,
) -> SessionOrchestrator:
    return SessionOrchestrator(
        storage,
        generator,
        profiles=profile_manager,
        clock=clock,
        settings=orchestration_settings,
    )


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
