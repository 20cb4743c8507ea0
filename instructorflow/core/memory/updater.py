# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner memory updater.

update() folds one committed interaction into a learner's memory and returns
a new LearnerMemory; the input is never modified and nothing is persisted
here. Applying the same interaction twice is a no-op because every applied
interaction id is recorded on the memory.
"""

import logging
from datetime import datetime
from typing import Optional

from instructorflow.core.memory.insights import LearningInsights
from instructorflow.models.interaction import Interaction, InteractionState
from instructorflow.models.memory import (
    LearnedConcept,
    LearnerMemory,
    MasteryLevel,
    Misconception,
    ProgressMarker,
)

logger = logging.getLogger(__name__)

QUALIFYING_SCORE = 50


class MemoryUpdateError(ValueError):
    """Raised when asked to apply an interaction that is not committed."""


class MemoryUpdater:
    """Applies learning insights from committed interactions to learner memory.

    Attributes:
        qualifying_score: Minimum score for a practice to advance mastery.
    """

    def __init__(self, qualifying_score: int = QUALIFYING_SCORE) -> None:
        self._qualifying_score = qualifying_score

    def update(
        self,
        memory: LearnerMemory,
        interaction: Interaction,
        insights: LearningInsights,
        now: Optional[datetime] = None,
    ) -> LearnerMemory:
        """Return memory with the interaction applied.

        Args:
            memory: Current memory.
            interaction: Interaction in state committed.
            insights: Insights derived from the interaction.
            now: Update time; defaults to the interaction's completion time.

        Returns:
            Updated copy, or memory itself when the interaction was already applied.

        Raises:
            MemoryUpdateError: If the interaction is not committed.
        """
        if interaction.state != InteractionState.COMMITTED:
            raise MemoryUpdateError(
                f"Interaction {interaction.id} is {interaction.state.value}; "
                "only committed interactions update memory"
            )

        if memory.has_applied(interaction.id):
            logger.debug("Interaction %s already applied to memory", interaction.id)
            return memory

        at = now or interaction.completed_at or interaction.created_at
        updated = memory.model_copy(deep=True)

        qualifies = insights.score >= self._qualifying_score
        for concept in insights.concepts_practiced:
            self._practice(updated, concept, qualifies, at)

        if insights.misconception is not None:
            self._observe_misconception(updated, insights, at)

        for concept in insights.resolved_misconceptions:
            for misconception in updated.misconceptions:
                if misconception.concept == concept and not misconception.resolved:
                    misconception.resolved = True
                    misconception.resolved_at = at

        for concept in insights.strengths:
            _add_unique(updated.strengths, concept)
            _discard(updated.weaknesses, concept)
        for concept in insights.weaknesses:
            _add_unique(updated.weaknesses, concept)
            _discard(updated.strengths, concept)

        for marker in insights.progress_markers:
            updated.progress_markers.append(
                ProgressMarker(marker=marker, screen_id=interaction.screen_id, recorded_at=at)
            )

        updated.applied_interaction_ids.append(interaction.id)
        updated.last_updated = at
        updated.version = memory.version + 1
        return updated

    @staticmethod
    def _practice(memory: LearnerMemory, concept: str, qualifies: bool, at: datetime) -> None:
        existing = memory.learned_concepts.get(concept)
        if existing is None:
            memory.learned_concepts[concept] = LearnedConcept(
                concept=concept,
                mastery_level=MasteryLevel.INTRODUCED,
                practice_count=1,
                first_introduced_at=at,
                last_practiced_at=at,
            )
            return

        existing.practice_count += 1
        existing.last_practiced_at = at
        if qualifies:
            existing.mastery_level = existing.mastery_level.advance()

    @staticmethod
    def _observe_misconception(
        memory: LearnerMemory,
        insights: LearningInsights,
        at: datetime,
    ) -> None:
        observed = insights.misconception
        for misconception in memory.misconceptions:
            if misconception.concept == observed.concept and not misconception.resolved:
                if insights.correction_attempt:
                    misconception.correction_attempts += 1
                return

        memory.misconceptions.append(
            Misconception(
                concept=observed.concept,
                incorrect_understanding=observed.incorrect_understanding,
                correction_attempts=1 if insights.correction_attempt else 0,
                first_observed_at=at,
            )
        )


def _add_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


def _discard(items: list[str], value: str) -> None:
    if value in items:
        items.remove(value)
