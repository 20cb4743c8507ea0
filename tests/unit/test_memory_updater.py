# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for learning insights and the learner memory updater."""

from datetime import datetime, timezone

import pytest

from instructorflow.core.memory import (
    InsightExtractor,
    LearningInsights,
    MemoryUpdateError,
    MemoryUpdater,
    ObservedMisconception,
)
from instructorflow.models.interaction import Interaction, InteractionState
from instructorflow.models.memory import LearnerMemory, MasteryLevel, Misconception

NOW = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
CONCEPT = "equivalent fractions"


def make_interaction(
    interaction_id: str = "int-1",
    state: InteractionState = InteractionState.COMMITTED,
) -> Interaction:
    return Interaction(
        id=interaction_id,
        session_id="session-1",
        screen_id="screen-1",
        generation_epoch=1,
        input_text="it is 3/4 because 1/4 + 2/4 = 3/4",
        state=state,
        completed_at=NOW,
    )


@pytest.fixture
def memory() -> LearnerMemory:
    return LearnerMemory(learner_id="learner-1", last_updated=NOW)


@pytest.fixture
def updater() -> MemoryUpdater:
    return MemoryUpdater()


# =============================================================================
# InsightExtractor
# =============================================================================


class TestInsightScore:
    """Tests for InsightExtractor.score."""

    def test_correct_answer_scores_full(self) -> None:
        """Test that containing the expected answer scores 100."""
        assert InsightExtractor().score("I think it's 3/4", "3/4") == 100

    def test_struggle_scores_low(self) -> None:
        """Test that struggle cues score low."""
        assert InsightExtractor().score("I don't understand this", "3/4") == 20

    def test_reasoned_wrong_answer_is_capped(self) -> None:
        """Test that reasoning without the answer stays below mastery."""
        score = InsightExtractor().score(
            "first I add the tops because the bottoms match, then I get 2/6",
            "3/4",
        )

        assert 40 < score <= 60

    def test_empty_input_scores_zero(self) -> None:
        """Test that blank input scores zero."""
        assert InsightExtractor().score("   ", "3/4") == 0


class TestInsightExtract:
    """Tests for InsightExtractor.extract."""

    def test_misconception_observed_on_correction(self) -> None:
        """Test that a correcting response records the learner's misconception."""
        insights, metadata = InsightExtractor().extract(
            "bigger bottom number means bigger fraction",
            "Not quite, look again at what the denominator means. What does 1/8 of a pizza look like?",
            concept=CONCEPT,
            expected_answer="3/4",
        )

        assert insights.correction_attempt
        assert insights.misconception is not None
        assert insights.misconception.concept == CONCEPT
        assert metadata.technique == "correcting"
        assert metadata.asked_verification_question

    def test_mastery_resolves_known_misconception(self, memory: LearnerMemory) -> None:
        """Test that a mastery-level answer resolves an open misconception."""
        memory.misconceptions.append(
            Misconception(concept=CONCEPT, incorrect_understanding="adds denominators", first_observed_at=NOW)
        )

        insights, _ = InsightExtractor().extract(
            "it is 3/4",
            "Well done. How did you check it?",
            concept=CONCEPT,
            expected_answer="3/4",
            memory=memory,
        )

        assert insights.resolved_misconceptions == (CONCEPT,)
        assert insights.progress_markers == (f"demonstrated:{CONCEPT}",)


# =============================================================================
# MemoryUpdater
# =============================================================================


class TestMemoryUpdater:
    """Tests for MemoryUpdater.update."""

    def test_rejects_uncommitted_interaction(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that only committed interactions may update memory."""
        interaction = make_interaction(state=InteractionState.FAILED)

        with pytest.raises(MemoryUpdateError):
            updater.update(memory, interaction, LearningInsights(score=90))

    def test_new_concept_is_introduced(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that a first practice introduces the concept."""
        insights = LearningInsights(score=90, concepts_practiced=(CONCEPT,))

        updated = updater.update(memory, make_interaction(), insights)

        learned = updated.learned_concepts[CONCEPT]
        assert learned.mastery_level == MasteryLevel.INTRODUCED
        assert learned.practice_count == 1
        assert updated.applied_interaction_ids == ["int-1"]
        assert updated.version == 1

    def test_input_memory_is_not_mutated(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that update returns a new memory."""
        insights = LearningInsights(score=90, concepts_practiced=(CONCEPT,), strengths=(CONCEPT,))

        updater.update(memory, make_interaction(), insights)

        assert memory.learned_concepts == {}
        assert memory.strengths == []
        assert memory.version == 0

    def test_qualifying_practice_advances_mastery(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that mastery advances one level per qualifying practice."""
        insights = LearningInsights(score=80, concepts_practiced=(CONCEPT,))

        memory = updater.update(memory, make_interaction("int-1"), insights)
        memory = updater.update(memory, make_interaction("int-2"), insights)
        memory = updater.update(memory, make_interaction("int-3"), insights)
        memory = updater.update(memory, make_interaction("int-4"), insights)

        learned = memory.learned_concepts[CONCEPT]
        assert learned.practice_count == 4
        assert learned.mastery_level == MasteryLevel.MASTERED

    def test_low_score_practice_does_not_advance(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that a non-qualifying practice only counts."""
        insights = LearningInsights(score=20, concepts_practiced=(CONCEPT,))

        memory = updater.update(memory, make_interaction("int-1"), insights)
        memory = updater.update(memory, make_interaction("int-2"), insights)

        learned = memory.learned_concepts[CONCEPT]
        assert learned.practice_count == 2
        assert learned.mastery_level == MasteryLevel.INTRODUCED

    def test_applying_twice_is_a_no_op(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that re-applying the same interaction changes nothing."""
        insights = LearningInsights(score=90, concepts_practiced=(CONCEPT,))
        interaction = make_interaction()

        once = updater.update(memory, interaction, insights)
        twice = updater.update(once, interaction, insights)

        assert twice == once
        assert twice.learned_concepts[CONCEPT].practice_count == 1
        assert twice.version == 1

    def test_misconception_correction_attempts(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that correction attempts count only when the response corrects."""
        observed = ObservedMisconception(concept=CONCEPT, incorrect_understanding="adds denominators")

        memory = updater.update(
            memory,
            make_interaction("int-1"),
            LearningInsights(score=30, misconception=observed, correction_attempt=True),
        )
        memory = updater.update(
            memory,
            make_interaction("int-2"),
            LearningInsights(score=30, misconception=observed, correction_attempt=False),
        )

        assert len(memory.misconceptions) == 1
        assert memory.misconceptions[0].correction_attempts == 1

    def test_resolution_marks_misconception(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that resolved misconceptions are closed with a timestamp."""
        memory.misconceptions.append(
            Misconception(concept=CONCEPT, incorrect_understanding="adds denominators", first_observed_at=NOW)
        )

        updated = updater.update(
            memory,
            make_interaction(),
            LearningInsights(score=100, resolved_misconceptions=(CONCEPT,)),
        )

        assert updated.misconceptions[0].resolved
        assert updated.misconceptions[0].resolved_at == NOW
        assert updated.unresolved_misconceptions() == []

    def test_strength_replaces_weakness(self, updater: MemoryUpdater, memory: LearnerMemory) -> None:
        """Test that a concept moves from weaknesses to strengths."""
        memory.weaknesses.append(CONCEPT)

        updated = updater.update(memory, make_interaction(), LearningInsights(score=90, strengths=(CONCEPT,)))

        assert updated.strengths == [CONCEPT]
        assert updated.weaknesses == []
