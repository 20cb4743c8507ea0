# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learning insight extraction.

InsightExtractor reads one learner input and the accepted instructor
response and derives what the exchange says about the learner (score,
struggle, misconceptions) and what the instructor did (TeachingMetadata).
It uses lexical cues only; nothing here calls a model.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from instructorflow.models.interaction import TeachingMetadata
from instructorflow.models.memory import LearnerMemory

_STRUGGLE_CUES = re.compile(
    r"\b(i\s+don'?t\s+(know|get\s+it|understand)|idk|no\s+idea|confused|stuck|lost|help)\b",
    re.IGNORECASE,
)
_REASONING_CUES = re.compile(
    r"\b(because|since|so|therefore|first|then|which\s+means|if)\b",
    re.IGNORECASE,
)
_CORRECTION_CUES = re.compile(
    r"\b(not\s+quite|almost|look\s+again|check\s+(that|again)|careful|mistake|instead|actually)\b",
    re.IGNORECASE,
)
_PRAISE_CUES = re.compile(r"\b(great|nice|good|well\s+done|excellent|exactly)\b", re.IGNORECASE)
_HINT_CUES = re.compile(r"\b(hint|try|what\s+if|think\s+about)\b", re.IGNORECASE)

MAX_MISCONCEPTION_CHARS = 120


class ObservedMisconception(BaseModel):
    model_config = ConfigDict(frozen=True)

    concept: str
    incorrect_understanding: str


class LearningInsights(BaseModel):
    """What one committed exchange says about the learner.

    Attributes:
        score: 0-100 estimate of how well the learner did
        concepts_practiced: Concepts the exchange practiced
        correction_attempt: The instructor tried to correct a misconception
        misconception: Misconception observed in the learner input, if any
        resolved_misconceptions: Concepts whose misconception is now resolved
        struggle_level: low, medium or high
        strengths: Concepts to record as strengths
        weaknesses: Concepts to record as weaknesses
        progress_markers: Free-form markers to record
    """

    model_config = ConfigDict(frozen=True)

    score: int = Field(default=0, ge=0, le=100)
    concepts_practiced: tuple[str, ...] = ()
    correction_attempt: bool = False
    misconception: Optional[ObservedMisconception] = None
    resolved_misconceptions: tuple[str, ...] = ()
    struggle_level: str = "low"
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    progress_markers: tuple[str, ...] = ()


def _contains_answer(text: str, answer: Optional[str]) -> bool:
    if not answer or not answer.strip():
        return False
    pattern = re.compile(rf"(?<!\w){re.escape(answer.strip())}(?!\w)", re.IGNORECASE)
    return bool(pattern.search(text))


class InsightExtractor:
    """Derives LearningInsights and TeachingMetadata from one exchange."""

    def score(self, learner_input: str, expected_answer: Optional[str]) -> int:
        """Estimate 0-100 how well the learner input demonstrates the concept."""
        text = learner_input.strip()
        if not text:
            return 0
        if _STRUGGLE_CUES.search(text):
            return 20
        if _contains_answer(text, expected_answer):
            return 100

        score = 40
        score += min(len(_REASONING_CUES.findall(text)) * 10, 30)
        if len(text.split()) >= 8:
            score += 10
        if expected_answer:
            # A reasoned but wrong answer still falls short of mastery
            score = min(score, 60)
        return max(0, min(score, 100))

    def extract(
        self,
        learner_input: str,
        response_text: str,
        concept: str,
        expected_answer: Optional[str] = None,
        memory: Optional[LearnerMemory] = None,
        mastery_threshold: int = 70,
    ) -> tuple[LearningInsights, TeachingMetadata]:
        """Analyze one committed exchange.

        Args:
            learner_input: Raw learner text.
            response_text: Accepted instructor response.
            concept: Concept of the screen.
            expected_answer: Reference answer, if the screen has one.
            memory: Current learner memory, used to spot resolved misconceptions.
            mastery_threshold: Score at which the concept counts as demonstrated.

        Returns:
            (insights, teaching metadata)
        """
        score = self.score(learner_input, expected_answer)
        struggling = bool(_STRUGGLE_CUES.search(learner_input))
        correcting = bool(_CORRECTION_CUES.search(response_text)) and score < mastery_threshold

        if struggling:
            struggle_level = "high"
        elif score < 50:
            struggle_level = "medium"
        else:
            struggle_level = "low"

        misconception = None
        if correcting and not struggling and learner_input.strip():
            misconception = ObservedMisconception(
                concept=concept,
                incorrect_understanding=learner_input.strip()[:MAX_MISCONCEPTION_CHARS],
            )

        resolved: tuple[str, ...] = ()
        if memory is not None and score >= mastery_threshold:
            if any(m.concept == concept for m in memory.unresolved_misconceptions()):
                resolved = (concept,)

        insights = LearningInsights(
            score=score,
            concepts_practiced=(concept,) if concept else (),
            correction_attempt=correcting,
            misconception=misconception,
            resolved_misconceptions=resolved,
            struggle_level=struggle_level,
            strengths=(concept,) if score >= 80 and concept else (),
            weaknesses=(concept,) if score < 40 and concept else (),
            progress_markers=(f"demonstrated:{concept}",) if score >= mastery_threshold and concept else (),
        )

        metadata = TeachingMetadata(
            technique=self._technique(response_text, correcting),
            concepts=[concept] if concept else [],
            asked_verification_question="?" in response_text,
            correction_attempt=correcting,
            struggle_level=struggle_level,
        )
        return insights, metadata

    @staticmethod
    def _technique(response_text: str, correcting: bool) -> str:
        if correcting:
            return "correcting"
        if _HINT_CUES.search(response_text):
            return "hinting"
        if "?" in response_text:
            return "questioning"
        if _PRAISE_CUES.search(response_text):
            return "encouraging"
        return "explaining"
