# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Long-term learner memory models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from instructorflow.utils.datetime import utc_now


class MasteryLevel(str, Enum):
    INTRODUCED = "introduced"
    PRACTICING = "practicing"
    MASTERED = "mastered"

    def advance(self) -> "MasteryLevel":
        """Next level up; mastered stays mastered."""
        order = list(MasteryLevel)
        return order[min(order.index(self) + 1, len(order) - 1)]


class LearnedConcept(BaseModel):
    concept: str
    mastery_level: MasteryLevel = MasteryLevel.INTRODUCED
    practice_count: int = 0
    first_introduced_at: datetime = Field(default_factory=utc_now)
    last_practiced_at: Optional[datetime] = None


class Misconception(BaseModel):
    """An incorrect understanding observed for a concept.

    correction_attempts counts responses that tried to correct it.
    """

    concept: str
    incorrect_understanding: str
    correction_attempts: int = 0
    resolved: bool = False
    first_observed_at: datetime = Field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None


class ProgressMarker(BaseModel):
    marker: str
    screen_id: Optional[str] = None
    recorded_at: datetime = Field(default_factory=utc_now)


class LearnerMemory(BaseModel):
    """Everything the instructor remembers about a learner across sessions.

    Mutated only by the memory updater, and only from committed
    interactions. applied_interaction_ids makes application idempotent.
    version counts applied updates; commit_interaction refuses a memory
    whose version is not exactly one past the stored one.
    """

    learner_id: str
    learned_concepts: dict[str, LearnedConcept] = Field(default_factory=dict)
    misconceptions: list[Misconception] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    progress_markers: list[ProgressMarker] = Field(default_factory=list)
    applied_interaction_ids: list[str] = Field(default_factory=list)
    version: int = 0
    last_updated: datetime = Field(default_factory=utc_now)

    def has_applied(self, interaction_id: str) -> bool:
        return interaction_id in self.applied_interaction_ids

    def unresolved_misconceptions(self) -> list[Misconception]:
        return [m for m in self.misconceptions if not m.resolved]
