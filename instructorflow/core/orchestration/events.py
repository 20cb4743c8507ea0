# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interaction event stream.

submit_interaction yields, in order: one started event, zero or more chunk
events, at most one validated event, then exactly one terminal event
(committed or fallback). A superseded interaction stops yielding without a
terminal event.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from instructorflow.models.validation import ValidationAction


class EventType(str, Enum):
    STARTED = "started"
    CHUNK = "chunk"
    VALIDATED = "validated"
    COMMITTED = "committed"
    FALLBACK = "fallback"


TERMINAL_EVENTS = frozenset({EventType.COMMITTED, EventType.FALLBACK})


class InteractionEvent(BaseModel):
    """One event in an interaction's stream.

    Attributes:
        type: Event type
        interaction_id: Interaction the event belongs to
        epoch: Generation epoch of the interaction
        text: Chunk text (chunk) or full learner-facing text (committed, fallback)
        action: Final validation action (validated)
        regenerations: Regenerations used (validated)
        attempts: Screen attempts after commit (committed, fallback)
        score: Score of the committed response (committed)
    """

    model_config = ConfigDict(frozen=True)

    type: EventType
    interaction_id: str
    epoch: int
    text: Optional[str] = None
    action: Optional[ValidationAction] = None
    regenerations: int = 0
    attempts: Optional[int] = None
    score: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS
