# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session model."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.utils.datetime import utc_now


class SessionState(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Session(BaseModel):
    """A learner working through an ordered set of screens with one instructor.

    Attributes:
        id: Session identifier
        learner_id: Learner the session belongs to
        instructor_profile_id: Profile the snapshot was taken from
        profile_snapshot: Frozen copy of the profile taken at creation; the
            only profile the pipeline reads for this session
        subject: Subject the instructor is scoped to
        topic: Topic within the subject
        learning_objective: What the learner should be able to do at the end
        state: Session lifecycle state
        screen_order: Screen ids in lesson order
        started_at: Creation time
        last_activity_at: Last successful operation
        ended_at: Completion or abandonment time
    """

    id: str
    learner_id: str
    instructor_profile_id: str
    profile_snapshot: InstructorProfile
    subject: str
    topic: str
    learning_objective: str = ""
    state: SessionState = SessionState.ACTIVE
    screen_order: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    last_activity_at: datetime = Field(default_factory=utc_now)
    ended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.ABANDONED)
