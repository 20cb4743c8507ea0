# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Storage port.

The orchestrator persists everything through a StoragePort. Adapters must
make commit_interaction atomic: the interaction's terminal state, the screen
progress and the learner memory become durable together or not at all.
"""

from typing import Optional, Protocol

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.models.interaction import Interaction
from instructorflow.models.memory import LearnerMemory
from instructorflow.models.screen import ScreenState
from instructorflow.models.session import Session


class StorageError(Exception):
    """Raised when a storage operation fails.

    Storage failures are retryable from the caller's point of view; no
    partial commit is ever visible.

    Attributes:
        message: Human-readable error description.
        original_error: Underlying driver error, if any.
    """

    retryable = True

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class StaleMemoryError(StorageError):
    """Raised when learner memory changed since it was loaded.

    Attributes:
        learner_id: Learner whose memory was written concurrently.
        expected_version: Version the write was based on.
        stored_version: Version found in storage.
    """

    def __init__(self, learner_id: str, expected_version: int, stored_version: int) -> None:
        super().__init__(
            f"Memory for learner {learner_id} is at version {stored_version}, "
            f"update was based on {expected_version}"
        )
        self.learner_id = learner_id
        self.expected_version = expected_version
        self.stored_version = stored_version


class StoragePort(Protocol):
    """Persistence operations the orchestrator relies on."""

    async def load_session(self, session_id: str) -> Optional[Session]: ...

    async def save_session(self, session: Session) -> None: ...

    async def load_screen_state(self, session_id: str, screen_id: str) -> Optional[ScreenState]: ...

    async def save_screen_state(self, screen: ScreenState) -> None: ...

    async def save_screen_states(self, screens: list[ScreenState]) -> None:
        """Persist several screens atomically."""
        ...

    async def list_screen_states(self, session_id: str) -> list[ScreenState]: ...

    async def load_memory(self, learner_id: str) -> Optional[LearnerMemory]: ...

    async def save_memory(self, memory: LearnerMemory) -> None: ...

    async def load_profile_snapshot(self, session_id: str) -> Optional[InstructorProfile]: ...

    async def append_interaction(self, interaction: Interaction) -> None:
        """Insert a new interaction.

        Raises:
            StorageError: If an interaction with the same id exists.
        """
        ...

    async def save_interaction(self, interaction: Interaction) -> None: ...

    async def load_interaction(self, interaction_id: str) -> Optional[Interaction]: ...

    async def load_history(
        self,
        session_id: str,
        screen_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[Interaction]:
        """Most recent committed interactions, returned oldest first."""
        ...

    async def commit_interaction(
        self,
        interaction: Interaction,
        screen: ScreenState,
        memory: Optional[LearnerMemory] = None,
        session: Optional[Session] = None,
    ) -> None:
        """Atomically persist an interaction's terminal state with its side effects.

        Raises:
            StaleMemoryError: If memory.version is not one past the stored
                version. Nothing is written.
        """
        ...
