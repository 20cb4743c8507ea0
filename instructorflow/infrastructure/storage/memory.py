# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory storage adapter.

Values are deep-copied on the way in and out so callers can never mutate
stored state without going through the port. Used by tests and by
development runs with DATABASE_BACKEND=memory.
"""

import asyncio
from typing import Optional

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.infrastructure.storage.port import StaleMemoryError, StorageError
from instructorflow.models.interaction import Interaction, InteractionState
from instructorflow.models.memory import LearnerMemory
from instructorflow.models.screen import ScreenState
from instructorflow.models.session import Session


class InMemoryStorage:
    """StoragePort kept in process memory."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._screens: dict[str, dict[str, ScreenState]] = {}
        self._memories: dict[str, LearnerMemory] = {}
        self._interactions: dict[str, Interaction] = {}
        self._lock = asyncio.Lock()

    async def load_session(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def save_session(self, session: Session) -> None:
        async with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)

    async def load_screen_state(self, session_id: str, screen_id: str) -> Optional[ScreenState]:
        screen = self._screens.get(session_id, {}).get(screen_id)
        return screen.model_copy(deep=True) if screen else None

    async def save_screen_state(self, screen: ScreenState) -> None:
        async with self._lock:
            self._put_screen(screen)

    async def save_screen_states(self, screens: list[ScreenState]) -> None:
        async with self._lock:
            for screen in screens:
                self._put_screen(screen)

    async def list_screen_states(self, session_id: str) -> list[ScreenState]:
        return [s.model_copy(deep=True) for s in self._screens.get(session_id, {}).values()]

    async def load_memory(self, learner_id: str) -> Optional[LearnerMemory]:
        memory = self._memories.get(learner_id)
        return memory.model_copy(deep=True) if memory else None

    async def save_memory(self, memory: LearnerMemory) -> None:
        async with self._lock:
            self._memories[memory.learner_id] = memory.model_copy(deep=True)

    async def load_profile_snapshot(self, session_id: str) -> Optional[InstructorProfile]:
        session = self._sessions.get(session_id)
        return session.profile_snapshot if session else None

    async def append_interaction(self, interaction: Interaction) -> None:
        async with self._lock:
            if interaction.id in self._interactions:
                raise StorageError(f"Interaction {interaction.id} already exists")
            self._interactions[interaction.id] = interaction.model_copy(deep=True)

    async def save_interaction(self, interaction: Interaction) -> None:
        async with self._lock:
            self._interactions[interaction.id] = interaction.model_copy(deep=True)

    async def load_interaction(self, interaction_id: str) -> Optional[Interaction]:
        interaction = self._interactions.get(interaction_id)
        return interaction.model_copy(deep=True) if interaction else None

    async def load_history(
        self,
        session_id: str,
        screen_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[Interaction]:
        committed = [
            i
            for i in self._interactions.values()
            if i.session_id == session_id
            and i.state == InteractionState.COMMITTED
            and (screen_id is None or i.screen_id == screen_id)
        ]
        committed.sort(key=lambda i: (i.completed_at or i.created_at, i.generation_epoch))
        recent = committed[-limit:] if limit > 0 else []
        return [i.model_copy(deep=True) for i in recent]

    async def commit_interaction(
        self,
        interaction: Interaction,
        screen: ScreenState,
        memory: Optional[LearnerMemory] = None,
        session: Optional[Session] = None,
    ) -> None:
        async with self._lock:
            if memory is not None:
                stored = self._memories.get(memory.learner_id)
                stored_version = stored.version if stored else 0
                if memory.version != stored_version + 1:
                    raise StaleMemoryError(memory.learner_id, memory.version - 1, stored_version)
            self._interactions[interaction.id] = interaction.model_copy(deep=True)
            self._put_screen(screen)
            if memory is not None:
                self._memories[memory.learner_id] = memory.model_copy(deep=True)
            if session is not None:
                self._sessions[session.id] = session.model_copy(deep=True)

    def _put_screen(self, screen: ScreenState) -> None:
        self._screens.setdefault(screen.session_id, {})[screen.id] = screen.model_copy(deep=True)
