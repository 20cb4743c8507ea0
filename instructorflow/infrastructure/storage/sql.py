# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy storage adapter.

Uses the SQLAlchemy 2.0 async API. Every port operation runs in its own
transaction; commit_interaction writes the interaction, screen, memory and
session rows in one transaction.

Example:
    from instructorflow.infrastructure.database.connection import create_storage_engine
    from instructorflow.infrastructure.storage.sql import SQLStorage

    engine = create_storage_engine(settings.database)
    storage = SQLStorage(engine)
    await storage.create_schema()
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.infrastructure.storage.port import StaleMemoryError, StorageError
from instructorflow.infrastructure.storage.tables import (
    Base,
    InteractionRow,
    LearnerMemoryRow,
    ScreenStateRow,
    SessionRow,
)
from instructorflow.models.interaction import Interaction, InteractionState
from instructorflow.models.memory import LearnerMemory
from instructorflow.models.screen import ScreenState
from instructorflow.models.session import Session

logger = logging.getLogger(__name__)


def _session_row(session: Session) -> SessionRow:
    return SessionRow(
        id=session.id,
        learner_id=session.learner_id,
        state=session.state.value,
        payload=session.model_dump(mode="json"),
    )


def _screen_row(screen: ScreenState) -> ScreenStateRow:
    return ScreenStateRow(
        id=screen.id,
        session_id=screen.session_id,
        state=screen.state.value,
        payload=screen.model_dump(mode="json"),
    )


def _memory_row(memory: LearnerMemory) -> LearnerMemoryRow:
    return LearnerMemoryRow(
        learner_id=memory.learner_id,
        version=memory.version,
        payload=memory.model_dump(mode="json"),
    )


def _interaction_row(interaction: Interaction) -> InteractionRow:
    return InteractionRow(
        id=interaction.id,
        session_id=interaction.session_id,
        screen_id=interaction.screen_id,
        state=interaction.state.value,
        generation_epoch=interaction.generation_epoch,
        finished_at=interaction.completed_at or interaction.created_at,
        payload=interaction.model_dump(mode="json"),
    )


class SQLStorage:
    """StoragePort backed by a relational database through SQLAlchemy."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessionmaker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError("Failed to create schema", e) from e

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as db:
            try:
                async with db.begin():
                    yield db
            except IntegrityError as e:
                raise StorageError("Integrity constraint violated", e) from e
            except SQLAlchemyError as e:
                logger.error("Storage operation failed: %s", str(e))
                raise StorageError("Database operation failed", e) from e

    async def load_session(self, session_id: str) -> Optional[Session]:
        async with self._transaction() as db:
            row = await db.get(SessionRow, session_id)
            return Session.model_validate(row.payload) if row else None

    async def save_session(self, session: Session) -> None:
        async with self._transaction() as db:
            await db.merge(_session_row(session))

    async def load_screen_state(self, session_id: str, screen_id: str) -> Optional[ScreenState]:
        async with self._transaction() as db:
            row = await db.get(ScreenStateRow, (screen_id, session_id))
            return ScreenState.model_validate(row.payload) if row else None

    async def save_screen_state(self, screen: ScreenState) -> None:
        async with self._transaction() as db:
            await db.merge(_screen_row(screen))

    async def save_screen_states(self, screens: list[ScreenState]) -> None:
        async with self._transaction() as db:
            for screen in screens:
                await db.merge(_screen_row(screen))

    async def list_screen_states(self, session_id: str) -> list[ScreenState]:
        async with self._transaction() as db:
            result = await db.execute(
                select(ScreenStateRow).where(ScreenStateRow.session_id == session_id)
            )
            return [ScreenState.model_validate(row.payload) for row in result.scalars()]

    async def load_memory(self, learner_id: str) -> Optional[LearnerMemory]:
        async with self._transaction() as db:
            row = await db.get(LearnerMemoryRow, learner_id)
            return LearnerMemory.model_validate(row.payload) if row else None

    async def save_memory(self, memory: LearnerMemory) -> None:
        async with self._transaction() as db:
            await db.merge(_memory_row(memory))

    async def load_profile_snapshot(self, session_id: str) -> Optional[InstructorProfile]:
        session = await self.load_session(session_id)
        return session.profile_snapshot if session else None

    async def append_interaction(self, interaction: Interaction) -> None:
        async with self._transaction() as db:
            db.add(_interaction_row(interaction))

    async def save_interaction(self, interaction: Interaction) -> None:
        async with self._transaction() as db:
            await db.merge(_interaction_row(interaction))

    async def load_interaction(self, interaction_id: str) -> Optional[Interaction]:
        async with self._transaction() as db:
            row = await db.get(InteractionRow, interaction_id)
            return Interaction.model_validate(row.payload) if row else None

    async def load_history(
        self,
        session_id: str,
        screen_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[Interaction]:
        if limit <= 0:
            return []

        stmt = select(InteractionRow).where(
            InteractionRow.session_id == session_id,
            InteractionRow.state == InteractionState.COMMITTED.value,
        )
        if screen_id is not None:
            stmt = stmt.where(InteractionRow.screen_id == screen_id)
        stmt = stmt.order_by(
            InteractionRow.finished_at.desc(),
            InteractionRow.generation_epoch.desc(),
        ).limit(limit)

        async with self._transaction() as db:
            result = await db.execute(stmt)
            rows = list(result.scalars())
        return [Interaction.model_validate(row.payload) for row in reversed(rows)]

    async def commit_interaction(
        self,
        interaction: Interaction,
        screen: ScreenState,
        memory: Optional[LearnerMemory] = None,
        session: Optional[Session] = None,
    ) -> None:
        async with self._transaction() as db:
            if memory is not None:
                await self._write_memory_version(db, memory)
            await db.merge(_interaction_row(interaction))
            await db.merge(_screen_row(screen))
            if session is not None:
                await db.merge(_session_row(session))

    @staticmethod
    async def _write_memory_version(db: AsyncSession, memory: LearnerMemory) -> None:
        """Write memory only if storage still holds the version it was based on."""
        expected = memory.version - 1
        if expected == 0:
            existing = await db.get(LearnerMemoryRow, memory.learner_id)
            if existing is not None:
                raise StaleMemoryError(memory.learner_id, expected, existing.version)
            db.add(_memory_row(memory))
            return

        result = await db.execute(
            update(LearnerMemoryRow)
            .where(
                LearnerMemoryRow.learner_id == memory.learner_id,
                LearnerMemoryRow.version == expected,
            )
            .values(version=memory.version, payload=memory.model_dump(mode="json"))
        )
        if result.rowcount != 1:
            stored = await db.scalar(
                select(LearnerMemoryRow.version).where(LearnerMemoryRow.learner_id == memory.learner_id)
            )
            raise StaleMemoryError(memory.learner_id, expected, stored or 0)
