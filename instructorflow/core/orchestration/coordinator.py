# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interaction coordinator.

Per session the coordinator tracks a monotonically increasing generation
epoch, the interaction currently in flight and its cancellation token. A new
submission supersedes the one in flight: the old token is cancelled and the
newcomer gets epoch + 1. Whoever commits later compares its epoch with the
current one; a mismatch means the result is stale and must be dropped.

The coordinator also hands out the per-session lock that linearizes screen
progress and commits, and a per-learner lock that serializes learner memory
updates across sessions of the same learner. A session's slot is released
once the session ends; duplicate ids are detected against storage.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Optional

from instructorflow.core.intelligence.llm.port import CancellationToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupersededInteraction:
    interaction_id: str
    epoch: int


@dataclass(frozen=True)
class Admission:
    """Result of admitting a submission.

    Attributes:
        epoch: Epoch assigned to the new interaction.
        token: Cancellation token for the new interaction's generation.
        superseded: The in-flight interaction that was cancelled, if any.
    """

    epoch: int
    token: CancellationToken
    superseded: Optional[SupersededInteraction] = None


@dataclass
class _SessionSlot:
    epoch: int = 0
    in_flight_id: Optional[str] = None
    token: Optional[CancellationToken] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class InteractionCoordinator:
    """Sequences submissions per session."""

    def __init__(self) -> None:
        self._slots: dict[str, _SessionSlot] = {}
        self._learner_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _slot(self, session_id: str) -> _SessionSlot:
        slot = self._slots.get(session_id)
        if slot is None:
            slot = self._slots[session_id] = _SessionSlot()
        return slot

    def session_lock(self, session_id: str) -> asyncio.Lock:
        """Lock that linearizes state changes for one session."""
        return self._slot(session_id).lock

    def admit(
        self,
        session_id: str,
        screen_id: str,
        interaction_id: str,
        input_text: str,
    ) -> Admission:
        """Admit a new interaction, superseding the one in flight.

        Callers check the id against storage first; the coordinator only
        sequences.
        """
        slot = self._slot(session_id)
        superseded = None
        if slot.in_flight_id is not None and slot.token is not None:
            slot.token.cancel("superseded")
            superseded = SupersededInteraction(slot.in_flight_id, slot.epoch)
            logger.info(
                "Interaction superseded: session=%s, cancelled=%s (epoch %d), by=%s",
                session_id,
                slot.in_flight_id,
                slot.epoch,
                interaction_id,
            )

        slot.epoch += 1
        slot.in_flight_id = interaction_id
        slot.token = CancellationToken()

        logger.debug(
            "Interaction admitted: session=%s, screen=%s, interaction=%s, epoch=%d, input_chars=%d",
            session_id,
            screen_id,
            interaction_id,
            slot.epoch,
            len(input_text),
        )
        return Admission(epoch=slot.epoch, token=slot.token, superseded=superseded)

    def cancel_previous(self, session_id: str, reason: str = "cancelled") -> Optional[SupersededInteraction]:
        """Cancel the in-flight interaction without admitting a new one.

        The epoch is bumped so a late result of the cancelled interaction can
        never be current again.

        Returns:
            The cancelled interaction and its epoch, or None if nothing was in flight.
        """
        slot = self._slot(session_id)
        if slot.in_flight_id is None or slot.token is None:
            return None

        slot.token.cancel(reason)
        cancelled = SupersededInteraction(slot.in_flight_id, slot.epoch)
        slot.epoch += 1
        slot.in_flight_id = None
        slot.token = None
        return cancelled

    def is_current(self, session_id: str, epoch: int) -> bool:
        slot = self._slots.get(session_id)
        return slot is not None and slot.epoch == epoch and slot.in_flight_id is not None

    def current_epoch(self, session_id: str) -> int:
        slot = self._slots.get(session_id)
        return slot.epoch if slot else 0

    def in_flight(self, session_id: str) -> Optional[str]:
        slot = self._slots.get(session_id)
        return slot.in_flight_id if slot else None

    def release(self, session_id: str) -> None:
        """Forget a session that has ended, cancelling anything still in flight.

        Work already waiting on the session's lock keeps its reference to it;
        its epoch is no longer current, so its result is dropped.
        """
        slot = self._slots.pop(session_id, None)
        if slot is not None and slot.token is not None:
            slot.token.cancel("session_ended")
        logger.debug("Session slot released: session=%s", session_id)

    def learner_lock(self, learner_id: str) -> asyncio.Lock:
        """Lock that serializes memory updates for one learner.

        Held only while a caller uses it; idle learners cost nothing.
        """
        lock = self._learner_locks.get(learner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._learner_locks[learner_id] = lock
        return lock

    def finish(self, session_id: str, epoch: int) -> None:
        """Clear the in-flight slot if epoch is still current."""
        slot = self._slots.get(session_id)
        if slot is not None and slot.epoch == epoch:
            slot.in_flight_id = None
            slot.token = None

