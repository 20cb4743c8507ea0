# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Generation port.

The orchestrator only ever talks to a GenerationPort. Implementations stream
text chunks, stop producing chunks once the cancellation token is set, and
raise GenerationError on failure, flagging whether a retry could help.
"""

import asyncio
from typing import TYPE_CHECKING, AsyncIterator, Optional, Protocol

if TYPE_CHECKING:
    from instructorflow.core.prompts.request import StructuredRequest


class GenerationError(Exception):
    """Raised when text generation fails.

    Attributes:
        message: Error description (internal; never shown to learners).
        transient: True for timeouts, rate limits, 5xx and connection errors.
        model: Model that failed, if known.
        original_error: Underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        transient: bool,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.transient = transient
        self.model = model
        self.original_error = original_error
        super().__init__(message)


class CancellationToken:
    """Cooperative cancellation signal shared between the coordinator and a generation.

    Setting the token never interrupts a running generation; the generator
    checks it between chunks and the orchestrator checks the epoch before
    committing.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "superseded") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class GenerationPort(Protocol):
    """Streaming text generation with cancellation."""

    def generate_stream(
        self,
        request: "StructuredRequest",
        deadline: float,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Stream response text for a request.

        Args:
            request: Assembled request.
            deadline: Seconds the whole generation may take.
            cancel_token: Stop yielding once this is set.

        Raises:
            GenerationError: On provider failure.
        """
        ...
