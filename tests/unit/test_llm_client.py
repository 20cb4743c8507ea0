# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the LiteLLM-backed generation client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from instructorflow.core.config.settings import LLMSettings
from instructorflow.core.intelligence.llm import CancellationToken, GenerationError, LLMClient
from instructorflow.core.prompts import PromptSection, SectionName, StructuredRequest

ACOMPLETION = "instructorflow.core.intelligence.llm.client.acompletion"


def make_chunk(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeStream:
    """Async iterator standing in for LiteLLM's stream wrapper."""

    def __init__(self, texts: list[str | None], error: Exception | None = None) -> None:
        self._chunks = [make_chunk(t) for t in texts]
        self._error = error
        self.closed = False

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> SimpleNamespace:
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def request_() -> StructuredRequest:
    return StructuredRequest(
        sections=(
            PromptSection(name=SectionName.SYSTEM, content="You are a tutor."),
            PromptSection(name=SectionName.USER_INPUT, content="is it 3/4?"),
        ),
        temperature=0.5,
    )


@pytest.fixture
def client() -> LLMClient:
    return LLMClient(model="ollama/test-model", max_tokens=100, llm_settings=LLMSettings())


async def drain(client: LLMClient, request: StructuredRequest, token: CancellationToken) -> list[str]:
    return [chunk async for chunk in client.generate_stream(request, 10.0, token)]


class TestGenerateStream:
    """Tests for LLMClient.generate_stream."""

    @pytest.mark.asyncio
    async def test_streams_content_chunks(self, client: LLMClient, request_: StructuredRequest) -> None:
        """Test that content chunks are yielded and empty deltas skipped."""
        stream = FakeStream(["Nice ", None, "work?"])

        with patch(ACOMPLETION, new=AsyncMock(return_value=stream)) as mock:
            chunks = await drain(client, request_, CancellationToken())

        assert chunks == ["Nice ", "work?"]
        assert stream.closed
        kwargs = mock.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["temperature"] == 0.5
        assert kwargs["timeout"] == 10.0
        assert kwargs["max_tokens"] == 100
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_stops_when_cancelled(self, client: LLMClient, request_: StructuredRequest) -> None:
        """Test that nothing more is yielded after cancellation."""
        token = CancellationToken()
        stream = FakeStream(["one ", "two ", "three"])
        received: list[str] = []

        with patch(ACOMPLETION, new=AsyncMock(return_value=stream)):
            async for chunk in client.generate_stream(request_, 10.0, token):
                received.append(chunk)
                token.cancel()

        assert received == ["one "]
        assert stream.closed

    @pytest.mark.asyncio
    async def test_cancelled_before_start_makes_no_call(
        self, client: LLMClient, request_: StructuredRequest
    ) -> None:
        """Test that a cancelled token skips the provider call."""
        token = CancellationToken()
        token.cancel()

        with patch(ACOMPLETION, new=AsyncMock()) as mock:
            chunks = await drain(client, request_, token)

        assert chunks == []
        mock.assert_not_called()


class TestErrorMapping:
    """Tests for provider error classification."""

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, client: LLMClient, request_: StructuredRequest) -> None:
        """Test that timeouts are retryable."""
        with patch(ACOMPLETION, new=AsyncMock(side_effect=TimeoutError("slow"))):
            with pytest.raises(GenerationError) as exc_info:
                await drain(client, request_, CancellationToken())

        assert exc_info.value.transient
        assert exc_info.value.model == "ollama/test-model"

    @pytest.mark.asyncio
    async def test_other_errors_are_permanent(self, client: LLMClient, request_: StructuredRequest) -> None:
        """Test that unknown errors are not retried."""
        with patch(ACOMPLETION, new=AsyncMock(side_effect=ValueError("bad request"))):
            with pytest.raises(GenerationError) as exc_info:
                await drain(client, request_, CancellationToken())

        assert not exc_info.value.transient
        assert isinstance(exc_info.value.original_error, ValueError)

    @pytest.mark.asyncio
    async def test_mid_stream_failure(self, client: LLMClient, request_: StructuredRequest) -> None:
        """Test that errors during streaming are mapped and the stream closed."""
        stream = FakeStream(["partial "], error=TimeoutError("stalled"))

        with patch(ACOMPLETION, new=AsyncMock(return_value=stream)):
            with pytest.raises(GenerationError) as exc_info:
                await drain(client, request_, CancellationToken())

        assert exc_info.value.transient
        assert stream.closed
