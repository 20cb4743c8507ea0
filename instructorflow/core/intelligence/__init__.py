# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intelligence module for AI-powered operations.

Text generation goes through LiteLLM, enabling Ollama, OpenAI, Anthropic,
Google and many other providers behind one GenerationPort.

Example:
    >>> from instructorflow.core.intelligence import LLMClient
    >>> client = LLMClient()
"""

from instructorflow.core.intelligence.llm import (
    CancellationToken,
    GenerationError,
    GenerationPort,
    LLMClient,
)

__all__ = [
    "LLMClient",
    "GenerationPort",
    "GenerationError",
    "CancellationToken",
]
