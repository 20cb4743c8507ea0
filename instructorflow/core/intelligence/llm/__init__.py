# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM generation port and LiteLLM client.

Components:
- GenerationPort: Protocol the orchestrator streams responses through
- CancellationToken: Cooperative cancellation signal
- GenerationError: Failure with a transient flag
- LLMClient: GenerationPort implementation on LiteLLM
"""

from instructorflow.core.intelligence.llm.client import LLMClient
from instructorflow.core.intelligence.llm.port import (
    CancellationToken,
    GenerationError,
    GenerationPort,
)

__all__ = [
    "LLMClient",
    "GenerationPort",
    "GenerationError",
    "CancellationToken",
]
