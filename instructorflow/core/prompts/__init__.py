# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured prompt assembly."""

from instructorflow.core.prompts.assembler import PromptAssembler, estimate_tokens
from instructorflow.core.prompts.request import (
    PromptSection,
    RequestKind,
    ScreenContext,
    SectionName,
    StructuredRequest,
    begin_marker,
    end_marker,
    escape_markers,
)
from instructorflow.core.prompts.templates import (
    PromptTemplates,
    default_templates,
    load_prompt_templates,
)

__all__ = [
    "PromptAssembler",
    "estimate_tokens",
    "PromptSection",
    "RequestKind",
    "ScreenContext",
    "SectionName",
    "StructuredRequest",
    "begin_marker",
    "end_marker",
    "escape_markers",
    "PromptTemplates",
    "default_templates",
    "load_prompt_templates",
]
