# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured request model.

A StructuredRequest is an ordered list of named sections. Each section is
wrapped in boundary markers when rendered:

    <<<BEGIN:SYSTEM>>>
    ...
    <<<END:SYSTEM>>>

Every dynamic value placed inside a section has already been escaped so it
cannot contain a marker; the markers in a rendered request are exactly the
ones the assembler wrote.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

MARKER_OPEN = "<<<"
MARKER_CLOSE = ">>>"
ESCAPED_OPEN = "&lt;&lt;&lt;"
ESCAPED_CLOSE = "&gt;&gt;&gt;"


class SectionName(str, Enum):
    SYSTEM = "system"
    PROFILE = "profile"
    CONTEXT = "context"
    HISTORY = "history"
    CORRECTION = "correction"
    USER_INPUT = "user_input"


class RequestKind(str, Enum):
    TEACHING = "teaching"
    HINT = "hint"


def escape_markers(text: str) -> str:
    """Neutralize boundary markers in untrusted text."""
    return text.replace(MARKER_OPEN, ESCAPED_OPEN).replace(MARKER_CLOSE, ESCAPED_CLOSE)


def begin_marker(name: SectionName) -> str:
    return f"{MARKER_OPEN}BEGIN:{name.value.upper()}{MARKER_CLOSE}"


def end_marker(name: SectionName) -> str:
    return f"{MARKER_OPEN}END:{name.value.upper()}{MARKER_CLOSE}"


class PromptSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: SectionName
    content: str

    def render(self) -> str:
        return f"{begin_marker(self.name)}\n{self.content.strip()}\n{end_marker(self.name)}"


class ScreenContext(BaseModel):
    """What the assembler needs to know about the screen being worked on."""

    model_config = ConfigDict(frozen=True)

    subject: str
    topic: str
    screen_type: str
    concept: str
    learning_objective: str = ""
    problem: str = ""
    instructions: str = ""
    attempts: int = 0


class StructuredRequest(BaseModel):
    """An assembled generation request.

    Attributes:
        kind: Teaching response or hint
        sections: Sections in render order; user_input is always last
        temperature: Sampling temperature
        attempt: 1 for the first generation, +1 per regeneration
        raw_input: Unescaped learner text, kept so regenerations can
            re-render the input section through the same escaping
        violation_ids: Rules the correction section addresses
    """

    model_config = ConfigDict(frozen=True)

    kind: RequestKind = RequestKind.TEACHING
    sections: tuple[PromptSection, ...]
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    attempt: int = 1
    raw_input: str = ""
    violation_ids: tuple[str, ...] = ()

    def section(self, name: SectionName) -> Optional[PromptSection]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def section_names(self) -> list[SectionName]:
        return [s.name for s in self.sections]

    def render(self) -> str:
        return "\n\n".join(section.render() for section in self.sections)

    def to_messages(self) -> list[dict[str, str]]:
        """Chat messages: every section but the input as system, the input as user."""
        instruction = [s for s in self.sections if s.name != SectionName.USER_INPUT]
        user = self.section(SectionName.USER_INPUT)
        messages = [{"role": "system", "content": "\n\n".join(s.render() for s in instruction)}]
        if user is not None:
            messages.append({"role": "user", "content": user.render()})
        return messages
