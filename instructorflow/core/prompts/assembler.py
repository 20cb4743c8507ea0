# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prompt assembler.

Builds structurally isolated requests from an instructor profile snapshot,
learner memory, screen context, conversation history and the learner's
current input. Sections are emitted in a fixed order:

1. system: identity and non-negotiable rules (never contains learner text)
2. profile: voice and pedagogical behavior
3. context: screen and learner context
4. history: recent turns, trimmed to a token budget
5. correction: only in regeneration requests
6. user_input: the learner's current text, escaped

Usage:
    from instructorflow.core.prompts import PromptAssembler

    assembler = PromptAssembler()
    request = assembler.assemble(profile, memory, screen_context, history, "is it 7?")
    retry = assembler.assemble_fallback(request, result.violations)
"""

import logging
from typing import Optional, Sequence

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.core.prompts.request import (
    PromptSection,
    RequestKind,
    ScreenContext,
    SectionName,
    StructuredRequest,
    escape_markers,
)
from instructorflow.core.prompts.templates import PromptTemplates, load_prompt_templates
from instructorflow.models.interaction import Interaction
from instructorflow.models.memory import LearnerMemory
from instructorflow.models.validation import Violation

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token estimate, about four characters per token."""
    return len(text) // CHARS_PER_TOKEN + 1


class PromptAssembler:
    """Assembles StructuredRequests for teaching responses and hints.

    Attributes:
        templates: Section templates.
        history_token_budget: Approximate tokens allowed for history.
        base_temperature: Temperature for first generations.
        temperature_step: Reduction applied per regeneration.
    """

    def __init__(
        self,
        templates: Optional[PromptTemplates] = None,
        history_token_budget: int = 1500,
        base_temperature: float = 0.7,
        temperature_step: float = 0.2,
    ) -> None:
        self._templates = templates or load_prompt_templates()
        self._history_token_budget = history_token_budget
        self._base_temperature = base_temperature
        self._temperature_step = temperature_step

    @property
    def templates(self) -> PromptTemplates:
        return self._templates

    def assemble(
        self,
        profile: InstructorProfile,
        memory: Optional[LearnerMemory],
        screen_context: ScreenContext,
        history: Sequence[Interaction],
        current_input: str,
    ) -> StructuredRequest:
        """Build the request for a learner submission.

        Args:
            profile: Session's profile snapshot.
            memory: Learner memory, if any exists yet.
            screen_context: Screen being worked on.
            history: Earlier committed interactions, oldest first.
            current_input: Raw learner text.

        Returns:
            StructuredRequest with attempt=1.
        """
        sections = [
            *self._instruction_sections(profile, memory, screen_context),
            PromptSection(name=SectionName.HISTORY, content=self._render_history(history)),
            self._user_section(current_input),
        ]
        return StructuredRequest(
            kind=RequestKind.TEACHING,
            sections=tuple(sections),
            temperature=self._base_temperature,
            attempt=1,
            raw_input=current_input,
        )

    def assemble_fallback(
        self,
        prior: StructuredRequest,
        violations: Sequence[Violation],
    ) -> StructuredRequest:
        """Derive a stricter request after a draft failed validation.

        Adds (or replaces) a correction section listing the violations,
        lowers the temperature and bumps the attempt number. The input
        section is rebuilt from the raw learner text rather than copied, so
        it goes through the same escaping as the first request.
        """
        correction = PromptSection(
            name=SectionName.CORRECTION,
            content=self._templates.correction.format(
                violations=self._render_violations(violations),
            ),
        )

        sections: list[PromptSection] = []
        for section in prior.sections:
            if section.name in (SectionName.CORRECTION, SectionName.USER_INPUT):
                continue
            sections.append(section)
        sections.append(correction)

        if prior.kind == RequestKind.TEACHING:
            sections.append(self._user_section(prior.raw_input))
        else:
            user = prior.section(SectionName.USER_INPUT)
            if user is not None:
                sections.append(user)

        temperature = max(prior.temperature - self._temperature_step, 0.0)
        logger.debug(
            "Fallback request assembled: attempt=%d, temperature=%.2f, violations=%s",
            prior.attempt + 1,
            temperature,
            [v.rule_id for v in violations],
        )
        return StructuredRequest(
            kind=prior.kind,
            sections=tuple(sections),
            temperature=temperature,
            attempt=prior.attempt + 1,
            raw_input=prior.raw_input,
            violation_ids=tuple(v.rule_id for v in violations),
        )

    def assemble_hint(
        self,
        profile: InstructorProfile,
        memory: Optional[LearnerMemory],
        screen_context: ScreenContext,
        level: int,
    ) -> StructuredRequest:
        """Build the request for a hint at a given level (1-3)."""
        sections = [
            *self._instruction_sections(profile, memory, screen_context),
            PromptSection(
                name=SectionName.USER_INPUT,
                content=self._templates.hint.format(level=level),
            ),
        ]
        return StructuredRequest(
            kind=RequestKind.HINT,
            sections=tuple(sections),
            temperature=max(self._base_temperature - self._temperature_step, 0.0),
            attempt=1,
        )

    def _instruction_sections(
        self,
        profile: InstructorProfile,
        memory: Optional[LearnerMemory],
        screen_context: ScreenContext,
    ) -> list[PromptSection]:
        system = self._templates.system.format(
            identity=profile.get_system_prompt_segment(),
            subject=escape_markers(screen_context.subject),
            topic=escape_markers(screen_context.topic),
        )
        style = self._templates.profile.format(style=profile.get_style_segment())
        context = self._templates.context.format(
            screen_type=screen_context.screen_type,
            concept=escape_markers(screen_context.concept),
            learning_objective=escape_markers(screen_context.learning_objective),
            problem=escape_markers(screen_context.problem),
            instructions=escape_markers(screen_context.instructions),
            attempts=screen_context.attempts,
            learner_context=self._render_learner_context(memory),
        )
        return [
            PromptSection(name=SectionName.SYSTEM, content=system),
            PromptSection(name=SectionName.PROFILE, content=style),
            PromptSection(name=SectionName.CONTEXT, content=context),
        ]

    def _user_section(self, raw_input: str) -> PromptSection:
        return PromptSection(
            name=SectionName.USER_INPUT,
            content=self._templates.user_input.format(input=escape_markers(raw_input)),
        )

    def _render_learner_context(self, memory: Optional[LearnerMemory]) -> str:
        if memory is None:
            return "Learner context: new learner, nothing recorded yet."

        lines = ["Learner context:"]
        if memory.learned_concepts:
            concepts = ", ".join(
                f"{escape_markers(c.concept)} ({c.mastery_level.value})"
                for c in memory.learned_concepts.values()
            )
            lines.append(f"- Concepts: {concepts}")

        unresolved = memory.unresolved_misconceptions()
        if unresolved:
            lines.append("- Unresolved misconceptions:")
            for m in unresolved:
                lines.append(
                    f"  - {escape_markers(m.concept)}: {escape_markers(m.incorrect_understanding)}"
                )

        if memory.strengths:
            lines.append(f"- Strengths: {escape_markers(', '.join(memory.strengths))}")
        if memory.weaknesses:
            lines.append(f"- Weaknesses: {escape_markers(', '.join(memory.weaknesses))}")

        if len(lines) == 1:
            lines.append("- Nothing recorded yet.")
        return "\n".join(lines)

    def _render_history(self, history: Sequence[Interaction]) -> str:
        budget = self._history_token_budget
        turns: list[str] = []
        used = 0

        for interaction in reversed(history):
            turn = f"Learner: {escape_markers(interaction.input_text)}"
            if interaction.result_text:
                turn += f"\nInstructor: {escape_markers(interaction.result_text)}"
            cost = estimate_tokens(turn)
            if used + cost > budget:
                break
            turns.append(turn)
            used += cost

        if not turns:
            return self._templates.history_empty

        if len(turns) < len(history):
            logger.debug("History trimmed: kept=%d, total=%d", len(turns), len(history))

        return "\n\n".join(reversed(turns))

    @staticmethod
    def _render_violations(violations: Sequence[Violation]) -> str:
        if not violations:
            return "- The draft did not meet the response rules."
        return "\n".join(f"- [{v.rule_id}] {v.message}" for v in violations)
