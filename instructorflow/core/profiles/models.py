# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Instructor profile data models for instructorflow.

A profile determines HOW the instructor talks to the learner: identity,
voice, pedagogical behavior, response shape and the canned texts used when
generation cannot be trusted. Profiles are immutable; a session keeps a
snapshot taken at creation so edits to the profile store never change an
instructor mid-session.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Tone(str, Enum):
    """Voice tone options for instructor communication."""

    FORMAL = "formal"
    SUPPORTIVE = "supportive"
    CHALLENGING = "challenging"
    FRIENDLY = "friendly"
    PROFESSIONAL = "professional"
    WARM = "warm"
    CALM = "calm"
    ENCOURAGING = "encouraging"


class Formality(str, Enum):
    """Formality level options."""

    FORMAL = "formal"
    NEUTRAL = "neutral"
    INFORMAL = "informal"


class EmojiUsage(str, Enum):
    """Emoji usage level options."""

    NONE = "none"
    MINIMAL = "minimal"
    MODERATE = "moderate"


class CorrectionStyle(str, Enum):
    """How the instructor responds to a wrong answer."""

    DIRECT = "direct"
    GENTLE = "gentle"
    EXPLORATORY = "exploratory"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class ProfileIdentity(_FrozenModel):
    """The instructor's identity and character.

    Attributes:
        role: Role description (e.g., "Socratic mathematics guide")
        character: Personality traits and teaching stance
        expertise: Optional areas of expertise
    """

    role: str = Field(..., min_length=1)
    character: str = Field(..., min_length=1)
    expertise: tuple[str, ...] = ()


class ProfileVoice(_FrozenModel):
    """How the instructor sounds."""

    tone: Tone = Tone.SUPPORTIVE
    formality: Formality = Formality.NEUTRAL
    language: str = "en"
    emoji_usage: EmojiUsage = EmojiUsage.NONE


class ProfileBehavior(_FrozenModel):
    """Pedagogical behavior settings.

    Attributes:
        socratic_tendency: How much to lead with questions (0-1)
        hint_eagerness: How quickly to offer hints (0-1, lower = more patient)
        correction_style: How to handle wrong answers
        max_response_words: Upper bound on words per response
        require_verification_question: Every response must end by checking understanding
    """

    socratic_tendency: float = Field(default=0.7, ge=0.0, le=1.0)
    hint_eagerness: float = Field(default=0.3, ge=0.0, le=1.0)
    correction_style: CorrectionStyle = CorrectionStyle.GENTLE
    max_response_words: int = Field(default=180, gt=0)
    require_verification_question: bool = True


class ProfileTemplates(_FrozenModel):
    """Canned texts that never go through the model.

    safe_fallback is what the learner sees whenever a response cannot be
    generated or validated; it must never be empty.
    """

    safe_fallback: str = Field(
        default=(
            "Let's slow down and look at this together. "
            "Can you tell me, in your own words, what the problem is asking?"
        ),
        min_length=1,
    )
    hint_intro: str = "Here's a nudge:"
    level_hints: tuple[str, ...] = (
        "Re-read the problem and underline what it asks you to find.",
        "Think about which part of {concept} applies here and try the first step.",
        "Work through the first step of {concept} carefully, then check your result.",
    )


class InstructorProfile(_FrozenModel):
    """Complete instructor profile definition.

    Attributes:
        id: Unique identifier for the profile
        name: Display name
        description: Brief description
        identity: Identity and character
        voice: How the instructor communicates
        behavior: Pedagogical behavior settings
        teaching_patterns: Techniques the instructor favors
        guidance_style: One-line summary of how the instructor guides
        response_structure: Ordered parts every response should contain
        question_patterns: Phrases the instructor uses to check understanding
        forbidden_topics: Topics the instructor must never discuss
        banned_phrases: Phrases that break the instructor's style
        templates: Canned texts
        enabled: Whether the profile can be selected for new sessions
    """

    id: str = Field(..., min_length=1, pattern=r"^[a-z][a-z0-9_]*$")
    name: str = Field(..., min_length=1)
    description: str = ""
    identity: ProfileIdentity
    voice: ProfileVoice = Field(default_factory=ProfileVoice)
    behavior: ProfileBehavior = Field(default_factory=ProfileBehavior)
    teaching_patterns: tuple[str, ...] = ()
    guidance_style: str = "Guide the learner toward the answer with questions."
    response_structure: tuple[str, ...] = ("acknowledge", "guide", "check")
    question_patterns: tuple[str, ...] = (
        "Can you explain",
        "What do you think",
        "How would you",
        "Why do you think",
    )
    forbidden_topics: tuple[str, ...] = ()
    banned_phrases: tuple[str, ...] = ()
    templates: ProfileTemplates = Field(default_factory=ProfileTemplates)
    enabled: bool = True

    def get_system_prompt_segment(self) -> str:
        """Describe the instructor's identity for the system section of a prompt."""
        parts = [
            f"You are {self.identity.role}.",
            "",
            "Character:",
            self.identity.character,
        ]
        if self.identity.expertise:
            parts.append("")
            parts.append(f"Areas of expertise: {', '.join(self.identity.expertise)}")
        return "\n".join(parts)

    def get_style_segment(self) -> str:
        """Describe voice and behavior for the profile section of a prompt."""
        parts = [
            "Communication Style:",
            f"- Tone: {self.voice.tone.value}",
            f"- Formality: {self.voice.formality.value}",
            f"- Language: {self.voice.language}",
            f"- Emoji usage: {self.voice.emoji_usage.value}",
            "",
            "Teaching Behavior:",
            f"- Socratic questioning tendency: {self.behavior.socratic_tendency:.0%}",
            f"- Correction style: {self.behavior.correction_style.value}",
            f"- Keep responses under {self.behavior.max_response_words} words",
            f"- Guidance: {self.guidance_style}",
        ]
        if self.teaching_patterns:
            parts.append(f"- Preferred techniques: {', '.join(self.teaching_patterns)}")
        if self.response_structure:
            parts.append(f"- Response shape: {' -> '.join(self.response_structure)}")
        if self.behavior.require_verification_question:
            parts.append("- End every response with a question that checks understanding")
        return "\n".join(parts)

    def hint_text(self, level: int, concept: str) -> str:
        """Render the canned hint for a level (1-based), clamped to the last template.

        Args:
            level: Requested hint level.
            concept: Concept name substituted into the template.

        Returns:
            Hint text prefixed with the profile's hint intro.
        """
        hints = self.templates.level_hints
        if not hints:
            return f"{self.templates.hint_intro} Think about {concept} step by step."
        index = min(max(level, 1), len(hints)) - 1
        body = hints[index].replace("{concept}", concept)
        return f"{self.templates.hint_intro} {body}"
