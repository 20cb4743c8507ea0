# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Validation rules.

Each rule is a ValidationRule(id, severity, check). check(text, context)
returns None when the response passes and a short message when it does not.
The message is fed back to the model in the correction section of a
regeneration request, so it should say what to fix.

The bodies here are deliberately simple lexical heuristics; deployments can
register sharper rules on the validator without touching the pipeline.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.models.validation import Severity

RuleCheck = Callable[[str, "ValidationContext"], Optional[str]]


@dataclass(frozen=True)
class ValidationContext:
    """Everything a rule may look at besides the response text.

    Attributes:
        profile: Session's profile snapshot.
        subject: Session subject.
        topic: Session topic.
        concept: Concept of the current screen.
        problem: Problem statement of the current screen.
        learner_input: Raw learner text the response answers.
        expected_answer: Reference answer, if the screen has one.
        regenerations_used: Regenerations already spent on this interaction.
        extra_forbidden_topics: Topics forbidden for this screen only.
    """

    profile: InstructorProfile
    subject: str
    topic: str
    concept: str = ""
    problem: str = ""
    learner_input: str = ""
    expected_answer: Optional[str] = None
    regenerations_used: int = 0
    extra_forbidden_topics: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ValidationRule:
    id: str
    severity: Severity
    check: RuleCheck
    description: str = ""


def _word_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(term.strip())}(?!\w)", re.IGNORECASE)


_UNSAFE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(kill|hurt|harm)\s+(yourself|himself|herself|themselves)\b",
        r"\bhow\s+to\s+(make|build)\s+(a\s+)?(bomb|explosive|weapon)s?\b",
        r"\bself[- ]harm\b",
        r"\bsuicide\b",
        r"\b(stupid|idiot|dumb)\b",
    )
]

_OVERCONFIDENT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bwithout\s+(a|any)\s+doubt\b",
        r"\b100\s?%\s+(sure|certain|correct)\b",
        r"\babsolutely\s+(certain|guaranteed)\b",
        r"\bit\s+is\s+a\s+(proven\s+)?fact\s+that\b",
        r"\bguaranteed\s+to\s+be\b",
        r"\bthere\s+is\s+no\s+other\s+(way|answer)\b",
    )
]

_REVEAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bthe\s+(correct\s+|final\s+|right\s+)?answer\s+is\b",
        r"\bthe\s+solution\s+is\b",
        r"\bhere\s+is\s+the\s+(full\s+)?solution\b",
    )
]

_LEAKAGE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bas\s+an\s+ai\b",
        r"\bi\s*(am|'m)\s+(an?\s+)?(ai|artificial intelligence|language model|chatbot|bot)\b",
        r"\blanguage\s+model\b",
        r"\bsystem\s+prompt\b",
        r"\bmy\s+(instructions|programming|training\s+data)\b",
        r"<<<\s*(BEGIN|END)\s*:",
        r"\bUSER_INPUT\b",
    )
]

_SENTENCE_SPLIT = re.compile(r"[.!?]+(?:\s+|$)")


def check_out_of_scope(text: str, context: ValidationContext) -> Optional[str]:
    topics = [*context.profile.forbidden_topics, *context.extra_forbidden_topics]
    hits = [t for t in topics if t.strip() and _word_pattern(t).search(text)]
    if hits:
        return (
            f"Response drifts to topics outside {context.subject}/{context.topic}: "
            f"{', '.join(hits)}"
        )
    return None


def check_unsafe_content(text: str, context: ValidationContext) -> Optional[str]:
    for pattern in _UNSAFE_PATTERNS:
        if pattern.search(text):
            return "Response contains unsafe or demeaning content"
    return None


def check_overconfident_claim(text: str, context: ValidationContext) -> Optional[str]:
    for pattern in _OVERCONFIDENT_PATTERNS:
        match = pattern.search(text)
        if match:
            return f"Response states a claim with unwarranted certainty ('{match.group(0)}')"
    return None


def check_direct_answer(text: str, context: ValidationContext) -> Optional[str]:
    for pattern in _REVEAL_PATTERNS:
        if pattern.search(text):
            return "Response announces the answer instead of guiding the learner to it"

    answer = (context.expected_answer or "").strip()
    if not answer:
        return None
    # An answer already visible in the problem statement reveals nothing
    pattern = _word_pattern(answer)
    if pattern.search(text) and not pattern.search(context.problem):
        return "Response contains the expected answer; guide the learner instead"
    return None


def check_system_leakage(text: str, context: ValidationContext) -> Optional[str]:
    for pattern in _LEAKAGE_PATTERNS:
        if pattern.search(text):
            return "Response breaks character or refers to the system or its instructions"
    return None


def check_style_deviation(text: str, context: ValidationContext) -> Optional[str]:
    profile = context.profile
    banned = [p for p in profile.banned_phrases if p.strip() and p.lower() in text.lower()]
    if banned:
        return f"Response uses phrases that break the instructor's style: {', '.join(banned)}"

    words = len(text.split())
    if words > profile.behavior.max_response_words:
        return (
            f"Response is {words} words; keep it under "
            f"{profile.behavior.max_response_words}"
        )
    return None


def check_verification_question(text: str, context: ValidationContext) -> Optional[str]:
    if not context.profile.behavior.require_verification_question:
        return None
    if "?" in text:
        return None
    return "Response does not ask a question that checks the learner's understanding"


def count_sentences(text: str) -> int:
    return len([s for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()])


def check_response_structure(text: str, context: ValidationContext) -> Optional[str]:
    if not text.strip():
        return "Response is empty"
    required = min(2, len(context.profile.response_structure))
    if count_sentences(text) < required:
        return (
            "Response is too thin; follow the shape "
            f"{' -> '.join(context.profile.response_structure)}"
        )
    return None


DEFAULT_RULES: tuple[ValidationRule, ...] = (
    ValidationRule("out_of_scope", Severity.CRITICAL, check_out_of_scope, "Stays within subject and topic"),
    ValidationRule("unsafe_content", Severity.CRITICAL, check_unsafe_content, "No unsafe or demeaning content"),
    ValidationRule("overconfident_claim", Severity.CRITICAL, check_overconfident_claim, "No unwarranted certainty"),
    ValidationRule("direct_answer", Severity.HIGH, check_direct_answer, "Never hands over the answer"),
    ValidationRule("system_leakage", Severity.HIGH, check_system_leakage, "Stays in character"),
    ValidationRule("style_deviation", Severity.HIGH, check_style_deviation, "Matches the profile's style"),
    ValidationRule(
        "missing_verification_question",
        Severity.MEDIUM,
        check_verification_question,
        "Checks understanding",
    ),
    ValidationRule("response_structure", Severity.MEDIUM, check_response_structure, "Follows the response shape"),
)
