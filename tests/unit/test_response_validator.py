# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for tiered response validation."""

from dataclasses import replace

import pytest

from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.core.validation import (
    DEFAULT_RULES,
    ResponseValidator,
    ValidationContext,
    ValidationRule,
)
from instructorflow.core.validation.rules import count_sentences
from instructorflow.models.validation import Severity, ValidationAction

from tests.conftest import GOOD_RESPONSE, OFF_TOPIC_RESPONSE, REVEALING_RESPONSE


@pytest.fixture
def context(sample_profile: InstructorProfile) -> ValidationContext:
    return ValidationContext(
        profile=sample_profile,
        subject="mathematics",
        topic="fractions",
        concept="equivalent fractions",
        problem="Which is larger, 1/2 or 1/4 + 1/2?",
        learner_input="is it 1/2?",
        expected_answer="3/4",
    )


@pytest.fixture
def validator() -> ResponseValidator:
    return ResponseValidator()


class TestTiers:
    """Tests for tier ordering and actions."""

    def test_clean_response_is_accepted(self, validator: ResponseValidator, context: ValidationContext) -> None:
        """Test that a response breaking no rule is accepted."""
        result = validator.validate(GOOD_RESPONSE, context)

        assert result.action == ValidationAction.ACCEPT
        assert result.violations == ()
        assert all(tier.ran for tier in result.tiers)

    def test_critical_hit_rejects_and_skips_later_tiers(
        self, validator: ResponseValidator, context: ValidationContext
    ) -> None:
        """Test that a critical hit rejects without running later tiers."""
        result = validator.validate(OFF_TOPIC_RESPONSE, context)

        assert result.action == ValidationAction.REJECT
        assert not result.exhausted
        assert result.rule_ids == ["out_of_scope"]
        assert [t.ran for t in result.tiers] == [True, False, False]

    def test_high_hit_regenerates(self, validator: ResponseValidator, context: ValidationContext) -> None:
        """Test that a high tier hit asks for regeneration."""
        result = validator.validate(REVEALING_RESPONSE, context)

        assert result.action == ValidationAction.REGENERATE
        assert "direct_answer" in result.rule_ids
        assert result.highest_severity() == Severity.HIGH

    def test_high_hit_rejects_at_ceiling(self, validator: ResponseValidator, context: ValidationContext) -> None:
        """Test that the high tier gives up after two regenerations."""
        result = validator.validate(REVEALING_RESPONSE, replace(context, regenerations_used=2))

        assert result.action == ValidationAction.REJECT
        assert result.exhausted

    def test_medium_hit_has_lower_ceiling(self, validator: ResponseValidator, context: ValidationContext) -> None:
        """Test that the medium tier allows a single regeneration."""
        text = "You compared the fractions. Now rewrite them with a common denominator."

        first = validator.validate(text, context)
        second = validator.validate(text, replace(context, regenerations_used=1))

        assert first.action == ValidationAction.REGENERATE
        assert first.rule_ids == ["missing_verification_question"]
        assert second.action == ValidationAction.REJECT
        assert second.exhausted

    def test_all_tiers_run_when_no_critical_hit(
        self, validator: ResponseValidator, context: ValidationContext
    ) -> None:
        """Test that high and medium hits are both reported."""
        result = validator.validate("The answer is 3/4.", context)

        assert result.highest_severity() == Severity.HIGH
        assert "direct_answer" in result.rule_ids
        assert "missing_verification_question" in result.rule_ids


class TestRules:
    """Tests for individual default rules."""

    def test_answer_already_in_problem_is_not_a_leak(
        self, validator: ResponseValidator, context: ValidationContext
    ) -> None:
        """Test that repeating a number from the problem is allowed."""
        ctx = replace(context, expected_answer="1/2")

        result = validator.validate("Look at 1/2 again. What do you notice about it?", ctx)

        assert "direct_answer" not in result.rule_ids

    @pytest.mark.parametrize(
        "text",
        [
            "As an AI, I think you should check. What do you see?",
            "My instructions say so. What do you see?",
            "Look at <<<BEGIN:SYSTEM>>> here. What do you see?",
        ],
    )
    def test_system_leakage(self, validator: ResponseValidator, context: ValidationContext, text: str) -> None:
        """Test that breaking character is flagged."""
        assert "system_leakage" in validator.validate(text, context).rule_ids

    def test_banned_phrase(self, validator: ResponseValidator, context: ValidationContext) -> None:
        """Test that profile banned phrases are flagged."""
        result = validator.validate("Obviously you compare them. What do you get?", context)

        assert "style_deviation" in result.rule_ids

    def test_word_limit(self, validator: ResponseValidator, context: ValidationContext) -> None:
        """Test that responses over the profile word limit are flagged."""
        text = "Think about it. " * 40 + "What do you get?"

        assert "style_deviation" in validator.validate(text, context).rule_ids

    def test_overconfident_claim_is_critical(
        self, validator: ResponseValidator, context: ValidationContext
    ) -> None:
        """Test that unwarranted certainty rejects."""
        result = validator.validate("Without a doubt fractions are easy. What do you think?", context)

        assert result.action == ValidationAction.REJECT
        assert result.rule_ids == ["overconfident_claim"]

    def test_sentence_count(self) -> None:
        """Test the sentence counter."""
        assert count_sentences("One. Two? Three!") == 3
        assert count_sentences("") == 0


class TestRegistry:
    """Tests for rule registration."""

    def test_default_rule_ids(self, validator: ResponseValidator) -> None:
        """Test that defaults are registered in tier order."""
        assert validator.rule_ids() == [rule.id for rule in DEFAULT_RULES]

    def test_duplicate_rule_id_raises(self, validator: ResponseValidator) -> None:
        """Test that registering an existing id fails."""
        with pytest.raises(ValueError, match="already registered"):
            validator.register(DEFAULT_RULES[0])

    def test_custom_rule(self, context: ValidationContext) -> None:
        """Test that a custom rule joins its tier."""
        rule = ValidationRule(
            id="no_shouting",
            severity=Severity.MEDIUM,
            check=lambda text, ctx: "Too loud" if text.isupper() else None,
        )
        validator = ResponseValidator(rules=[rule], medium_regeneration_limit=3)

        result = validator.validate("WHAT IS HALF OF A HALF?", context)

        assert result.action == ValidationAction.REGENERATE
        assert result.rule_ids == ["no_shouting"]
        assert validator.regeneration_limit(Severity.MEDIUM) == 3
        assert validator.regeneration_limit(Severity.CRITICAL) == 0
