# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tiered response validator.

Rules are grouped into three ordered tiers by severity:

- critical: any hit rejects the response; later tiers do not run
- high: any hit asks for a regeneration (default ceiling 2)
- medium: any hit asks for a regeneration (default ceiling 1)

Every rule in a tier that runs is evaluated so the regeneration request can
address all problems at once. When the ceiling for the deciding tier has
already been spent, a regenerate becomes a reject with exhausted=True and the
caller falls back to the profile's safe response.
"""

import logging
from typing import Iterable, Optional

from instructorflow.core.validation.rules import DEFAULT_RULES, ValidationContext, ValidationRule
from instructorflow.models.validation import (
    Severity,
    TierOutcome,
    ValidationAction,
    ValidationResult,
    Violation,
)

logger = logging.getLogger(__name__)

TIER_ORDER: tuple[Severity, ...] = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM)


class ResponseValidator:
    """Runs registered rules over a response and decides what to do with it.

    Example:
        >>> validator = ResponseValidator()
        >>> result = validator.validate(text, context)
        >>> if result.action == ValidationAction.REGENERATE:
        ...     request = assembler.assemble_fallback(request, result.violations)
    """

    def __init__(
        self,
        rules: Optional[Iterable[ValidationRule]] = None,
        high_regeneration_limit: int = 2,
        medium_regeneration_limit: int = 1,
    ) -> None:
        self._tiers: dict[Severity, list[ValidationRule]] = {s: [] for s in TIER_ORDER}
        self._limits = {
            Severity.HIGH: high_regeneration_limit,
            Severity.MEDIUM: medium_regeneration_limit,
        }
        for rule in DEFAULT_RULES if rules is None else rules:
            self.register(rule)

    def register(self, rule: ValidationRule) -> None:
        """Append a rule to the end of its severity's tier.

        Raises:
            ValueError: If a rule with the same id is already registered.
        """
        if rule.id in self.rule_ids():
            raise ValueError(f"Validation rule '{rule.id}' is already registered")
        self._tiers[rule.severity].append(rule)

    def rule_ids(self) -> list[str]:
        return [rule.id for severity in TIER_ORDER for rule in self._tiers[severity]]

    def regeneration_limit(self, severity: Severity) -> int:
        """Ceiling for a tier; critical hits are never regenerated."""
        return self._limits.get(severity, 0)

    def validate(self, text: str, context: ValidationContext) -> ValidationResult:
        """Validate one response.

        Args:
            text: Full response text.
            context: Validation context, including regenerations already used.

        Returns:
            ValidationResult with the action, all violations and tier outcomes.
        """
        violations: list[Violation] = []
        outcomes: list[TierOutcome] = []
        deciding: Optional[Severity] = None

        for severity in TIER_ORDER:
            if deciding == Severity.CRITICAL:
                outcomes.append(TierOutcome(severity=severity, ran=False))
                continue

            tier_hits = self._run_tier(severity, text, context)
            outcomes.append(TierOutcome(severity=severity, ran=True, violations=tuple(tier_hits)))
            violations.extend(tier_hits)
            if tier_hits and deciding is None:
                deciding = severity

        if deciding is None:
            return ValidationResult(action=ValidationAction.ACCEPT, tiers=tuple(outcomes))

        if deciding == Severity.CRITICAL:
            action, exhausted = ValidationAction.REJECT, False
        elif context.regenerations_used >= self.regeneration_limit(deciding):
            action, exhausted = ValidationAction.REJECT, True
        else:
            action, exhausted = ValidationAction.REGENERATE, False

        logger.debug(
            "Validation: action=%s, tier=%s, rules=%s, regenerations_used=%d",
            action.value,
            deciding.value,
            [v.rule_id for v in violations],
            context.regenerations_used,
        )
        return ValidationResult(
            action=action,
            violations=tuple(violations),
            tiers=tuple(outcomes),
            exhausted=exhausted,
        )

    def _run_tier(
        self,
        severity: Severity,
        text: str,
        context: ValidationContext,
    ) -> list[Violation]:
        hits: list[Violation] = []
        for rule in self._tiers[severity]:
            message = rule.check(text, context)
            if message:
                hits.append(Violation(rule_id=rule.id, severity=severity, message=message))
        return hits
