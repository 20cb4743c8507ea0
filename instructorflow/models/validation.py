# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Validation outcome models shared by the validator and stored interactions."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Severity(str, Enum):
    """Violation severity. Each validation tier carries exactly one."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class ValidationAction(str, Enum):
    """What the pipeline should do with a response."""

    ACCEPT = "accept"
    REGENERATE = "regenerate"
    REJECT = "reject"


class Violation(BaseModel):
    """One failed check against a response.

    Attributes:
        rule_id: Identifier of the rule that fired (e.g. "direct_answer")
        severity: Severity of the tier the rule belongs to
        message: Description suitable for a regeneration instruction
    """

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    message: str


class TierOutcome(BaseModel):
    """Result of running one tier."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    ran: bool
    violations: tuple[Violation, ...] = ()


class ValidationResult(BaseModel):
    """Outcome of validating one response.

    Attributes:
        action: accept, regenerate or reject
        violations: Every violation found, in tier then registration order
        tiers: Per-tier outcome; tiers after a critical hit have ran=False
        exhausted: True when a regenerate was downgraded to reject because
            the applicable regeneration ceiling had been used
    """

    model_config = ConfigDict(frozen=True)

    action: ValidationAction
    violations: tuple[Violation, ...] = ()
    tiers: tuple[TierOutcome, ...] = ()
    exhausted: bool = False

    @property
    def accepted(self) -> bool:
        return self.action == ValidationAction.ACCEPT

    @property
    def rule_ids(self) -> list[str]:
        return [v.rule_id for v in self.violations]

    def highest_severity(self) -> Severity | None:
        for severity in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM):
            if any(v.severity == severity for v in self.violations):
                return severity
        return None

