# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tiered response validation."""

from instructorflow.core.validation.rules import (
    DEFAULT_RULES,
    ValidationContext,
    ValidationRule,
)
from instructorflow.core.validation.validator import TIER_ORDER, ResponseValidator

__all__ = [
    "ResponseValidator",
    "ValidationContext",
    "ValidationRule",
    "DEFAULT_RULES",
    "TIER_ORDER",
]
