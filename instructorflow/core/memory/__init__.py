# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner memory updates.

- InsightExtractor: derives LearningInsights and TeachingMetadata from one exchange
- MemoryUpdater: folds a committed interaction into LearnerMemory, idempotently

Example:
    from instructorflow.core.memory import InsightExtractor, MemoryUpdater

    insights, metadata = InsightExtractor().extract(text, response, concept="fractions")
    memory = MemoryUpdater().update(memory, interaction, insights)
"""

from instructorflow.core.memory.insights import (
    InsightExtractor,
    LearningInsights,
    ObservedMisconception,
)
from instructorflow.core.memory.updater import MemoryUpdateError, MemoryUpdater

__all__ = [
    "InsightExtractor",
    "LearningInsights",
    "ObservedMisconception",
    "MemoryUpdater",
    "MemoryUpdateError",
]
