# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for instructorflow.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
- clock: Injectable time source
- ids: Identifier generation
"""

from instructorflow.utils.clock import Clock, SystemClock
from instructorflow.utils.datetime import (
    ensure_utc,
    seconds_between,
    seconds_to_human,
    utc_now,
)
from instructorflow.utils.ids import new_id
from instructorflow.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "seconds_between",
    "seconds_to_human",
    # Clock / ids
    "Clock",
    "SystemClock",
    "new_id",
]
