# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Clock abstraction.

Orchestration code never calls datetime.now() directly; it asks a Clock so
that cooldowns, rate-limit windows and time-on-screen can be driven
deterministically in tests.
"""

import time
from datetime import datetime
from typing import Protocol

from instructorflow.utils.datetime import utc_now


class Clock(Protocol):
    """Source of wall-clock and monotonic time."""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC time."""
        ...

    def monotonic(self) -> float:
        """Return a monotonic reading in seconds."""
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return time.monotonic()
