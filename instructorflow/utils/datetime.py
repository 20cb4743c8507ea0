# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for instructorflow.

Every timestamp the pipeline compares (cooldowns, rate-limit windows,
blocked_until, time on screen) is timezone-aware UTC. SQLite hands back
naive datetimes, so values read from storage go through ensure_utc()
before any arithmetic.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalize a datetime to aware UTC.

    Naive values are taken to be UTC already; aware values are converted.
    None passes through.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def seconds_between(start: datetime, end: datetime) -> float:
    """Seconds elapsed from start to end; negative when end is earlier."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds()


def seconds_to_human(seconds: int) -> str:
    """Render a wait or duration for learner-facing messages.

    Examples:
        >>> seconds_to_human(45)
        '45s'
        >>> seconds_to_human(65)
        '1m 5s'
        >>> seconds_to_human(5400)
        '1h 30m'
    """
    if seconds < 60:
        return f"{seconds}s"

    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"
