# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identifier generation."""

import uuid


def new_id(prefix: str) -> str:
    """Generate a unique identifier with a readable prefix.

    Args:
        prefix: Short entity prefix such as "ses", "scr" or "int".

    Returns:
        Identifier like "int_3f2a9c0d4b8e4f61a7c2d9e0b1f4a6c3".
    """
    return f"{prefix}_{uuid.uuid4().hex}"
