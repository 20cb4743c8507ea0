# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database engine management."""

from instructorflow.infrastructure.database.connection import (
    check_database_connection,
    create_storage_engine,
)

__all__ = [
    "create_storage_engine",
    "check_database_connection",
]
