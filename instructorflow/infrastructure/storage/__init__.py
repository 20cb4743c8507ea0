# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Storage port and adapters.

- StoragePort: Protocol the orchestrator persists through
- InMemoryStorage: process-local adapter for tests and development
- SQLStorage: SQLAlchemy async adapter
"""

from instructorflow.infrastructure.storage.memory import InMemoryStorage
from instructorflow.infrastructure.storage.port import StaleMemoryError, StorageError, StoragePort
from instructorflow.infrastructure.storage.sql import SQLStorage

__all__ = [
    "StoragePort",
    "StorageError",
    "StaleMemoryError",
    "InMemoryStorage",
    "SQLStorage",
]
