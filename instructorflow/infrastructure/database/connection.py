# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database engine management using SQLAlchemy async.

Uses SQLAlchemy 2.0 async API. SQLite (aiosqlite) is the default backend;
any async driver SQLAlchemy supports can be configured with DATABASE_URL.

Example:
    from instructorflow.infrastructure.database.connection import (
        create_storage_engine,
        check_database_connection,
    )

    engine = create_storage_engine(settings.database)
    assert await check_database_connection(engine)
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from instructorflow.infrastructure.storage.port import StorageError

if TYPE_CHECKING:
    from instructorflow.core.config.settings import DatabaseSettings


def create_storage_engine(database: "DatabaseSettings") -> AsyncEngine:
    """Create the async engine for the configured database.

    In-memory SQLite shares one connection across the engine so every
    session sees the same database.

    Args:
        database: Database settings.

    Returns:
        AsyncEngine bound to database.url.

    Raises:
        StorageError: If the engine cannot be created.
    """
    options: dict[str, Any] = {"echo": database.echo}

    if database.is_sqlite:
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database.url:
            options["poolclass"] = StaticPool
    else:
        options.update(
            pool_size=database.pool_size,
            max_overflow=database.max_overflow,
            pool_pre_ping=True,
            pool_recycle=1800,
        )

    try:
        return create_async_engine(database.url, **options)
    except SQLAlchemyError as e:
        raise StorageError("Failed to create database engine", e) from e


async def check_database_connection(engine: AsyncEngine) -> bool:
    """Check if the database is reachable.

    Returns:
        True if a trivial query succeeds, False otherwise.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
