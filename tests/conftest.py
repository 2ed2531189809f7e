"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from reportflow.schedules.service import ScheduleService
from reportflow.storage import ScheduleRepository, init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

FROZEN_NOW = dt.datetime(2024, 7, 14, 8, 0, tzinfo=dt.UTC)


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine with every reportflow table."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reportflow_test.db'}"
    )
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def repository(
    session_factory: async_sessionmaker[AsyncSession],
) -> ScheduleRepository:
    """Return a repository bound to the test database."""
    return ScheduleRepository(session_factory)


@pytest.fixture
def schedule_service(
    session_factory: async_sessionmaker[AsyncSession],
) -> ScheduleService:
    """Return a schedule service whose clock is frozen at ``FROZEN_NOW``."""
    return ScheduleService(session_factory, clock=lambda: FROZEN_NOW)
