"""ASGI lifespan middleware for storage setup and the poller.

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(middleware=[SchedulerLifespan(scheduler)])

"""

from __future__ import annotations

import typing as typ

from reportflow.logging import get_logger, log_info
from reportflow.storage.models import init_storage

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from reportflow.scheduler.poller import ReportScheduler

__all__ = ["SchedulerLifespan", "StorageLifespan"]

logger = get_logger(__name__)


class SchedulerLifespan:
    """Start the poller on ASGI startup and stop it on shutdown.

    Shutdown waits for in-flight executions so no ledger entry is left
    ``RUNNING`` by a clean stop.
    """

    def __init__(self, scheduler: ReportScheduler, *, autostart: bool = True) -> None:
        """Store the poller and whether it should start with the app."""
        self._scheduler = scheduler
        self._autostart = autostart

    async def process_startup(self, _scope: object, _event: object) -> None:
        """Start the poller loop."""
        if not self._autostart:
            log_info(logger, "Report scheduler disabled; manual triggers only")
            return
        await self._scheduler.start()

    async def process_shutdown(self, _scope: object, _event: object) -> None:
        """Stop the poller loop and drain background executions."""
        await self._scheduler.stop()


class StorageLifespan:
    """Create missing tables on startup and dispose the engine on shutdown."""

    def __init__(self, engine: AsyncEngine, *, create_tables: bool = True) -> None:
        """Store the engine and whether tables should be created."""
        self._engine = engine
        self._create_tables = create_tables

    async def process_startup(self, _scope: object, _event: object) -> None:
        """Create tables when enabled."""
        if self._create_tables:
            await init_storage(self._engine)

    async def process_shutdown(self, _scope: object, _event: object) -> None:
        """Return pooled connections."""
        await self._engine.dispose()
