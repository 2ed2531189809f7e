"""Dramatiq actor for queue-dispatched report executions.

Deployments that hand manual runs to a worker pool enqueue
:func:`execute_schedule_job`; the worker builds the same orchestrator the
HTTP process uses and runs the schedule once.

Usage
-----
>>> execute_schedule_job.send(
...     database_url="postgresql+asyncpg://...",
...     schedule_id="550e8400-e29b-41d4-a716-446655440000",
...     tenant="example.myshopify.com",
... )

"""

from __future__ import annotations

import asyncio
import threading

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from reportflow.storage.models import ExecutionTrigger

from ._broker import ensure_broker_configured
from .factory import build_execution_service
from .service import ReportExecutionService

type SessionFactory = async_sessionmaker[AsyncSession]

_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SERVICE_CACHE: dict[str, ReportExecutionService] = {}
_CACHE_LOCK = threading.Lock()

# The decorator resolves the global broker at import time.
ensure_broker_configured()


def _get_or_create_service(database_url: str) -> ReportExecutionService:
    """Return the cached orchestrator for ``database_url``.

    Thread-safe: Dramatiq runs actors on several worker threads.
    """
    with _CACHE_LOCK:
        if database_url not in _SERVICE_CACHE:
            if database_url not in _ENGINE_CACHE:
                _ENGINE_CACHE[database_url] = create_async_engine(database_url)
            engine = _ENGINE_CACHE[database_url]
            session_factory: SessionFactory = async_sessionmaker(
                engine, expire_on_commit=False
            )
            _SERVICE_CACHE[database_url] = build_execution_service(session_factory)
        return _SERVICE_CACHE[database_url]


async def _execute_async(
    service: ReportExecutionService,
    schedule_id: str,
    tenant: str | None,
    trigger: ExecutionTrigger,
) -> dict[str, str]:
    outcome = await service.execute(schedule_id, tenant=tenant, trigger=trigger)
    return {"execution_id": outcome.execution_id, "status": outcome.status.value}


@dramatiq.actor(max_retries=0)
def execute_schedule_job(
    database_url: str,
    schedule_id: str,
    *,
    tenant: str | None = None,
    trigger: str = ExecutionTrigger.MANUAL.value,
) -> dict[str, str]:
    """Run one schedule and return its execution id and terminal status.

    Parameters
    ----------
    database_url
        SQLAlchemy URL of the schedule database.
    schedule_id
        Schedule to run.
    tenant
        Tenant the request was made for; ``None`` skips the ownership check.
    trigger
        ``MANUAL`` or ``SCHEDULED``.

    Raises
    ------
    ScheduleNotFoundError, ScheduleInactiveError, TenantMismatchError
        Configuration errors; no ledger entry is written.

    """
    ensure_broker_configured()
    service = _get_or_create_service(database_url)
    return asyncio.run(
        _execute_async(service, schedule_id, tenant, ExecutionTrigger(trigger))
    )
