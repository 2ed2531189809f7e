"""Application factory for the reportflow Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with scheduling and management endpoints::

    deps = AppDependencies(
        repository=ScheduleRepository(session_factory),
        schedules=ScheduleService(session_factory),
        scheduler=ReportScheduler(execution_service, repository),
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from reportflow.api.errors import register_error_handlers
from reportflow.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from reportflow.execution.service import ReportExecutionService
    from reportflow.scheduler.poller import ReportScheduler
    from reportflow.schedules.service import ScheduleService
    from reportflow.storage.repository import ScheduleRepository

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Collaborators for the domain endpoints.

    Attributes
    ----------
    repository
        Schedule and ledger reads for the history endpoint.
    schedules
        Schedule management service.
    scheduler
        Poller used for status, manual ticks and manual runs.
    autostart_scheduler
        Start the poller loop on ASGI startup.
    engine
        When set, missing tables are created on startup and the engine is
        disposed on shutdown.
    executions
        Orchestrator used for report previews; the preview route is only
        registered when set.

    """

    repository: ScheduleRepository
    schedules: ScheduleService
    scheduler: ReportScheduler
    autostart_scheduler: bool = True
    engine: AsyncEngine | None = None
    executions: ReportExecutionService | None = None


def create_app(dependencies: AppDependencies | None = None) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Without *dependencies* only ``/health`` and ``/ready`` are registered.

    Parameters
    ----------
    dependencies
        Optional domain collaborators.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    if dependencies is not None:
        from reportflow.api.middleware import SchedulerLifespan, StorageLifespan

        if dependencies.engine is not None:
            middleware.append(StorageLifespan(dependencies.engine))
        middleware.append(
            SchedulerLifespan(
                dependencies.scheduler,
                autostart=dependencies.autostart_scheduler,
            )
        )

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(dependencies.scheduler if dependencies is not None else None),
    )

    if dependencies is not None:
        from reportflow.api.reports.resources import (
            ReportPreviewResource,
            ReportRunResource,
            ReportRunsResource,
        )
        from reportflow.api.scheduler.resources import (
            SchedulerStatusResource,
            SchedulerTriggerResource,
        )
        from reportflow.api.schedules.resources import (
            ScheduleCollectionResource,
            ScheduleItemResource,
        )

        scheduler = dependencies.scheduler
        app.add_route("/scheduler", SchedulerStatusResource(scheduler))
        app.add_route("/scheduler/trigger", SchedulerTriggerResource(scheduler))
        app.add_route(
            "/tenants/{tenant}/schedules",
            ScheduleCollectionResource(dependencies.schedules),
        )
        app.add_route(
            "/tenants/{tenant}/schedules/{schedule_id}",
            ScheduleItemResource(dependencies.schedules),
        )
        app.add_route(
            "/tenants/{tenant}/reports/{schedule_id}/run",
            ReportRunResource(scheduler),
        )
        app.add_route(
            "/tenants/{tenant}/reports/{schedule_id}/runs",
            ReportRunsResource(dependencies.repository),
        )
        if dependencies.executions is not None:
            app.add_route(
                "/tenants/{tenant}/reports/preview",
                ReportPreviewResource(dependencies.executions),
            )

    register_error_handlers(app)
    return app
