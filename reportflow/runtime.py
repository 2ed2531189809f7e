"""reportflow runtime entrypoint.

:func:`create_app` is the Granian factory. When
``REPORTFLOW_DATABASE_URL`` is set it wires storage, the Admin API client,
the mailer, the orchestrator and the poller into a full application.
Otherwise it starts in health-only mode.

Configuration is driven by environment variables:

- ``REPORTFLOW_HOST``: Bind address (default ``0.0.0.0``)
- ``REPORTFLOW_PORT``: Listen port (default ``8080``)
- ``REPORTFLOW_LOG_LEVEL``: Log level (default ``INFO``)
- ``REPORTFLOW_DATABASE_URL``: SQLAlchemy async URL (optional; enables
  scheduling and management endpoints when set)
- ``REPORTFLOW_CREATE_TABLES``: Create missing tables on startup
  (default ``true``)

Run the service directly with ``python -m reportflow.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from reportflow.common.env import env_bool
from reportflow.logging import (
    LOG_LEVEL_ENV_VAR,
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

DATABASE_URL_ENV_VAR = "REPORTFLOW_DATABASE_URL"

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If ``port_str`` is not an integer in 1..65535.

    """
    try:
        port = int(port_str)
    except ValueError as exc:
        log_error(logger, "Invalid REPORTFLOW_PORT value: %r", port_str)
        raise SystemExit(1) from exc
    if not _MIN_PORT <= port <= _MAX_PORT:
        log_error(
            logger,
            "REPORTFLOW_PORT %d outside valid range %d-%d",
            port,
            _MIN_PORT,
            _MAX_PORT,
        )
        raise SystemExit(1)
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment.

    Returns
    -------
    falcon.asgi.App
        Health-only app without a database URL, full app otherwise.

    """
    from reportflow.api.app import create_app as _create_api_app

    database_url = os.environ.get(DATABASE_URL_ENV_VAR, "").strip()
    if not database_url:
        log_warning(
            logger, "%s not set; serving health endpoints only", DATABASE_URL_ENV_VAR
        )
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from reportflow.api.app import AppDependencies
    from reportflow.execution.factory import build_execution_service
    from reportflow.scheduler.config import SchedulerConfig
    from reportflow.scheduler.poller import ReportScheduler
    from reportflow.schedules.service import ScheduleService

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    execution_service = build_execution_service(session_factory)
    scheduler_config = SchedulerConfig.from_env()
    scheduler = ReportScheduler(
        execution_service, execution_service.repository, scheduler_config
    )
    deps = AppDependencies(
        repository=execution_service.repository,
        schedules=ScheduleService(session_factory),
        scheduler=scheduler,
        autostart_scheduler=scheduler_config.enabled,
        engine=engine if env_bool("REPORTFLOW_CREATE_TABLES", default=True) else None,
        executions=execution_service,
    )
    return _create_api_app(deps)


def main() -> None:
    """Start the reportflow server using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("REPORTFLOW_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("REPORTFLOW_PORT", "8080"))
    raw_level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")

    normalized_level, invalid_level = configure_logging(raw_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid %s %r, falling back to %s",
            LOG_LEVEL_ENV_VAR,
            raw_level,
            normalized_level,
        )

    log_info(
        logger,
        "Starting reportflow on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "reportflow.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
