"""Health and readiness resources.

``/health`` reports that the process is alive. ``/ready`` also reports
whether the poller loop is running when one is attached.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from reportflow.scheduler.poller import ReportScheduler

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness check returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness check returning ``{"status": "ready"}``."""

    def __init__(self, scheduler: ReportScheduler | None = None) -> None:
        """Optionally attach the poller whose state is reported."""
        self._scheduler = scheduler

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready."""
        media: dict[str, object] = {"status": "ready"}
        if self._scheduler is not None:
            media["scheduler_running"] = self._scheduler.running
        resp.media = media
        resp.status = HTTPStatus.OK
