"""Poller status and manual tick resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/scheduler", SchedulerStatusResource(scheduler))
    app.add_route("/scheduler/trigger", SchedulerTriggerResource(scheduler))

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from reportflow.scheduler.poller import ReportScheduler

__all__ = ["SchedulerStatusResource", "SchedulerTriggerResource"]


class SchedulerStatusResource:
    """``GET /scheduler`` returns the poller state."""

    def __init__(self, scheduler: ReportScheduler) -> None:
        """Store the poller."""
        self._scheduler = scheduler

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return running flag, active tenants, job count and last tick."""
        resp.media = msgspec.to_builtins(self._scheduler.status())
        resp.status = falcon.HTTP_200


class SchedulerTriggerResource:
    """``POST /scheduler/trigger`` runs one poll tick now."""

    def __init__(self, scheduler: ReportScheduler) -> None:
        """Store the poller."""
        self._scheduler = scheduler

    async def on_post(self, _req: Request, resp: Response) -> None:
        """Run a tick and return which tenants were dispatched or skipped.

        Executions continue in the background after the response.
        """
        summary = await self._scheduler.trigger_now()
        resp.media = msgspec.to_builtins(summary)
        resp.status = falcon.HTTP_202
