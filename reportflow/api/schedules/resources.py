"""Schedule management resources.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/tenants/{tenant}/schedules", ScheduleCollectionResource(svc))
    app.add_route(
        "/tenants/{tenant}/schedules/{schedule_id}", ScheduleItemResource(svc)
    )

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from reportflow.api.errors import InvalidInputError
from reportflow.schedules.recurrence import describe_recurrence
from reportflow.schedules.service import ScheduleDraft

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from reportflow.schedules.models import ScheduleSnapshot
    from reportflow.schedules.service import ScheduleService

__all__ = [
    "ScheduleCollectionResource",
    "ScheduleItemResource",
    "serialize_schedule",
]


def serialize_schedule(schedule: ScheduleSnapshot) -> dict[str, typ.Any]:
    """Return a JSON-compatible view of ``schedule``."""
    return {
        "id": schedule.id,
        "tenant": schedule.tenant,
        "name": schedule.name,
        "description": schedule.description,
        "report_type": schedule.report_type,
        "recurrence": msgspec.to_builtins(schedule.recurrence),
        "timezone": schedule.timezone,
        "recurrence_summary": describe_recurrence(
            schedule.recurrence, schedule.timezone
        ),
        "is_active": schedule.is_active,
        "fields": list(schedule.fields),
        "filters": schedule.filters.to_payload(),
        "recipients": msgspec.to_builtins(schedule.recipients),
        "last_run_at": msgspec.to_builtins(schedule.last_run_at),
        "next_run_at": msgspec.to_builtins(schedule.next_run_at),
    }


async def _read_draft(req: Request) -> ScheduleDraft:
    body = await req.stream.read()
    try:
        return msgspec.json.decode(body, type=ScheduleDraft)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    except msgspec.DecodeError as exc:
        raise InvalidInputError("request body must be a JSON object") from exc


class ScheduleCollectionResource:
    """``GET`` lists and ``POST`` creates a tenant's schedules."""

    def __init__(self, service: ScheduleService) -> None:
        """Store the management service."""
        self._service = service

    async def on_get(self, _req: Request, resp: Response, *, tenant: str) -> None:
        """Return every schedule owned by ``tenant``."""
        schedules = await self._service.list_for_tenant(tenant)
        resp.media = {"schedules": [serialize_schedule(item) for item in schedules]}
        resp.status = falcon.HTTP_200

    async def on_post(self, req: Request, resp: Response, *, tenant: str) -> None:
        """Create a schedule from the JSON body and return it with 201."""
        schedule = await self._service.create(tenant, await _read_draft(req))
        resp.media = serialize_schedule(schedule)
        resp.status = falcon.HTTP_201


class ScheduleItemResource:
    """Read, replace or delete one schedule."""

    def __init__(self, service: ScheduleService) -> None:
        """Store the management service."""
        self._service = service

    async def on_get(
        self, _req: Request, resp: Response, *, tenant: str, schedule_id: str
    ) -> None:
        """Return the schedule."""
        resp.media = serialize_schedule(await self._service.get(tenant, schedule_id))
        resp.status = falcon.HTTP_200

    async def on_put(
        self, req: Request, resp: Response, *, tenant: str, schedule_id: str
    ) -> None:
        """Replace the schedule definition and recompute its next run."""
        schedule = await self._service.update(
            tenant, schedule_id, await _read_draft(req)
        )
        resp.media = serialize_schedule(schedule)
        resp.status = falcon.HTTP_200

    async def on_delete(
        self, _req: Request, resp: Response, *, tenant: str, schedule_id: str
    ) -> None:
        """Delete the schedule and its execution history."""
        await self._service.delete(tenant, schedule_id)
        resp.status = falcon.HTTP_204
