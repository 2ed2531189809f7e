"""Manual report runs, execution history and report previews.

``POST /tenants/{tenant}/reports/{schedule_id}/run`` dispatches a run and
returns 202 immediately. ``GET /tenants/{tenant}/reports/{schedule_id}/runs``
lists the latest ledger entries for the schedule.
``POST /tenants/{tenant}/reports/preview`` returns the first rows of an
unsaved report configuration.
"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from reportflow.api.errors import InvalidInputError
from reportflow.execution.errors import TenantMismatchError
from reportflow.execution.preview import MAX_PREVIEW_ROWS, PREVIEW_ROW_LIMIT
from reportflow.schedules.errors import ScheduleNotFoundError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from reportflow.execution.preview import ReportPreview
    from reportflow.execution.service import ReportExecutionService
    from reportflow.scheduler.poller import ReportScheduler
    from reportflow.storage.repository import ScheduleRepository

__all__ = [
    "PreviewRequest",
    "ReportPreviewResource",
    "ReportRunResource",
    "ReportRunsResource",
    "serialize_preview",
]

_DEFAULT_LIMIT = 20
_MAX_LIMIT = 100


class ReportRunResource:
    """Dispatch a manual run of one schedule."""

    def __init__(self, scheduler: ReportScheduler) -> None:
        """Store the poller that owns background tasks."""
        self._scheduler = scheduler

    async def on_post(
        self, _req: Request, resp: Response, *, tenant: str, schedule_id: str
    ) -> None:
        """Start the run in the background and return 202.

        Unknown schedules, other tenants' schedules, inactive schedules and
        schedules already running are rejected before dispatch.
        """
        schedule = await self._scheduler.run_now(schedule_id, tenant)
        resp.media = {
            "schedule_id": schedule.id,
            "name": schedule.name,
            "status": "dispatched",
        }
        resp.status = falcon.HTTP_202


def _parse_limit(raw: str | None) -> int:
    if raw is None:
        return _DEFAULT_LIMIT
    try:
        limit = int(raw)
    except ValueError as exc:
        raise InvalidInputError("must be an integer", field="limit") from exc
    if not 1 <= limit <= _MAX_LIMIT:
        reason = f"must be between 1 and {_MAX_LIMIT}"
        raise InvalidInputError(reason, field="limit")
    return limit


class ReportRunsResource:
    """List recent executions of one schedule, newest first."""

    def __init__(self, repository: ScheduleRepository) -> None:
        """Store the repository used for lookups."""
        self._repository = repository

    async def on_get(
        self, req: Request, resp: Response, *, tenant: str, schedule_id: str
    ) -> None:
        """Return ``{"schedule_id", "executions": [...]}``.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule does not exist.
        TenantMismatchError
            If the schedule belongs to another tenant.
        InvalidInputError
            If ``limit`` is not an integer in 1..100.

        """
        limit = _parse_limit(req.get_param("limit"))
        schedule = await self._repository.get_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        if schedule.tenant != tenant:
            raise TenantMismatchError(schedule_id, tenant)
        executions = await self._repository.list_executions(schedule_id, limit=limit)
        resp.media = {
            "schedule_id": schedule_id,
            "next_run_at": msgspec.to_builtins(schedule.next_run_at),
            "executions": msgspec.to_builtins(executions),
        }
        resp.status = falcon.HTTP_200


class PreviewRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Report configuration submitted for a preview."""

    report_type: str
    filters: dict[str, typ.Any] = msgspec.field(default_factory=dict)
    fields: list[str] = msgspec.field(default_factory=list)
    limit: int = PREVIEW_ROW_LIMIT


async def _read_preview_request(req: Request) -> PreviewRequest:
    body = await req.stream.read()
    try:
        request = msgspec.json.decode(body, type=PreviewRequest)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    except msgspec.DecodeError as exc:
        raise InvalidInputError("request body must be a JSON object") from exc
    if not 1 <= request.limit <= MAX_PREVIEW_ROWS:
        reason = f"must be between 1 and {MAX_PREVIEW_ROWS}"
        raise InvalidInputError(reason, field="limit")
    return request


def serialize_preview(preview: ReportPreview) -> dict[str, typ.Any]:
    """Return a JSON-compatible view of ``preview``."""
    return {
        "report_type": preview.report_type,
        "columns": [
            {"key": spec.key, "label": spec.label, "type": spec.kind}
            for spec in preview.columns
        ],
        "rows": preview.rows,
        "total_records": preview.total_records,
        "preview_records": preview.preview_records,
        "truncated": preview.truncated,
    }


class ReportPreviewResource:
    """Preview the first rows of a report configuration."""

    def __init__(self, service: ReportExecutionService) -> None:
        """Store the orchestrator that runs the fetch pipeline."""
        self._service = service

    async def on_post(self, req: Request, resp: Response, *, tenant: str) -> None:
        """Fetch and transform the report, returning columns and leading rows.

        Nothing is written, ledgered or emailed. Invalid configurations map
        to 400; fetch failures to 502, or 400 for report types without a
        data source.
        """
        request = await _read_preview_request(req)
        preview = await self._service.preview(
            tenant,
            request.report_type,
            request.filters,
            fields=request.fields,
            limit=request.limit,
        )
        resp.media = serialize_preview(preview)
        resp.status = falcon.HTTP_200
