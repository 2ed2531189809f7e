"""Falcon error handlers mapping domain errors to JSON responses.

Usage
-----
>>> register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from reportflow.execution.classification import ErrorCategory
from reportflow.execution.errors import (
    ScheduleAlreadyRunningError,
    ScheduleInactiveError,
    TenantMismatchError,
)
from reportflow.execution.preview import PreviewFailedError
from reportflow.schedules.errors import InvalidScheduleError, ScheduleNotFoundError

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = ["InvalidInputError", "register_error_handlers"]


class InvalidInputError(Exception):
    """Raised for request validation failures that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the failure.
    field
        Optional name of the offending input field.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Record the reason and the optional field name."""
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field is not None else reason)


async def handle_not_found(
    _req: Request,
    resp: Response,
    ex: ScheduleNotFoundError | TenantMismatchError,
    _params: dict[str, typ.Any],
) -> None:
    """Map unknown schedules, or schedules of another tenant, to HTTP 404."""
    resp.status = falcon.HTTP_404
    resp.media = {
        "title": "Schedule not found",
        "description": f"Schedule not found: {ex.schedule_id}",
    }


async def handle_conflict(
    _req: Request,
    resp: Response,
    ex: ScheduleInactiveError | ScheduleAlreadyRunningError,
    _params: dict[str, typ.Any],
) -> None:
    """Map schedules that cannot run right now to HTTP 409."""
    resp.status = falcon.HTTP_409
    resp.media = {"title": "Schedule cannot run", "description": str(ex)}


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError | InvalidScheduleError,
    _params: dict[str, typ.Any],
) -> None:
    """Map request and schedule validation failures to HTTP 400."""
    resp.status = falcon.HTTP_400
    media = {"title": "Invalid input", "description": str(ex)}
    if isinstance(ex, InvalidInputError):
        media["description"] = ex.reason
        if ex.field is not None:
            media["field"] = ex.field
    resp.media = media


async def handle_preview_failed(
    _req: Request,
    resp: Response,
    ex: PreviewFailedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map preview fetch failures to HTTP 502, or 400 for unsupported reports."""
    unsupported = ex.analysis.category is ErrorCategory.UNSUPPORTED_REPORT
    resp.status = falcon.HTTP_400 if unsupported else falcon.HTTP_502
    resp.media = {
        "title": ex.analysis.label,
        "description": ex.detail,
        "category": ex.analysis.category,
        "hints": list(ex.analysis.hints),
    }


def register_error_handlers(app: App) -> None:
    """Install the domain error handlers on ``app``."""
    app.add_error_handler(ScheduleNotFoundError, handle_not_found)
    app.add_error_handler(TenantMismatchError, handle_not_found)
    app.add_error_handler(ScheduleInactiveError, handle_conflict)
    app.add_error_handler(ScheduleAlreadyRunningError, handle_conflict)
    app.add_error_handler(InvalidScheduleError, handle_invalid_input)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(PreviewFailedError, handle_preview_failed)
