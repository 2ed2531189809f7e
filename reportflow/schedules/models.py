"""Immutable schedule views handed to the execution pipeline."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

import msgspec

from .filters import ReportFilters  # noqa: TC001
from .recurrence import Recurrence  # noqa: TC001


class Recipient(msgspec.Struct, kw_only=True, frozen=True):
    """Email recipient of a scheduled report.

    Attributes
    ----------
    email : str
        Delivery address.
    name : str, optional
        Display name used in the greeting.

    """

    email: str
    name: str | None = None


class ScheduleSnapshot(msgspec.Struct, kw_only=True, frozen=True):
    """Point-in-time copy of a stored schedule.

    Snapshots are detached from the database session so they can cross task
    boundaries while an execution runs.
    """

    id: str
    tenant: str
    name: str
    description: str | None
    report_type: str
    recurrence: Recurrence
    timezone: str
    is_active: bool
    fields: tuple[str, ...]
    filters: ReportFilters
    recipients: tuple[Recipient, ...]
    last_run_at: dt.datetime | None = None
    next_run_at: dt.datetime | None = None
