"""Schedule management: validated create, update, delete and lookup.

This is the boundary where untyped input (JSON payloads from the admin UI)
becomes typed schedule state. Everything that reaches storage has passed
recurrence, timezone, field and filter validation, and ``next_run_at`` is
recomputed on every write.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import msgspec
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from reportflow.common.time import utcnow
from reportflow.delivery.addresses import is_valid_email
from reportflow.reports.errors import UnknownFieldError, UnknownReportTypeError
from reportflow.reports.schema import FieldSpec, ReportType, select_fields
from reportflow.reports.timerange import InvalidRangeError
from reportflow.storage.models import (
    ReportSchedule,
    ScheduleField,
    ScheduleFilter,
    ScheduleRecipient,
)
from reportflow.storage.repository import snapshot_from_model

from .errors import InvalidFilterError, InvalidScheduleError, ScheduleNotFoundError
from .filters import DATE_RANGE_KEY, ReportFilters, decode_filters
from .models import Recipient, ScheduleSnapshot
from .recurrence import Recurrence, compute_next_run, load_timezone

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class ScheduleDraft(msgspec.Struct, kw_only=True, frozen=True):
    """Schedule definition as submitted by the management UI."""

    name: str
    report_type: str
    recurrence: Recurrence
    timezone: str = "UTC"
    description: str | None = None
    is_active: bool = True
    fields: list[str] = msgspec.field(default_factory=list)
    filters: dict[str, typ.Any] = msgspec.field(default_factory=dict)
    recipients: list[Recipient] = msgspec.field(default_factory=list)


class _ValidatedDraft(typ.NamedTuple):
    report_type: ReportType
    fields: tuple[str, ...]
    filters: ReportFilters
    recipients: tuple[Recipient, ...]


def validate_report_selection(
    report_type: str, fields: cabc.Sequence[str] = ()
) -> tuple[ReportType, tuple[FieldSpec, ...]]:
    """Return the report type and the explicitly selected columns.

    An empty selection yields an empty tuple; callers fall back to the
    report's default columns.

    Raises
    ------
    InvalidScheduleError
        If the report type or any selected field is unknown.

    """
    try:
        parsed = ReportType.parse(report_type)
        selected = select_fields(parsed, fields) if fields else ()
    except UnknownReportTypeError as exc:
        raise InvalidScheduleError(str(exc)) from exc
    except UnknownFieldError as exc:
        raise InvalidScheduleError.unknown_fields(
            exc.report_type, exc.fields
        ) from exc
    return parsed, selected


def validate_filters(
    raw: cabc.Mapping[str, object] | None, *, now: dt.datetime | None = None
) -> ReportFilters:
    """Decode ``raw`` filters and check that the date range resolves.

    Raises
    ------
    InvalidFilterError
        If a value cannot be decoded or the custom range is incomplete or
        inverted.

    """
    filters = decode_filters(raw)
    try:
        filters.date_range(now=now)
    except InvalidRangeError as exc:
        raise InvalidFilterError.undecodable(DATE_RANGE_KEY, str(exc)) from exc
    return filters


def _validate(draft: ScheduleDraft) -> _ValidatedDraft:
    if not draft.name.strip():
        raise InvalidScheduleError.blank("name")
    if any(char in draft.name.strip() for char in "\r\n"):
        raise InvalidScheduleError.line_break("name")
    report_type, selected = validate_report_selection(
        draft.report_type, draft.fields
    )
    draft.recurrence.validate()
    load_timezone(draft.timezone)
    filters = validate_filters(draft.filters)
    recipients = tuple(
        Recipient(email=item.email.strip(), name=item.name)
        for item in draft.recipients
    )
    if not recipients:
        raise InvalidScheduleError.no_recipients()
    invalid = [item.email for item in recipients if not is_valid_email(item.email)]
    if invalid:
        msg = f"Invalid recipient email: {', '.join(invalid)}"
        raise InvalidScheduleError(msg)
    fields = tuple(spec.key for spec in selected)
    return _ValidatedDraft(report_type, fields, filters, recipients)


def _apply(
    schedule: ReportSchedule, draft: ScheduleDraft, checked: _ValidatedDraft
) -> None:
    schedule.name = draft.name.strip()
    schedule.description = draft.description
    schedule.report_type = checked.report_type
    schedule.frequency = draft.recurrence.frequency
    schedule.time_of_day = draft.recurrence.time_of_day.strip()
    schedule.day_of_week = draft.recurrence.day_of_week
    schedule.day_of_month = draft.recurrence.day_of_month
    schedule.timezone = draft.timezone
    schedule.is_active = draft.is_active


def _children(
    checked: _ValidatedDraft,
) -> tuple[list[ScheduleRecipient], list[ScheduleFilter], list[ScheduleField]]:
    recipients = [
        ScheduleRecipient(email=item.email, name=item.name, position=index)
        for index, item in enumerate(checked.recipients)
    ]
    filters = [
        ScheduleFilter(key=key, value=value)
        for key, value in checked.filters.to_payload().items()
    ]
    fields = [
        ScheduleField(field_key=key, position=index)
        for index, key in enumerate(checked.fields)
    ]
    return recipients, filters, fields


class ScheduleService:
    """Create, update, delete and read schedules for a tenant."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Store the session factory and the clock used for next-run times."""
        self._session_factory = session_factory
        self._clock = clock

    def _next_run(self, draft: ScheduleDraft) -> dt.datetime | None:
        if not draft.is_active:
            return None
        return compute_next_run(draft.recurrence, draft.timezone, after=self._clock())

    async def _load(
        self, session: AsyncSession, tenant: str, schedule_id: str
    ) -> ReportSchedule:
        schedule = await session.get(ReportSchedule, schedule_id)
        if schedule is None or schedule.tenant != tenant:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    async def create(self, tenant: str, draft: ScheduleDraft) -> ScheduleSnapshot:
        """Validate ``draft`` and store it as a new schedule.

        Raises
        ------
        InvalidScheduleError
            If any part of the definition fails validation.

        """
        checked = _validate(draft)
        async with self._session_factory() as session, session.begin():
            schedule = ReportSchedule(tenant=tenant)
            _apply(schedule, draft, checked)
            schedule.next_run_at = self._next_run(draft)
            recipients, filters, fields = _children(checked)
            schedule.recipients = recipients
            schedule.filters = filters
            schedule.fields = fields
            session.add(schedule)
            await session.flush()
            return snapshot_from_model(schedule)

    async def update(
        self, tenant: str, schedule_id: str, draft: ScheduleDraft
    ) -> ScheduleSnapshot:
        """Replace a schedule's definition and recompute its next run.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule does not exist for ``tenant``.
        InvalidScheduleError
            If any part of the definition fails validation.

        """
        checked = _validate(draft)
        async with self._session_factory() as session, session.begin():
            schedule = await self._load(session, tenant, schedule_id)
            _apply(schedule, draft, checked)
            schedule.next_run_at = self._next_run(draft)
            schedule.recipients.clear()
            schedule.filters.clear()
            schedule.fields.clear()
            await session.flush()
            recipients, filters, fields = _children(checked)
            schedule.recipients.extend(recipients)
            schedule.filters.extend(filters)
            schedule.fields.extend(fields)
            await session.flush()
            return snapshot_from_model(schedule)

    async def delete(self, tenant: str, schedule_id: str) -> None:
        """Delete a schedule with its children and execution history.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule does not exist for ``tenant``.

        """
        async with self._session_factory() as session, session.begin():
            schedule = await session.scalar(
                select(ReportSchedule)
                .options(selectinload(ReportSchedule.executions))
                .where(
                    ReportSchedule.id == schedule_id,
                    ReportSchedule.tenant == tenant,
                )
            )
            if schedule is None:
                raise ScheduleNotFoundError(schedule_id)
            await session.delete(schedule)

    async def get(self, tenant: str, schedule_id: str) -> ScheduleSnapshot:
        """Return a snapshot of a tenant's schedule.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule does not exist for ``tenant``.

        """
        async with self._session_factory() as session:
            schedule = await self._load(session, tenant, schedule_id)
            return snapshot_from_model(schedule)

    async def list_for_tenant(self, tenant: str) -> list[ScheduleSnapshot]:
        """Return all schedules owned by ``tenant`` ordered by name."""
        async with self._session_factory() as session:
            schedules = (
                await session.scalars(
                    select(ReportSchedule)
                    .where(ReportSchedule.tenant == tenant)
                    .order_by(ReportSchedule.name, ReportSchedule.id)
                )
            ).all()
            return [snapshot_from_model(schedule) for schedule in schedules]
