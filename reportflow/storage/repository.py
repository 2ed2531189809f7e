"""Schedule and execution-ledger access used by the execution pipeline.

The repository hands out detached snapshots rather than ORM instances so
callers never touch lazy-loaded state outside a session.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec
from sqlalchemy import select, update

from reportflow.logging import get_logger, log_warning
from reportflow.schedules.filters import decode_filters
from reportflow.schedules.models import Recipient, ScheduleSnapshot
from reportflow.schedules.recurrence import Frequency, Recurrence

from .errors import ExecutionAlreadyTerminalError, ExecutionRecordNotFoundError
from .models import (
    ExecutionRecord,
    ExecutionStatus,
    ExecutionTrigger,
    ReportSchedule,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

STALE_ERROR_CATEGORY = "stale"


class ExecutionSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Read-only view of one ledger entry."""

    id: str
    schedule_id: str
    status: ExecutionStatus
    trigger: ExecutionTrigger
    started_at: dt.datetime
    completed_at: dt.datetime | None
    record_count: int
    file_size: int | None
    file_path: str | None
    truncated: bool
    error_message: str | None
    error_category: str | None
    emails_sent: int
    emails_failed: int


def snapshot_from_model(schedule: ReportSchedule) -> ScheduleSnapshot:
    """Convert a loaded ``ReportSchedule`` into a detached snapshot.

    Raises
    ------
    InvalidFilterError
        If a stored filter value no longer decodes.

    """
    return ScheduleSnapshot(
        id=schedule.id,
        tenant=schedule.tenant,
        name=schedule.name,
        description=schedule.description,
        report_type=schedule.report_type,
        recurrence=Recurrence(
            frequency=Frequency(schedule.frequency),
            time_of_day=schedule.time_of_day,
            day_of_week=schedule.day_of_week,
            day_of_month=schedule.day_of_month,
        ),
        timezone=schedule.timezone,
        is_active=schedule.is_active,
        fields=tuple(field.field_key for field in schedule.fields),
        filters=decode_filters({item.key: item.value for item in schedule.filters}),
        recipients=tuple(
            Recipient(email=item.email, name=item.name)
            for item in schedule.recipients
        ),
        last_run_at=schedule.last_run_at,
        next_run_at=schedule.next_run_at,
    )


def _summary(record: ExecutionRecord) -> ExecutionSummary:
    return ExecutionSummary(
        id=record.id,
        schedule_id=record.schedule_id,
        status=ExecutionStatus(record.status),
        trigger=ExecutionTrigger(record.trigger),
        started_at=record.started_at,
        completed_at=record.completed_at,
        record_count=record.record_count,
        file_size=record.file_size,
        file_path=record.file_path,
        truncated=record.truncated,
        error_message=record.error_message,
        error_category=record.error_category,
        emails_sent=record.emails_sent,
        emails_failed=record.emails_failed,
    )


class ScheduleRepository:
    """Async persistence operations used by the orchestrator and poller."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for all operations."""
        self._session_factory = session_factory

    async def get_schedule(self, schedule_id: str) -> ScheduleSnapshot | None:
        """Return a snapshot of the schedule, or ``None`` when absent."""
        async with self._session_factory() as session:
            schedule = await session.get(ReportSchedule, schedule_id)
            if schedule is None:
                return None
            return snapshot_from_model(schedule)

    async def list_due(self, now: dt.datetime) -> list[ScheduleSnapshot]:
        """Return active schedules whose next run is at or before ``now``.

        Results are ordered by ``next_run_at`` then id so each tenant's batch
        runs oldest-first. Rows whose stored definition no longer decodes
        are logged and left out so they cannot block other schedules.
        """
        async with self._session_factory() as session:
            schedules = (
                await session.scalars(
                    select(ReportSchedule)
                    .where(
                        ReportSchedule.is_active.is_(True),
                        ReportSchedule.next_run_at.is_not(None),
                        ReportSchedule.next_run_at <= now,
                    )
                    .order_by(ReportSchedule.next_run_at, ReportSchedule.id)
                )
            ).all()
            snapshots: list[ScheduleSnapshot] = []
            for schedule in schedules:
                try:
                    snapshots.append(snapshot_from_model(schedule))
                except ValueError as exc:
                    log_warning(
                        logger,
                        "Skipping due schedule %s for tenant %s: %s",
                        schedule.id,
                        schedule.tenant,
                        exc,
                    )
            return snapshots

    async def record_artifact(self, execution_id: str, file_path: str) -> None:
        """Note the temporary artifact of a ``RUNNING`` entry.

        The path is cleared again when the entry reaches a terminal state.
        """
        async with self._session_factory() as session, session.begin():
            record = await self._load_running(session, execution_id)
            record.file_path = file_path

    async def create_execution(
        self,
        schedule_id: str,
        *,
        started_at: dt.datetime,
        trigger: ExecutionTrigger = ExecutionTrigger.SCHEDULED,
    ) -> str:
        """Insert a ``RUNNING`` ledger entry and return its id."""
        async with self._session_factory() as session, session.begin():
            record = ExecutionRecord(
                schedule_id=schedule_id,
                status=ExecutionStatus.RUNNING,
                trigger=trigger,
                started_at=started_at,
            )
            session.add(record)
            await session.flush()
            return record.id

    async def _load_running(
        self, session: AsyncSession, execution_id: str
    ) -> ExecutionRecord:
        record = await session.get(ExecutionRecord, execution_id)
        if record is None:
            raise ExecutionRecordNotFoundError(execution_id)
        if record.status != ExecutionStatus.RUNNING:
            raise ExecutionAlreadyTerminalError(execution_id, record.status)
        return record

    async def complete_execution(  # noqa: PLR0913
        self,
        execution_id: str,
        *,
        completed_at: dt.datetime,
        record_count: int,
        file_size: int | None,
        emails_sent: int,
        emails_failed: int,
        truncated: bool = False,
    ) -> None:
        """Move a ``RUNNING`` entry to ``SUCCESS``."""
        async with self._session_factory() as session, session.begin():
            record = await self._load_running(session, execution_id)
            record.status = ExecutionStatus.SUCCESS
            record.completed_at = completed_at
            record.record_count = record_count
            record.file_size = file_size
            record.file_path = None
            record.truncated = truncated
            record.emails_sent = emails_sent
            record.emails_failed = emails_failed

    async def fail_execution(
        self,
        execution_id: str,
        *,
        completed_at: dt.datetime,
        error_message: str,
        error_category: str,
        record_count: int = 0,
    ) -> None:
        """Move a ``RUNNING`` entry to ``FAILED`` with a classified error."""
        async with self._session_factory() as session, session.begin():
            record = await self._load_running(session, execution_id)
            record.status = ExecutionStatus.FAILED
            record.completed_at = completed_at
            record.record_count = record_count
            record.file_path = None
            record.error_message = error_message
            record.error_category = error_category

    async def reschedule(
        self,
        schedule_id: str,
        *,
        last_run_at: dt.datetime,
        next_run_at: dt.datetime,
    ) -> None:
        """Persist the run timestamps computed after an execution."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(ReportSchedule)
                .where(ReportSchedule.id == schedule_id)
                .values(last_run_at=last_run_at, next_run_at=next_run_at)
            )

    async def latest_execution(self, schedule_id: str) -> ExecutionSummary | None:
        """Return the most recent ledger entry for a schedule."""
        executions = await self.list_executions(schedule_id, limit=1)
        return executions[0] if executions else None

    async def list_executions(
        self, schedule_id: str, *, limit: int = 20
    ) -> list[ExecutionSummary]:
        """Return ledger entries for a schedule, newest first."""
        async with self._session_factory() as session:
            records = (
                await session.scalars(
                    select(ExecutionRecord)
                    .where(ExecutionRecord.schedule_id == schedule_id)
                    .order_by(
                        ExecutionRecord.started_at.desc(), ExecutionRecord.id.desc()
                    )
                    .limit(limit)
                )
            ).all()
            return [_summary(record) for record in records]

    async def mark_stale_executions(
        self, *, older_than: dt.timedelta, now: dt.datetime
    ) -> list[str]:
        """Fail ``RUNNING`` entries started before ``now - older_than``.

        Returns
        -------
        list[str]
            Ids of the entries that were reconciled.

        """
        cutoff = now - older_than
        async with self._session_factory() as session, session.begin():
            records = (
                await session.scalars(
                    select(ExecutionRecord).where(
                        ExecutionRecord.status == ExecutionStatus.RUNNING,
                        ExecutionRecord.started_at < cutoff,
                    )
                )
            ).all()
            for record in records:
                record.status = ExecutionStatus.FAILED
                record.completed_at = now
                record.file_path = None
                record.error_category = STALE_ERROR_CATEGORY
                record.error_message = (
                    f"Execution still RUNNING after {older_than}; "
                    "the worker was presumed lost"
                )
            return [record.id for record in records]
