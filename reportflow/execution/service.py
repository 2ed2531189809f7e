"""Execution orchestration for scheduled reports.

``ReportExecutionService`` runs one schedule end to end: it writes the
ledger entry, fetches and transforms the report data, writes the CSV
artifact, emails recipients and moves the schedule to its next slot.

Usage
-----
>>> service = ReportExecutionService(
...     ExecutionDependencies(
...         repository=ScheduleRepository(session_factory),
...         clients=ShopifyClientFactory(credentials),
...         notifier=DeliveryNotifier(SmtpMailer(SmtpConfig.from_env())),
...     ),
...     config=ExecutionConfig.from_env(),
... )
>>> outcome = await service.execute("schedule-id")
>>> outcome.status
<ExecutionStatus.SUCCESS: 'SUCCESS'>

"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses as dc
import datetime as dt
import time
import typing as typ

from reportflow.common.time import utcnow
from reportflow.delivery.templates import FailureNotice, ReportEmailContext
from reportflow.logging import get_logger, log_exception
from reportflow.reports.artifacts import CsvArtifactWriter
from reportflow.reports.fetchers import FetchContext
from reportflow.reports.registry import get_strategy, project_rows
from reportflow.reports.timerange import describe_range
from reportflow.schedules.recurrence import compute_next_run, describe_recurrence
from reportflow.schedules.service import validate_filters, validate_report_selection
from reportflow.storage.models import ExecutionStatus, ExecutionTrigger

from .classification import ErrorCategory, classify_error
from .config import ExecutionConfig
from .errors import (
    ScheduleAlreadyRunningError,
    ScheduleInactiveError,
    ScheduleNotFoundError,
    TenantMismatchError,
)
from .observability import ExecutionEventLogger
from .preview import PREVIEW_ROW_LIMIT, PreviewFailedError, ReportPreview

if typ.TYPE_CHECKING:
    from reportflow.delivery.notifier import DeliveryNotifier, DeliveryResult
    from reportflow.reports.artifacts import Artifact
    from reportflow.reports.fetchers import FetchResult
    from reportflow.schedules.models import ScheduleSnapshot
    from reportflow.shopify.client import GraphQLClientFactory
    from reportflow.shopify.retry import SleepFn
    from reportflow.storage.repository import ScheduleRepository

    from .classification import ErrorAnalysis

logger = get_logger(__name__)

type Clock = cabc.Callable[[], dt.datetime]


@dc.dataclass(frozen=True, slots=True)
class ExecutionDependencies:
    """Collaborators required by :class:`ReportExecutionService`.

    Attributes
    ----------
    repository
        Schedule and ledger persistence.
    clients
        Opens a tenant-scoped GraphQL executor per execution.
    notifier
        Sends report and failure emails.

    """

    repository: ScheduleRepository
    clients: GraphQLClientFactory
    notifier: DeliveryNotifier


@dc.dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Terminal state of one execution as recorded in the ledger."""

    execution_id: str
    schedule_id: str
    status: ExecutionStatus
    record_count: int = 0
    file_size: int | None = None
    truncated: bool = False
    emails_sent: int = 0
    emails_failed: int = 0
    error_message: str | None = None
    error_category: ErrorCategory | None = None
    next_run_at: dt.datetime | None = None

    @property
    def succeeded(self) -> bool:
        """Return whether the execution reached ``SUCCESS``."""
        return self.status is ExecutionStatus.SUCCESS


@dc.dataclass(slots=True)
class _RunState:
    """Mutable progress of one in-flight execution."""

    execution_id: str
    started_at: dt.datetime
    started_monotonic: float
    fetched: FetchResult | None = None
    artifact: Artifact | None = None
    delivery: DeliveryResult | None = None

    @property
    def record_count(self) -> int:
        return self.fetched.record_count if self.fetched is not None else 0


class ReportExecutionService:
    """Run scheduled reports and keep the execution ledger consistent.

    Every execution that reaches ``RUNNING`` ends in exactly one terminal
    ledger state, advances the schedule to its next natural slot and
    removes its temporary artifact, whichever step failed.
    """

    def __init__(
        self,
        dependencies: ExecutionDependencies,
        config: ExecutionConfig | None = None,
        *,
        clock: Clock = utcnow,
        sleep: SleepFn = asyncio.sleep,
        event_logger: ExecutionEventLogger | None = None,
    ) -> None:
        """Configure the service.

        Parameters
        ----------
        dependencies
            Repository, client factory and notifier.
        config
            Execution settings; defaults apply when omitted.
        clock
            Source of the current UTC time.
        sleep
            Sleep used between API retries.
        event_logger
            Structured event logger; a default one is created when omitted.

        """
        self._repository = dependencies.repository
        self._clients = dependencies.clients
        self._notifier = dependencies.notifier
        self._config = config or ExecutionConfig()
        self._writer = CsvArtifactWriter(self._config.artifact_dir)
        self._clock = clock
        self._sleep = sleep
        self._events = event_logger or ExecutionEventLogger()
        self._running: set[str] = set()

    @property
    def config(self) -> ExecutionConfig:
        """Return the execution settings."""
        return self._config

    @property
    def repository(self) -> ScheduleRepository:
        """Return the schedule repository."""
        return self._repository

    def is_running(self, schedule_id: str) -> bool:
        """Return whether ``schedule_id`` is executing in this process."""
        return schedule_id in self._running

    async def load_runnable(
        self, schedule_id: str, *, tenant: str | None = None
    ) -> ScheduleSnapshot:
        """Return the schedule if it may run now.

        Raises
        ------
        ScheduleNotFoundError
            If the schedule does not exist.
        TenantMismatchError
            If ``tenant`` is given and does not own the schedule.
        ScheduleInactiveError
            If the schedule is disabled.
        ScheduleAlreadyRunningError
            If the schedule is executing in this process.

        """
        schedule = await self._repository.get_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        if tenant is not None and schedule.tenant != tenant:
            raise TenantMismatchError(schedule_id, tenant)
        if not schedule.is_active:
            raise ScheduleInactiveError(schedule_id)
        if schedule_id in self._running:
            raise ScheduleAlreadyRunningError(schedule_id)
        return schedule

    async def execute(
        self,
        schedule_id: str,
        *,
        tenant: str | None = None,
        trigger: ExecutionTrigger = ExecutionTrigger.SCHEDULED,
    ) -> ExecutionOutcome:
        """Run one schedule to a terminal ledger state.

        Configuration errors are raised before any ledger entry exists.
        Failures after that point are classified, recorded as ``FAILED`` and
        reported to recipients; they are not raised.

        Parameters
        ----------
        schedule_id
            Schedule to run.
        tenant
            Tenant the caller acts for; ``None`` skips the ownership check.
        trigger
            Whether the poller or an operator started the run.

        Returns
        -------
        ExecutionOutcome
            The terminal state written to the ledger.

        """
        schedule = await self.load_runnable(schedule_id, tenant=tenant)
        self._running.add(schedule_id)
        try:
            return await self._run(schedule, trigger)
        finally:
            self._running.discard(schedule_id)

    async def preview(
        self,
        tenant: str,
        report_type: str,
        filters: cabc.Mapping[str, object] | None = None,
        *,
        fields: cabc.Sequence[str] = (),
        limit: int = PREVIEW_ROW_LIMIT,
    ) -> ReportPreview:
        """Return the first ``limit`` rows of a report for ``tenant``.

        The fetch and transform steps match a real execution; nothing is
        written, ledgered or emailed.

        Raises
        ------
        InvalidScheduleError
            If the report type, a selected field or a filter is invalid.
        PreviewFailedError
            If the data cannot be fetched or transformed.
        ValueError
            If ``limit`` is not positive.

        """
        if limit < 1:
            msg = f"limit must be positive, got {limit}"
            raise ValueError(msg)
        now = self._clock()
        parsed, selected = validate_report_selection(report_type, fields)
        decoded = validate_filters(filters, now=now)
        strategy = get_strategy(parsed)
        columns = strategy.output_fields([spec.key for spec in selected])
        try:
            async with self._clients.connect(tenant) as executor:
                fetched = await strategy.fetch(
                    FetchContext(
                        executor=executor,
                        filters=decoded,
                        now=now,
                        limits=self._config.page_limits,
                        retry_policy=self._config.retry_policy,
                        sleep=self._sleep,
                    )
                )
            rows = project_rows(strategy.transform(fetched.records), columns)
        except Exception as exc:
            detail = str(exc) or type(exc).__name__
            log_exception(
                logger, f"Preview of {parsed} report for {tenant} failed", exc
            )
            raise PreviewFailedError(parsed, classify_error(exc), detail) from exc
        return ReportPreview(
            report_type=parsed,
            columns=columns,
            rows=rows[:limit],
            total_records=len(rows),
            truncated=fetched.truncated,
        )

    async def _run(
        self, schedule: ScheduleSnapshot, trigger: ExecutionTrigger
    ) -> ExecutionOutcome:
        started_at = self._clock()
        execution_id = await self._repository.create_execution(
            schedule.id, started_at=started_at, trigger=trigger
        )
        state = _RunState(
            execution_id=execution_id,
            started_at=started_at,
            started_monotonic=time.monotonic(),
        )
        self._events.log_run_started(
            schedule_id=schedule.id, tenant=schedule.tenant, execution_id=execution_id
        )
        next_run_at: dt.datetime | None = None
        try:
            try:
                await self._produce_and_deliver(schedule, state)
            except Exception as exc:
                outcome = await self._record_failure(schedule, state, exc)
            else:
                try:
                    outcome = await self._record_success(state, schedule.id)
                except Exception as exc:
                    # Recipients already have the report; no failure notice.
                    outcome = await self._record_failure(
                        schedule, state, exc, notify=False
                    )
            finally:
                next_run_at = await self._reschedule(schedule)
        finally:
            if state.artifact is not None:
                state.artifact.discard()
        return dc.replace(outcome, next_run_at=next_run_at)

    async def _produce_and_deliver(
        self, schedule: ScheduleSnapshot, state: _RunState
    ) -> None:
        strategy = get_strategy(schedule.report_type)
        fields = strategy.output_fields(schedule.fields)
        now = self._clock()
        async with self._clients.connect(schedule.tenant) as executor:
            state.fetched = await strategy.fetch(
                FetchContext(
                    executor=executor,
                    filters=schedule.filters,
                    now=now,
                    limits=self._config.page_limits,
                    retry_policy=self._config.retry_policy,
                    sleep=self._sleep,
                )
            )
        if state.fetched.truncated:
            self._events.log_fetch_truncated(
                execution_id=state.execution_id,
                pages=state.fetched.pages,
                record_count=state.fetched.record_count,
            )
        rows = project_rows(strategy.transform(state.fetched.records), fields)
        state.artifact = self._writer.write(rows, fields, schedule.name, now=now)
        await self._repository.record_artifact(
            state.execution_id, str(state.artifact.path)
        )
        context = ReportEmailContext(
            report_name=schedule.name,
            report_type=strategy.display_name,
            record_count=len(rows),
            generated_at=now,
            date_range=describe_range(schedule.filters.date_range_tag()),
            shop_name=schedule.tenant,
            truncated=state.fetched.truncated,
            schedule_summary=describe_recurrence(
                schedule.recurrence, schedule.timezone
            ),
        )
        state.delivery = await self._notifier.send_report(
            schedule.recipients, context, state.artifact
        )

    async def _record_success(
        self, state: _RunState, schedule_id: str
    ) -> ExecutionOutcome:
        fetched = state.fetched
        artifact = state.artifact
        delivery = state.delivery
        if fetched is None or artifact is None or delivery is None:
            msg = f"Execution {state.execution_id} finished without an artifact"
            raise RuntimeError(msg)
        await self._repository.complete_execution(
            state.execution_id,
            completed_at=self._clock(),
            record_count=artifact.row_count,
            file_size=artifact.size_bytes,
            emails_sent=delivery.emails_sent,
            emails_failed=delivery.emails_failed,
            truncated=fetched.truncated,
        )
        if delivery.emails_failed:
            self._events.log_delivery_partial(
                execution_id=state.execution_id, delivery=delivery
            )
        self._events.log_run_completed(
            execution_id=state.execution_id,
            record_count=artifact.row_count,
            file_size=artifact.size_bytes,
            delivery=delivery,
            duration=self._elapsed(state),
        )
        return ExecutionOutcome(
            execution_id=state.execution_id,
            schedule_id=schedule_id,
            status=ExecutionStatus.SUCCESS,
            record_count=artifact.row_count,
            file_size=artifact.size_bytes,
            truncated=fetched.truncated,
            emails_sent=delivery.emails_sent,
            emails_failed=delivery.emails_failed,
        )

    async def _record_failure(
        self,
        schedule: ScheduleSnapshot,
        state: _RunState,
        exc: Exception,
        *,
        notify: bool = True,
    ) -> ExecutionOutcome:
        analysis = classify_error(exc)
        message = str(exc) or type(exc).__name__
        await self._repository.fail_execution(
            state.execution_id,
            completed_at=self._clock(),
            error_message=message,
            error_category=analysis.category,
            record_count=state.record_count,
        )
        self._events.log_run_failed(
            execution_id=state.execution_id,
            error=exc,
            analysis=analysis,
            duration=self._elapsed(state),
        )
        if notify:
            await self._send_failure_notice(schedule, state, message, analysis)
        return ExecutionOutcome(
            execution_id=state.execution_id,
            schedule_id=schedule.id,
            status=ExecutionStatus.FAILED,
            record_count=state.record_count,
            error_message=message,
            error_category=analysis.category,
        )

    async def _send_failure_notice(
        self,
        schedule: ScheduleSnapshot,
        state: _RunState,
        message: str,
        analysis: ErrorAnalysis,
    ) -> None:
        notice = FailureNotice(
            report_name=schedule.name,
            report_type=schedule.report_type,
            error_message=message,
            category=analysis.label,
            hints=analysis.hints,
            execution_id=state.execution_id,
            shop_name=schedule.tenant,
        )
        try:
            await self._notifier.send_failure_notice(schedule.recipients, notice)
        except Exception as notice_exc:  # noqa: BLE001
            log_exception(
                logger,
                f"Failure notice for execution {state.execution_id} not sent",
                notice_exc,
            )

    async def _reschedule(self, schedule: ScheduleSnapshot) -> dt.datetime:
        completed_at = self._clock()
        next_run_at = compute_next_run(
            schedule.recurrence, schedule.timezone, after=completed_at
        )
        await self._repository.reschedule(
            schedule.id, last_run_at=completed_at, next_run_at=next_run_at
        )
        return next_run_at

    @staticmethod
    def _elapsed(state: _RunState) -> dt.timedelta:
        return dt.timedelta(seconds=time.monotonic() - state.started_monotonic)
