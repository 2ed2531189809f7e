"""Due-schedule poller.

``ReportScheduler`` owns all scheduling state: the periodic loop task, the
set of tenants currently executing and the in-flight tenant tasks. One
instance is built at process start and passed to whatever needs it.

Each tick sweeps stale ledger entries, lists due schedules, groups them by
tenant and starts one background task per idle tenant. The tick does not
await those tasks; a tenant still running from an earlier tick is skipped.

Usage
-----
>>> scheduler = ReportScheduler(service, repository)
>>> await scheduler.start()
>>> scheduler.status().running
True
>>> await scheduler.stop()

"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import typing as typ

from reportflow.execution.errors import CONFIGURATION_ERRORS
from reportflow.execution.observability import ExecutionEventLogger
from reportflow.logging import get_logger, log_exception, log_info, log_warning
from reportflow.storage.models import ExecutionTrigger

from .clock import Clock, SystemClock
from .config import SchedulerConfig

if typ.TYPE_CHECKING:
    import datetime as dt

    from reportflow.execution.service import ExecutionOutcome
    from reportflow.schedules.models import ScheduleSnapshot
    from reportflow.storage.repository import ScheduleRepository

logger = get_logger(__name__)


class ScheduleExecutor(typ.Protocol):
    """The orchestrator operations the poller depends on."""

    async def load_runnable(
        self, schedule_id: str, *, tenant: str | None = None
    ) -> ScheduleSnapshot:
        """Return the schedule or raise a configuration error."""
        ...

    async def execute(
        self,
        schedule_id: str,
        *,
        tenant: str | None = None,
        trigger: ExecutionTrigger = ExecutionTrigger.SCHEDULED,
    ) -> ExecutionOutcome:
        """Run one schedule to a terminal ledger state."""
        ...


@dc.dataclass(frozen=True, slots=True)
class SchedulerStatus:
    """Snapshot of the poller for operational queries."""

    running: bool
    active_tenants: tuple[str, ...]
    job_count: int
    last_tick_at: dt.datetime | None
    interval_s: int


@dc.dataclass(frozen=True, slots=True)
class TickSummary:
    """What one poll tick did."""

    due_count: int
    dispatched_tenants: tuple[str, ...]
    skipped_tenants: tuple[str, ...]
    stale_reconciled: int = 0


class ReportScheduler:
    """Poll for due schedules and run them per tenant in the background."""

    def __init__(
        self,
        executor: ScheduleExecutor,
        repository: ScheduleRepository,
        config: SchedulerConfig | None = None,
        *,
        clock: Clock | None = None,
        event_logger: ExecutionEventLogger | None = None,
    ) -> None:
        """Configure the poller.

        Parameters
        ----------
        executor
            Orchestrator used for every execution.
        repository
            Source of due schedules and target of the stale sweep.
        config
            Poll interval and stale threshold; defaults apply when omitted.
        clock
            Time source; the system clock is used when omitted.
        event_logger
            Structured event logger for the stale sweep.

        """
        self._executor = executor
        self._repository = repository
        self._config = config or SchedulerConfig()
        self._clock = clock or SystemClock()
        self._events = event_logger or ExecutionEventLogger()
        self._running_tenants: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._loop_task: asyncio.Task[None] | None = None
        self._last_tick_at: dt.datetime | None = None

    @property
    def running(self) -> bool:
        """Return whether the periodic loop is active."""
        return self._loop_task is not None and not self._loop_task.done()

    def status(self) -> SchedulerStatus:
        """Return the loop state and the tenants currently executing."""
        return SchedulerStatus(
            running=self.running,
            active_tenants=tuple(sorted(self._running_tenants)),
            job_count=len(self._tasks),
            last_tick_at=self._last_tick_at,
            interval_s=self._config.interval_s,
        )

    async def start(self) -> None:
        """Start the periodic loop; a second call is a no-op."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._loop(), name="report-scheduler")
        log_info(
            logger, "Report scheduler started (interval=%ds)", self._config.interval_s
        )

    async def stop(self) -> None:
        """Stop the loop and wait for in-flight tenant batches to finish."""
        loop_task, self._loop_task = self._loop_task, None
        if loop_task is not None:
            loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await loop_task
        await self.wait_idle()
        log_info(logger, "Report scheduler stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception as exc:  # noqa: BLE001
                log_exception(logger, "Poll tick failed", exc)
            await self._clock.sleep(self._config.interval_s)

    async def trigger_now(self) -> TickSummary:
        """Run one poll tick immediately, outside the periodic cycle."""
        log_info(logger, "Manual poll tick requested")
        return await self.tick()

    async def tick(self) -> TickSummary:
        """Sweep stale entries and dispatch due schedules by tenant.

        Returns
        -------
        TickSummary
            Due count plus the tenants dispatched and skipped.

        """
        now = self._clock.now()
        self._last_tick_at = now
        stale_ids = await self._repository.mark_stale_executions(
            older_than=self._config.stale_after, now=now
        )
        if stale_ids:
            self._events.log_stale_reconciled(execution_ids=stale_ids)

        due = await self._repository.list_due(now)
        batches: dict[str, list[str]] = {}
        for schedule in due:
            batches.setdefault(schedule.tenant, []).append(schedule.id)

        dispatched: list[str] = []
        skipped: list[str] = []
        for tenant, schedule_ids in batches.items():
            if tenant in self._running_tenants:
                skipped.append(tenant)
                continue
            self._running_tenants.add(tenant)
            self._spawn(self._run_tenant(tenant, schedule_ids), f"tenant:{tenant}")
            dispatched.append(tenant)

        if skipped:
            log_info(logger, "Skipping busy tenants: %s", ", ".join(skipped))
        log_info(
            logger,
            "Poll tick: due=%d dispatched=%d skipped=%d",
            len(due),
            len(dispatched),
            len(skipped),
        )
        return TickSummary(
            due_count=len(due),
            dispatched_tenants=tuple(dispatched),
            skipped_tenants=tuple(skipped),
            stale_reconciled=len(stale_ids),
        )

    async def _run_tenant(self, tenant: str, schedule_ids: list[str]) -> None:
        """Execute one tenant's due schedules in order, isolating failures."""
        try:
            for schedule_id in schedule_ids:
                await self._execute_logged(
                    schedule_id, tenant=tenant, trigger=ExecutionTrigger.SCHEDULED
                )
        finally:
            self._running_tenants.discard(tenant)

    async def _execute_logged(
        self, schedule_id: str, *, tenant: str, trigger: ExecutionTrigger
    ) -> None:
        try:
            outcome = await self._executor.execute(
                schedule_id, tenant=tenant, trigger=trigger
            )
        except CONFIGURATION_ERRORS as exc:
            log_warning(logger, "Schedule %s not run: %s", schedule_id, exc)
        except Exception as exc:  # noqa: BLE001
            log_exception(logger, f"Execution of schedule {schedule_id} crashed", exc)
        else:
            log_info(
                logger,
                "Schedule %s finished with %s (execution %s)",
                schedule_id,
                outcome.status,
                outcome.execution_id,
            )

    async def run_now(self, schedule_id: str, tenant: str) -> ScheduleSnapshot:
        """Dispatch a manual run and return without waiting for it.

        Configuration errors are raised to the caller before dispatch.

        Raises
        ------
        ScheduleNotFoundError, TenantMismatchError, ScheduleInactiveError
            If the schedule cannot run for ``tenant``.
        ScheduleAlreadyRunningError
            If the schedule is already executing.

        """
        schedule = await self._executor.load_runnable(schedule_id, tenant=tenant)
        self._spawn(
            self._execute_logged(
                schedule_id, tenant=tenant, trigger=ExecutionTrigger.MANUAL
            ),
            f"manual:{schedule_id}",
        )
        return schedule

    def _spawn(self, coro: typ.Coroutine[typ.Any, typ.Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every dispatched tenant batch and manual run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
