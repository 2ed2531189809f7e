"""Structured execution lifecycle events.

Usage
-----
>>> events = ExecutionEventLogger()
>>> events.log_run_started(
...     schedule_id="sched-1", tenant="shop.example", execution_id="exec-1"
... )

"""

from __future__ import annotations

import enum
import typing as typ

from reportflow.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from reportflow.delivery.notifier import DeliveryResult

    from .classification import ErrorAnalysis

logger = get_logger(__name__)


class ExecutionEventType(enum.StrEnum):
    """Structured log event types for report executions."""

    RUN_STARTED = "execution.run.started"
    RUN_COMPLETED = "execution.run.completed"
    RUN_FAILED = "execution.run.failed"
    FETCH_TRUNCATED = "execution.fetch.truncated"
    DELIVERY_PARTIAL = "execution.delivery.partial"
    STALE_RECONCILED = "execution.stale.reconciled"


class ExecutionEventLogger:
    """Emit structured execution events via femtologging."""

    def log_run_started(
        self, *, schedule_id: str, tenant: str, execution_id: str
    ) -> None:
        """Log that an execution reached ``RUNNING``."""
        log_info(
            logger,
            "[%s] schedule_id=%s tenant=%s execution_id=%s",
            ExecutionEventType.RUN_STARTED,
            schedule_id,
            tenant,
            execution_id,
        )

    def log_run_completed(
        self,
        *,
        execution_id: str,
        record_count: int,
        file_size: int,
        delivery: DeliveryResult,
        duration: dt.timedelta,
    ) -> None:
        """Log a successful execution with its counts."""
        log_info(
            logger,
            "[%s] execution_id=%s record_count=%d file_size=%d "
            "emails_sent=%d emails_failed=%d duration_seconds=%.3f",
            ExecutionEventType.RUN_COMPLETED,
            execution_id,
            record_count,
            file_size,
            delivery.emails_sent,
            delivery.emails_failed,
            duration.total_seconds(),
        )

    def log_run_failed(
        self,
        *,
        execution_id: str,
        error: BaseException,
        analysis: ErrorAnalysis,
        duration: dt.timedelta,
    ) -> None:
        """Log a failed execution with its classified category.

        Parameters
        ----------
        execution_id
            Ledger entry that moved to ``FAILED``.
        error
            Exception caught at the orchestration boundary.
        analysis
            Classification recorded on the ledger entry.
        duration
            Elapsed time between start and failure.

        """
        log_error(
            logger,
            "[%s] execution_id=%s category=%s duration_seconds=%.3f "
            "error_type=%s error_message=%s",
            ExecutionEventType.RUN_FAILED,
            execution_id,
            analysis.category,
            duration.total_seconds(),
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_fetch_truncated(
        self, *, execution_id: str, pages: int, record_count: int
    ) -> None:
        """Log that pagination stopped at the page ceiling."""
        log_warning(
            logger,
            "[%s] execution_id=%s pages=%d record_count=%d",
            ExecutionEventType.FETCH_TRUNCATED,
            execution_id,
            pages,
            record_count,
        )

    def log_delivery_partial(
        self, *, execution_id: str, delivery: DeliveryResult
    ) -> None:
        """Log that some recipients did not receive the report."""
        log_warning(
            logger,
            "[%s] execution_id=%s emails_sent=%d emails_failed=%d errors=%s",
            ExecutionEventType.DELIVERY_PARTIAL,
            execution_id,
            delivery.emails_sent,
            delivery.emails_failed,
            "; ".join(delivery.errors),
        )

    def log_stale_reconciled(self, *, execution_ids: list[str]) -> None:
        """Log ledger entries failed by the stale sweep."""
        log_warning(
            logger,
            "[%s] count=%d execution_ids=%s",
            ExecutionEventType.STALE_RECONCILED,
            len(execution_ids),
            ",".join(execution_ids),
        )
