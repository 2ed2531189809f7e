"""Relational storage for schedules and the execution ledger."""

from __future__ import annotations

from .errors import (
    ExecutionAlreadyTerminalError,
    ExecutionRecordNotFoundError,
    TimezoneAwareRequiredError,
)
from .models import (
    Base,
    ExecutionRecord,
    ExecutionStatus,
    ExecutionTrigger,
    ReportSchedule,
    ScheduleField,
    ScheduleFilter,
    ScheduleRecipient,
    TenantSession,
    UTCDateTime,
    init_storage,
)
from .repository import (
    STALE_ERROR_CATEGORY,
    ExecutionSummary,
    ScheduleRepository,
    snapshot_from_model,
)

__all__ = [
    "STALE_ERROR_CATEGORY",
    "Base",
    "ExecutionAlreadyTerminalError",
    "ExecutionRecord",
    "ExecutionRecordNotFoundError",
    "ExecutionStatus",
    "ExecutionSummary",
    "ExecutionTrigger",
    "ReportSchedule",
    "ScheduleField",
    "ScheduleFilter",
    "ScheduleRecipient",
    "ScheduleRepository",
    "TenantSession",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "init_storage",
    "snapshot_from_model",
]
