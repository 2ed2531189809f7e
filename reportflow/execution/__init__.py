"""Execution orchestration: ledger state machine, classification, events."""

from __future__ import annotations

from .classification import ErrorAnalysis, ErrorCategory, classify_error
from .config import ExecutionConfig
from .errors import (
    CONFIGURATION_ERRORS,
    ScheduleAlreadyRunningError,
    ScheduleInactiveError,
    ScheduleNotFoundError,
    TenantMismatchError,
)
from .observability import ExecutionEventLogger, ExecutionEventType
from .preview import (
    MAX_PREVIEW_ROWS,
    PREVIEW_ROW_LIMIT,
    PreviewFailedError,
    ReportPreview,
)
from .service import (
    ExecutionDependencies,
    ExecutionOutcome,
    ReportExecutionService,
)

__all__ = [
    "CONFIGURATION_ERRORS",
    "MAX_PREVIEW_ROWS",
    "PREVIEW_ROW_LIMIT",
    "ErrorAnalysis",
    "ErrorCategory",
    "ExecutionConfig",
    "ExecutionDependencies",
    "ExecutionEventLogger",
    "ExecutionEventType",
    "ExecutionOutcome",
    "PreviewFailedError",
    "ReportExecutionService",
    "ReportPreview",
    "ScheduleAlreadyRunningError",
    "ScheduleInactiveError",
    "ScheduleNotFoundError",
    "TenantMismatchError",
    "classify_error",
]
