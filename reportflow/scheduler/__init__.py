"""Due-schedule poller with per-tenant serialisation."""

from __future__ import annotations

from .clock import Clock, SystemClock
from .config import SchedulerConfig
from .poller import ReportScheduler, ScheduleExecutor, SchedulerStatus, TickSummary

__all__ = [
    "Clock",
    "ReportScheduler",
    "ScheduleExecutor",
    "SchedulerConfig",
    "SchedulerStatus",
    "SystemClock",
    "TickSummary",
]
