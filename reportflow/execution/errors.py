"""Execution errors.

Errors raised before an execution reaches ``RUNNING`` describe
configuration problems and never produce a ledger entry.
"""

from __future__ import annotations

from reportflow.schedules.errors import ScheduleNotFoundError


class ScheduleInactiveError(RuntimeError):
    """Raised when an inactive schedule is asked to run."""

    def __init__(self, schedule_id: str) -> None:
        """Record the inactive schedule id."""
        self.schedule_id = schedule_id
        super().__init__(f"Schedule is not active: {schedule_id}")


class TenantMismatchError(LookupError):
    """Raised when a caller names a tenant that does not own the schedule."""

    def __init__(self, schedule_id: str, tenant: str) -> None:
        """Record the schedule and the tenant that asked for it."""
        self.schedule_id = schedule_id
        self.tenant = tenant
        super().__init__(f"Schedule {schedule_id} does not belong to tenant {tenant}")


class ScheduleAlreadyRunningError(RuntimeError):
    """Raised when a schedule is already executing in this process."""

    def __init__(self, schedule_id: str) -> None:
        """Record the busy schedule id."""
        self.schedule_id = schedule_id
        super().__init__(f"Schedule is already running: {schedule_id}")


CONFIGURATION_ERRORS: tuple[type[Exception], ...] = (
    ScheduleNotFoundError,
    ScheduleInactiveError,
    TenantMismatchError,
    ScheduleAlreadyRunningError,
)

__all__ = [
    "CONFIGURATION_ERRORS",
    "ScheduleAlreadyRunningError",
    "ScheduleInactiveError",
    "ScheduleNotFoundError",
    "TenantMismatchError",
]
