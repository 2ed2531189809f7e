"""Schedule definitions: recurrence rules, typed filters and snapshots.

``ScheduleService`` lives in ``reportflow.schedules.service`` because it
depends on the storage layer, which itself builds snapshots from this
package.
"""

from __future__ import annotations

from .errors import (
    InvalidFilterError,
    InvalidRecurrenceError,
    InvalidScheduleError,
    ScheduleNotFoundError,
)
from .filters import (
    BooleanFilter,
    DateFilter,
    FilterValue,
    ReportFilters,
    StringFilter,
    StringListFilter,
    decode_filter,
    decode_filters,
)
from .models import Recipient, ScheduleSnapshot
from .recurrence import (
    LAST_DAY_OF_MONTH,
    Frequency,
    Recurrence,
    compute_next_run,
    describe_recurrence,
    load_timezone,
)

__all__ = [
    "LAST_DAY_OF_MONTH",
    "BooleanFilter",
    "DateFilter",
    "FilterValue",
    "Frequency",
    "InvalidFilterError",
    "InvalidRecurrenceError",
    "InvalidScheduleError",
    "Recipient",
    "ReportFilters",
    "ScheduleNotFoundError",
    "ScheduleSnapshot",
    "StringFilter",
    "StringListFilter",
    "compute_next_run",
    "decode_filter",
    "decode_filters",
    "describe_recurrence",
    "load_timezone",
]
