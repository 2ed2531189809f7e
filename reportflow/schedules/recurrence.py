"""Recurrence rules and next-run computation for report schedules.

A schedule fires at a wall-clock time of day in its own IANA timezone. The
next run is always the earliest instant strictly after the reference time, so
a schedule evaluated exactly on its slot moves on to the following slot.

Usage
-----
>>> import datetime as dt
>>> rule = Recurrence(frequency=Frequency.DAILY, time_of_day="09:00")
>>> compute_next_run(
...     rule, "UTC", after=dt.datetime(2024, 7, 14, 8, 0, tzinfo=dt.UTC)
... ).isoformat()
'2024-07-14T09:00:00+00:00'

"""

from __future__ import annotations

import calendar
import datetime as dt
import enum
import re
import zoneinfo

import msgspec

from reportflow.common.time import ensure_utc

from .errors import InvalidRecurrenceError, InvalidScheduleError

LAST_DAY_OF_MONTH = -1
_MAX_HOUR = 23
_MAX_MINUTE = 59
_MAX_WEEKDAY = 6
_MAX_MONTH_DAY = 31
_NOON = 12
_TIME_PATTERN = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")
_DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
# Longest gap between two monthly slots is 62 days; scan a little beyond.
_SEARCH_HORIZON_DAYS = 400


class Frequency(enum.StrEnum):
    """How often a schedule fires."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class Recurrence(msgspec.Struct, kw_only=True, frozen=True):
    """Recurrence rule for a schedule.

    Attributes
    ----------
    frequency
        Cadence of the schedule. ``CUSTOM`` recurs daily.
    time_of_day
        Local wall-clock time in ``HH:MM`` 24-hour form.
    day_of_week
        Weekday for ``WEEKLY`` rules, ``0`` is Sunday.
    day_of_month
        Day for ``MONTHLY`` rules, ``1..31`` or ``-1`` for the last day.
        Days beyond a month's length clamp to its last day.

    """

    frequency: Frequency
    time_of_day: str = "09:00"
    day_of_week: int | None = None
    day_of_month: int | None = None

    def clock_time(self) -> dt.time:
        """Return the parsed time of day, raising on malformed input."""
        match = _TIME_PATTERN.match(self.time_of_day.strip())
        if match is None:
            raise InvalidRecurrenceError.bad_time(self.time_of_day)
        hour = int(match["hour"])
        minute = int(match["minute"])
        if hour > _MAX_HOUR or minute > _MAX_MINUTE:
            raise InvalidRecurrenceError.bad_time(self.time_of_day)
        return dt.time(hour, minute)

    def validate(self) -> None:
        """Raise ``InvalidRecurrenceError`` when the rule is incomplete."""
        self.clock_time()
        if self.frequency is Frequency.WEEKLY:
            if self.day_of_week is None:
                raise InvalidRecurrenceError.missing_day_of_week()
            if not 0 <= self.day_of_week <= _MAX_WEEKDAY:
                raise InvalidRecurrenceError.bad_day_of_week(self.day_of_week)
        if self.frequency is Frequency.MONTHLY:
            if self.day_of_month is None:
                raise InvalidRecurrenceError.missing_day_of_month()
            if self.day_of_month != LAST_DAY_OF_MONTH and not (
                1 <= self.day_of_month <= _MAX_MONTH_DAY
            ):
                raise InvalidRecurrenceError.bad_day_of_month(self.day_of_month)


def load_timezone(name: str) -> zoneinfo.ZoneInfo:
    """Return the ``ZoneInfo`` for ``name`` or raise ``InvalidScheduleError``."""
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidScheduleError.unknown_timezone(name) from exc


def _sunday_index(day: dt.date) -> int:
    return (day.weekday() + 1) % 7


def _monthly_target(day: dt.date, day_of_month: int) -> int:
    last = calendar.monthrange(day.year, day.month)[1]
    if day_of_month == LAST_DAY_OF_MONTH:
        return last
    return min(day_of_month, last)


def _matches_day(rule: Recurrence, day: dt.date) -> bool:
    if rule.frequency is Frequency.WEEKLY:
        return _sunday_index(day) == rule.day_of_week
    if rule.frequency is Frequency.MONTHLY:
        return rule.day_of_month is not None and day.day == _monthly_target(
            day, rule.day_of_month
        )
    return True


def compute_next_run(
    recurrence: Recurrence, timezone: str, *, after: dt.datetime
) -> dt.datetime:
    """Return the earliest slot strictly after ``after``, in UTC.

    Parameters
    ----------
    recurrence
        Validated recurrence rule.
    timezone
        IANA timezone the time of day is expressed in.
    after
        Timezone-aware reference instant.

    Returns
    -------
    dt.datetime
        UTC instant of the next run.

    Raises
    ------
    InvalidRecurrenceError
        If the rule is incomplete.
    InvalidScheduleError
        If ``timezone`` is unknown.

    """
    recurrence.validate()
    zone = load_timezone(timezone)
    reference = ensure_utc(after, field="after")
    clock = recurrence.clock_time()
    local_day = reference.astimezone(zone).date()

    for offset in range(_SEARCH_HORIZON_DAYS):
        day = local_day + dt.timedelta(days=offset)
        if not _matches_day(recurrence, day):
            continue
        candidate = dt.datetime.combine(day, clock, tzinfo=zone).astimezone(dt.UTC)
        if candidate > reference:
            return candidate

    msg = f"No run found within {_SEARCH_HORIZON_DAYS} days for {recurrence!r}"
    raise InvalidRecurrenceError(msg)


def _format_clock(clock: dt.time) -> str:
    hour = clock.hour % 12 or 12
    period = "PM" if clock.hour >= _NOON else "AM"
    return f"{hour}:{clock.minute:02d} {period}"


def _ordinal(day: int) -> str:
    if day % 100 in {11, 12, 13}:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def describe_recurrence(recurrence: Recurrence, timezone: str) -> str:
    """Return a human-readable summary such as ``Weekly on Monday at 9:00 AM``."""
    clock = _format_clock(recurrence.clock_time())
    match recurrence.frequency:
        case Frequency.WEEKLY if recurrence.day_of_week is not None:
            text = f"Weekly on {_DAY_NAMES[recurrence.day_of_week]} at {clock}"
        case Frequency.MONTHLY if recurrence.day_of_month == LAST_DAY_OF_MONTH:
            text = f"Monthly on the last day at {clock}"
        case Frequency.MONTHLY if recurrence.day_of_month is not None:
            text = f"Monthly on the {_ordinal(recurrence.day_of_month)} at {clock}"
        case _:
            text = f"Daily at {clock}"
    return f"{text} ({timezone})"
