"""Resolve symbolic date-range selectors to concrete UTC bounds.

All ranges are inclusive and aligned to UTC day boundaries: the start is
``00:00:00.000`` and the end is ``23:59:59.999``. Computing in UTC keeps the
result independent of the server's local timezone and matches how the Admin
API filters ``created_at``.

Usage
-----
>>> import datetime as dt
>>> now = dt.datetime(2024, 7, 14, 15, 30, tzinfo=dt.UTC)
>>> resolve_range(DateRangeTag.LAST_7_DAYS, now=now).start.isoformat()
'2024-07-08T00:00:00+00:00'

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum

from reportflow.common.time import ensure_utc, utcnow


class DateRangeTag(enum.StrEnum):
    """Symbolic date ranges a schedule can select."""

    TODAY = "TODAY"
    YESTERDAY = "YESTERDAY"
    LAST_7_DAYS = "LAST_7_DAYS"
    LAST_30_DAYS = "LAST_30_DAYS"
    LAST_90_DAYS = "LAST_90_DAYS"
    THIS_MONTH = "THIS_MONTH"
    LAST_MONTH = "LAST_MONTH"
    THIS_QUARTER = "THIS_QUARTER"
    LAST_QUARTER = "LAST_QUARTER"
    THIS_YEAR = "THIS_YEAR"
    LAST_YEAR = "LAST_YEAR"
    CUSTOM = "CUSTOM"


DEFAULT_RANGE = DateRangeTag.LAST_30_DAYS

_DESCRIPTIONS: dict[DateRangeTag, str] = {
    DateRangeTag.TODAY: "Today",
    DateRangeTag.YESTERDAY: "Yesterday",
    DateRangeTag.LAST_7_DAYS: "Last 7 Days",
    DateRangeTag.LAST_30_DAYS: "Last 30 Days",
    DateRangeTag.LAST_90_DAYS: "Last 90 Days",
    DateRangeTag.THIS_MONTH: "This Month",
    DateRangeTag.LAST_MONTH: "Last Month",
    DateRangeTag.THIS_QUARTER: "This Quarter",
    DateRangeTag.LAST_QUARTER: "Last Quarter",
    DateRangeTag.THIS_YEAR: "This Year",
    DateRangeTag.LAST_YEAR: "Last Year",
    DateRangeTag.CUSTOM: "Custom Range",
}

_TRAILING_DAYS: dict[DateRangeTag, int] = {
    DateRangeTag.LAST_7_DAYS: 7,
    DateRangeTag.LAST_30_DAYS: 30,
    DateRangeTag.LAST_90_DAYS: 90,
}


class InvalidRangeError(ValueError):
    """Raised when a date range cannot be resolved."""

    @classmethod
    def missing_custom_bounds(cls) -> InvalidRangeError:
        """Return an error for a custom range without both bounds."""
        return cls("Custom date range requires both a start and an end date")

    @classmethod
    def inverted(cls, start: dt.date, end: dt.date) -> InvalidRangeError:
        """Return an error for a custom range whose start follows its end."""
        return cls(
            f"Custom date range start {start.isoformat()} is after "
            f"end {end.isoformat()}"
        )


@dc.dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive UTC bounds for a report query.

    Attributes
    ----------
    start
        First instant included in the range.
    end
        Last instant included in the range.

    """

    start: dt.datetime
    end: dt.datetime

    def to_query_bounds(self) -> tuple[str, str]:
        """Return ISO-8601 strings with millisecond precision and ``Z``."""
        return (_iso_millis(self.start), _iso_millis(self.end))


def _iso_millis(value: dt.datetime) -> str:
    return value.astimezone(dt.UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _start_of_day(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time.min, tzinfo=dt.UTC)


def _end_of_day(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time(23, 59, 59, 999000), tzinfo=dt.UTC)


def _day_span(first: dt.date, last: dt.date) -> DateRange:
    return DateRange(start=_start_of_day(first), end=_end_of_day(last))


def _shift_month(day: dt.date, months: int) -> dt.date:
    """Return the first day of the month ``months`` away from ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return dt.date(index // 12, index % 12 + 1, 1)


def _quarter_start(day: dt.date) -> dt.date:
    return dt.date(day.year, ((day.month - 1) // 3) * 3 + 1, 1)


def _as_date(value: dt.date | dt.datetime) -> dt.date:
    if isinstance(value, dt.datetime):
        return ensure_utc(value, field="custom range bound").date()
    return value


def _custom_range(
    custom_start: dt.date | dt.datetime | None,
    custom_end: dt.date | dt.datetime | None,
) -> DateRange:
    if custom_start is None or custom_end is None:
        raise InvalidRangeError.missing_custom_bounds()
    first = _as_date(custom_start)
    last = _as_date(custom_end)
    if first > last:
        raise InvalidRangeError.inverted(first, last)
    return _day_span(first, last)


def resolve_range(
    tag: DateRangeTag | str,
    *,
    custom_start: dt.date | dt.datetime | None = None,
    custom_end: dt.date | dt.datetime | None = None,
    now: dt.datetime | None = None,
) -> DateRange:
    """Resolve ``tag`` to inclusive UTC bounds relative to ``now``.

    Parameters
    ----------
    tag
        Symbolic range selector.
    custom_start, custom_end
        Explicit bounds, required when ``tag`` is ``CUSTOM`` and ignored
        otherwise.
    now
        Reference instant; defaults to the current time.

    Returns
    -------
    DateRange
        Day-aligned bounds with ``start <= end``.

    Raises
    ------
    InvalidRangeError
        If ``CUSTOM`` is requested without both bounds, with inverted bounds,
        or ``tag`` is not a known selector.

    """
    try:
        selector = DateRangeTag(tag)
    except ValueError as exc:
        msg = f"Unknown date range: {tag!r}"
        raise InvalidRangeError(msg) from exc

    if selector is DateRangeTag.CUSTOM:
        return _custom_range(custom_start, custom_end)

    today = ensure_utc(now or utcnow(), field="now").date()

    if selector is DateRangeTag.TODAY:
        return _day_span(today, today)
    if selector is DateRangeTag.YESTERDAY:
        yesterday = today - dt.timedelta(days=1)
        return _day_span(yesterday, yesterday)
    if selector in _TRAILING_DAYS:
        first = today - dt.timedelta(days=_TRAILING_DAYS[selector] - 1)
        return _day_span(first, today)
    if selector is DateRangeTag.THIS_MONTH:
        return _day_span(today.replace(day=1), today)
    if selector is DateRangeTag.LAST_MONTH:
        first = _shift_month(today, -1)
        return _day_span(first, today.replace(day=1) - dt.timedelta(days=1))
    if selector is DateRangeTag.THIS_QUARTER:
        return _day_span(_quarter_start(today), today)
    if selector is DateRangeTag.LAST_QUARTER:
        current = _quarter_start(today)
        return _day_span(_shift_month(current, -3), current - dt.timedelta(days=1))
    if selector is DateRangeTag.THIS_YEAR:
        return _day_span(dt.date(today.year, 1, 1), today)
    return _day_span(dt.date(today.year - 1, 1, 1), dt.date(today.year - 1, 12, 31))


def describe_range(tag: DateRangeTag | str) -> str:
    """Return the human-readable label used in delivery emails."""
    try:
        return _DESCRIPTIONS[DateRangeTag(tag)]
    except ValueError:
        return str(tag)
