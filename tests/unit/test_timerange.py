"""Unit tests for date-range resolution."""

from __future__ import annotations

import datetime as dt

import pytest

from reportflow.reports.timerange import (
    DateRange,
    DateRangeTag,
    InvalidRangeError,
    describe_range,
    resolve_range,
)

NOW = dt.datetime(2024, 5, 15, 13, 45, tzinfo=dt.UTC)


def _span(first: dt.date, last: dt.date) -> DateRange:
    return DateRange(
        start=dt.datetime.combine(first, dt.time.min, tzinfo=dt.UTC),
        end=dt.datetime.combine(last, dt.time(23, 59, 59, 999000), tzinfo=dt.UTC),
    )


@pytest.mark.parametrize(
    ("tag", "first", "last"),
    [
        pytest.param(DateRangeTag.TODAY, dt.date(2024, 5, 15), dt.date(2024, 5, 15)),
        pytest.param(
            DateRangeTag.YESTERDAY, dt.date(2024, 5, 14), dt.date(2024, 5, 14)
        ),
        pytest.param(
            DateRangeTag.LAST_7_DAYS, dt.date(2024, 5, 9), dt.date(2024, 5, 15)
        ),
        pytest.param(
            DateRangeTag.LAST_30_DAYS, dt.date(2024, 4, 16), dt.date(2024, 5, 15)
        ),
        pytest.param(
            DateRangeTag.LAST_90_DAYS, dt.date(2024, 2, 16), dt.date(2024, 5, 15)
        ),
        pytest.param(
            DateRangeTag.THIS_MONTH, dt.date(2024, 5, 1), dt.date(2024, 5, 15)
        ),
        pytest.param(
            DateRangeTag.LAST_MONTH, dt.date(2024, 4, 1), dt.date(2024, 4, 30)
        ),
        pytest.param(
            DateRangeTag.THIS_QUARTER, dt.date(2024, 4, 1), dt.date(2024, 5, 15)
        ),
        pytest.param(
            DateRangeTag.LAST_QUARTER, dt.date(2024, 1, 1), dt.date(2024, 3, 31)
        ),
        pytest.param(DateRangeTag.THIS_YEAR, dt.date(2024, 1, 1), dt.date(2024, 5, 15)),
        pytest.param(
            DateRangeTag.LAST_YEAR, dt.date(2023, 1, 1), dt.date(2023, 12, 31)
        ),
    ],
)
def test_resolve_range_tags(tag: DateRangeTag, first: dt.date, last: dt.date) -> None:
    """Each tag resolves to whole UTC days relative to ``now``."""
    assert resolve_range(tag, now=NOW) == _span(first, last)


def test_last_month_crosses_year_boundary() -> None:
    """In January the previous month is December of the prior year."""
    january = dt.datetime(2024, 1, 10, tzinfo=dt.UTC)
    assert resolve_range(DateRangeTag.LAST_MONTH, now=january) == _span(
        dt.date(2023, 12, 1), dt.date(2023, 12, 31)
    )


def test_last_quarter_from_first_quarter() -> None:
    """Q1 looks back to Q4 of the prior year."""
    february = dt.datetime(2024, 2, 29, tzinfo=dt.UTC)
    assert resolve_range(DateRangeTag.LAST_QUARTER, now=february) == _span(
        dt.date(2023, 10, 1), dt.date(2023, 12, 31)
    )


def test_resolution_uses_utc_day_of_non_utc_now() -> None:
    """A late-evening local time already in tomorrow's UTC day is honoured."""
    local = dt.datetime(
        2024, 5, 15, 22, 0, tzinfo=dt.timezone(dt.timedelta(hours=-5))
    )
    assert resolve_range(DateRangeTag.TODAY, now=local) == _span(
        dt.date(2024, 5, 16), dt.date(2024, 5, 16)
    )


def test_custom_range_requires_both_bounds() -> None:
    """CUSTOM without an end date is rejected."""
    with pytest.raises(InvalidRangeError, match="both a start and an end"):
        resolve_range(DateRangeTag.CUSTOM, custom_start=dt.date(2024, 1, 1))


def test_custom_range_rejects_inverted_bounds() -> None:
    """CUSTOM with start after end is rejected."""
    with pytest.raises(InvalidRangeError, match="is after"):
        resolve_range(
            "CUSTOM",
            custom_start=dt.date(2024, 3, 2),
            custom_end=dt.date(2024, 3, 1),
        )


def test_custom_range_single_day() -> None:
    """Equal bounds produce a one-day range."""
    day = dt.date(2024, 3, 2)
    assert resolve_range("CUSTOM", custom_start=day, custom_end=day) == _span(
        day, day
    )


def test_unknown_tag_is_rejected() -> None:
    """Unknown selectors raise ``InvalidRangeError``."""
    with pytest.raises(InvalidRangeError, match="Unknown date range"):
        resolve_range("NEXT_WEEK", now=NOW)


def test_query_bounds_are_millisecond_iso_strings() -> None:
    """Bounds render with millisecond precision and a ``Z`` suffix."""
    date_range = resolve_range(DateRangeTag.TODAY, now=NOW)
    assert date_range.to_query_bounds() == (
        "2024-05-15T00:00:00.000Z",
        "2024-05-15T23:59:59.999Z",
    )


def test_describe_range_labels() -> None:
    """Known tags have labels; unknown text is echoed."""
    assert describe_range("LAST_7_DAYS") == "Last 7 Days"
    assert describe_range("SOMETIME") == "SOMETIME"
