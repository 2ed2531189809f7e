"""Behavioural coverage for next-run computation."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from reportflow.schedules.recurrence import Frequency, Recurrence, compute_next_run


class NextRunContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    recurrence: Recurrence
    timezone: str
    next_run: dt.datetime


@scenario("../next_run.feature", "Daily schedule before today's slot")
def test_daily_before_slot() -> None:
    """Wrap the pytest-bdd scenario for a slot later today."""


@scenario("../next_run.feature", "Daily schedule just after today's slot")
def test_daily_after_slot() -> None:
    """Wrap the pytest-bdd scenario for a slot tomorrow."""


@scenario("../next_run.feature", "Weekly schedule in a local timezone")
def test_weekly_local_timezone() -> None:
    """Wrap the pytest-bdd scenario for a weekly local slot."""


@scenario("../next_run.feature", "Monthly schedule clamps to the last day")
def test_monthly_clamp() -> None:
    """Wrap the pytest-bdd scenario for short months."""


@pytest.fixture
def next_run_context() -> NextRunContext:
    """Provide empty scenario state."""
    return {}


@given(parsers.parse("a {frequency:w} schedule at {time_of_day:S} in {timezone:S}"))
def given_schedule(
    next_run_context: NextRunContext, frequency: str, time_of_day: str, timezone: str
) -> None:
    """Build a rule without a day component."""
    next_run_context["recurrence"] = Recurrence(
        frequency=Frequency(frequency), time_of_day=time_of_day
    )
    next_run_context["timezone"] = timezone


@given(
    parsers.parse(
        "a {frequency} schedule at {time_of_day} in {timezone} on weekday {day:d}"
    )
)
def given_weekly_schedule(
    next_run_context: NextRunContext,
    frequency: str,
    time_of_day: str,
    timezone: str,
    day: int,
) -> None:
    """Build a weekly rule."""
    next_run_context["recurrence"] = Recurrence(
        frequency=Frequency(frequency), time_of_day=time_of_day, day_of_week=day
    )
    next_run_context["timezone"] = timezone


@given(
    parsers.parse(
        "a {frequency} schedule at {time_of_day} in {timezone} on day {day:d}"
    )
)
def given_monthly_schedule(
    next_run_context: NextRunContext,
    frequency: str,
    time_of_day: str,
    timezone: str,
    day: int,
) -> None:
    """Build a monthly rule."""
    next_run_context["recurrence"] = Recurrence(
        frequency=Frequency(frequency), time_of_day=time_of_day, day_of_month=day
    )
    next_run_context["timezone"] = timezone


@when(parsers.parse("the next run is computed at {instant}"))
def when_computed(next_run_context: NextRunContext, instant: str) -> None:
    """Compute the next slot after ``instant``."""
    next_run_context["next_run"] = compute_next_run(
        next_run_context["recurrence"],
        next_run_context["timezone"],
        after=dt.datetime.fromisoformat(instant),
    )


@then(parsers.parse("the next run is {expected}"))
def then_next_run(next_run_context: NextRunContext, expected: str) -> None:
    """Assert the computed UTC instant."""
    actual = next_run_context["next_run"]
    assert actual == dt.datetime.fromisoformat(expected), (
        f"expected {expected}, got {actual.isoformat()}"
    )
    assert actual.tzinfo is not None, "next run must be timezone-aware"
