"""Schedule management errors."""

from __future__ import annotations


class InvalidScheduleError(ValueError):
    """Raised when a schedule definition fails validation."""

    @classmethod
    def unknown_timezone(cls, timezone: str) -> InvalidScheduleError:
        """Return an error for an unrecognised IANA timezone."""
        return cls(f"Unknown timezone: {timezone!r}")

    @classmethod
    def unknown_fields(
        cls, report_type: str, fields: list[str]
    ) -> InvalidScheduleError:
        """Return an error for field selections outside the report schema."""
        joined = ", ".join(fields)
        return cls(f"Unknown fields for {report_type} report: {joined}")

    @classmethod
    def no_recipients(cls) -> InvalidScheduleError:
        """Return an error for a schedule without recipients."""
        return cls("At least one recipient is required")

    @classmethod
    def blank(cls, field: str) -> InvalidScheduleError:
        """Return an error for a required text field left blank."""
        return cls(f"{field} must be non-empty")

    @classmethod
    def line_break(cls, field: str) -> InvalidScheduleError:
        """Return an error for a single-line field containing a line break."""
        return cls(f"{field} must not contain line breaks")


class InvalidRecurrenceError(InvalidScheduleError):
    """Raised when a recurrence rule is incomplete or out of range."""

    @classmethod
    def bad_time(cls, value: str) -> InvalidRecurrenceError:
        """Return an error for a time of day not in ``HH:MM`` form."""
        return cls(f"time_of_day must be HH:MM (24-hour), got: {value!r}")

    @classmethod
    def missing_day_of_week(cls) -> InvalidRecurrenceError:
        """Return an error for a weekly rule without a weekday."""
        return cls("WEEKLY schedules require day_of_week (0=Sunday..6=Saturday)")

    @classmethod
    def bad_day_of_week(cls, value: int) -> InvalidRecurrenceError:
        """Return an error for a weekday outside 0..6."""
        return cls(f"day_of_week must be between 0 and 6, got: {value}")

    @classmethod
    def missing_day_of_month(cls) -> InvalidRecurrenceError:
        """Return an error for a monthly rule without a day."""
        return cls("MONTHLY schedules require day_of_month (1..31 or -1)")

    @classmethod
    def bad_day_of_month(cls, value: int) -> InvalidRecurrenceError:
        """Return an error for a day of month outside 1..31 and not -1."""
        return cls(f"day_of_month must be 1..31 or -1 (last day), got: {value}")


class InvalidFilterError(InvalidScheduleError):
    """Raised when filter values cannot be decoded into typed filters."""

    @classmethod
    def undecodable(cls, key: str, detail: str) -> InvalidFilterError:
        """Return an error for a filter value that fails validation."""
        return cls(f"Invalid value for filter {key!r}: {detail}")

    @classmethod
    def wrong_kind(cls, key: str, expected: str, actual: str) -> InvalidFilterError:
        """Return an error when a filter holds a different value kind."""
        return cls(f"Filter {key!r} must be a {expected} value, got {actual}")


class ScheduleNotFoundError(LookupError):
    """Raised when a schedule id does not resolve to a stored schedule."""

    def __init__(self, schedule_id: str) -> None:
        """Record the missing schedule id."""
        self.schedule_id = schedule_id
        super().__init__(f"Schedule not found: {schedule_id}")
