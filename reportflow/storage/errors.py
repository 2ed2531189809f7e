"""Storage error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when a datetime bound to a column lacks timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating a naive value reached a UTC column."""
        return cls("timestamp column values")


class ExecutionRecordNotFoundError(LookupError):
    """Raised when an execution record id cannot be resolved."""

    def __init__(self, execution_id: str) -> None:
        """Record the missing execution id."""
        self.execution_id = execution_id
        super().__init__(f"Execution record not found: {execution_id}")


class ExecutionAlreadyTerminalError(RuntimeError):
    """Raised when finishing an execution that already left ``RUNNING``."""

    def __init__(self, execution_id: str, status: str) -> None:
        """Record the execution id and its current status."""
        self.execution_id = execution_id
        self.status = status
        super().__init__(f"Execution {execution_id} is already {status}")
