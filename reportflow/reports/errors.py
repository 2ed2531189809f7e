"""Errors raised while fetching, transforming and writing reports."""

from __future__ import annotations


class UnsupportedReportError(RuntimeError):
    """Raised when a report type has no data source to fetch from."""

    def __init__(self, report_type: str, reason: str) -> None:
        """Record the report type and the reason it cannot be fetched."""
        self.report_type = report_type
        super().__init__(reason)

    @classmethod
    def traffic(cls) -> UnsupportedReportError:
        """Return the error for storefront traffic reports."""
        return cls(
            "TRAFFIC",
            "Traffic data is not available via the Shopify GraphQL Admin API. "
            "Connect a web analytics source or use Shopify Analytics exports.",
        )


class UnknownReportTypeError(ValueError):
    """Raised when a report type tag is not recognised."""

    def __init__(self, report_type: str) -> None:
        """Record the unknown tag."""
        self.report_type = report_type
        super().__init__(f"Unknown report type: {report_type!r}")


class UnknownFieldError(ValueError):
    """Raised when selected output fields are not part of a report schema."""

    def __init__(self, report_type: str, fields: list[str]) -> None:
        """Record the report type and offending field keys."""
        self.report_type = report_type
        self.fields = fields
        super().__init__(
            f"Unknown fields for {report_type} report: {', '.join(fields)}"
        )


class DataProcessingError(ValueError):
    """Raised when a source record does not have the expected shape."""

    def __init__(self, report_type: str, field: str, detail: str) -> None:
        """Record where the malformed value was found."""
        self.report_type = report_type
        self.field = field
        super().__init__(
            f"Failed to process {report_type} data: field {field!r} {detail}"
        )

    @classmethod
    def missing(cls, report_type: str, field: str) -> DataProcessingError:
        """Return an error for a required field that is absent."""
        return cls(report_type, field, "is missing")

    @classmethod
    def invalid(
        cls, report_type: str, field: str, value: object
    ) -> DataProcessingError:
        """Return an error for a field holding an unparseable value."""
        return cls(report_type, field, f"has invalid value {value!r}")


class WriteFailure(OSError):
    """Raised when a report artifact cannot be written to disk."""

    def __init__(self, path: str, detail: str) -> None:
        """Record the target path and underlying failure."""
        self.path = path
        super().__init__(f"Failed to write report file {path}: {detail}")
