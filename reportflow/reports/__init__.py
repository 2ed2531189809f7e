"""Report definitions, date ranges and their error types.

Fetch and transform strategies live in ``reportflow.reports.registry`` and
the CSV writer in ``reportflow.reports.artifacts``; import them from there.
"""

from __future__ import annotations

from .errors import (
    DataProcessingError,
    UnknownFieldError,
    UnknownReportTypeError,
    UnsupportedReportError,
    WriteFailure,
)
from .schema import (
    REPORT_DEFINITIONS,
    FieldKind,
    FieldSpec,
    ReportDefinition,
    ReportType,
    get_definition,
    select_fields,
)
from .timerange import (
    DateRange,
    DateRangeTag,
    InvalidRangeError,
    describe_range,
    resolve_range,
)

__all__ = [
    "REPORT_DEFINITIONS",
    "DataProcessingError",
    "DateRange",
    "DateRangeTag",
    "FieldKind",
    "FieldSpec",
    "InvalidRangeError",
    "ReportDefinition",
    "ReportType",
    "UnknownFieldError",
    "UnknownReportTypeError",
    "UnsupportedReportError",
    "WriteFailure",
    "describe_range",
    "get_definition",
    "resolve_range",
    "select_fields",
]
