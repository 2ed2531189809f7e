"""Report previews: the first rows of a report before it is scheduled.

A preview runs the same fetch and transform pipeline as an execution but
writes no file, creates no ledger entry and sends no email.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from reportflow.reports.schema import FieldSpec, ReportType

    from .classification import ErrorAnalysis

PREVIEW_ROW_LIMIT = 10
MAX_PREVIEW_ROWS = 100


@dc.dataclass(frozen=True, slots=True)
class ReportPreview:
    """Leading rows of a report plus the size of the full result."""

    report_type: ReportType
    columns: tuple[FieldSpec, ...]
    rows: list[dict[str, object]]
    total_records: int
    truncated: bool = False

    @property
    def preview_records(self) -> int:
        """Return the number of rows included in the preview."""
        return len(self.rows)


class PreviewFailedError(RuntimeError):
    """Raised when the data behind a preview cannot be fetched or shaped.

    Attributes
    ----------
    report_type
        Report the preview was built for.
    analysis
        Category, label and remediation hints for the underlying failure.

    """

    def __init__(
        self, report_type: ReportType, analysis: ErrorAnalysis, detail: str
    ) -> None:
        """Record the report, the classified failure and its message."""
        self.report_type = report_type
        self.analysis = analysis
        self.detail = detail
        super().__init__(f"Preview of {report_type} report failed: {detail}")
