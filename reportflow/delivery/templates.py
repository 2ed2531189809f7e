"""Plain-text and HTML bodies for report and failure emails.

Bodies are Jinja templates shipped in ``reportflow/delivery/email_templates``.
HTML templates are autoescaped; text templates are rendered verbatim. Failure
notices never include stack traces.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt  # noqa: TC003

import jinja2

from reportflow.reports.formatting import format_date, format_datetime

_BYTES_PER_KB = 1024
_FOOTER = "This is an automated notification from Report Flow."
_NEXT_STEPS = (
    "The report will automatically retry on its next scheduled run",
    "You can run the report manually to test the configuration",
    "Check the report history for more details",
)
_TRUNCATION_NOTE = (
    "The data source returned more pages than the configured limit; "
    "the attached file holds the first pages only."
)

_ENVIRONMENT = jinja2.Environment(
    loader=jinja2.PackageLoader("reportflow.delivery", "email_templates"),
    autoescape=jinja2.select_autoescape(
        enabled_extensions=("html.j2",), default_for_string=False, default=False
    ),
    undefined=jinja2.StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)
_ENVIRONMENT.globals.update(footer=_FOOTER, next_steps=_NEXT_STEPS)


@dc.dataclass(frozen=True, slots=True)
class ReportEmailContext:
    """Values shown in a report delivery email."""

    report_name: str
    report_type: str
    record_count: int
    generated_at: dt.datetime
    date_range: str | None = None
    shop_name: str | None = None
    truncated: bool = False
    schedule_summary: str | None = None


@dc.dataclass(frozen=True, slots=True)
class FailureNotice:
    """Values shown in a failure notification email."""

    report_name: str
    report_type: str
    error_message: str
    category: str
    hints: tuple[str, ...]
    execution_id: str
    shop_name: str | None = None


def report_subject(context: ReportEmailContext) -> str:
    """Return ``"<name> - <YYYY-MM-DD>"``."""
    return f"{context.report_name} - {format_date(context.generated_at)}"


def failure_subject(notice: FailureNotice) -> str:
    """Return ``"Report Failed: <name>"``."""
    return f"Report Failed: {notice.report_name}"


def format_file_size(size_bytes: int) -> str:
    """Return ``size_bytes`` as kilobytes with two decimals."""
    return f"{size_bytes / _BYTES_PER_KB:.2f} KB"


def _summary_rows(
    context: ReportEmailContext, size_bytes: int
) -> list[tuple[str, str]]:
    rows = [
        ("Report Name", context.report_name),
        ("Report Type", context.report_type),
    ]
    if context.date_range:
        rows.append(("Date Range", context.date_range))
    if context.shop_name:
        rows.append(("Store", context.shop_name))
    if context.schedule_summary:
        rows.append(("Schedule", context.schedule_summary))
    rows.extend(
        [
            ("Records", f"{context.record_count:,}"),
            ("File Size", format_file_size(size_bytes)),
            ("Generated", f"{format_datetime(context.generated_at)} UTC"),
        ]
    )
    return rows


def _failure_rows(notice: FailureNotice) -> list[tuple[str, str]]:
    rows = [
        ("Report Name", notice.report_name),
        ("Report Type", notice.report_type),
        ("Error Category", notice.category),
        ("Error Message", notice.error_message),
        ("Execution ID", notice.execution_id),
    ]
    if notice.shop_name:
        rows.append(("Shop", notice.shop_name))
    return rows


def _render(template_name: str, **values: object) -> str:
    return _ENVIRONMENT.get_template(template_name).render(**values)


def render_report_text(
    context: ReportEmailContext, *, recipient_name: str, size_bytes: int
) -> str:
    """Render the plain-text body of a report email."""
    return _render(
        "report.txt.j2",
        recipient_name=recipient_name,
        rows=_summary_rows(context, size_bytes),
        truncation_note=_TRUNCATION_NOTE if context.truncated else None,
    )


def render_report_html(
    context: ReportEmailContext, *, recipient_name: str, size_bytes: int
) -> str:
    """Render the HTML body of a report email."""
    return _render(
        "report.html.j2",
        report_name=context.report_name,
        recipient_name=recipient_name,
        rows=_summary_rows(context, size_bytes),
        truncation_note=_TRUNCATION_NOTE if context.truncated else None,
    )


def render_failure_text(notice: FailureNotice) -> str:
    """Render the plain-text body of a failure notice."""
    return _render("failure.txt.j2", notice=notice, rows=_failure_rows(notice))


def render_failure_html(notice: FailureNotice) -> str:
    """Render the HTML body of a failure notice."""
    return _render("failure.html.j2", notice=notice, rows=_failure_rows(notice))
