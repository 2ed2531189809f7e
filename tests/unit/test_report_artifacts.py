"""Unit tests for CSV artifact writing."""

from __future__ import annotations

import csv
import datetime as dt
import typing as typ

import pytest

from reportflow.common.slug import report_slug
from reportflow.reports.artifacts import CsvArtifactWriter, artifact_filename
from reportflow.reports.errors import WriteFailure
from reportflow.reports.schema import select_fields

if typ.TYPE_CHECKING:
    from pathlib import Path

NOW = dt.datetime(2024, 7, 14, 9, 5, 30, tzinfo=dt.UTC)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Weekly Sales (EU)", "weekly_sales__eu_"),
        ("Inventory", "inventory"),
        ("", "report"),
    ],
)
def test_report_slug(name: str, expected: str) -> None:
    """Unsafe characters become underscores."""
    assert report_slug(name) == expected


def test_artifact_filename_includes_timestamp() -> None:
    """Filenames carry the slug and a second-resolution timestamp."""
    assert (
        artifact_filename("Weekly Sales (EU)", NOW)
        == "weekly_sales__eu__20240714-090530.csv"
    )


def test_write_uses_labels_and_field_order(tmp_path: Path) -> None:
    """The header holds labels; cells follow the selected field order."""
    fields = select_fields("SALES", ["totalSales", "date"])
    writer = CsvArtifactWriter(tmp_path / "reports")

    artifact = writer.write(
        [{"date": "2024-07-01", "totalSales": "150.50", "orderCount": 2}],
        fields,
        "Daily Sales",
        now=NOW,
    )

    assert artifact.path.parent == tmp_path / "reports"
    assert artifact.row_count == 1
    assert artifact.size_bytes == artifact.path.stat().st_size
    with artifact.path.open(newline="", encoding="utf-8") as handle:
        lines = list(csv.reader(handle))
    assert lines == [["Total Sales", "Date"], ["150.50", "2024-07-01"]]


def test_empty_rows_still_write_header(tmp_path: Path) -> None:
    """A report with no rows is a header-only file."""
    artifact = CsvArtifactWriter(tmp_path).write(
        [], select_fields("SALES", ["date"]), "Empty", now=NOW
    )
    assert artifact.row_count == 0
    assert artifact.path.read_text(encoding="utf-8").strip() == "Date"


def test_discard_removes_file_and_tolerates_repeat(tmp_path: Path) -> None:
    """Discarding twice is harmless."""
    artifact = CsvArtifactWriter(tmp_path).write(
        [], select_fields("SALES", ["date"]), "Gone", now=NOW
    )

    artifact.discard()
    artifact.discard()

    assert not artifact.path.exists()


def test_unwritable_directory_raises_write_failure(tmp_path: Path) -> None:
    """A file where the directory should be surfaces as ``WriteFailure``."""
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory", encoding="utf-8")
    writer = CsvArtifactWriter(blocker / "nested")

    with pytest.raises(WriteFailure, match="Failed to write report file"):
        writer.write([], select_fields("SALES", ["date"]), "Nope", now=NOW)
