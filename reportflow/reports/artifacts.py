"""CSV artifact writer for report rows."""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import csv
import dataclasses as dc
import typing as typ
from pathlib import Path

from reportflow.common.slug import report_slug
from reportflow.common.time import utcnow
from reportflow.logging import get_logger, log_warning

from .errors import WriteFailure

if typ.TYPE_CHECKING:
    import datetime as dt

    from .schema import FieldSpec

logger = get_logger(__name__)


def artifact_filename(report_name: str, now: dt.datetime) -> str:
    """Return ``<sanitised_name>_<YYYYmmdd-HHMMSS>.csv``."""
    return f"{report_slug(report_name)}_{now.strftime('%Y%m%d-%H%M%S')}.csv"


@dc.dataclass(frozen=True, slots=True)
class Artifact:
    """A written report file."""

    path: Path
    size_bytes: int
    row_count: int

    def discard(self) -> None:
        """Delete the file, ignoring a file that is already gone."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            log_warning(logger, "Could not remove report file %s: %s", self.path, exc)


class CsvArtifactWriter:
    """Write report rows to CSV files under a scoped directory."""

    def __init__(self, base_dir: Path) -> None:
        """Store the directory reports are written into."""
        self._base_dir = base_dir

    @property
    def base_dir(self) -> Path:
        """Return the output directory."""
        return self._base_dir

    def write(
        self,
        rows: cabc.Sequence[cabc.Mapping[str, object]],
        fields: cabc.Sequence[FieldSpec],
        report_name: str,
        *,
        now: dt.datetime | None = None,
    ) -> Artifact:
        """Write ``rows`` with a header of field labels.

        Values are looked up by field key in field order; missing keys are
        written as empty cells.

        Raises
        ------
        WriteFailure
            If the directory or file cannot be written.

        """
        path = self._base_dir / artifact_filename(report_name, now or utcnow())
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            with path.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle)
                writer.writerow([spec.label for spec in fields])
                writer.writerows(
                    [row.get(spec.key, "") for spec in fields] for row in rows
                )
            size = path.stat().st_size
        except OSError as exc:
            with contextlib.suppress(OSError):
                path.unlink(missing_ok=True)
            raise WriteFailure(str(path), str(exc)) from exc
        return Artifact(path=path, size_bytes=size, row_count=len(rows))
