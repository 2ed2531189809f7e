"""Admin API search-syntax builders.

Groups are joined with ``AND``; values inside a multi-value group are joined
with ``OR`` and parenthesised.

>>> build_predicate("status:open", any_of("vendor", ["Acme", "Zeta"], quote=True))
"status:open AND (vendor:'Acme' OR vendor:'Zeta')"

"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

if typ.TYPE_CHECKING:
    from reportflow.reports.timerange import DateRange


def _quoted(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def created_between(date_range: DateRange) -> str:
    """Return the inclusive ``created_at`` clause for ``date_range``."""
    start, end = date_range.to_query_bounds()
    return f"created_at:>='{start}' AND created_at:<='{end}'"


def any_of(
    field: str, values: cabc.Iterable[str], *, quote: bool = False
) -> str | None:
    """Return ``field:v1 OR field:v2`` for ``values``, or ``None`` if empty."""
    terms = [f"{field}:{_quoted(v) if quote else v}" for v in values if v]
    if not terms:
        return None
    if len(terms) == 1:
        return terms[0]
    return f"({' OR '.join(terms)})"


def build_predicate(*clauses: str | None) -> str | None:
    """Join non-empty clauses with ``AND``; ``None`` when nothing remains."""
    parts = [clause for clause in clauses if clause]
    return " AND ".join(parts) if parts else None
