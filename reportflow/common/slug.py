"""Filename-safe slugs for report artifacts.

Report names are free text entered by merchants. Before they become part of a
filename they are reduced to lowercase ASCII letters, digits and underscores.
"""

from __future__ import annotations

import re

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def report_slug(name: str) -> str:
    """Return a filename-safe slug for a report name.

    Every character outside ``[a-zA-Z0-9]`` becomes ``_`` and the result is
    lowercased. An empty name yields ``"report"``.

    Examples
    --------
    >>> report_slug("Weekly Sales (EU)")
    'weekly_sales__eu_'

    """
    slug = _UNSAFE_CHARS.sub("_", name).lower()
    return slug or "report"
