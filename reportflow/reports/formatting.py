"""Value parsing and formatting shared by report transformers.

Money is carried as ``Decimal`` and rendered as a fixed-point string with two
decimals, rounding half up. Dates and datetimes render in UTC.
"""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import decimal
import typing as typ

from reportflow.common.time import parse_iso_datetime

from .errors import DataProcessingError

CENT = decimal.Decimal("0.01")
ZERO = decimal.Decimal(0)


def format_currency(amount: decimal.Decimal) -> str:
    """Return ``amount`` as a two-decimal fixed-point string."""
    return str(amount.quantize(CENT, rounding=decimal.ROUND_HALF_UP))


def format_date(value: dt.datetime) -> str:
    """Return ``YYYY-MM-DD`` for ``value`` in UTC."""
    return value.astimezone(dt.UTC).strftime("%Y-%m-%d")


def format_datetime(value: dt.datetime) -> str:
    """Return ``YYYY-MM-DD HH:MM:SS`` for ``value`` in UTC."""
    return value.astimezone(dt.UTC).strftime("%Y-%m-%d %H:%M:%S")


def dig(record: cabc.Mapping[str, typ.Any], *path: str) -> typ.Any:  # noqa: ANN401
    """Follow ``path`` through nested mappings, returning ``None`` on a gap."""
    current: typ.Any = record
    for key in path:
        if not isinstance(current, cabc.Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def parse_money(
    report_type: str,
    field: str,
    raw: object,
    *,
    default: decimal.Decimal | None = ZERO,
) -> decimal.Decimal:
    """Parse a money amount string or number into ``Decimal``.

    Raises
    ------
    DataProcessingError
        If ``raw`` is missing and no default is given, or is not numeric.

    """
    if raw is None or raw == "":
        if default is None:
            raise DataProcessingError.missing(report_type, field)
        return default
    if isinstance(raw, bool):
        raise DataProcessingError.invalid(report_type, field, raw)
    try:
        value = decimal.Decimal(str(raw))
    except decimal.InvalidOperation as exc:
        raise DataProcessingError.invalid(report_type, field, raw) from exc
    if not value.is_finite():
        raise DataProcessingError.invalid(report_type, field, raw)
    return value


def shop_money(
    report_type: str,
    record: cabc.Mapping[str, typ.Any],
    money_set: str,
    *,
    default: decimal.Decimal | None = ZERO,
) -> decimal.Decimal:
    """Return ``record[money_set].shopMoney.amount`` as ``Decimal``."""
    return parse_money(
        report_type,
        f"{money_set}.shopMoney.amount",
        dig(record, money_set, "shopMoney", "amount"),
        default=default,
    )


def parse_timestamp(report_type: str, field: str, raw: object) -> dt.datetime:
    """Parse an ISO-8601 timestamp, raising ``DataProcessingError`` on failure."""
    if not isinstance(raw, str) or not raw:
        raise DataProcessingError.missing(report_type, field)
    try:
        return parse_iso_datetime(raw)
    except ValueError as exc:
        raise DataProcessingError.invalid(report_type, field, raw) from exc


def optional_date(report_type: str, field: str, raw: object) -> str:
    """Return ``YYYY-MM-DD`` for an optional timestamp, or ``""``."""
    if raw is None or raw == "":
        return ""
    return format_date(parse_timestamp(report_type, field, raw))


def parse_int(report_type: str, field: str, raw: object, *, default: int = 0) -> int:
    """Parse an integer count that may arrive as a string."""
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise DataProcessingError.invalid(report_type, field, raw)
    try:
        return int(str(raw))
    except ValueError as exc:
        raise DataProcessingError.invalid(report_type, field, raw) from exc


def edge_nodes(
    report_type: str, record: cabc.Mapping[str, typ.Any], *path: str
) -> list[cabc.Mapping[str, typ.Any]]:
    """Return ``node`` objects from a GraphQL connection at ``path``.

    A missing connection yields an empty list; a connection whose ``edges``
    is not a list is malformed.
    """
    connection = dig(record, *path)
    if connection is None:
        return []
    edges = connection.get("edges") if isinstance(connection, cabc.Mapping) else None
    if not isinstance(edges, list):
        raise DataProcessingError.invalid(
            report_type, ".".join((*path, "edges")), edges
        )
    return [
        edge["node"]
        for edge in edges
        if isinstance(edge, cabc.Mapping) and isinstance(edge.get("node"), cabc.Mapping)
    ]
