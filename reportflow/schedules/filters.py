"""Typed filter values attached to report schedules.

Filters arrive at the management boundary as JSON. Each value is decoded
into one variant of a tagged union so fetch and transform code never
inspects untyped payloads. Two encodings are accepted:

* tagged objects such as ``{"kind": "string_list", "values": ["paid"]}``;
* legacy bare JSON values (``"LAST_7_DAYS"``, ``["paid"]``, ``true``) and
  JSON-encoded strings of those values, as stored by earlier releases.

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import datetime as dt
import typing as typ

import msgspec

from reportflow.reports.timerange import (
    DEFAULT_RANGE,
    DateRange,
    DateRangeTag,
    resolve_range,
)

from .errors import InvalidFilterError

DATE_RANGE_KEY = "dateRange"
CUSTOM_START_KEY = "customStartDate"
CUSTOM_END_KEY = "customEndDate"
_DATE_KEYS = frozenset({CUSTOM_START_KEY, CUSTOM_END_KEY})


class StringFilter(msgspec.Struct, frozen=True, tag="string", tag_field="kind"):
    """Single text value, such as a date-range tag or stock level."""

    value: str


class StringListFilter(
    msgspec.Struct, frozen=True, tag="string_list", tag_field="kind"
):
    """Multi-select value; members are OR-ed within their group."""

    values: tuple[str, ...]


class DateFilter(msgspec.Struct, frozen=True, tag="date", tag_field="kind"):
    """Calendar date value."""

    value: dt.date


class BooleanFilter(msgspec.Struct, frozen=True, tag="boolean", tag_field="kind"):
    """Boolean flag value."""

    value: bool


type FilterValue = StringFilter | StringListFilter | DateFilter | BooleanFilter


def _kind(value: FilterValue) -> str:
    return type(value).__struct_config__.tag


def _coerce_bare(key: str, value: object) -> FilterValue:
    if isinstance(value, bool):
        return BooleanFilter(value=value)
    if isinstance(value, str):
        if key in _DATE_KEYS:
            return DateFilter(value=_parse_date(key, value))
        return StringFilter(value=value)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return StringListFilter(values=tuple(value))
    raise InvalidFilterError.undecodable(
        key, f"unsupported value type {type(value).__name__}"
    )


def _parse_date(key: str, value: str) -> dt.date:
    text = value.strip()
    try:
        if "T" in text:
            return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return dt.date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidFilterError.undecodable(key, str(exc)) from exc


def _unwrap_json_string(value: str) -> object:
    """Return the decoded JSON payload of ``value`` or ``value`` itself."""
    stripped = value.strip()
    if not stripped or stripped[0] not in '"[{tf':
        return value
    try:
        return msgspec.json.decode(stripped)
    except msgspec.DecodeError:
        return value


def decode_filter(key: str, raw: object) -> FilterValue:
    """Decode one raw filter payload into its typed variant.

    Raises
    ------
    InvalidFilterError
        If the payload matches none of the accepted encodings.

    """
    payload = _unwrap_json_string(raw) if isinstance(raw, str) else raw
    if isinstance(payload, dict) and "kind" in payload:
        try:
            return msgspec.convert(payload, type=FilterValue)
        except msgspec.ValidationError as exc:
            raise InvalidFilterError.undecodable(key, str(exc)) from exc
    return _coerce_bare(key, payload)


@dc.dataclass(frozen=True, slots=True)
class ReportFilters:
    """Read-only collection of typed filters keyed by filter name."""

    values: cabc.Mapping[str, FilterValue] = dc.field(default_factory=dict)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __len__(self) -> int:
        return len(self.values)

    def get(self, key: str) -> FilterValue | None:
        """Return the raw typed filter for ``key``, if present."""
        return self.values.get(key)

    def string(self, key: str) -> str | None:
        """Return a single-valued text filter.

        A one-element list is accepted as a single value because selects and
        multi-selects share storage in older schedules.
        """
        value = self.values.get(key)
        match value:
            case None:
                return None
            case StringFilter(value=text):
                return text or None
            case StringListFilter(values=(only,)):
                return only
        raise InvalidFilterError.wrong_kind(key, "string", _kind(value))

    def strings(self, key: str) -> tuple[str, ...]:
        """Return a multi-valued text filter; single strings are promoted."""
        value = self.values.get(key)
        match value:
            case None:
                return ()
            case StringListFilter(values=items):
                return tuple(item for item in items if item)
            case StringFilter(value=text):
                return (text,) if text else ()
        raise InvalidFilterError.wrong_kind(key, "string_list", _kind(value))

    def date(self, key: str) -> dt.date | None:
        """Return a date filter."""
        value = self.values.get(key)
        match value:
            case None:
                return None
            case DateFilter(value=day):
                return day
        raise InvalidFilterError.wrong_kind(key, "date", _kind(value))

    def flag(self, key: str, *, default: bool = False) -> bool:
        """Return a boolean filter, or ``default`` when absent."""
        value = self.values.get(key)
        match value:
            case None:
                return default
            case BooleanFilter(value=flag):
                return flag
        raise InvalidFilterError.wrong_kind(key, "boolean", _kind(value))

    def date_range_tag(self) -> DateRangeTag:
        """Return the selected range tag, defaulting to the last 30 days."""
        raw = self.string(DATE_RANGE_KEY)
        if raw is None:
            return DEFAULT_RANGE
        try:
            return DateRangeTag(raw)
        except ValueError as exc:
            raise InvalidFilterError.undecodable(
                DATE_RANGE_KEY, f"unknown date range {raw!r}"
            ) from exc

    def date_range(self, *, now: dt.datetime | None = None) -> DateRange:
        """Resolve the selected range against ``now``."""
        return resolve_range(
            self.date_range_tag(),
            custom_start=self.date(CUSTOM_START_KEY),
            custom_end=self.date(CUSTOM_END_KEY),
            now=now,
        )

    def to_payload(self) -> dict[str, dict[str, typ.Any]]:
        """Return the tagged JSON-compatible form used for storage."""
        return {key: msgspec.to_builtins(value) for key, value in self.values.items()}


def decode_filters(raw: cabc.Mapping[str, object] | None) -> ReportFilters:
    """Decode a mapping of raw filter payloads into ``ReportFilters``.

    Empty values (``None``, ``""`` and ``[]``) are dropped so an unset
    multi-select means "no constraint". The date range is validated eagerly
    so unknown range tags are rejected at the boundary.

    Raises
    ------
    InvalidFilterError
        If any value cannot be decoded or the date-range tag is unknown.

    """
    decoded: dict[str, FilterValue] = {}
    for key, value in (raw or {}).items():
        if value is None or value == "" or value == []:
            continue
        decoded[key] = decode_filter(key, value)
    filters = ReportFilters(values=decoded)
    filters.date_range_tag()
    return filters
