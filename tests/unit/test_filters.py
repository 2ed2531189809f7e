"""Unit tests for typed schedule filters."""

from __future__ import annotations

import datetime as dt

import pytest

from reportflow.reports.timerange import DateRangeTag
from reportflow.schedules.errors import InvalidFilterError
from reportflow.schedules.filters import (
    BooleanFilter,
    DateFilter,
    StringFilter,
    StringListFilter,
    decode_filter,
    decode_filters,
)


class TestDecodeFilter:
    """Tests for the accepted filter encodings."""

    def test_tagged_payload(self) -> None:
        """Tagged objects decode to their variant."""
        assert decode_filter(
            "orderStatus", {"kind": "string_list", "values": ["open", "closed"]}
        ) == StringListFilter(values=("open", "closed"))

    def test_legacy_json_encoded_list(self) -> None:
        """JSON-encoded strings from older rows are unwrapped."""
        assert decode_filter("vendor", '["Acme"]') == StringListFilter(
            values=("Acme",)
        )

    def test_legacy_bare_values(self) -> None:
        """Bare strings, booleans and lists are coerced."""
        assert decode_filter("dateRange", "LAST_7_DAYS") == StringFilter(
            value="LAST_7_DAYS"
        )
        assert decode_filter("includeArchived", True) == BooleanFilter(value=True)

    def test_custom_date_keys_become_dates(self) -> None:
        """Custom range bounds parse as calendar dates, with or without time."""
        assert decode_filter("customStartDate", "2024-03-01") == DateFilter(
            value=dt.date(2024, 3, 1)
        )
        assert decode_filter("customEndDate", "2024-03-31T10:00:00Z") == DateFilter(
            value=dt.date(2024, 3, 31)
        )

    def test_rejects_unsupported_shapes(self) -> None:
        """Numbers and mixed lists are not valid filter values."""
        with pytest.raises(InvalidFilterError, match="unsupported value type"):
            decode_filter("limit", 42)
        with pytest.raises(InvalidFilterError):
            decode_filter("vendor", ["Acme", 3])

    def test_rejects_bad_tagged_payload(self) -> None:
        """A tagged payload that fails validation names the key."""
        with pytest.raises(InvalidFilterError, match="'stockLevel'"):
            decode_filter("stockLevel", {"kind": "string", "value": 5})


class TestReportFilters:
    """Tests for ``ReportFilters`` accessors."""

    def test_empty_values_are_dropped(self) -> None:
        """Unset multi-selects mean "no constraint"."""
        filters = decode_filters({"vendor": [], "productType": "", "status": None})
        assert len(filters) == 0

    def test_strings_promote_single_value(self) -> None:
        """A single string is read as a one-element selection."""
        filters = decode_filters({"salesChannel": "web"})
        assert filters.strings("salesChannel") == ("web",)
        assert filters.strings("vendor") == ()

    def test_string_accepts_one_element_list(self) -> None:
        """Single selects stored as lists still read as one value."""
        filters = decode_filters({"stockLevel": ["LOW_STOCK"]})
        assert filters.string("stockLevel") == "LOW_STOCK"

    def test_wrong_kind_raises(self) -> None:
        """Reading a list as a date is a configuration error."""
        filters = decode_filters(
            {"customStartDate": {"kind": "boolean", "value": True}}
        )
        with pytest.raises(InvalidFilterError, match="must be a date"):
            filters.date("customStartDate")

    def test_date_range_defaults_to_last_30_days(self) -> None:
        """Schedules without a range cover the last 30 days."""
        assert decode_filters({}).date_range_tag() is DateRangeTag.LAST_30_DAYS

    def test_unknown_date_range_rejected_eagerly(self) -> None:
        """An unknown range tag fails at decode time."""
        with pytest.raises(InvalidFilterError, match="unknown date range"):
            decode_filters({"dateRange": "FOREVER"})

    def test_custom_range_resolves_from_filters(self) -> None:
        """CUSTOM uses the stored start and end dates."""
        filters = decode_filters(
            {
                "dateRange": "CUSTOM",
                "customStartDate": "2024-02-01",
                "customEndDate": "2024-02-03",
            }
        )
        resolved = filters.date_range()
        assert resolved.start == dt.datetime(2024, 2, 1, tzinfo=dt.UTC)
        assert resolved.end.date() == dt.date(2024, 2, 3)

    def test_payload_uses_tagged_form(self) -> None:
        """Stored filters always use the tagged encoding."""
        filters = decode_filters({"vendor": ["Acme"], "dateRange": "TODAY"})
        assert filters.to_payload() == {
            "vendor": {"kind": "string_list", "values": ["Acme"]},
            "dateRange": {"kind": "string", "value": "TODAY"},
        }
