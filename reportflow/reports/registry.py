"""Strategy table mapping each report type to its fetch and transform steps.

Usage
-----
>>> strategy = get_strategy("SALES")
>>> result = await strategy.fetch(context)
>>> rows = project_rows(strategy.transform(result.records), strategy.fields)

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import types

from . import fetchers, transformers
from .schema import REPORT_DEFINITIONS, FieldSpec, ReportType, select_fields

type TransformStrategy = cabc.Callable[
    [cabc.Sequence[transformers.RawRecord]], list[transformers.Row]
]


@dc.dataclass(frozen=True, slots=True)
class ReportStrategy:
    """Fetch strategy, transform strategy and schema for one report type."""

    report_type: ReportType
    display_name: str
    fields: tuple[FieldSpec, ...]
    fetch: fetchers.FetchStrategy
    transform: TransformStrategy

    def output_fields(self, selected: cabc.Sequence[str] = ()) -> tuple[FieldSpec, ...]:
        """Return the columns for a schedule's field selection."""
        return select_fields(self.report_type, selected)


_PIPELINES: dict[ReportType, tuple[fetchers.FetchStrategy, TransformStrategy]] = {
    ReportType.SALES: (fetchers.fetch_sales, transformers.transform_sales),
    ReportType.ORDERS: (fetchers.fetch_orders, transformers.transform_orders),
    ReportType.PRODUCTS: (fetchers.fetch_products, transformers.transform_products),
    ReportType.CUSTOMERS: (
        fetchers.fetch_customers,
        transformers.transform_customers,
    ),
    ReportType.INVENTORY: (
        fetchers.fetch_inventory,
        transformers.transform_inventory,
    ),
    ReportType.TRAFFIC: (fetchers.fetch_traffic, transformers.transform_traffic),
    ReportType.DISCOUNTS: (
        fetchers.fetch_discounts,
        transformers.transform_discounts,
    ),
    ReportType.FINANCE_SUMMARY: (
        fetchers.fetch_finance_orders,
        transformers.transform_finance_summary,
    ),
}

STRATEGIES: cabc.Mapping[ReportType, ReportStrategy] = types.MappingProxyType(
    {
        report_type: ReportStrategy(
            report_type=report_type,
            display_name=REPORT_DEFINITIONS[report_type].display_name,
            fields=REPORT_DEFINITIONS[report_type].fields,
            fetch=fetch,
            transform=transform,
        )
        for report_type, (fetch, transform) in _PIPELINES.items()
    }
)


def get_strategy(report_type: ReportType | str) -> ReportStrategy:
    """Return the strategy for ``report_type``.

    Raises
    ------
    UnknownReportTypeError
        If ``report_type`` is not a known tag.

    """
    return STRATEGIES[ReportType.parse(report_type)]


def project_rows(
    rows: cabc.Iterable[cabc.Mapping[str, object]],
    fields: cabc.Sequence[FieldSpec],
) -> list[dict[str, object]]:
    """Return rows restricted to ``fields`` with keys in field order.

    Keys a transform did not produce become empty strings.
    """
    keys = [spec.key for spec in fields]
    return [{key: row.get(key, "") for key in keys} for row in rows]
