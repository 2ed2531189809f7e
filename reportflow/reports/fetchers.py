"""Fetch strategies: one per report type, all sharing the paging loop.

A strategy turns typed schedule filters into an Admin API search predicate,
collects every page of the matching connection and returns the raw records.
Failures propagate as exceptions so the orchestrator can classify them;
"no data" is an empty ``FetchResult``, never an exception.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses as dc
import typing as typ

from reportflow.shopify import queries
from reportflow.shopify.pagination import PageLimits, collect_pages
from reportflow.shopify.predicates import any_of, build_predicate, created_between

from .errors import UnsupportedReportError
from .formatting import dig

if typ.TYPE_CHECKING:
    import datetime as dt

    from reportflow.schedules.filters import ReportFilters
    from reportflow.shopify.client import GraphQLExecutor
    from reportflow.shopify.retry import RetryPolicy, SleepFn

LOW_STOCK_THRESHOLD = 10


@dc.dataclass(frozen=True, slots=True)
class FetchContext:
    """Everything a fetch strategy needs for one execution."""

    executor: GraphQLExecutor
    filters: ReportFilters
    now: dt.datetime
    limits: PageLimits = dc.field(default_factory=PageLimits)
    retry_policy: RetryPolicy | None = None
    sleep: SleepFn = asyncio.sleep


@dc.dataclass(frozen=True, slots=True)
class FetchResult:
    """Raw records for one report plus paging diagnostics."""

    records: list[dict[str, typ.Any]]
    pages: int = 0
    truncated: bool = False

    @property
    def record_count(self) -> int:
        """Return the number of records fetched."""
        return len(self.records)


type FetchStrategy = cabc.Callable[[FetchContext], cabc.Awaitable[FetchResult]]


async def _collect(
    context: FetchContext, query: str, connection: str, predicate: str | None
) -> FetchResult:
    paged = await collect_pages(
        context.executor,
        query,
        {"query": predicate},
        connection=connection,
        limits=context.limits,
        policy=context.retry_policy,
        sleep=context.sleep,
    )
    return FetchResult(
        records=paged.records, pages=paged.pages, truncated=paged.truncated
    )


def _catalogue_predicate(filters: ReportFilters) -> str | None:
    return build_predicate(
        any_of("product_type", filters.strings("productType"), quote=True),
        any_of("vendor", filters.strings("vendor"), quote=True),
    )


async def fetch_sales(context: FetchContext) -> FetchResult:
    """Fetch orders created in the range, optionally narrowed by channel."""
    filters = context.filters
    predicate = build_predicate(
        created_between(filters.date_range(now=context.now)),
        any_of("sales_channel", filters.strings("salesChannel")),
    )
    return await _collect(context, queries.SALES_ORDERS_QUERY, "orders", predicate)


async def fetch_orders(context: FetchContext) -> FetchResult:
    """Fetch orders in the range filtered by order, fulfilment and payment state."""
    filters = context.filters
    predicate = build_predicate(
        created_between(filters.date_range(now=context.now)),
        any_of("status", filters.strings("orderStatus")),
        any_of("fulfillment_status", filters.strings("fulfillmentStatus")),
        any_of("financial_status", filters.strings("financialStatus")),
    )
    return await _collect(context, queries.ORDER_DETAILS_QUERY, "orders", predicate)


async def fetch_finance_orders(context: FetchContext) -> FetchResult:
    """Fetch orders in the range with line-item cost and transaction detail."""
    predicate = created_between(context.filters.date_range(now=context.now))
    return await _collect(context, queries.FINANCE_ORDERS_QUERY, "orders", predicate)


async def fetch_products(context: FetchContext) -> FetchResult:
    """Fetch the product catalogue filtered by product type and vendor."""
    predicate = _catalogue_predicate(context.filters)
    return await _collect(context, queries.PRODUCTS_QUERY, "products", predicate)


async def fetch_customers(context: FetchContext) -> FetchResult:
    """Fetch customers, narrowed to new or returning ones when requested."""
    filters = context.filters
    match filters.string("customerType"):
        case "NEW":
            predicate = created_between(filters.date_range(now=context.now))
        case "RETURNING":
            predicate = "orders_count:>1"
        case _:
            predicate = None
    return await _collect(context, queries.CUSTOMERS_QUERY, "customers", predicate)


def _flatten_variants(products: list[dict[str, typ.Any]]) -> list[dict[str, typ.Any]]:
    items: list[dict[str, typ.Any]] = []
    for product in products:
        edges = dig(product, "variants", "edges") or []
        for edge in edges:
            variant = edge.get("node") if isinstance(edge, dict) else None
            if not isinstance(variant, dict):
                continue
            items.append(
                {
                    "productId": product.get("id"),
                    "productTitle": product.get("title"),
                    "vendor": product.get("vendor"),
                    "productType": product.get("productType"),
                    "variantId": variant.get("id"),
                    "sku": variant.get("sku"),
                    "price": variant.get("price"),
                    "inventoryQuantity": variant.get("inventoryQuantity") or 0,
                    "unitCost": dig(variant, "inventoryItem", "unitCost", "amount")
                    or "0",
                }
            )
    return items


def _stock_matches(level: str | None, quantity: int) -> bool:
    match level:
        case "IN_STOCK":
            return quantity > 0
        case "LOW_STOCK":
            return 0 < quantity < LOW_STOCK_THRESHOLD
        case "OUT_OF_STOCK":
            return quantity == 0
        case _:
            return True


async def fetch_inventory(context: FetchContext) -> FetchResult:
    """Fetch variants with unit cost, flattened and filtered by stock level."""
    predicate = _catalogue_predicate(context.filters)
    fetched = await _collect(context, queries.INVENTORY_QUERY, "products", predicate)
    level = context.filters.string("stockLevel")
    items = [
        item
        for item in _flatten_variants(fetched.records)
        if _stock_matches(level, int(item["inventoryQuantity"]))
    ]
    return FetchResult(records=items, pages=fetched.pages, truncated=fetched.truncated)


async def fetch_discounts(context: FetchContext) -> FetchResult:
    """Fetch code discounts, optionally narrowed by status."""
    status = context.filters.string("status")
    predicate = None if status in {None, "ALL"} else f"status:{status.lower()}"
    return await _collect(
        context, queries.DISCOUNTS_QUERY, "codeDiscountNodes", predicate
    )


async def fetch_traffic(context: FetchContext) -> FetchResult:
    """Fail: storefront traffic is not exposed by the Admin API."""
    raise UnsupportedReportError.traffic()
