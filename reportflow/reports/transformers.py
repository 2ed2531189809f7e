"""Pure transforms from raw Admin API records to tabular report rows.

Each transform takes the fetched records for one report type and returns
rows keyed by the report's field keys. Transforms perform no I/O: the same
input always yields the same rows, which keeps them easy to pin in tests.

Bucketed reports (sales, finance summary) aggregate orders per UTC calendar
day and sort ascending by date. Listing reports map records one-to-one and
fan-out reports emit one row per variant; both keep source order.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import decimal
import typing as typ

from .errors import DataProcessingError
from .formatting import (
    ZERO,
    dig,
    edge_nodes,
    format_currency,
    format_date,
    format_datetime,
    optional_date,
    parse_int,
    parse_money,
    parse_timestamp,
    shop_money,
)
from .schema import ReportType

type RawRecord = cabc.Mapping[str, typ.Any]
type Row = dict[str, str | int]

GUEST_CUSTOMER = "Guest"
UNNAMED_CUSTOMER = "N/A"
DEFAULT_LOCATION = "Default"
_PAYMENTS_GATEWAY_MARKER = "shopify"
_DISCOUNT_TYPES = (
    ("Basic", "PERCENTAGE"),
    ("Bxgy", "BUY_X_GET_Y"),
    ("FreeShipping", "FREE_SHIPPING"),
)


def _bucket_date(report_type: str, record: RawRecord) -> str:
    created = parse_timestamp(report_type, "createdAt", record.get("createdAt"))
    return format_date(created)


def _full_name(person: RawRecord | None) -> str:
    if not person:
        return ""
    first = person.get("firstName") or ""
    last = person.get("lastName") or ""
    return f"{first} {last}".strip()


@dc.dataclass(slots=True)
class _SalesBucket:
    order_count: int = 0
    total_sales: decimal.Decimal = ZERO
    total_discounts: decimal.Decimal = ZERO
    total_tax: decimal.Decimal = ZERO
    net_sales: decimal.Decimal = ZERO


def transform_sales(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Aggregate orders into one row per day.

    ``netSales`` sums the net payment of each order, falling back to its
    total price when the API omits net payment.
    """
    kind = ReportType.SALES
    buckets: dict[str, _SalesBucket] = {}
    for order in records:
        day = _bucket_date(kind, order)
        total = shop_money(kind, order, "totalPriceSet", default=None)
        bucket = buckets.setdefault(day, _SalesBucket())
        bucket.order_count += 1
        bucket.total_sales += total
        bucket.total_discounts += shop_money(kind, order, "totalDiscountsSet")
        bucket.total_tax += shop_money(kind, order, "totalTaxSet")
        bucket.net_sales += shop_money(kind, order, "netPaymentSet", default=total)

    return [
        {
            "date": day,
            "orderCount": bucket.order_count,
            "totalSales": format_currency(bucket.total_sales),
            "averageOrderValue": format_currency(
                bucket.total_sales / bucket.order_count
            ),
            "totalDiscounts": format_currency(bucket.total_discounts),
            "totalTax": format_currency(bucket.total_tax),
            "netSales": format_currency(bucket.net_sales),
        }
        for day, bucket in sorted(buckets.items())
    ]


def transform_orders(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Map each order to one row."""
    kind = ReportType.ORDERS
    rows: list[Row] = []
    for order in records:
        customer = order.get("customer")
        item_count = sum(
            parse_int(kind, "lineItems.quantity", item.get("quantity"))
            for item in edge_nodes(kind, order, "lineItems")
        )
        rows.append(
            {
                "orderNumber": str(order.get("name") or ""),
                "orderDate": format_datetime(
                    parse_timestamp(kind, "createdAt", order.get("createdAt"))
                ),
                "customerName": _full_name(customer) if customer else GUEST_CUSTOMER,
                "customerEmail": (customer or {}).get("email") or "",
                "totalPrice": format_currency(
                    shop_money(kind, order, "totalPriceSet", default=None)
                ),
                "orderStatus": "CANCELLED" if order.get("cancelledAt") else "OPEN",
                "fulfillmentStatus": order.get("displayFulfillmentStatus")
                or "UNFULFILLED",
                "financialStatus": order.get("displayFinancialStatus") or "PENDING",
                "itemCount": item_count,
            }
        )
    return rows


def transform_products(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Emit one row per product variant carrying the parent's attributes.

    Sales figures are not part of the product listing query, so
    ``unitsSold`` and ``totalRevenue`` are reported as zero.
    """
    kind = ReportType.PRODUCTS
    rows: list[Row] = []
    for product in records:
        for variant in edge_nodes(kind, product, "variants"):
            rows.append(
                {
                    "productTitle": str(product.get("title") or ""),
                    "sku": variant.get("sku") or "",
                    "vendor": product.get("vendor") or "",
                    "productType": product.get("productType") or "",
                    "unitsSold": 0,
                    "totalRevenue": format_currency(ZERO),
                    "averagePrice": format_currency(
                        parse_money(kind, "variants.price", variant.get("price"))
                    ),
                    "inventoryQuantity": parse_int(
                        kind,
                        "variants.inventoryQuantity",
                        variant.get("inventoryQuantity"),
                    ),
                }
            )
    return rows


def transform_customers(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Map each customer to one row with lifetime totals."""
    kind = ReportType.CUSTOMERS
    rows: list[Row] = []
    for customer in records:
        spent = parse_money(
            kind, "amountSpent.amount", dig(customer, "amountSpent", "amount")
        )
        orders = parse_int(kind, "numberOfOrders", customer.get("numberOfOrders"))
        average = spent / orders if orders > 0 else ZERO
        created = optional_date(kind, "createdAt", customer.get("createdAt"))
        rows.append(
            {
                "customerName": _full_name(customer) or UNNAMED_CUSTOMER,
                "email": customer.get("email") or "",
                "totalOrders": orders,
                "totalSpent": format_currency(spent),
                "averageOrderValue": format_currency(average),
                "firstOrderDate": created,
                "lastOrderDate": optional_date(
                    kind, "lastOrder.createdAt", dig(customer, "lastOrder", "createdAt")
                ),
                "customerSince": created,
            }
        )
    return rows


def transform_inventory(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Map flattened variant records to stock rows valued at unit cost."""
    kind = ReportType.INVENTORY
    rows: list[Row] = []
    for item in records:
        quantity = parse_int(kind, "inventoryQuantity", item.get("inventoryQuantity"))
        unit_cost = parse_money(kind, "unitCost", item.get("unitCost"))
        rows.append(
            {
                "productTitle": str(item.get("productTitle") or ""),
                "sku": item.get("sku") or "",
                "vendor": item.get("vendor") or "",
                "location": DEFAULT_LOCATION,
                "quantityAvailable": quantity,
                "quantityOnHand": quantity,
                "quantityCommitted": 0,
                "inventoryValue": format_currency(unit_cost * quantity),
            }
        )
    return rows


def transform_traffic(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Return no rows; traffic has no data source."""
    return []


def _discount_type(typename: str | None) -> str:
    for marker, label in _DISCOUNT_TYPES:
        if typename and marker in typename:
            return label
    return "UNKNOWN"


def transform_discounts(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Map each discount code node to one row.

    Revenue attribution needs order-level data the discount query does not
    return, so the revenue columns are zero.
    """
    kind = ReportType.DISCOUNTS
    rows: list[Row] = []
    for node in records:
        discount = node.get("codeDiscount")
        if not isinstance(discount, cabc.Mapping):
            raise DataProcessingError.missing(kind, "codeDiscount")
        codes = edge_nodes(kind, discount, "codes")
        rows.append(
            {
                "discountCode": (codes[0].get("code") if codes else None) or "",
                "discountType": _discount_type(discount.get("__typename")),
                "timesUsed": parse_int(kind, "usageCount", discount.get("usageCount")),
                "totalRevenue": format_currency(ZERO),
                "totalDiscountAmount": format_currency(ZERO),
                "averageOrderValue": format_currency(ZERO),
                "status": discount.get("status") or "UNKNOWN",
                "startDate": optional_date(kind, "startsAt", discount.get("startsAt")),
                "endDate": optional_date(kind, "endsAt", discount.get("endsAt")),
            }
        )
    return rows


_FINANCE_TOTALS = (
    "grossSales",
    "discounts",
    "returns",
    "netSales",
    "shippingCharges",
    "returnFees",
    "taxes",
    "totalSales",
    "netSalesWithoutCost",
    "netSalesWithCost",
    "costOfGoodsSold",
    "grossProfit",
    "netPayments",
    "grossPaymentsShopifyPayments",
    "netSalesFromGiftCards",
    "outstandingGiftCardBalance",
    "tips",
)


def _line_item_split(
    order: RawRecord,
) -> tuple[decimal.Decimal, decimal.Decimal, decimal.Decimal]:
    """Return ``(with_cost, without_cost, cogs)`` for an order's line items."""
    kind = ReportType.FINANCE_SUMMARY
    with_cost = without_cost = cogs = ZERO
    for item in edge_nodes(kind, order, "lineItems"):
        quantity = parse_int(kind, "lineItems.quantity", item.get("quantity"))
        unit_cost = parse_money(
            kind,
            "lineItems.variant.inventoryItem.unitCost.amount",
            dig(item, "variant", "inventoryItem", "unitCost", "amount"),
        )
        price = shop_money(kind, item, "discountedUnitPriceSet")
        if unit_cost > ZERO:
            cogs += unit_cost * quantity
            with_cost += price * quantity
        else:
            without_cost += price * quantity
    return with_cost, without_cost, cogs


def _gateway_payments(order: RawRecord) -> decimal.Decimal:
    """Sum successful sale transactions processed by the platform gateway."""
    kind = ReportType.FINANCE_SUMMARY
    transactions = order.get("transactions") or []
    if isinstance(transactions, cabc.Mapping):
        transactions = edge_nodes(kind, order, "transactions")
    total = ZERO
    for transaction in transactions:
        gateway = str(transaction.get("gateway") or "").lower()
        if (
            _PAYMENTS_GATEWAY_MARKER in gateway
            and transaction.get("status") == "SUCCESS"
            and transaction.get("kind") == "SALE"
        ):
            total += shop_money(kind, transaction, "amountSet")
    return total


def transform_finance_summary(records: cabc.Sequence[RawRecord]) -> list[Row]:
    """Aggregate orders into a daily gross-to-net finance summary.

    Per order:

    * gross sales is the order total plus discounts;
    * net sales is the current total less tax and shipping;
    * line items with a recorded unit cost count towards cost of goods sold
      and "net sales with cost", the rest towards "net sales without cost";
    * gross profit is net sales with cost less cost of goods sold.

    Gift card and tip columns need data outside the orders query and are
    reported as zero.
    """
    kind = ReportType.FINANCE_SUMMARY
    buckets: dict[str, dict[str, decimal.Decimal]] = {}
    for order in records:
        day = _bucket_date(kind, order)
        total = shop_money(kind, order, "totalPriceSet", default=None)
        discounts = shop_money(kind, order, "totalDiscountsSet")
        tax = shop_money(kind, order, "totalTaxSet")
        shipping = shop_money(kind, order, "totalShippingPriceSet")
        current_total = shop_money(kind, order, "currentTotalPriceSet", default=total)
        with_cost, without_cost, cogs = _line_item_split(order)

        bucket = buckets.setdefault(day, dict.fromkeys(_FINANCE_TOTALS, ZERO))
        bucket["grossSales"] += total + discounts
        bucket["discounts"] += discounts
        bucket["returns"] += shop_money(kind, order, "totalRefundedSet")
        bucket["netSales"] += current_total - tax - shipping
        bucket["shippingCharges"] += shipping
        bucket["returnFees"] += shop_money(kind, order, "totalRefundedShippingSet")
        bucket["taxes"] += tax
        bucket["totalSales"] += current_total
        bucket["netSalesWithoutCost"] += without_cost
        bucket["netSalesWithCost"] += with_cost
        bucket["costOfGoodsSold"] += cogs
        bucket["grossProfit"] += with_cost - cogs
        bucket["netPayments"] += shop_money(
            kind, order, "netPaymentSet", default=total
        )
        bucket["grossPaymentsShopifyPayments"] += _gateway_payments(order)

    rows: list[Row] = []
    for day, totals in sorted(buckets.items()):
        row: Row = {"date": day}
        row.update({key: format_currency(value) for key, value in totals.items()})
        rows.append(row)
    return rows
