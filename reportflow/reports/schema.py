"""Report types and their declared output columns."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import enum

from .errors import UnknownFieldError, UnknownReportTypeError


class ReportType(enum.StrEnum):
    """Report types a schedule can produce."""

    SALES = "SALES"
    ORDERS = "ORDERS"
    PRODUCTS = "PRODUCTS"
    CUSTOMERS = "CUSTOMERS"
    INVENTORY = "INVENTORY"
    TRAFFIC = "TRAFFIC"
    DISCOUNTS = "DISCOUNTS"
    FINANCE_SUMMARY = "FINANCE_SUMMARY"

    @classmethod
    def parse(cls, value: str) -> ReportType:
        """Return the member for ``value`` or raise ``UnknownReportTypeError``."""
        try:
            return cls(value)
        except ValueError as exc:
            raise UnknownReportTypeError(value) from exc


class FieldKind(enum.StrEnum):
    """Value kind of an output column."""

    STRING = "string"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"


@dc.dataclass(frozen=True, slots=True)
class FieldSpec:
    """Output column: row key, CSV header label and value kind."""

    key: str
    label: str
    kind: FieldKind = FieldKind.STRING


@dc.dataclass(frozen=True, slots=True)
class ReportDefinition:
    """Display metadata and default columns for one report type."""

    report_type: ReportType
    display_name: str
    description: str
    fields: tuple[FieldSpec, ...]

    def field_keys(self) -> tuple[str, ...]:
        """Return the default column keys in order."""
        return tuple(spec.key for spec in self.fields)


def _f(key: str, label: str, kind: FieldKind = FieldKind.STRING) -> FieldSpec:
    return FieldSpec(key=key, label=label, kind=kind)


_S, _N, _C, _D, _DT = (
    FieldKind.STRING,
    FieldKind.NUMBER,
    FieldKind.CURRENCY,
    FieldKind.DATE,
    FieldKind.DATETIME,
)

REPORT_DEFINITIONS: dict[ReportType, ReportDefinition] = {
    ReportType.SALES: ReportDefinition(
        ReportType.SALES,
        "Sales Report",
        "Daily order volume, sales, discounts and tax",
        (
            _f("date", "Date", _D),
            _f("orderCount", "Orders", _N),
            _f("totalSales", "Total Sales", _C),
            _f("averageOrderValue", "Average Order Value", _C),
            _f("totalDiscounts", "Total Discounts", _C),
            _f("totalTax", "Total Tax", _C),
            _f("netSales", "Net Sales", _C),
        ),
    ),
    ReportType.ORDERS: ReportDefinition(
        ReportType.ORDERS,
        "Orders Report",
        "One row per order with customer and status details",
        (
            _f("orderNumber", "Order Number", _S),
            _f("orderDate", "Order Date", _DT),
            _f("customerName", "Customer Name", _S),
            _f("customerEmail", "Customer Email", _S),
            _f("totalPrice", "Total Price", _C),
            _f("orderStatus", "Order Status", _S),
            _f("fulfillmentStatus", "Fulfillment Status", _S),
            _f("financialStatus", "Financial Status", _S),
            _f("itemCount", "Item Count", _N),
        ),
    ),
    ReportType.PRODUCTS: ReportDefinition(
        ReportType.PRODUCTS,
        "Products Report",
        "One row per product variant with price and stock",
        (
            _f("productTitle", "Product Title", _S),
            _f("sku", "SKU", _S),
            _f("vendor", "Vendor", _S),
            _f("productType", "Product Type", _S),
            _f("unitsSold", "Units Sold", _N),
            _f("totalRevenue", "Total Revenue", _C),
            _f("averagePrice", "Average Price", _C),
            _f("inventoryQuantity", "Current Inventory", _N),
        ),
    ),
    ReportType.CUSTOMERS: ReportDefinition(
        ReportType.CUSTOMERS,
        "Customers Report",
        "One row per customer with lifetime order totals",
        (
            _f("customerName", "Customer Name", _S),
            _f("email", "Email", _S),
            _f("totalOrders", "Total Orders", _N),
            _f("totalSpent", "Total Spent", _C),
            _f("averageOrderValue", "Average Order Value", _C),
            _f("firstOrderDate", "First Order Date", _D),
            _f("lastOrderDate", "Last Order Date", _D),
            _f("customerSince", "Customer Since", _D),
        ),
    ),
    ReportType.INVENTORY: ReportDefinition(
        ReportType.INVENTORY,
        "Inventory Report",
        "Stock levels and valuation per variant",
        (
            _f("productTitle", "Product Title", _S),
            _f("sku", "SKU", _S),
            _f("vendor", "Vendor", _S),
            _f("location", "Location", _S),
            _f("quantityAvailable", "Quantity Available", _N),
            _f("quantityOnHand", "Quantity On Hand", _N),
            _f("quantityCommitted", "Quantity Committed", _N),
            _f("inventoryValue", "Inventory Value", _C),
        ),
    ),
    ReportType.TRAFFIC: ReportDefinition(
        ReportType.TRAFFIC,
        "Traffic Report",
        "Storefront sessions and conversion funnel",
        (
            _f("date", "Date", _D),
            _f("sessions", "Sessions", _N),
            _f("uniqueVisitors", "Unique Visitors", _N),
            _f("pageViews", "Page Views", _N),
            _f("conversionRate", "Conversion Rate", _N),
            _f("addedToCart", "Added to Cart", _N),
            _f("reachedCheckout", "Reached Checkout", _N),
            _f("completedPurchase", "Completed Purchase", _N),
        ),
    ),
    ReportType.DISCOUNTS: ReportDefinition(
        ReportType.DISCOUNTS,
        "Discounts Report",
        "Discount codes with usage and status",
        (
            _f("discountCode", "Discount Code", _S),
            _f("discountType", "Discount Type", _S),
            _f("timesUsed", "Times Used", _N),
            _f("totalRevenue", "Total Revenue", _C),
            _f("totalDiscountAmount", "Total Discount Amount", _C),
            _f("averageOrderValue", "Average Order Value", _C),
            _f("status", "Status", _S),
            _f("startDate", "Start Date", _D),
            _f("endDate", "End Date", _D),
        ),
    ),
    ReportType.FINANCE_SUMMARY: ReportDefinition(
        ReportType.FINANCE_SUMMARY,
        "Finance Summary",
        "Daily gross-to-net sales, costs and payments",
        (
            _f("date", "Date", _D),
            _f("grossSales", "Gross Sales", _C),
            _f("discounts", "Discounts", _C),
            _f("returns", "Returns", _C),
            _f("netSales", "Net Sales", _C),
            _f("shippingCharges", "Shipping Charges", _C),
            _f("returnFees", "Return Fees", _C),
            _f("taxes", "Taxes", _C),
            _f("totalSales", "Total Sales", _C),
            _f("netSalesWithoutCost", "Net Sales Without Cost Recorded", _C),
            _f("netSalesWithCost", "Net Sales With Cost Recorded", _C),
            _f("costOfGoodsSold", "Cost of Goods Sold", _C),
            _f("grossProfit", "Gross Profit", _C),
            _f("netPayments", "Net Payments", _C),
            _f("grossPaymentsShopifyPayments", "Gross Payments (Shopify Payments)", _C),
            _f("netSalesFromGiftCards", "Net Sales from Gift Cards", _C),
            _f("outstandingGiftCardBalance", "Outstanding Gift Card Balance", _C),
            _f("tips", "Tips", _C),
        ),
    ),
}


def get_definition(report_type: ReportType | str) -> ReportDefinition:
    """Return the definition for ``report_type``."""
    return REPORT_DEFINITIONS[ReportType.parse(report_type)]


def select_fields(
    report_type: ReportType | str, selected: cabc.Sequence[str] = ()
) -> tuple[FieldSpec, ...]:
    """Return the output columns for a schedule's field selection.

    An empty selection yields every default column. Otherwise the selection
    order is kept and duplicates are dropped.

    Raises
    ------
    UnknownFieldError
        If any selected key is not declared for the report type.

    """
    definition = get_definition(report_type)
    if not selected:
        return definition.fields
    by_key = {spec.key: spec for spec in definition.fields}
    unknown = [key for key in selected if key not in by_key]
    if unknown:
        raise UnknownFieldError(definition.report_type, unknown)
    return tuple(by_key[key] for key in dict.fromkeys(selected))
