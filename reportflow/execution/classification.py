"""Classify execution failures for the ledger and recipient notices.

Known exception types are mapped first. Anything else falls back to
keyword heuristics over the error message, so errors raised deep inside
third-party code still land in a useful category.

Usage
-----
>>> analysis = classify_error(ShopifyAPIError("Throttled", codes=["THROTTLED"]))
>>> analysis.category
<ErrorCategory.RATE_LIMITED: 'rate_limited'>

"""

from __future__ import annotations

import dataclasses as dc
import enum

import httpx
from sqlalchemy.exc import SQLAlchemyError

from reportflow.delivery.errors import DeliveryError, InvalidRecipientError
from reportflow.reports.errors import (
    DataProcessingError,
    UnknownFieldError,
    UnknownReportTypeError,
    UnsupportedReportError,
    WriteFailure,
)
from reportflow.reports.timerange import InvalidRangeError
from reportflow.schedules.errors import InvalidScheduleError
from reportflow.shopify.errors import (
    MissingCredentialsError,
    ShopifyAPIError,
    ShopifyConfigError,
    ShopifyResponseShapeError,
)

_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_AUTH_CODES = frozenset({"ACCESS_DENIED", "UNAUTHORIZED", "FORBIDDEN"})


class ErrorCategory(enum.StrEnum):
    """Failure categories stored on failed ledger entries."""

    RATE_LIMITED = "rate_limited"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    API_ERROR = "api_error"
    UNSUPPORTED_REPORT = "unsupported_report"
    DATA_PROCESSING = "data_processing"
    ARTIFACT_WRITE = "artifact_write"
    INVALID_EMAIL = "invalid_email"
    DELIVERY = "delivery"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    DATABASE = "database"
    STALE = "stale"
    UNKNOWN = "unknown"


@dc.dataclass(frozen=True, slots=True)
class ErrorAnalysis:
    """Category, human label and remediation hints for one failure."""

    category: ErrorCategory
    label: str
    hints: tuple[str, ...]


_RETRY_NEXT_RUN = "The report will automatically retry on the next scheduled run"
_CONTACT_SUPPORT = "Contact support with the execution ID if this continues"

_ANALYSES: dict[ErrorCategory, tuple[str, tuple[str, ...]]] = {
    ErrorCategory.RATE_LIMITED: (
        "Shopify API Rate Limit",
        (
            "Shopify has temporarily rate-limited your requests",
            _RETRY_NEXT_RUN,
            "Consider reducing the frequency of your reports if this happens often",
            "Large date ranges may trigger rate limits; try a smaller date range",
        ),
    ),
    ErrorCategory.AUTHENTICATION: (
        "Shopify Authentication Error",
        (
            "Your Shopify app connection may have expired",
            "Try reinstalling the app from your Shopify admin",
            "Ensure the app has the required read permissions for this report",
            "Contact support if the issue persists",
        ),
    ),
    ErrorCategory.NOT_FOUND: (
        "Shopify Data Not Found",
        (
            "The requested data may not exist in your Shopify store",
            "Check your filter settings to ensure they match available data",
            "Verify your date range includes periods with data",
            "Some data types may not be available for your Shopify plan",
        ),
    ),
    ErrorCategory.API_ERROR: (
        "Shopify API Error",
        (
            "There was an issue communicating with Shopify's API",
            "This is usually temporary and the report will retry automatically",
            "Check status.shopify.com if the issue persists",
            "Verify your Shopify store is active and accessible",
        ),
    ),
    ErrorCategory.UNSUPPORTED_REPORT: (
        "Unsupported Report Type",
        (
            "This report type has no data source available to the app",
            "Choose a different report type for this schedule",
            "Use Shopify Analytics exports for storefront traffic data",
        ),
    ),
    ErrorCategory.DATA_PROCESSING: (
        "Data Processing Error",
        (
            "There was an issue processing the data from Shopify",
            "This may be due to unexpected data formats or missing fields",
            "Try running the report with a smaller date range",
            _CONTACT_SUPPORT,
        ),
    ),
    ErrorCategory.ARTIFACT_WRITE: (
        "File Generation Error",
        (
            "There was an issue creating the report file",
            "This may be due to temporary server issues",
            _RETRY_NEXT_RUN,
            "If this persists, contact support as there may be a storage issue",
        ),
    ),
    ErrorCategory.INVALID_EMAIL: (
        "Invalid Email Address",
        (
            "One or more recipient email addresses are invalid",
            "Check your recipient list and remove any invalid addresses",
            "Update the report configuration with valid email addresses",
        ),
    ),
    ErrorCategory.DELIVERY: (
        "Email Delivery Error",
        (
            "There was an issue sending the report email",
            "This may be due to temporary email server issues",
            "Verify all recipient email addresses are correct",
        ),
    ),
    ErrorCategory.CONFIGURATION: (
        "Configuration Error",
        (
            "There's an issue with your report configuration",
            "Review your report settings and filters",
            "Ensure all required fields are filled in",
            "Try creating a new report with similar settings",
        ),
    ),
    ErrorCategory.NETWORK: (
        "Network/Timeout Error",
        (
            "The request timed out or couldn't connect to the server",
            "This is usually temporary due to network issues",
            _RETRY_NEXT_RUN,
            "Try reducing your date range if you query large amounts of data",
        ),
    ),
    ErrorCategory.DATABASE: (
        "Database Error",
        (
            "There was an issue accessing the database",
            "This is usually temporary and will resolve automatically",
            _RETRY_NEXT_RUN,
            "Contact support if this error persists",
        ),
    ),
    ErrorCategory.STALE: (
        "Interrupted Execution",
        (
            "The execution stopped before it could finish",
            _RETRY_NEXT_RUN,
            _CONTACT_SUPPORT,
        ),
    ),
    ErrorCategory.UNKNOWN: (
        "Unknown Error",
        (
            "An unexpected error occurred during report execution",
            _RETRY_NEXT_RUN,
            "Try running the report manually to see if the issue persists",
            _CONTACT_SUPPORT,
        ),
    ),
}

_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (MissingCredentialsError, ErrorCategory.AUTHENTICATION),
    (ShopifyResponseShapeError, ErrorCategory.API_ERROR),
    (ShopifyConfigError, ErrorCategory.CONFIGURATION),
    (UnsupportedReportError, ErrorCategory.UNSUPPORTED_REPORT),
    (DataProcessingError, ErrorCategory.DATA_PROCESSING),
    (WriteFailure, ErrorCategory.ARTIFACT_WRITE),
    (InvalidRecipientError, ErrorCategory.INVALID_EMAIL),
    (DeliveryError, ErrorCategory.DELIVERY),
    (InvalidScheduleError, ErrorCategory.CONFIGURATION),
    (InvalidRangeError, ErrorCategory.CONFIGURATION),
    (UnknownReportTypeError, ErrorCategory.CONFIGURATION),
    (UnknownFieldError, ErrorCategory.CONFIGURATION),
    (httpx.TransportError, ErrorCategory.NETWORK),
    (TimeoutError, ErrorCategory.NETWORK),
    (ConnectionError, ErrorCategory.NETWORK),
    (SQLAlchemyError, ErrorCategory.DATABASE),
)

_MESSAGE_KEYWORDS: tuple[tuple[tuple[str, ...], ErrorCategory], ...] = (
    (("throttled", "rate limit"), ErrorCategory.RATE_LIMITED),
    (("authentication", "unauthorized"), ErrorCategory.AUTHENTICATION),
    (("process", "transform", "invalid data"), ErrorCategory.DATA_PROCESSING),
    (("csv", "disk", "storage"), ErrorCategory.ARTIFACT_WRITE),
    (("smtp", "email", "mail", "recipient"), ErrorCategory.DELIVERY),
    (
        ("timeout", "timed out", "network", "connection", "econnrefused"),
        ErrorCategory.NETWORK,
    ),
    (("database", "sql"), ErrorCategory.DATABASE),
    (("config", "setting", "missing"), ErrorCategory.CONFIGURATION),
)


def analysis_for(category: ErrorCategory) -> ErrorAnalysis:
    """Return the label and hints for ``category``."""
    label, hints = _ANALYSES[category]
    return ErrorAnalysis(category=category, label=label, hints=hints)


def _categorize_api_error(exc: ShopifyAPIError) -> ErrorCategory:
    if exc.throttled:
        return ErrorCategory.RATE_LIMITED
    if exc.status_code in {_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN} or (
        _AUTH_CODES.intersection(exc.codes)
    ):
        return ErrorCategory.AUTHENTICATION
    if exc.status_code == _HTTP_NOT_FOUND or "not found" in str(exc).lower():
        return ErrorCategory.NOT_FOUND
    return ErrorCategory.API_ERROR


def _categorize_message(message: str) -> ErrorCategory:
    lowered = message.lower()
    if any(term in lowered for term in ("shopify", "graphql")):
        if "not found" in lowered or "404" in lowered:
            return ErrorCategory.NOT_FOUND
        for keywords, category in _MESSAGE_KEYWORDS[:2]:
            if any(term in lowered for term in keywords):
                return category
        return ErrorCategory.API_ERROR
    for keywords, category in _MESSAGE_KEYWORDS:
        if any(term in lowered for term in keywords):
            if category is ErrorCategory.DELIVERY and "invalid" in lowered:
                return ErrorCategory.INVALID_EMAIL
            return category
    return ErrorCategory.UNKNOWN


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Return the :class:`ErrorCategory` for ``exc``."""
    if isinstance(exc, ShopifyAPIError):
        return _categorize_api_error(exc)
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return _categorize_message(str(exc))


def classify_error(exc: BaseException) -> ErrorAnalysis:
    """Classify ``exc`` into a category with 2 to 5 remediation hints."""
    return analysis_for(categorize_error(exc))
