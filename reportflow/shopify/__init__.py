"""Shopify Admin GraphQL transport: credentials, client, retry and paging."""

from __future__ import annotations

from .client import (
    GraphQLClientFactory,
    GraphQLExecutor,
    ShopifyClientFactory,
    ShopifyGraphQLClient,
    ShopifyGraphQLConfig,
)
from .credentials import (
    SessionStoreCredentialProvider,
    TenantCredentialProvider,
    TenantCredentials,
    offline_session_id,
)
from .errors import (
    MissingCredentialsError,
    ShopifyAPIError,
    ShopifyConfigError,
    ShopifyResponseShapeError,
)
from .pagination import PageLimits, PagedRecords, RawDataPage, collect_pages, paginate
from .predicates import any_of, build_predicate, created_between
from .retry import RetryPolicy, execute_with_retry, is_retryable

__all__ = [
    "GraphQLClientFactory",
    "GraphQLExecutor",
    "MissingCredentialsError",
    "PageLimits",
    "PagedRecords",
    "RawDataPage",
    "RetryPolicy",
    "SessionStoreCredentialProvider",
    "ShopifyAPIError",
    "ShopifyClientFactory",
    "ShopifyConfigError",
    "ShopifyGraphQLClient",
    "ShopifyGraphQLConfig",
    "ShopifyResponseShapeError",
    "TenantCredentialProvider",
    "TenantCredentials",
    "any_of",
    "build_predicate",
    "collect_pages",
    "created_between",
    "execute_with_retry",
    "is_retryable",
    "offline_session_id",
    "paginate",
]
