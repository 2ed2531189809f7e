"""Shopify Admin GraphQL client used by report fetch strategies."""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import dataclasses as dc
import os
import typing as typ

import httpx

from .errors import ShopifyAPIError, ShopifyConfigError, ShopifyResponseShapeError

if typ.TYPE_CHECKING:
    from .credentials import TenantCredentialProvider, TenantCredentials

_HTTP_ERROR_STATUS_THRESHOLD = 400


class GraphQLExecutor(typ.Protocol):
    """Anything that can run one GraphQL document and return its ``data``."""

    async def execute(
        self, query: str, variables: cabc.Mapping[str, typ.Any]
    ) -> dict[str, typ.Any]:
        """Execute ``query`` and return the validated ``data`` object."""
        ...


class GraphQLClientFactory(typ.Protocol):
    """Opens a tenant-scoped executor for the duration of one execution."""

    def connect(
        self, tenant: str
    ) -> contextlib.AbstractAsyncContextManager[GraphQLExecutor]:
        """Return a context manager yielding an executor for ``tenant``."""
        ...


@dc.dataclass(frozen=True, slots=True)
class ShopifyGraphQLConfig:
    """Configuration for the Admin GraphQL API client."""

    api_version: str = "2024-10"
    endpoint_template: str = "https://{shop}/admin/api/{version}/graphql.json"
    timeout_s: float = 30.0
    user_agent: str = "reportflow/0.1"

    def endpoint_for(self, shop_domain: str) -> str:
        """Return the GraphQL endpoint URL for ``shop_domain``."""
        return self.endpoint_template.format(
            shop=shop_domain, version=self.api_version
        )

    @classmethod
    def from_env(cls) -> ShopifyGraphQLConfig:
        """Build configuration from ``REPORTFLOW_SHOPIFY_*`` variables.

        - ``REPORTFLOW_SHOPIFY_API_VERSION``: Admin API version.
        - ``REPORTFLOW_SHOPIFY_ENDPOINT_TEMPLATE``: URL template with
          ``{shop}`` and ``{version}`` placeholders.
        - ``REPORTFLOW_SHOPIFY_TIMEOUT_S``: request timeout in seconds.
        """
        defaults = cls()
        api_version = (
            os.environ.get("REPORTFLOW_SHOPIFY_API_VERSION", "").strip()
            or defaults.api_version
        )
        endpoint_template = (
            os.environ.get("REPORTFLOW_SHOPIFY_ENDPOINT_TEMPLATE", "").strip()
            or defaults.endpoint_template
        )
        raw_timeout = os.environ.get("REPORTFLOW_SHOPIFY_TIMEOUT_S", "").strip()
        timeout_s = defaults.timeout_s
        if raw_timeout:
            try:
                timeout_s = float(raw_timeout)
            except ValueError as exc:
                raise ShopifyConfigError.invalid_timeout(raw_timeout) from exc
            if timeout_s <= 0:
                raise ShopifyConfigError.invalid_timeout(raw_timeout)
        return cls(
            api_version=api_version,
            endpoint_template=endpoint_template,
            timeout_s=timeout_s,
        )


def _validate_string_keyed_dict(
    value: dict[object, typ.Any], *, field_name: str
) -> dict[str, typ.Any]:
    result: dict[str, typ.Any] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ShopifyResponseShapeError.missing(field_name)
        result[key] = item
    return result


def parse_graphql_payload(payload_raw: object) -> dict[str, typ.Any]:
    """Validate a GraphQL response payload and return its ``data`` field.

    Raises
    ------
    ShopifyAPIError
        If the payload carries an ``errors`` list.
    ShopifyResponseShapeError
        If the payload or its ``data`` is not an object.

    """
    if not isinstance(payload_raw, dict):
        raise ShopifyResponseShapeError.missing("response")

    payload = _validate_string_keyed_dict(payload_raw, field_name="response")

    errors = payload.get("errors")
    if errors:
        raise ShopifyAPIError.graphql_errors(errors)

    data = payload.get("data")
    if not isinstance(data, dict):
        raise ShopifyResponseShapeError.missing("data")

    return _validate_string_keyed_dict(data, field_name="data")


class ShopifyGraphQLClient:
    """Admin GraphQL client bound to one shop's credentials."""

    def __init__(
        self,
        credentials: TenantCredentials,
        config: ShopifyGraphQLConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with credentials and API configuration."""
        if not credentials.access_token.strip():
            raise ShopifyConfigError.empty_token()

        self._config = config or ShopifyGraphQLConfig()
        self._endpoint = self._config.endpoint_for(credentials.shop_domain)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self._config.timeout_s)
        self._headers = {
            "X-Shopify-Access-Token": credentials.access_token,
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
        }

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def execute(
        self, query: str, variables: cabc.Mapping[str, typ.Any]
    ) -> dict[str, typ.Any]:
        """Execute a GraphQL query and return the validated data field.

        Transport failures propagate as ``httpx.TransportError``.
        """
        response = await self._client.post(
            self._endpoint,
            json={"query": query, "variables": dict(variables)},
            headers=self._headers,
        )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ShopifyAPIError.http_error(response.status_code)
        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise ShopifyResponseShapeError.missing("response") from exc
        return parse_graphql_payload(payload_raw)


class ShopifyClientFactory:
    """Build tenant-scoped clients from a credential provider."""

    def __init__(
        self,
        credentials: TenantCredentialProvider,
        config: ShopifyGraphQLConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Store the credential provider, config and optional test transport."""
        self._credentials = credentials
        self._config = config or ShopifyGraphQLConfig()
        self._transport = transport

    @contextlib.asynccontextmanager
    async def connect(self, tenant: str) -> cabc.AsyncIterator[ShopifyGraphQLClient]:
        """Yield a client for ``tenant`` and close it afterwards.

        Raises
        ------
        MissingCredentialsError
            If the tenant has no usable offline session.

        """
        credentials = await self._credentials.credentials_for(tenant)
        async with httpx.AsyncClient(
            timeout=self._config.timeout_s, transport=self._transport
        ) as http_client:
            yield ShopifyGraphQLClient(
                credentials, self._config, http_client=http_client
            )
