"""Unit tests for the Admin GraphQL client and credential lookup."""

from __future__ import annotations

import datetime as dt
import json
import typing as typ

import httpx
import pytest

from reportflow.shopify.client import (
    ShopifyClientFactory,
    ShopifyGraphQLClient,
    parse_graphql_payload,
)
from reportflow.shopify.credentials import (
    SessionStoreCredentialProvider,
    TenantCredentials,
    offline_session_id,
)
from reportflow.shopify.errors import (
    MissingCredentialsError,
    ShopifyAPIError,
    ShopifyConfigError,
    ShopifyResponseShapeError,
)
from reportflow.storage.models import TenantSession

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

SHOP = "acme.myshopify.com"
NOW = dt.datetime(2024, 7, 14, 8, 0, tzinfo=dt.UTC)


class TestParseGraphQLPayload:
    """Tests for ``parse_graphql_payload``."""

    def test_returns_data(self) -> None:
        """The ``data`` object is returned as-is."""
        assert parse_graphql_payload({"data": {"orders": {}}}) == {"orders": {}}

    def test_errors_become_api_error_with_codes(self) -> None:
        """GraphQL errors keep their message and extension codes."""
        with pytest.raises(ShopifyAPIError) as excinfo:
            parse_graphql_payload(
                {
                    "errors": [
                        {"message": "Throttled", "extensions": {"code": "THROTTLED"}}
                    ]
                }
            )
        assert str(excinfo.value) == "Throttled"
        assert excinfo.value.throttled is True

    @pytest.mark.parametrize("payload", [[], {"data": None}, {"data": []}])
    def test_shape_errors(self, payload: object) -> None:
        """Non-object payloads or data are shape errors."""
        with pytest.raises(ShopifyResponseShapeError):
            parse_graphql_payload(payload)


@pytest.mark.asyncio
async def test_client_posts_query_with_token() -> None:
    """Requests carry the access token, query and variables."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"shop": {"name": "Acme"}}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = ShopifyGraphQLClient(
            TenantCredentials(shop_domain=SHOP, access_token="shpat_123"),
            http_client=http,
        )
        data = await client.execute("query { shop { name } }", {"first": 1})

    assert data == {"shop": {"name": "Acme"}}
    [request] = seen
    assert request.url.host == SHOP
    assert request.url.path.endswith("/graphql.json")
    assert request.headers["X-Shopify-Access-Token"] == "shpat_123"
    assert json.loads(request.content) == {
        "query": "query { shop { name } }",
        "variables": {"first": 1},
    }


@pytest.mark.parametrize("status", [401, 429, 502])
@pytest.mark.asyncio
async def test_client_maps_http_errors(status: int) -> None:
    """Non-2xx responses raise with the status code attached."""
    transport = httpx.MockTransport(lambda _request: httpx.Response(status))
    async with httpx.AsyncClient(transport=transport) as http:
        client = ShopifyGraphQLClient(
            TenantCredentials(shop_domain=SHOP, access_token="token"),
            http_client=http,
        )
        with pytest.raises(ShopifyAPIError) as excinfo:
            await client.execute("query { shop { name } }", {})
    assert excinfo.value.status_code == status
    assert excinfo.value.throttled is (status == 429)


def test_client_rejects_blank_token() -> None:
    """A blank token is a configuration error."""
    with pytest.raises(ShopifyConfigError):
        ShopifyGraphQLClient(TenantCredentials(shop_domain=SHOP, access_token=" "))


async def _store_session(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    token: str = "shpat_offline",
    expires_at: dt.datetime | None = None,
) -> None:
    async with session_factory() as session, session.begin():
        session.add(
            TenantSession(
                id=offline_session_id(SHOP),
                tenant=SHOP,
                access_token=token,
                expires_at=expires_at,
            )
        )


class TestSessionStoreCredentialProvider:
    """Tests for offline-session credential lookup."""

    @pytest.mark.asyncio
    async def test_returns_offline_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A stored offline session yields credentials."""
        await _store_session(session_factory)
        provider = SessionStoreCredentialProvider(session_factory, clock=lambda: NOW)

        credentials = await provider.credentials_for(SHOP)

        assert credentials == TenantCredentials(
            shop_domain=SHOP, access_token="shpat_offline"
        )

    @pytest.mark.asyncio
    async def test_missing_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """No stored session is an authentication problem."""
        provider = SessionStoreCredentialProvider(session_factory, clock=lambda: NOW)
        with pytest.raises(MissingCredentialsError, match="session not found"):
            await provider.credentials_for(SHOP)

    @pytest.mark.asyncio
    async def test_expired_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Sessions past their expiry are rejected."""
        await _store_session(session_factory, expires_at=NOW - dt.timedelta(days=1))
        provider = SessionStoreCredentialProvider(session_factory, clock=lambda: NOW)
        with pytest.raises(MissingCredentialsError, match="expired"):
            await provider.credentials_for(SHOP)


@pytest.mark.asyncio
async def test_factory_connects_with_stored_credentials(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """The factory resolves credentials and closes its HTTP client."""
    await _store_session(session_factory)
    tokens: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        tokens.append(request.headers["X-Shopify-Access-Token"])
        return httpx.Response(200, json={"data": {"ok": True}})

    factory = ShopifyClientFactory(
        SessionStoreCredentialProvider(session_factory, clock=lambda: NOW),
        transport=httpx.MockTransport(handler),
    )
    async with factory.connect(SHOP) as client:
        assert await client.execute("query { ok }", {}) == {"ok": True}

    assert tokens == ["shpat_offline"]
