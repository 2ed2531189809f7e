"""Tenant credential lookup for background API access."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from reportflow.common.time import utcnow
from reportflow.storage.models import TenantSession

from .errors import MissingCredentialsError

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@dc.dataclass(frozen=True, slots=True)
class TenantCredentials:
    """Shop domain and access token used to call the Admin API."""

    shop_domain: str
    access_token: str = dc.field(repr=False)


class TenantCredentialProvider(typ.Protocol):
    """Source of Admin API credentials for a tenant."""

    async def credentials_for(self, tenant: str) -> TenantCredentials:
        """Return credentials for ``tenant`` or raise ``MissingCredentialsError``."""
        ...


def offline_session_id(tenant: str) -> str:
    """Return the id under which a tenant's offline session is stored."""
    return f"offline_{tenant}"


class SessionStoreCredentialProvider:
    """Read offline sessions persisted by the app's OAuth flow."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Store the session factory and the clock used for expiry checks."""
        self._session_factory = session_factory
        self._clock = clock

    async def credentials_for(self, tenant: str) -> TenantCredentials:
        """Return credentials from the tenant's offline session.

        Raises
        ------
        MissingCredentialsError
            If the session is absent, expired or has no token.

        """
        async with self._session_factory() as session:
            stored = await session.get(TenantSession, offline_session_id(tenant))
        if stored is None:
            raise MissingCredentialsError.not_found(tenant)
        if stored.expires_at is not None and stored.expires_at <= self._clock():
            raise MissingCredentialsError.expired(tenant)
        if not stored.access_token.strip():
            raise MissingCredentialsError.empty_token(tenant)
        return TenantCredentials(
            shop_domain=stored.tenant, access_token=stored.access_token
        )
