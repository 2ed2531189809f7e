"""Build a ``ReportExecutionService`` from environment configuration.

Usage
-----
>>> service = build_execution_service(session_factory)

"""

from __future__ import annotations

import typing as typ

from reportflow.delivery.config import SmtpConfig
from reportflow.delivery.mailer import SmtpMailer
from reportflow.delivery.notifier import DeliveryNotifier
from reportflow.shopify.client import ShopifyClientFactory, ShopifyGraphQLConfig
from reportflow.shopify.credentials import SessionStoreCredentialProvider
from reportflow.storage.repository import ScheduleRepository

from .config import ExecutionConfig
from .observability import ExecutionEventLogger
from .service import ExecutionDependencies, ReportExecutionService

if typ.TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from reportflow.delivery.mailer import Mailer

__all__ = ["build_execution_service"]


def build_execution_service(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    mailer: Mailer | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ReportExecutionService:
    """Assemble the orchestrator and its collaborators.

    Parameters
    ----------
    session_factory
        Async session factory for schedules, the ledger and tenant sessions.
    mailer
        Mail transport; an SMTP mailer configured from the environment is
        used when omitted.
    transport
        Optional httpx transport for the Admin API client.

    Returns
    -------
    ReportExecutionService
        Configured orchestrator.

    """
    credentials = SessionStoreCredentialProvider(session_factory)
    clients = ShopifyClientFactory(
        credentials, ShopifyGraphQLConfig.from_env(), transport=transport
    )
    notifier = DeliveryNotifier(mailer or SmtpMailer(SmtpConfig.from_env()))
    dependencies = ExecutionDependencies(
        repository=ScheduleRepository(session_factory),
        clients=clients,
        notifier=notifier,
    )
    return ReportExecutionService(
        dependencies,
        config=ExecutionConfig.from_env(),
        event_logger=ExecutionEventLogger(),
    )
