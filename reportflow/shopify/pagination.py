"""Cursor pagination over Admin API connections."""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses as dc
import typing as typ

import msgspec

from reportflow.logging import get_logger, log_warning

from .errors import ShopifyResponseShapeError
from .retry import RetryPolicy, SleepFn, execute_with_retry

if typ.TYPE_CHECKING:
    from .client import GraphQLExecutor

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 250
DEFAULT_MAX_PAGES = 20


class RawDataPage(msgspec.Struct, kw_only=True, frozen=True):
    """One page of connection nodes plus its continuation state."""

    records: list[dict[str, typ.Any]]
    has_next_page: bool
    end_cursor: str | None = None


@dc.dataclass(frozen=True, slots=True)
class PageLimits:
    """Page size and hard page ceiling for one fetch."""

    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES


@dc.dataclass(frozen=True, slots=True)
class PagedRecords:
    """All records gathered across pages."""

    records: list[dict[str, typ.Any]]
    pages: int
    truncated: bool


def _connection(data: dict[str, typ.Any], connection: str) -> dict[str, typ.Any]:
    node = data.get(connection)
    if not isinstance(node, dict):
        raise ShopifyResponseShapeError.missing(connection)
    return node


def page_from_connection(
    data: dict[str, typ.Any], connection: str
) -> RawDataPage:
    """Extract nodes and ``pageInfo`` from a connection in ``data``."""
    conn = _connection(data, connection)
    edges = conn.get("edges")
    if not isinstance(edges, list):
        raise ShopifyResponseShapeError.missing(f"{connection}.edges")
    records = [
        edge["node"]
        for edge in edges
        if isinstance(edge, dict) and isinstance(edge.get("node"), dict)
    ]
    page_info = conn.get("pageInfo")
    if not isinstance(page_info, dict):
        raise ShopifyResponseShapeError.missing(f"{connection}.pageInfo")
    cursor = page_info.get("endCursor")
    return RawDataPage(
        records=records,
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=cursor if isinstance(cursor, str) else None,
    )


async def paginate(  # noqa: PLR0913
    executor: GraphQLExecutor,
    query: str,
    variables: cabc.Mapping[str, typ.Any],
    *,
    connection: str,
    limits: PageLimits | None = None,
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> cabc.AsyncIterator[RawDataPage]:
    """Yield pages of ``connection`` until exhausted or the ceiling is hit.

    The query must declare ``$first: Int!`` and ``$cursor: String``. Each
    page request goes through ``execute_with_retry``.
    """
    bounds = limits or PageLimits()
    cursor: str | None = None
    for _ in range(bounds.max_pages):
        data = await execute_with_retry(
            executor,
            query,
            {**variables, "first": bounds.page_size, "cursor": cursor},
            policy=policy,
            sleep=sleep,
        )
        page = page_from_connection(data, connection)
        yield page
        if not page.has_next_page or page.end_cursor is None:
            return
        cursor = page.end_cursor


async def collect_pages(  # noqa: PLR0913
    executor: GraphQLExecutor,
    query: str,
    variables: cabc.Mapping[str, typ.Any],
    *,
    connection: str,
    limits: PageLimits | None = None,
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> PagedRecords:
    """Gather every page of ``connection`` into memory.

    When the page ceiling stops pagination while the server still reports
    more pages, the result is marked truncated and a warning is logged.
    """
    bounds = limits or PageLimits()
    records: list[dict[str, typ.Any]] = []
    pages = 0
    more = False
    async for page in paginate(
        executor,
        query,
        variables,
        connection=connection,
        limits=bounds,
        policy=policy,
        sleep=sleep,
    ):
        records.extend(page.records)
        pages += 1
        more = page.has_next_page and page.end_cursor is not None
    truncated = more and pages >= bounds.max_pages
    if truncated:
        log_warning(
            logger,
            "Stopped paging %s after %d pages (%d records); results truncated",
            connection,
            pages,
            len(records),
        )
    return PagedRecords(records=records, pages=pages, truncated=truncated)
