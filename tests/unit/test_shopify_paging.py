"""Unit tests for retry backoff, cursor pagination and search predicates."""

from __future__ import annotations

import datetime as dt

import httpx
import pytest

from reportflow.reports.timerange import DateRange
from reportflow.shopify.errors import ShopifyAPIError, ShopifyResponseShapeError
from reportflow.shopify.pagination import PageLimits, collect_pages
from reportflow.shopify.predicates import any_of, build_predicate, created_between
from reportflow.shopify.retry import RetryPolicy, execute_with_retry, is_retryable
from tests.helpers.builders import ScriptedExecutor, connection
from tests.helpers.femtologging_capture import capture_femto_logs


def _throttled() -> ShopifyAPIError:
    return ShopifyAPIError("Throttled", codes=["THROTTLED"])


class _SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetry:
    """Tests for ``execute_with_retry``."""

    @pytest.mark.asyncio
    async def test_recovers_after_two_throttles(self) -> None:
        """Two throttles then success: two retries with growing delays."""
        executor = ScriptedExecutor([_throttled(), _throttled(), {"ok": True}])
        sleep = _SleepRecorder()

        data = await execute_with_retry(executor, "query", {}, sleep=sleep)

        assert data == {"ok": True}
        assert len(executor.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self) -> None:
        """Persistent throttling raises once the retries are spent."""
        policy = RetryPolicy(max_retries=3)
        executor = ScriptedExecutor([_throttled() for _ in range(4)])
        sleep = _SleepRecorder()

        with pytest.raises(ShopifyAPIError, match="Throttled"):
            await execute_with_retry(executor, "query", {}, policy=policy, sleep=sleep)

        assert len(executor.calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_immediate(self) -> None:
        """Authentication failures do not consume the retry budget."""
        executor = ScriptedExecutor([ShopifyAPIError.http_error(401)])
        sleep = _SleepRecorder()

        with pytest.raises(ShopifyAPIError):
            await execute_with_retry(executor, "query", {}, sleep=sleep)

        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self) -> None:
        """Connection failures are transient."""
        executor = ScriptedExecutor(
            [httpx.ConnectError("refused"), {"ok": True}]
        )
        sleep = _SleepRecorder()

        assert await execute_with_retry(executor, "q", {}, sleep=sleep) == {"ok": True}
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_server_error_then_success(self) -> None:
        """A 503 is retried with backoff and the next response is returned."""
        executor = ScriptedExecutor([ShopifyAPIError.http_error(503), {"ok": True}])
        sleep = _SleepRecorder()

        data = await execute_with_retry(executor, "query", {}, sleep=sleep)

        assert data == {"ok": True}
        assert len(executor.calls) == 2
        assert sleep.delays == [1.0]

    def test_delay_is_capped(self) -> None:
        """Delays never exceed the configured maximum."""
        policy = RetryPolicy(initial_delay_s=4.0, multiplier=3.0, max_delay_s=10.0)
        assert [policy.delay_for(index) for index in range(3)] == [4.0, 10.0, 10.0]

    def test_is_retryable(self) -> None:
        """Throttles, server faults and transport errors are retryable."""
        assert is_retryable(ShopifyAPIError.http_error(429))
        assert is_retryable(ShopifyAPIError.http_error(503))
        assert not is_retryable(ShopifyAPIError.http_error(404))
        assert not is_retryable(ValueError("nope"))


class TestCollectPages:
    """Tests for cursor pagination."""

    @pytest.mark.asyncio
    async def test_follows_cursor_until_exhausted(self) -> None:
        """Each request after the first passes the previous end cursor."""
        executor = ScriptedExecutor(
            [
                connection(
                    "orders", [{"id": 1}, {"id": 2}], has_next=True, cursor="c1"
                ),
                connection("orders", [{"id": 3}]),
            ]
        )

        paged = await collect_pages(
            executor,
            "query",
            {"query": "status:open"},
            connection="orders",
            limits=PageLimits(page_size=2, max_pages=5),
        )

        assert [record["id"] for record in paged.records] == [1, 2, 3]
        assert (paged.pages, paged.truncated) == (2, False)
        first, second = (variables for _query, variables in executor.calls)
        assert first == {"query": "status:open", "first": 2, "cursor": None}
        assert second["cursor"] == "c1"

    @pytest.mark.asyncio
    async def test_page_ceiling_marks_truncation(self) -> None:
        """Hitting the ceiling with more pages available is reported."""
        executor = ScriptedExecutor(
            [
                connection("orders", [{"id": index}], has_next=True, cursor=f"c{index}")
                for index in range(2)
            ]
        )

        with capture_femto_logs("reportflow.shopify.pagination") as capture:
            paged = await collect_pages(
                executor,
                "query",
                {},
                connection="orders",
                limits=PageLimits(page_size=1, max_pages=2),
            )
            capture.wait_for_count(1)

        assert paged.truncated is True
        assert paged.pages == 2
        assert "truncated" in capture.records[0].message

    @pytest.mark.asyncio
    async def test_empty_connection(self) -> None:
        """No data is an empty result, not an error."""
        executor = ScriptedExecutor([connection("customers", [])])

        paged = await collect_pages(executor, "q", {}, connection="customers")

        assert (paged.records, paged.pages, paged.truncated) == ([], 1, False)

    @pytest.mark.asyncio
    async def test_missing_connection_is_shape_error(self) -> None:
        """A response without the connection is malformed."""
        executor = ScriptedExecutor([{"products": None}])
        with pytest.raises(ShopifyResponseShapeError, match="products"):
            await collect_pages(executor, "q", {}, connection="products")


class TestPredicates:
    """Tests for Admin API search syntax builders."""

    def test_created_between(self) -> None:
        """Date ranges become inclusive created_at clauses."""
        date_range = DateRange(
            start=dt.datetime(2024, 7, 1, tzinfo=dt.UTC),
            end=dt.datetime(2024, 7, 7, 23, 59, 59, 999000, tzinfo=dt.UTC),
        )
        assert created_between(date_range) == (
            "created_at:>='2024-07-01T00:00:00.000Z' AND "
            "created_at:<='2024-07-07T23:59:59.999Z'"
        )

    def test_any_of_groups_and_quotes(self) -> None:
        """Multiple values are OR-ed in parentheses; quotes are escaped."""
        assert any_of("vendor", ["Acme", "O'Neil"], quote=True) == (
            "(vendor:'Acme' OR vendor:'O\\'Neil')"
        )
        assert any_of("status", ["open"]) == "status:open"
        assert any_of("status", []) is None

    def test_build_predicate_skips_empty_clauses(self) -> None:
        """Absent clauses are dropped; nothing left means no predicate."""
        assert build_predicate("a:1", None, "b:2") == "a:1 AND b:2"
        assert build_predicate(None, None) is None
