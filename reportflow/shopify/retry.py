"""Exponential backoff for Admin API calls.

Throttling responses, HTTP 5xx responses and transport failures are
retried. Every other error surfaces on the first attempt without consuming
the retry budget.

Usage
-----
>>> data = await execute_with_retry(client, query, {"first": 250})

"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses as dc
import typing as typ

import httpx

from reportflow.logging import get_logger, log_warning

from .errors import ShopifyAPIError

if typ.TYPE_CHECKING:
    from .client import GraphQLExecutor

logger = get_logger(__name__)

type SleepFn = cabc.Callable[[float], cabc.Awaitable[None]]


@dc.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Backoff parameters for retryable API failures.

    Attributes
    ----------
    max_retries
        Retries allowed after the first attempt.
    initial_delay_s
        Delay before the first retry.
    multiplier
        Growth factor applied for each further retry.
    max_delay_s
        Upper bound on any single delay.

    """

    max_retries: int = 3
    initial_delay_s: float = 1.0
    multiplier: float = 2.0
    max_delay_s: float = 10.0

    def delay_for(self, retry_index: int) -> float:
        """Return the sleep before retry number ``retry_index`` (0-based)."""
        delay = self.initial_delay_s * self.multiplier**retry_index
        return min(delay, self.max_delay_s)


def is_retryable(exc: BaseException) -> bool:
    """Return whether ``exc`` is a throttle or a transient server fault."""
    if isinstance(exc, ShopifyAPIError):
        return exc.throttled or exc.server_error
    return isinstance(exc, httpx.TransportError)


async def execute_with_retry(
    executor: GraphQLExecutor,
    query: str,
    variables: cabc.Mapping[str, typ.Any],
    *,
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> dict[str, typ.Any]:
    """Run ``query`` through ``executor``, backing off on retryable errors.

    Parameters
    ----------
    executor
        Client that performs a single request.
    query, variables
        GraphQL document and its variables.
    policy
        Backoff parameters; defaults to ``RetryPolicy()``.
    sleep
        Awaitable sleep, replaceable in tests.

    Returns
    -------
    dict[str, Any]
        The ``data`` object of the first successful response.

    Raises
    ------
    ShopifyAPIError
        The last throttle or 5xx once the budget is spent, or any non-retryable
        API error immediately.
    httpx.TransportError
        The last transport failure once the budget is spent.

    """
    active = policy or RetryPolicy()
    retry_index = 0
    while True:
        try:
            return await executor.execute(query, variables)
        except (ShopifyAPIError, httpx.TransportError) as exc:
            if not is_retryable(exc) or retry_index >= active.max_retries:
                raise
            delay = active.delay_for(retry_index)
            retry_index += 1
            log_warning(
                logger,
                "Admin API call failed (%s: %s); retry %d/%d in %.2fs",
                type(exc).__name__,
                exc,
                retry_index,
                active.max_retries,
                delay,
            )
            await sleep(delay)
