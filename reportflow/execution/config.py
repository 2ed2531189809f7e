"""Configuration for report executions.

Usage
-----
>>> config = ExecutionConfig.from_env()
>>> config.max_pages
20

"""

from __future__ import annotations

import dataclasses as dc
import tempfile
from pathlib import Path

from reportflow.common.env import env_positive_float, env_positive_int, env_str
from reportflow.shopify.pagination import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    PageLimits,
)
from reportflow.shopify.retry import RetryPolicy


def _default_artifact_dir() -> Path:
    return Path(tempfile.gettempdir()) / "reportflow"


@dc.dataclass(frozen=True, slots=True)
class ExecutionConfig:
    """Settings shared by every execution.

    Attributes
    ----------
    artifact_dir
        Directory that temporary CSV files are written into.
    page_size
        Records requested per Admin API page.
    max_pages
        Page ceiling per execution; results beyond it are truncated.
    retry_policy
        Backoff applied to throttled and transport failures.

    """

    artifact_dir: Path = dc.field(default_factory=_default_artifact_dir)
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES
    retry_policy: RetryPolicy = dc.field(default_factory=RetryPolicy)

    @property
    def page_limits(self) -> PageLimits:
        """Return the pagination limits for fetchers."""
        return PageLimits(page_size=self.page_size, max_pages=self.max_pages)

    @classmethod
    def from_env(cls) -> ExecutionConfig:
        """Create configuration from ``REPORTFLOW_*`` variables.

        - ``REPORTFLOW_ARTIFACT_DIR``: temporary CSV directory.
        - ``REPORTFLOW_PAGE_SIZE`` / ``REPORTFLOW_MAX_PAGES``: pagination.
        - ``REPORTFLOW_RETRY_MAX``, ``REPORTFLOW_RETRY_INITIAL_DELAY_S``,
          ``REPORTFLOW_RETRY_MULTIPLIER``, ``REPORTFLOW_RETRY_MAX_DELAY_S``.

        Raises
        ------
        ValueError
            If a numeric variable is not a positive number.

        """
        defaults_retry = RetryPolicy()
        artifact_dir = Path(
            env_str("REPORTFLOW_ARTIFACT_DIR", str(_default_artifact_dir()))
        )
        retry_policy = RetryPolicy(
            max_retries=env_positive_int(
                "REPORTFLOW_RETRY_MAX", defaults_retry.max_retries
            ),
            initial_delay_s=env_positive_float(
                "REPORTFLOW_RETRY_INITIAL_DELAY_S", defaults_retry.initial_delay_s
            ),
            multiplier=env_positive_float(
                "REPORTFLOW_RETRY_MULTIPLIER", defaults_retry.multiplier
            ),
            max_delay_s=env_positive_float(
                "REPORTFLOW_RETRY_MAX_DELAY_S", defaults_retry.max_delay_s
            ),
        )
        return cls(
            artifact_dir=artifact_dir,
            page_size=env_positive_int("REPORTFLOW_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            max_pages=env_positive_int("REPORTFLOW_MAX_PAGES", DEFAULT_MAX_PAGES),
            retry_policy=retry_policy,
        )
