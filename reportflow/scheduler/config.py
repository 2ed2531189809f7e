"""Configuration for the due-schedule poller."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

from reportflow.common.env import env_bool, env_positive_int

_DEFAULT_INTERVAL_S = 300
_DEFAULT_STALE_MINUTES = 360


@dc.dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Poller settings.

    Attributes
    ----------
    interval_s
        Seconds between poll ticks.
    stale_after
        Age after which a ``RUNNING`` ledger entry is failed by the sweep.
    enabled
        Whether the application starts the poller on startup.

    """

    interval_s: int = _DEFAULT_INTERVAL_S
    stale_after: dt.timedelta = dt.timedelta(minutes=_DEFAULT_STALE_MINUTES)
    enabled: bool = True

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Create configuration from environment variables.

        - ``REPORTFLOW_POLL_INTERVAL_S``: seconds between ticks (default 300).
        - ``REPORTFLOW_STALE_AFTER_MINUTES``: stale sweep threshold
          (default 360).
        - ``REPORTFLOW_SCHEDULER_ENABLED``: start the poller with the app.

        Raises
        ------
        ValueError
            If a variable cannot be parsed.

        """
        return cls(
            interval_s=env_positive_int(
                "REPORTFLOW_POLL_INTERVAL_S", _DEFAULT_INTERVAL_S
            ),
            stale_after=dt.timedelta(
                minutes=env_positive_int(
                    "REPORTFLOW_STALE_AFTER_MINUTES", _DEFAULT_STALE_MINUTES
                )
            ),
            enabled=env_bool("REPORTFLOW_SCHEDULER_ENABLED", default=True),
        )
