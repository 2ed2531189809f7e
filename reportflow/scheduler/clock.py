"""Time source for the poller."""

from __future__ import annotations

import asyncio
import typing as typ

from reportflow.common.time import utcnow

if typ.TYPE_CHECKING:
    import datetime as dt


class Clock(typ.Protocol):
    """Wall clock and sleep used by :class:`ReportScheduler`."""

    def now(self) -> dt.datetime:
        """Return the current UTC time."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds``."""
        ...


class SystemClock:
    """Clock backed by the system time and ``asyncio.sleep``."""

    def now(self) -> dt.datetime:
        """Return the current UTC time."""
        return utcnow()

    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds``."""
        await asyncio.sleep(seconds)
