"""Dramatiq broker guard for the execution actor.

The actor module calls :func:`ensure_broker_configured` at import, before
the decorator resolves the global broker, and again on every invocation.
A StubBroker is only installed under pytest or when explicitly allowed.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

ALLOW_STUB_ENV_VAR = "REPORTFLOW_ALLOW_STUB_BROKER"
_PYTEST_ENV_VARS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER")
_lock = threading.Lock()
_configured = False


def _stub_allowed() -> bool:
    """Return whether a StubBroker may stand in for a real broker."""
    if os.environ.get(ALLOW_STUB_ENV_VAR, "").strip().lower() in {"1", "true", "yes"}:
        return True
    return "pytest" in sys.modules or any(key in os.environ for key in _PYTEST_ENV_VARS)


def ensure_broker_configured() -> None:
    """Install a StubBroker when allowed and no broker is configured.

    Raises
    ------
    RuntimeError
        If no broker is configured outside test or stub-allowed runs.

    """
    global _configured

    with _lock:
        if _configured:
            return
        try:
            broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            broker = None
        if broker is None:
            if not _stub_allowed():
                msg = (
                    "No Dramatiq broker configured; set "
                    f"{ALLOW_STUB_ENV_VAR}=1 for local runs or configure RabbitMQ/Redis"
                )
                raise RuntimeError(msg)
            dramatiq.set_broker(StubBroker())
        _configured = True
