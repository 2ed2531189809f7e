"""Environment variable parsing shared by the ``from_env`` constructors."""

from __future__ import annotations

import os

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def env_str(env_var: str, default: str) -> str:
    """Return the stripped value of ``env_var`` or ``default`` when blank."""
    return os.environ.get(env_var, "").strip() or default


def env_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default.

    Raises
    ------
    ValueError
        If the variable is set but is not a positive integer.

    """
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def env_positive_float(env_var: str, default: float) -> float:
    """Read a positive number env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def env_bool(env_var: str, *, default: bool) -> bool:
    """Read a boolean env var such as ``true`` or ``0``."""
    raw = os.environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    msg = f"{env_var} must be a boolean, got: {raw!r}"
    raise ValueError(msg)
