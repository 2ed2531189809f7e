"""Unit tests for the femtologging helpers in ``reportflow.logging``."""

from __future__ import annotations

import pytest

from reportflow.logging import (
    LOG_LEVEL_ENV_VAR,
    configure_logging,
    format_log_message,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
)


class _RecordingLogger:
    """Stand-in logger that keeps every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        del stack_info
        self.calls.append((level, message, exc_info))
        return message


@pytest.mark.parametrize(
    ("raw", "expected", "invalid"),
    [
        ("debug", "DEBUG", False),
        ("  Warn ", "WARN", False),
        (None, "INFO", True),
        ("   ", "INFO", True),
        ("verbose", "INFO", True),
    ],
)
def test_normalize_log_level(raw: str | None, expected: str, *, invalid: bool) -> None:
    """Known levels are upper-cased; anything else falls back to INFO."""
    assert normalize_log_level(raw) == (expected, invalid), (
        f"unexpected normalisation for {raw!r}"
    )


def test_format_log_message_leaves_template_without_args() -> None:
    """A template without arguments keeps literal percent signs."""
    assert format_log_message("100% done") == "100% done"


def test_log_info_interpolates_arguments() -> None:
    """Arguments are interpolated before reaching the logger."""
    logger = _RecordingLogger()

    log_info(logger, "polled %d schedules for %s", 3, "shop.example")

    assert logger.calls == [("INFO", "polled 3 schedules for shop.example", None)]


def test_log_warning_forwards_exc_info() -> None:
    """exc_info is passed through untouched."""
    logger = _RecordingLogger()
    exc = RuntimeError("smtp down")

    log_warning(logger, "delivery: %s", "retrying", exc_info=exc)

    assert logger.calls == [("WARNING", "delivery: retrying", exc)]


def test_log_exception_does_not_interpolate_message() -> None:
    """log_exception logs the message verbatim at ERROR."""
    logger = _RecordingLogger()
    exc = ValueError("bad row")

    log_exception(logger, "Execution of schedule 50% crashed", exc)

    assert logger.calls == [("ERROR", "Execution of schedule 50% crashed", exc)]


def test_configure_logging_reads_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Without an explicit level the environment variable is used."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("reportflow.logging.basicConfig", fake_basic_config)
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "error")

    assert configure_logging() == ("ERROR", False)
    assert captured == {"level": "ERROR", "force": False}


def test_configure_logging_flags_invalid_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """An unknown explicit level is replaced and reported."""
    captured: dict[str, object] = {}
    monkeypatch.setattr(
        "reportflow.logging.basicConfig", lambda **kwargs: captured.update(kwargs)
    )

    assert configure_logging("loud", force=True) == ("INFO", True)
    assert captured == {"level": "INFO", "force": True}
