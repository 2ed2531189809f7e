"""Behavioural coverage for per-recipient report delivery."""

from __future__ import annotations

import asyncio
import datetime as dt
import re
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from reportflow.delivery.notifier import DeliveryNotifier, DeliveryResult
from reportflow.delivery.templates import ReportEmailContext
from reportflow.reports.artifacts import Artifact
from reportflow.schedules.models import Recipient
from tests.helpers.builders import RecordingMailer

if typ.TYPE_CHECKING:
    from pathlib import Path

_ADDRESS_SEPARATOR = re.compile(r",\s*|\s+and\s+")


class DeliveryContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    recipients: list[Recipient]
    mailer: RecordingMailer
    artifact: Artifact
    result: DeliveryResult


@scenario("../report_delivery.feature", "One recipient fails out of three")
def test_one_recipient_fails() -> None:
    """Wrap the pytest-bdd scenario for a rejected mailbox."""


@scenario("../report_delivery.feature", "Malformed address is counted as failed")
def test_malformed_address() -> None:
    """Wrap the pytest-bdd scenario for an invalid address."""


@pytest.fixture
def delivery_context(tmp_path: Path) -> DeliveryContext:
    """Provide a mailer and a small artifact on disk."""
    path = tmp_path / "daily_sales_20240714-090000.csv"
    path.write_text("Date\n2024-07-13\n", encoding="utf-8")
    return {
        "mailer": RecordingMailer(),
        "artifact": Artifact(path=path, size_bytes=path.stat().st_size, row_count=1),
    }


@given(parsers.parse("recipients {addresses}"))
def given_recipients(delivery_context: DeliveryContext, addresses: str) -> None:
    """Parse the recipient list from the step text."""
    delivery_context["recipients"] = [
        Recipient(email=address) for address in _ADDRESS_SEPARATOR.split(addresses)
    ]


@given(parsers.parse("the mail server rejects {address}"))
def given_rejection(delivery_context: DeliveryContext, address: str) -> None:
    """Make the mailer fail for ``address``."""
    delivery_context["mailer"].fail_for.add(address)


@when("the report is delivered")
def when_delivered(delivery_context: DeliveryContext) -> None:
    """Send the artifact to every recipient."""
    context = ReportEmailContext(
        report_name="Daily Sales",
        report_type="Sales",
        record_count=1,
        generated_at=dt.datetime(2024, 7, 14, 9, 0, tzinfo=dt.UTC),
    )
    notifier = DeliveryNotifier(delivery_context["mailer"])
    delivery_context["result"] = asyncio.run(
        notifier.send_report(
            delivery_context["recipients"], context, delivery_context["artifact"]
        )
    )


@then(parsers.parse("{sent:d} emails are sent and {failed:d} fails"))
def then_counts(delivery_context: DeliveryContext, sent: int, failed: int) -> None:
    """Assert delivered and failed counts."""
    result = delivery_context["result"]
    assert (result.emails_sent, result.emails_failed) == (sent, failed), (
        f"expected {sent} sent and {failed} failed, got {result}"
    )
    assert len(delivery_context["mailer"].sent) == sent


@then("the failed address is listed in the delivery errors")
def then_error_listed(delivery_context: DeliveryContext) -> None:
    """Assert the rejected mailbox is named in the errors."""
    rejected = next(iter(delivery_context["mailer"].fail_for))
    assert any(rejected in error for error in delivery_context["result"].errors)
