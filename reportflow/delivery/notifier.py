"""Per-recipient delivery of report artifacts and failure notices."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import typing as typ

from reportflow.logging import get_logger, log_exception, log_info, log_warning

from .addresses import is_valid_email
from .errors import DeliveryError, InvalidRecipientError
from .mailer import EmailAttachment, OutgoingEmail
from .templates import (
    failure_subject,
    render_failure_html,
    render_failure_text,
    render_report_html,
    render_report_text,
    report_subject,
)

if typ.TYPE_CHECKING:
    from reportflow.reports.artifacts import Artifact
    from reportflow.schedules.models import Recipient

    from .mailer import Mailer
    from .templates import FailureNotice, ReportEmailContext

logger = get_logger(__name__)

_DEFAULT_GREETING = "there"


@dc.dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Outcome of sending one email per recipient.

    ``success`` is true when at least one recipient received the email.
    """

    emails_sent: int
    emails_failed: int
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """Return whether any email was delivered."""
        return self.emails_sent > 0

    @property
    def partial(self) -> bool:
        """Return whether some, but not all, recipients failed."""
        return self.success and self.emails_failed > 0


class DeliveryNotifier:
    """Render and send report emails through a :class:`Mailer`."""

    def __init__(self, mailer: Mailer) -> None:
        """Store the transport used for every send."""
        self._mailer = mailer

    async def _send_each(
        self,
        recipients: cabc.Sequence[Recipient],
        build: cabc.Callable[[Recipient], OutgoingEmail],
    ) -> DeliveryResult:
        sent = 0
        errors: list[str] = []
        for recipient in recipients:
            try:
                if not is_valid_email(recipient.email):
                    raise InvalidRecipientError(recipient.email)
                await self._mailer.send(build(recipient))
            except DeliveryError as exc:
                errors.append(str(exc))
                log_warning(logger, "%s", exc)
            except Exception as exc:  # noqa: BLE001
                errors.append(f"Failed to deliver to {recipient.email}: {exc}")
                log_exception(
                    logger, f"Unexpected error delivering to {recipient.email}", exc
                )
            else:
                sent += 1
        return DeliveryResult(
            emails_sent=sent, emails_failed=len(errors), errors=tuple(errors)
        )

    async def send_report(
        self,
        recipients: cabc.Sequence[Recipient],
        context: ReportEmailContext,
        artifact: Artifact,
    ) -> DeliveryResult:
        """Send the artifact to each recipient independently.

        A failure for one recipient, including a malformed address, is
        counted and never stops delivery to the others.

        Parameters
        ----------
        recipients
            Schedule recipients, in stored order.
        context
            Summary values rendered into the email.
        artifact
            The CSV file attached to every email.

        Returns
        -------
        DeliveryResult
            Counts of delivered and failed emails plus per-recipient errors.

        """
        attachment = EmailAttachment(
            filename=artifact.path.name, path=artifact.path
        )
        subject = report_subject(context)

        def build(recipient: Recipient) -> OutgoingEmail:
            greeting = recipient.name or _DEFAULT_GREETING
            return OutgoingEmail(
                to=recipient.email,
                subject=subject,
                text=render_report_text(
                    context, recipient_name=greeting, size_bytes=artifact.size_bytes
                ),
                html=render_report_html(
                    context, recipient_name=greeting, size_bytes=artifact.size_bytes
                ),
                attachments=(attachment,),
            )

        result = await self._send_each(recipients, build)
        log_info(
            logger,
            "Report %r delivered: sent=%d failed=%d",
            context.report_name,
            result.emails_sent,
            result.emails_failed,
        )
        return result

    async def send_failure_notice(
        self, recipients: cabc.Sequence[Recipient], notice: FailureNotice
    ) -> DeliveryResult:
        """Tell recipients that an execution failed.

        Best effort: every failure is logged and contained so it never
        replaces the original execution error.
        """
        email_text = render_failure_text(notice)
        email_html = render_failure_html(notice)
        subject = failure_subject(notice)

        def build(recipient: Recipient) -> OutgoingEmail:
            return OutgoingEmail(
                to=recipient.email, subject=subject, text=email_text, html=email_html
            )

        result = await self._send_each(recipients, build)
        if result.emails_failed:
            log_warning(
                logger,
                "Failure notice for execution %s: sent=%d failed=%d",
                notice.execution_id,
                result.emails_sent,
                result.emails_failed,
            )
        return result
