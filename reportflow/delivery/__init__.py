"""Email delivery of report artifacts and failure notices."""

from __future__ import annotations

from .addresses import is_valid_email
from .config import SmtpConfig
from .errors import DeliveryError, InvalidRecipientError
from .mailer import EmailAttachment, Mailer, OutgoingEmail, SmtpMailer
from .notifier import DeliveryNotifier, DeliveryResult
from .templates import FailureNotice, ReportEmailContext

__all__ = [
    "DeliveryError",
    "DeliveryNotifier",
    "DeliveryResult",
    "EmailAttachment",
    "FailureNotice",
    "InvalidRecipientError",
    "Mailer",
    "OutgoingEmail",
    "ReportEmailContext",
    "SmtpConfig",
    "SmtpMailer",
    "is_valid_email",
]
