"""Outgoing mail transport.

``SmtpMailer`` speaks SMTP through :mod:`smtplib` in a worker thread so the
event loop is never blocked on the mail server.
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
import typing as typ
from email.message import EmailMessage
from pathlib import Path  # noqa: TC003

import msgspec

from .errors import DeliveryError

if typ.TYPE_CHECKING:
    from .config import SmtpConfig

_CSV_MAINTYPE = "text"
_CSV_SUBTYPE = "csv"


class EmailAttachment(msgspec.Struct, kw_only=True, frozen=True):
    """File attached to an outgoing email."""

    filename: str
    path: Path


class OutgoingEmail(msgspec.Struct, kw_only=True, frozen=True):
    """A single rendered email addressed to one recipient."""

    to: str
    subject: str
    text: str
    html: str
    attachments: tuple[EmailAttachment, ...] = ()


class Mailer(typ.Protocol):
    """Sends one email; raises :class:`DeliveryError` on failure."""

    async def send(self, email: OutgoingEmail) -> None:
        """Deliver ``email``."""
        ...


def build_message(email: OutgoingEmail, sender: str) -> EmailMessage:
    """Return a multipart ``EmailMessage`` for ``email``.

    Raises
    ------
    OSError
        If an attachment cannot be read.
    ValueError
        If a header value contains a line break.

    """
    message = EmailMessage()
    message["From"] = sender
    message["To"] = email.to
    message["Subject"] = email.subject
    message.set_content(email.text)
    message.add_alternative(email.html, subtype="html")
    for attachment in email.attachments:
        message.add_attachment(
            attachment.path.read_bytes(),
            maintype=_CSV_MAINTYPE,
            subtype=_CSV_SUBTYPE,
            filename=attachment.filename,
        )
    return message


class SmtpMailer:
    """Mailer backed by an SMTP server."""

    def __init__(self, config: SmtpConfig) -> None:
        """Store the connection settings."""
        self._config = config

    async def send(self, email: OutgoingEmail) -> None:
        """Send ``email`` from a worker thread.

        Raises
        ------
        DeliveryError
            If the message cannot be built or the server rejects it.

        """
        try:
            await asyncio.to_thread(self._send_sync, email)
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            raise DeliveryError(email.to, str(exc)) from exc

    def _connect(self) -> smtplib.SMTP:
        config = self._config
        if config.use_ssl:
            return smtplib.SMTP_SSL(
                config.host,
                config.port,
                timeout=config.timeout_s,
                context=ssl.create_default_context(),
            )
        server = smtplib.SMTP(config.host, config.port, timeout=config.timeout_s)
        if config.use_tls:
            server.starttls(context=ssl.create_default_context())
        return server

    def _send_sync(self, email: OutgoingEmail) -> None:
        message = build_message(email, self._config.sender)
        with self._connect() as server:
            if self._config.username:
                server.login(self._config.username, self._config.password)
            server.send_message(message)
