"""Delivery errors."""

from __future__ import annotations


class DeliveryError(RuntimeError):
    """Raised when an email cannot be handed to the mail server."""

    def __init__(self, recipient: str, detail: str) -> None:
        """Record the recipient and the transport failure."""
        self.recipient = recipient
        self.detail = detail
        super().__init__(f"Failed to send email to {recipient}: {detail}")


class InvalidRecipientError(DeliveryError):
    """Raised when a recipient address is malformed."""

    def __init__(self, recipient: str) -> None:
        """Record the rejected address."""
        super().__init__(recipient, "invalid email address")
