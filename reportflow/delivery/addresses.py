"""Recipient address validation."""

from __future__ import annotations

import re

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(address: str) -> bool:
    """Return whether ``address`` looks like a deliverable mailbox."""
    return bool(_EMAIL_PATTERN.match(address.strip()))
