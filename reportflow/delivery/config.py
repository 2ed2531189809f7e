"""SMTP configuration.

Usage
-----
>>> config = SmtpConfig.from_env()
>>> config.port
587

"""

from __future__ import annotations

import dataclasses as dc
import os

from reportflow.common.env import env_bool, env_positive_int, env_str

_DEFAULT_FROM = "noreply@reportflow.app"


@dc.dataclass(frozen=True, slots=True)
class SmtpConfig:
    """Connection settings for the outgoing mail server.

    Attributes
    ----------
    host
        SMTP server host name.
    port
        SMTP server port.
    username, password
        Credentials; login is skipped when ``username`` is empty.
    from_address
        Envelope and header sender address.
    from_name
        Display name for the sender header.
    use_tls
        Upgrade the connection with STARTTLS.
    use_ssl
        Connect with implicit TLS (port 465 style) instead of STARTTLS.
    timeout_s
        Socket timeout for each send.

    """

    host: str = "localhost"
    port: int = 587
    username: str = ""
    password: str = dc.field(default="", repr=False)
    from_address: str = _DEFAULT_FROM
    from_name: str = "Report Flow"
    use_tls: bool = True
    use_ssl: bool = False
    timeout_s: int = 30

    @property
    def sender(self) -> str:
        """Return the formatted ``From`` header value."""
        return f'"{self.from_name}" <{self.from_address}>'

    @classmethod
    def from_env(cls) -> SmtpConfig:
        """Create configuration from ``REPORTFLOW_SMTP_*`` variables.

        - ``REPORTFLOW_SMTP_HOST`` / ``REPORTFLOW_SMTP_PORT``
        - ``REPORTFLOW_SMTP_USER`` / ``REPORTFLOW_SMTP_PASSWORD``
        - ``REPORTFLOW_SMTP_FROM`` (defaults to the user, then a no-reply
          address) and ``REPORTFLOW_SMTP_FROM_NAME``
        - ``REPORTFLOW_SMTP_USE_TLS``, ``REPORTFLOW_SMTP_USE_SSL``
        - ``REPORTFLOW_SMTP_TIMEOUT_S``

        Raises
        ------
        ValueError
            If a numeric or boolean variable cannot be parsed.

        """
        defaults = cls()
        username = env_str("REPORTFLOW_SMTP_USER", "")
        return cls(
            host=env_str("REPORTFLOW_SMTP_HOST", defaults.host),
            port=env_positive_int("REPORTFLOW_SMTP_PORT", defaults.port),
            username=username,
            password=os.environ.get("REPORTFLOW_SMTP_PASSWORD", ""),
            from_address=env_str("REPORTFLOW_SMTP_FROM", username or _DEFAULT_FROM),
            from_name=env_str("REPORTFLOW_SMTP_FROM_NAME", defaults.from_name),
            use_tls=env_bool("REPORTFLOW_SMTP_USE_TLS", default=defaults.use_tls),
            use_ssl=env_bool("REPORTFLOW_SMTP_USE_SSL", default=defaults.use_ssl),
            timeout_s=env_positive_int(
                "REPORTFLOW_SMTP_TIMEOUT_S", defaults.timeout_s
            ),
        )
