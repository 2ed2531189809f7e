"""Shopify Admin API errors."""

from __future__ import annotations

import collections.abc as cabc

THROTTLED_CODE = "THROTTLED"
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_SERVER_ERROR = 500


class ShopifyAPIError(RuntimeError):
    """Raised when the Admin API returns an error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        codes: cabc.Sequence[str] = (),
    ) -> None:
        """Initialise with a message, HTTP status and GraphQL error codes."""
        self.status_code = status_code
        self.codes = tuple(codes)
        super().__init__(message)

    @property
    def throttled(self) -> bool:
        """Return whether the server asked the caller to back off."""
        return (
            THROTTLED_CODE in self.codes
            or self.status_code == _HTTP_TOO_MANY_REQUESTS
        )

    @property
    def server_error(self) -> bool:
        """Return whether the response was an HTTP 5xx."""
        return self.status_code is not None and self.status_code >= _HTTP_SERVER_ERROR

    @classmethod
    def http_error(cls, status_code: int) -> ShopifyAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"Shopify GraphQL HTTP {status_code}", status_code=status_code)

    @classmethod
    def graphql_errors(cls, errors: object) -> ShopifyAPIError:
        """Return an error for a GraphQL ``errors`` payload.

        The first message becomes the error text and every
        ``extensions.code`` is kept for retry and classification decisions.
        """
        messages: list[str] = []
        codes: list[str] = []
        entries = errors if isinstance(errors, list) else [errors]
        for entry in entries:
            if not isinstance(entry, dict):
                messages.append(str(entry))
                continue
            message = entry.get("message")
            if isinstance(message, str):
                messages.append(message)
            extensions = entry.get("extensions")
            code = extensions.get("code") if isinstance(extensions, dict) else None
            if isinstance(code, str):
                codes.append(code)
        text = messages[0] if messages else f"Shopify GraphQL errors: {errors}"
        return cls(text, codes=codes)


class ShopifyResponseShapeError(RuntimeError):
    """Raised when GraphQL responses are missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> ShopifyResponseShapeError:
        """Return an error for a missing GraphQL response field."""
        return cls(f"Shopify GraphQL response missing expected field: {field}")


class ShopifyConfigError(RuntimeError):
    """Raised when Admin API client configuration is invalid."""

    @classmethod
    def empty_token(cls) -> ShopifyConfigError:
        """Return an error when the provided access token is empty."""
        return cls("Shopify access token must be non-empty")

    @classmethod
    def invalid_timeout(cls, raw: str) -> ShopifyConfigError:
        """Return an error for a non-numeric or non-positive timeout."""
        return cls(f"REPORTFLOW_SHOPIFY_TIMEOUT_S must be a positive number: {raw!r}")


class MissingCredentialsError(LookupError):
    """Raised when no usable offline session exists for a tenant."""

    def __init__(self, tenant: str, reason: str) -> None:
        """Record the tenant and why its credentials are unusable."""
        self.tenant = tenant
        super().__init__(f"No offline session for {tenant}: {reason}")

    @classmethod
    def not_found(cls, tenant: str) -> MissingCredentialsError:
        """Return an error for a tenant without a stored session."""
        return cls(tenant, "session not found")

    @classmethod
    def expired(cls, tenant: str) -> MissingCredentialsError:
        """Return an error for a stored session past its expiry."""
        return cls(tenant, "session expired")

    @classmethod
    def empty_token(cls, tenant: str) -> MissingCredentialsError:
        """Return an error for a stored session without an access token."""
        return cls(tenant, "access token missing")
