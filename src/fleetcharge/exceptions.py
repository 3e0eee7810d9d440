"""Custom exception hierarchy for fleetcharge."""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for all fleetcharge errors."""


class FleetConfigError(FleetError):
    """Invalid or missing configuration."""


class AuthError(FleetError):
    """Credential invalid or expired, or the refresh exchange failed.

    Not recoverable without a fresh credential (re-authorization or a
    new refresh token supplied by the caller).
    """


class SigningError(FleetError):
    """Command signing is impossible (no private key configured)."""


class RemoteError(FleetError):
    """An outbound call to the provider failed.

    Constructed once at the transport boundary so callers never need to
    dig through response bodies themselves.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider_message: str = "",
        raw_body: str = "",
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.provider_message = provider_message
        self.raw_body = raw_body
        self.endpoint = endpoint
        super().__init__(message)


class RemoteAuthError(RemoteError, AuthError):
    """Provider rejected the access token (HTTP 401)."""


class RateLimitError(RemoteError):
    """Provider rate limit exceeded (HTTP 429).

    Delivered to the caller as-is; the dispatcher does not retry.
    """


class LoopStateError(FleetError):
    """Coordination loop start/stop misuse."""


class AlreadyActiveError(LoopStateError):
    """A coordination loop is already running on this coordinator."""


class NotActiveError(LoopStateError):
    """No coordination loop is running on this coordinator."""
