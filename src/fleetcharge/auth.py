"""Credential lifecycle: decide when a token needs refreshing and refresh it."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from fleetcharge._constants import TOKEN_REFRESH_BUFFER_SECONDS
from fleetcharge._redact import mask_secret
from fleetcharge.exceptions import AuthError
from fleetcharge.models.credential import Credential

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CredentialRefresher(Protocol):
    """Performs the refresh-token exchange against the OAuth token endpoint."""

    async def refresh_credential(self, refresh_token: str) -> Credential: ...


class TokenLifecycleManager:
    """Keep a credential usable by refreshing it shortly before expiry.

    The manager holds no state besides its collaborators: validity is
    recomputed on every call, so :meth:`ensure_valid` on a fresh
    credential is a cheap no-op.
    """

    def __init__(
        self,
        refresher: CredentialRefresher,
        *,
        clock: Callable[[], datetime] = _utcnow,
        buffer: timedelta = timedelta(seconds=TOKEN_REFRESH_BUFFER_SECONDS),
    ) -> None:
        self._refresher = refresher
        self._clock = clock
        self._buffer = buffer

    def is_expired(self, credential: Credential, now: datetime | None = None) -> bool:
        """Whether *credential* is inside the safety buffer before ``expires_at``."""
        current = now or self._clock()
        return current > credential.expires_at - self._buffer

    async def ensure_valid(self, credential: Credential) -> Credential:
        """Return a usable credential, refreshing when needed.

        Without a refresh token an expired credential is returned as-is:
        the caller manages renewal and the remote call will fail with an
        authorization error.

        Raises
        ------
        AuthError
            The refresh exchange failed. *credential* is left untouched.
        """
        if not self.is_expired(credential):
            return credential
        if not credential.refresh_token:
            _logger.debug("Credential expired but no refresh token; caller manages renewal")
            return credential

        _logger.info("Refreshing access token %s", mask_secret(credential.access_token))
        try:
            refreshed = await self._refresher.refresh_credential(credential.refresh_token)
        except AuthError:
            raise
        except Exception as exc:
            raise AuthError(f"Token refresh failed: {exc}") from exc

        if not refreshed.refresh_token:
            refreshed = refreshed.model_copy(update={"refresh_token": credential.refresh_token})
        return refreshed
