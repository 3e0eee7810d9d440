"""Pending OAuth authorizations keyed by the random ``state`` parameter.

The store is an explicit object handed to whatever serves the OAuth
callback, so it can be swapped out or driven by a fake clock in tests.
Entries expire after a TTL and are consumed at most once.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict

from fleetcharge._api.oauth import build_authorization_url
from fleetcharge._constants import DEFAULT_SCOPES
from fleetcharge.config import FleetConfig


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PendingAuthorization(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: str
    code_verifier: str
    created_at: datetime
    expires_at: datetime


class AuthorizationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    auth_url: str
    state: str
    scopes: tuple[str, ...]


class PendingAuthStore:
    """In-memory TTL store for PKCE verifiers awaiting their callback."""

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, PendingAuthorization] = {}

    def __len__(self) -> int:
        self.evict_expired()
        return len(self._entries)

    def put(self, state: str, code_verifier: str) -> PendingAuthorization:
        now = self._clock()
        entry = PendingAuthorization(
            state=state,
            code_verifier=code_verifier,
            created_at=now,
            expires_at=now + self._ttl,
        )
        self.evict_expired()
        self._entries[state] = entry
        return entry

    def pop(self, state: str) -> PendingAuthorization | None:
        """Remove and return the entry for *state*; ``None`` if unknown or expired."""
        entry = self._entries.pop(state, None)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [state for state, entry in self._entries.items() if now >= entry.expires_at]
        for state in expired:
            del self._entries[state]
        return len(expired)


def generate_pkce_pair() -> tuple[str, str]:
    """Return ``(code_verifier, code_challenge)`` for the S256 method."""
    verifier = secrets.token_urlsafe(32)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def create_authorization_request(
    config: FleetConfig,
    store: PendingAuthStore,
    scopes: Iterable[str] = DEFAULT_SCOPES,
) -> AuthorizationRequest:
    """Start an authorization: record the verifier and build the authorize URL."""
    state = secrets.token_hex(32)
    verifier, challenge = generate_pkce_pair()
    scope_tuple = tuple(scopes)
    store.put(state, verifier)
    return AuthorizationRequest(
        auth_url=build_authorization_url(config, state=state, code_challenge=challenge, scopes=scope_tuple),
        state=state,
        scopes=scope_tuple,
    )
