"""OAuth credential model."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from fleetcharge.models._base import UtcTimestamp


class Credential(BaseModel):
    """An access token plus what is needed to renew it.

    Parameters
    ----------
    access_token : str
        Bearer token sent with every Fleet API request.
    refresh_token : str or None
        Token used to obtain a new access token. ``None`` means the
        caller manages renewal itself.
    expires_at : datetime
        UTC instant after which ``access_token`` is unusable. No safety
        buffer is folded in; see :class:`fleetcharge.auth.TokenLifecycleManager`.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    access_token: str = Field(min_length=1, validation_alias=AliasChoices("access_token", "accessToken"))
    refresh_token: str | None = Field(default=None, validation_alias=AliasChoices("refresh_token", "refreshToken"))
    expires_at: UtcTimestamp = Field(validation_alias=AliasChoices("expires_at", "expiresAt"))
    token_type: str = Field(default="Bearer", validation_alias=AliasChoices("token_type", "tokenType"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Credential:
        """Build a credential from a stored mapping.

        ``expires_at`` may be epoch seconds, epoch milliseconds or ISO text;
        camelCase keys are accepted.
        """
        return cls.model_validate(dict(data))

    @classmethod
    def from_token_response(
        cls,
        payload: dict[str, Any],
        *,
        previous_refresh_token: str | None = None,
        now: datetime | None = None,
    ) -> Credential:
        """Build a credential from an OAuth token endpoint response.

        Providers may omit ``refresh_token`` on refresh; the previous one
        stays valid in that case.
        """
        issued_at = now or datetime.now(UTC)
        expires_in = float(payload.get("expires_in") or 0)
        return cls(
            access_token=str(payload.get("access_token") or ""),
            refresh_token=payload.get("refresh_token") or previous_refresh_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
            token_type=str(payload.get("token_type") or "Bearer"),
        )

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def seconds_remaining(self, now: datetime | None = None) -> float:
        """Seconds until ``expires_at`` (negative once expired)."""
        return (self.expires_at - (now or datetime.now(UTC))).total_seconds()
