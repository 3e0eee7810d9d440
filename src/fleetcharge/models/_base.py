"""Base model and helpers for Fleet API responses.

Every response model inherits from :class:`FleetBaseModel` which provides:

* frozen instances with ``populate_by_name`` so both the provider's
  snake_case keys and our field names validate;
* a ``model_validator(mode="before")`` that drops ``None`` and NaN
  readings so the field default is used;
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce epoch seconds, epoch milliseconds or ISO text to a UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            ts: float = float(value)
        except ValueError:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    else:
        ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces epoch numbers or ISO text to UTC datetimes."""


class FleetBaseModel(BaseModel):
    """Base for Fleet API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop empty readings and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {
            key: value
            for key, value in values.items()
            if value is not None and not (isinstance(value, float) and math.isnan(value))
        }
        # Keep a caller-supplied raw=; otherwise remember the API dict.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
