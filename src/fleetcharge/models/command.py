"""Vehicle command models: signed envelopes and acknowledgements."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from fleetcharge.models._base import FleetBaseModel


class SignedEnvelope(BaseModel):
    """A command payload plus the RSA signature that attributes it to a domain.

    Every field except ``signature`` and ``algorithm`` is covered by the
    signature; changing any of them after signing breaks verification.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    domain: str
    timestamp: int
    nonce: str
    signature: str
    algorithm: Literal["RS256"] = "RS256"

    def to_request_body(self) -> dict[str, Any]:
        return self.model_dump()


class CommandAck(FleetBaseModel):
    """Acknowledgement returned by command and write endpoints.

    Vehicle commands answer ``{"result": bool, "reason": str}``; energy
    writes answer ``{"code": 201, "message": "Updated"}``.
    """

    result: bool = True
    reason: str = ""
    code: int | None = None
    message: str = ""
