"""Shared helpers for Fleet API endpoint modules.

It is internal to fleetcharge and may change at any time.
"""

from __future__ import annotations

from typing import Any

from fleetcharge.exceptions import RemoteError
from fleetcharge.models.command import CommandAck


def unwrap_response(payload: dict[str, Any], endpoint: str) -> Any:
    """Return the ``response`` member every Fleet API reply is wrapped in."""
    if "response" not in payload:
        raise RemoteError(
            f"Missing 'response' field from {endpoint}",
            raw_body=str(payload)[:500],
            endpoint=endpoint,
        )
    return payload["response"]


def parse_command_ack(payload: dict[str, Any], endpoint: str) -> CommandAck:
    """Parse a command reply, raising when the vehicle refused the command."""
    response = unwrap_response(payload, endpoint)
    ack = CommandAck.model_validate(response if isinstance(response, dict) else {"result": bool(response)})
    if not ack.result:
        raise RemoteError(
            f"{endpoint} rejected: {ack.reason or 'no reason given'}",
            status_code=200,
            provider_message=ack.reason,
            raw_body=str(payload)[:500],
            endpoint=endpoint,
        )
    return ack
