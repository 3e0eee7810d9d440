"""Helpers for safe debug logging.

fleetcharge handles OAuth tokens, client secrets and command signatures.
These helpers strip them out before anything reaches a DEBUG log.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "access_token",
        "refresh_token",
        "id_token",
        "token",
        "client_secret",
        "client_assertion",
        "code",
        "code_verifier",
        "authorization",
        "private_key",
        "signature",
    }
)


def _normalize_key(key: Any) -> str:
    return str(key).strip().lower().replace("-", "_")


def mask_secret(value: str | None, *, visible: int = 4) -> str:
    """Show only the trailing *visible* characters of a token."""
    if not value:
        return "<none>"
    if len(value) <= visible:
        return "*" * len(value)
    return f"…{value[-visible:]}"


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): (
                "<redacted>"
                if _normalize_key(k) in _SENSITIVE_VALUE_KEYS
                else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            )
            for k, v in value.items()
        }

    if isinstance(value, Sequence) and not isinstance(value, bytearray):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
