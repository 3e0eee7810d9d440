"""Cryptographic primitives for signed vehicle commands."""

from __future__ import annotations

from fleetcharge._crypto.signing import (
    ALGORITHM,
    CommandSigner,
    canonical_payload,
    load_private_key,
    verify_envelope,
)

__all__ = [
    "ALGORITHM",
    "CommandSigner",
    "canonical_payload",
    "load_private_key",
    "verify_envelope",
]
