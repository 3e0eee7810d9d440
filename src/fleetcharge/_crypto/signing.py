"""RSA command signing and JWT client assertions.

Privileged vehicle commands must be attributable to a registered domain
and key pair. :class:`CommandSigner` wraps the domain's RSA private key
and produces :class:`~fleetcharge.models.command.SignedEnvelope` values.
"""

from __future__ import annotations

import base64
import json
import logging
import secrets
import time
import uuid
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from fleetcharge.exceptions import FleetConfigError, SigningError
from fleetcharge.models.command import SignedEnvelope

_logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
_NONCE_BYTES = 16
_ASSERTION_TTL_SECONDS = 300


def canonical_payload(
    *,
    command: str,
    vehicle_id: str,
    parameters: Mapping[str, Any],
    timestamp: int,
    nonce: str,
    domain: str,
) -> bytes:
    """Serialize the signed fields deterministically (sorted keys, no whitespace)."""
    payload = {
        "command": command,
        "vehicle_id": str(vehicle_id),
        "parameters": dict(parameters),
        "timestamp": timestamp,
        "nonce": nonce,
        "domain": domain,
    }
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def load_private_key(pem: str | bytes) -> rsa.RSAPrivateKey:
    """Parse a PEM-encoded RSA private key."""
    data = pem.encode("utf-8") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as exc:
        raise FleetConfigError(f"Invalid private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise FleetConfigError(f"Private key must be RSA, got {type(key).__name__}")
    return key


def verify_envelope(
    envelope: SignedEnvelope,
    vehicle_id: str,
    public_key: rsa.RSAPublicKey,
) -> bool:
    """Return ``True`` when *envelope* carries a valid signature for *vehicle_id*."""
    message = canonical_payload(
        command=envelope.command,
        vehicle_id=vehicle_id,
        parameters=envelope.parameters,
        timestamp=envelope.timestamp,
        nonce=envelope.nonce,
        domain=envelope.domain,
    )
    try:
        signature = base64.b64decode(envelope.signature, validate=True)
        public_key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
    except (InvalidSignature, ValueError):
        return False
    return True


class CommandSigner:
    """Sign vehicle commands with the domain's RSA private key.

    Parameters
    ----------
    private_key
        The RSA private key, or ``None`` when no key material is configured.
        Signing then fails with :class:`SigningError`.
    domain
        The registered domain whose public key the vehicle trusts.
    clock
        Returns the current Unix time in seconds. Injectable for tests.
    """

    def __init__(
        self,
        private_key: rsa.RSAPrivateKey | None,
        domain: str,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._private_key = private_key
        self._domain = domain
        self._clock = clock

    @classmethod
    def from_pem(cls, pem: str | bytes | None, domain: str, **kwargs: Any) -> CommandSigner:
        return cls(load_private_key(pem) if pem else None, domain, **kwargs)

    @classmethod
    def from_file(cls, path: str | Path, domain: str, **kwargs: Any) -> CommandSigner:
        try:
            pem = Path(path).read_bytes()
        except OSError as exc:
            raise FleetConfigError(f"Cannot read private key from {path}: {exc}") from exc
        return cls.from_pem(pem, domain, **kwargs)

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def has_key(self) -> bool:
        return self._private_key is not None

    def _require_key(self) -> rsa.RSAPrivateKey:
        if self._private_key is None:
            raise SigningError("No private key configured; cannot sign commands")
        return self._private_key

    def public_key(self) -> rsa.RSAPublicKey:
        return self._require_key().public_key()

    def public_key_pem(self) -> str:
        """PEM (SubjectPublicKeyInfo) of the public half, as served under ``.well-known``."""
        return (
            self.public_key()
            .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
            .decode("ascii")
        )

    def sign(
        self,
        command: str,
        vehicle_id: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> SignedEnvelope:
        """Build a signed envelope for one command.

        Each call draws a fresh nonce; envelopes must not be reused across
        distinct commands.
        """
        key = self._require_key()
        params = dict(parameters or {})
        timestamp = int(self._clock())
        nonce = secrets.token_hex(_NONCE_BYTES)
        message = canonical_payload(
            command=command,
            vehicle_id=vehicle_id,
            parameters=params,
            timestamp=timestamp,
            nonce=nonce,
            domain=self._domain,
        )
        signature = key.sign(message, padding.PKCS1v15(), hashes.SHA256())
        _logger.debug("Signed command=%s vehicle=%s nonce=%s", command, vehicle_id, nonce)
        return SignedEnvelope(
            command=command,
            parameters=params,
            domain=self._domain,
            timestamp=timestamp,
            nonce=nonce,
            signature=base64.b64encode(signature).decode("ascii"),
            algorithm=ALGORITHM,
        )

    def client_assertion(self, client_id: str, audience: str) -> str:
        """Build a short-lived RS256 JWT for ``private_key_jwt`` client authentication."""
        key = self._require_key()
        issued_at = int(self._clock())
        header = {"alg": ALGORITHM, "typ": "JWT"}
        claims = {
            "iss": client_id,
            "sub": client_id,
            "aud": audience,
            "iat": issued_at,
            "exp": issued_at + _ASSERTION_TTL_SECONDS,
            "jti": str(uuid.uuid4()),
        }
        signing_input = ".".join(
            _b64url(json.dumps(part, separators=(",", ":")).encode("utf-8")) for part in (header, claims)
        )
        signature = key.sign(signing_input.encode("ascii"), padding.PKCS1v15(), hashes.SHA256())
        return f"{signing_input}.{_b64url(signature)}"
