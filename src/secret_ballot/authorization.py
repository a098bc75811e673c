"""Signed, time-bounded decryption authorizations.

A relayer that wants plaintext tallies signs a structured message binding an
ephemeral public key to the contract addresses it may read and a validity
window (start timestamp + whole days). The structure mirrors an EIP712 typed
payload: a fixed domain, a primary type and a message, serialized as
canonical JSON and signed with ed25519. Addresses are derived from the
signing key so the provider can match the signer against its access lists.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict, Iterable, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from .errors import AuthorizationError

DOMAIN = {"name": "SecretBallotDecryption", "version": "1"}
PRIMARY_TYPE = "UserDecryptRequestVerification"
MAX_DURATION_DAYS = 365
SECONDS_PER_DAY = 86400


def canonical_json_bytes(payload: Any) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _public_bytes(public_key: ed25519.Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def address_from_public_key(public_key_b64: str) -> str:
    digest = hashlib.sha256(base64.b64decode(public_key_b64)).digest()
    return "0x" + digest[-20:].hex()


def generate_keypair() -> Tuple[str, str]:
    """Return (private_b64, public_b64) for a fresh ed25519 keypair."""
    private_key = ed25519.Ed25519PrivateKey.generate()
    private_b64 = _b64(
        private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return private_b64, _b64(_public_bytes(private_key.public_key()))


class Signer:
    """A long-lived signing identity with a derived address."""

    def __init__(self, private_key: ed25519.Ed25519PrivateKey):
        self._key = private_key
        self.public_key_b64 = _b64(_public_bytes(private_key.public_key()))
        self.address = address_from_public_key(self.public_key_b64)

    @classmethod
    def generate(cls) -> "Signer":
        return cls(ed25519.Ed25519PrivateKey.generate())

    @classmethod
    def from_b64(cls, private_b64: str) -> "Signer":
        raw = base64.b64decode(private_b64)
        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(raw))

    def sign(self, payload: Dict[str, Any]) -> str:
        return _b64(self._key.sign(canonical_json_bytes(payload)))


def create_authorization(
    signer: Signer,
    ephemeral_public_key: str,
    contract_addresses: Iterable[str],
    start_timestamp: int,
    duration_days: int,
) -> Dict[str, Any]:
    typed = {
        "domain": dict(DOMAIN),
        "primary_type": PRIMARY_TYPE,
        "message": {
            "public_key": ephemeral_public_key,
            "contract_addresses": sorted(a.lower() for a in contract_addresses),
            "start_timestamp": int(start_timestamp),
            "duration_days": int(duration_days),
        },
    }
    signed = dict(typed)
    signed["signer"] = signer.address
    signed["signer_public_key"] = signer.public_key_b64
    signed["signature"] = signer.sign(typed)
    return signed


def verify_authorization(auth: Any, now: int, contract_address: str) -> str:
    """Check signature, window and contract scope; return the signer address."""
    if not isinstance(auth, dict):
        raise AuthorizationError("Malformed authorization")
    missing = sorted({"domain", "primary_type", "message", "signer", "signer_public_key", "signature"} - set(auth))
    if missing:
        raise AuthorizationError(f"Authorization missing fields: {', '.join(missing)}")
    if auth["domain"] != DOMAIN or auth["primary_type"] != PRIMARY_TYPE:
        raise AuthorizationError("Unsupported authorization domain")

    message = auth["message"]
    if not isinstance(message, dict):
        raise AuthorizationError("Malformed authorization")
    try:
        start = int(message["start_timestamp"])
        days = int(message["duration_days"])
        contracts = [str(a).lower() for a in message["contract_addresses"]]
    except (KeyError, TypeError, ValueError):
        raise AuthorizationError("Malformed authorization message") from None
    if not 0 < days <= MAX_DURATION_DAYS:
        raise AuthorizationError("Invalid authorization duration")
    if now < start:
        raise AuthorizationError("Authorization not yet valid")
    if now >= start + days * SECONDS_PER_DAY:
        raise AuthorizationError("Authorization expired")
    if contract_address.lower() not in contracts:
        raise AuthorizationError("Authorization does not cover this contract")

    try:
        if address_from_public_key(auth["signer_public_key"]) != str(auth["signer"]).lower():
            raise AuthorizationError("Signer does not match public key")
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(base64.b64decode(auth["signer_public_key"]))
        typed = {k: auth[k] for k in ("domain", "primary_type", "message")}
        public_key.verify(base64.b64decode(auth["signature"]), canonical_json_bytes(typed))
    except (InvalidSignature, ValueError, TypeError):
        raise AuthorizationError("Invalid authorization signature") from None
    return str(auth["signer"]).lower()
