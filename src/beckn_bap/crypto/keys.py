"""Key material for the BAP: Ed25519 signing keys and X25519 encryption keys.

Keys travel as base64 strings (environment, registry, CLI output):

- Ed25519 private keys: 32-byte seed, or the 64-byte seed+public form used
  by NaCl-based participants. Public keys: 32 raw bytes.
- X25519 keys: 32 raw bytes, or DER (PKCS#8 private / SubjectPublicKeyInfo
  public) as published by the ONDC registry.

All loaders raise ValueError on malformed input; callers on the request
path convert that into a boolean or NACK.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from pydantic import BaseModel

RAW_KEY_LENGTH = 32
NACL_SECRET_KEY_LENGTH = 64


class KeyPair(BaseModel):
    """A base64-encoded public/private key pair."""

    public_key: str
    private_key: str


def _b64decode(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"{what} is not valid base64: {e}") from e


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _raw_public_bytes(key: Ed25519PublicKey | X25519PublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def public_key_to_base64(key: Ed25519PublicKey | X25519PublicKey) -> str:
    """Raw 32-byte public key, base64."""
    return _b64encode(_raw_public_bytes(key))


def generate_signing_keypair() -> KeyPair:
    """New Ed25519 pair; the private key is emitted in 64-byte seed+public form."""
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_raw = _raw_public_bytes(private_key.public_key())
    return KeyPair(public_key=_b64encode(public_raw), private_key=_b64encode(seed + public_raw))


def generate_encryption_keypair() -> KeyPair:
    """New X25519 pair, DER-encoded as the registry expects."""
    private_key = X25519PrivateKey.generate()
    private_der = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return KeyPair(public_key=_b64encode(public_der), private_key=_b64encode(private_der))


def load_signing_private_key(b64: str) -> Ed25519PrivateKey:
    """From base64 32-byte seed or 64-byte seed+public. Raises ValueError otherwise."""
    raw = _b64decode(b64, "Signing private key")
    if len(raw) == NACL_SECRET_KEY_LENGTH:
        seed, embedded_public = raw[:RAW_KEY_LENGTH], raw[RAW_KEY_LENGTH:]
        key = Ed25519PrivateKey.from_private_bytes(seed)
        if _raw_public_bytes(key.public_key()) != embedded_public:
            raise ValueError("Signing private key does not match its embedded public key")
        return key
    if len(raw) == RAW_KEY_LENGTH:
        return Ed25519PrivateKey.from_private_bytes(raw)
    raise ValueError(
        f"Ed25519 private key must be {RAW_KEY_LENGTH} or {NACL_SECRET_KEY_LENGTH} bytes, "
        f"got {len(raw)}"
    )


def load_signing_public_key(b64: str) -> Ed25519PublicKey:
    """From base64 raw 32 bytes. Raises ValueError if not 32 bytes."""
    raw = _b64decode(b64, "Signing public key")
    if len(raw) != RAW_KEY_LENGTH:
        raise ValueError(f"Ed25519 public key must be {RAW_KEY_LENGTH} bytes, got {len(raw)}")
    return Ed25519PublicKey.from_public_bytes(raw)


def signing_public_key_from_private(b64: str) -> str:
    """Base64 public key derived from a base64 signing private key."""
    return public_key_to_base64(load_signing_private_key(b64).public_key())


def load_encryption_private_key(b64: str) -> X25519PrivateKey:
    """From base64 raw 32 bytes or DER PKCS#8. Raises ValueError otherwise."""
    raw = _b64decode(b64, "Encryption private key")
    if len(raw) == RAW_KEY_LENGTH:
        return X25519PrivateKey.from_private_bytes(raw)
    try:
        key = serialization.load_der_private_key(raw, password=None)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Encryption private key is neither raw nor DER: {e}") from e
    if not isinstance(key, X25519PrivateKey):
        raise ValueError("Encryption private key is not an X25519 key")
    return key


def load_encryption_public_key(b64: str) -> X25519PublicKey:
    """From base64 raw 32 bytes or DER SubjectPublicKeyInfo. Raises ValueError otherwise."""
    raw = _b64decode(b64, "Encryption public key")
    if len(raw) == RAW_KEY_LENGTH:
        return X25519PublicKey.from_public_bytes(raw)
    try:
        key = serialization.load_der_public_key(raw)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Encryption public key is neither raw nor DER: {e}") from e
    if not isinstance(key, X25519PublicKey):
        raise ValueError("Encryption public key is not an X25519 key")
    return key


def encryption_public_key_from_private(b64: str) -> str:
    """DER base64 public key derived from a base64 encryption private key."""
    public_der = load_encryption_private_key(b64).public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return _b64encode(public_der)
