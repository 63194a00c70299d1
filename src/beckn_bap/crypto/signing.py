"""Request digesting and Ed25519 signing.

The digest is computed over the exact bytes sent on the wire, never a
re-serialization, so key order or whitespace differences cannot break
verification. What gets signed is the three-line signing string, not the
body itself.
"""

from __future__ import annotations

import base64
import binascii
import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from beckn_bap.crypto.keys import load_signing_private_key, load_signing_public_key
from beckn_bap.models.constants import DIGEST_ALGORITHM_LABEL
from beckn_bap.observability import get_logger

logger = get_logger(__name__)

ED25519_SIGNATURE_LENGTH = 64


def digest(body: bytes) -> str:
    """BLAKE2b-512 of ``body``, base64, tagged for the wire.

    Example:
        >>> digest(b"{}").startswith("BLAKE-512=")
        True
    """
    hashed = hashlib.blake2b(body, digest_size=64).digest()
    return f"{DIGEST_ALGORITHM_LABEL}={base64.b64encode(hashed).decode('ascii')}"


def signing_string(created: int, expires: int, body_digest: str) -> str:
    """The exact text that is signed, in fixed order.

    Example:
        >>> signing_string(1, 31, "BLAKE-512=abc")
        '(created): 1\\n(expires): 31\\ndigest: BLAKE-512=abc'
    """
    return f"(created): {created}\n(expires): {expires}\ndigest: {body_digest}"


def sign(message: bytes, private_key: Ed25519PrivateKey | str) -> bytes:
    """Deterministic detached Ed25519 signature.

    Args:
        message: Bytes to sign (normally the encoded signing string)
        private_key: Key object or base64 private key

    Raises:
        ValueError: If a base64 private key is malformed
    """
    if isinstance(private_key, str):
        private_key = load_signing_private_key(private_key)
    signature = private_key.sign(message)
    assert len(signature) == ED25519_SIGNATURE_LENGTH, "Ed25519 signature must be 64 bytes"
    return signature


def sign_base64(message: bytes, private_key: Ed25519PrivateKey | str) -> str:
    return base64.b64encode(sign(message, private_key)).decode("ascii")


def verify(
    message: bytes,
    signature: bytes | str,
    public_key: Ed25519PublicKey | str,
) -> bool:
    """Check a detached signature. Never raises.

    Args:
        message: Signed bytes
        signature: Raw signature bytes or base64 string
        public_key: Key object or base64 raw public key

    Returns:
        True only for a well-formed signature valid under ``public_key``.
    """
    try:
        if isinstance(public_key, str):
            public_key = load_signing_public_key(public_key)
        if isinstance(signature, str):
            signature = base64.b64decode(signature, validate=True)
    except (ValueError, binascii.Error) as e:
        logger.warning("bap.crypto.verify_decode_failed", error=str(e))
        return False

    if len(signature) != ED25519_SIGNATURE_LENGTH:
        logger.warning(
            "bap.crypto.verify_bad_signature_length",
            length=len(signature),
        )
        return False

    try:
        public_key.verify(signature, message)
    except InvalidSignature:
        logger.info("bap.crypto.signature_mismatch")
        return False
    return True
