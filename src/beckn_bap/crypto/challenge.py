"""Registry subscription handshake: challenge encryption and decryption.

The registry proves it is talking to the key holder by sending a challenge
encrypted under an X25519 shared secret between its key pair and the
participant's encryption key pair. The raw 32-byte shared secret is used
directly as an AES-256 key in ECB mode (no IV) with PKCS#7 padding.

decrypt_challenge is the participant side and never raises: any failure
(wrong keys, corrupt ciphertext, bad padding or alignment, non-UTF-8
plaintext) yields None and a log line.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from beckn_bap.crypto.keys import load_encryption_private_key, load_encryption_public_key
from beckn_bap.observability import get_logger

logger = get_logger(__name__)

AES_BLOCK_BITS = 128


def shared_secret(
    counterparty_public_key: X25519PublicKey | str,
    own_private_key: X25519PrivateKey | str,
) -> bytes:
    """Raw X25519 shared secret.

    Raises:
        ValueError: If a key is malformed or the exchange yields an all-zero secret
    """
    if isinstance(counterparty_public_key, str):
        counterparty_public_key = load_encryption_public_key(counterparty_public_key)
    if isinstance(own_private_key, str):
        own_private_key = load_encryption_private_key(own_private_key)
    return own_private_key.exchange(counterparty_public_key)


def encrypt_challenge(
    plaintext: str,
    counterparty_public_key: X25519PublicKey | str,
    own_private_key: X25519PrivateKey | str,
) -> str:
    """Encrypt as the registry does; returns base64 ciphertext.

    Raises:
        ValueError: If a key is malformed
    """
    key = shared_secret(counterparty_public_key, own_private_key)
    padder = padding.PKCS7(AES_BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()  # nosec B305
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(ciphertext).decode("ascii")


def decrypt_challenge(
    encrypted_b64: str,
    counterparty_public_key: X25519PublicKey | str,
    own_private_key: X25519PrivateKey | str,
) -> str | None:
    """Decrypt a registry challenge; None on any failure.

    Args:
        encrypted_b64: Base64 ciphertext from the on_subscribe body
        counterparty_public_key: The registry's encryption public key
        own_private_key: This participant's encryption private key

    Returns:
        The challenge plaintext, or None when it cannot be recovered.
    """
    try:
        key = shared_secret(counterparty_public_key, own_private_key)
    except ValueError as e:
        logger.error("bap.subscribe.key_agreement_failed", error=str(e))
        return None

    try:
        ciphertext = base64.b64decode(encrypted_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error("bap.subscribe.challenge_not_base64", error=str(e))
        return None

    if not ciphertext or len(ciphertext) % (AES_BLOCK_BITS // 8):
        logger.error("bap.subscribe.challenge_misaligned", length=len(ciphertext))
        return None

    decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()  # nosec B305
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(AES_BLOCK_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except ValueError as e:
        # UnicodeDecodeError is a ValueError; both mean the wrong key or a corrupt challenge.
        logger.error("bap.subscribe.challenge_decryption_failed", error=str(e))
        return None
