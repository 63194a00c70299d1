"""BAP cryptographic layer.

- keys: Ed25519 signing and X25519 encryption key material
- signing: BLAKE-512 digest, signing string, Ed25519 sign/verify
- authorization: Authorization header codec and verification
- challenge: registry subscription challenge decryption
"""

from beckn_bap.crypto import authorization, challenge, keys, signing
from beckn_bap.crypto.authorization import (
    AuthVerdict,
    KeyResolver,
    SignatureEnvelope,
    StaticKeyResolver,
    VerificationResult,
    create_authorization_header,
    verify_authorization_header,
)
from beckn_bap.crypto.challenge import decrypt_challenge, encrypt_challenge
from beckn_bap.crypto.keys import KeyPair, generate_encryption_keypair, generate_signing_keypair

__all__ = [
    "authorization",
    "challenge",
    "keys",
    "signing",
    "AuthVerdict",
    "KeyResolver",
    "SignatureEnvelope",
    "StaticKeyResolver",
    "VerificationResult",
    "create_authorization_header",
    "verify_authorization_header",
    "decrypt_challenge",
    "encrypt_challenge",
    "KeyPair",
    "generate_encryption_keypair",
    "generate_signing_keypair",
]
