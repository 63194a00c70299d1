"""Beckn Authorization header: build, parse and verify.

Wire format (field order fixed, all values double-quoted)::

    Signature keyId="<subscriber_id>|<unique_key_id>|ed25519",algorithm="ed25519",
    created="<unix>",expires="<unix>",headers="(created) (expires) digest",
    signature="<base64>"

Parsing is tolerant (regex over ``key="value"`` tokens, optional
``Signature `` prefix). Verification never raises: it returns a
VerificationResult whose verdict tells expired apart from a bad signature.
"""

from __future__ import annotations

import re
import time
from enum import Enum
from typing import Mapping, Protocol, runtime_checkable

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from pydantic import Field, model_validator

from beckn_bap.crypto.signing import digest, sign_base64, signing_string, verify
from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.constants import (
    DEFAULT_SIGNATURE_TTL_SECONDS,
    SIGNATURE_ALGORITHM,
    SIGNED_HEADERS,
)
from beckn_bap.observability import get_logger

logger = get_logger(__name__)

SIGNATURE_PREFIX = "Signature "

# Seconds a header's ``created`` may lie in the future (clock skew between participants).
MAX_FUTURE_TOLERANCE_SECONDS = 30

_PARAM_RE = re.compile(r'(\w+)\s*=\s*"([^"]*)"')

REQUIRED_PARAMS = ("keyId", "signature", "created", "expires")


class SignatureEnvelope(BAPBaseModel):
    """Parsed or to-be-encoded Authorization header fields.

    Example:
        >>> env = SignatureEnvelope(
        ...     key_id="bap.example.com|k1|ed25519", created=100, expires=130, signature="c2ln"
        ... )
        >>> env.subscriber_id, env.unique_key_id
        ('bap.example.com', 'k1')
    """

    key_id: str = Field(..., min_length=1)
    algorithm: str = SIGNATURE_ALGORITHM
    created: int
    expires: int
    headers: str = SIGNED_HEADERS
    signature: str

    @model_validator(mode="after")
    def check_validity_window(self) -> "SignatureEnvelope":
        if self.expires <= self.created:
            raise ValueError(
                f"expires ({self.expires}) must be after created ({self.created})"
            )
        return self

    @property
    def subscriber_id(self) -> str:
        return self.key_id.split("|")[0]

    @property
    def unique_key_id(self) -> str | None:
        parts = self.key_id.split("|")
        return parts[1] if len(parts) > 1 else None

    def is_expired(self, now: int | None = None) -> bool:
        return (int(time.time()) if now is None else now) > self.expires

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "SignatureEnvelope":
        """Build from decode() output.

        Raises:
            ValueError: If a required field is missing or not an integer where one is expected
        """
        missing = [name for name in REQUIRED_PARAMS if not params.get(name)]
        if missing:
            raise ValueError(f"Authorization header missing fields: {', '.join(missing)}")
        return cls(
            key_id=params["keyId"],
            algorithm=params.get("algorithm") or SIGNATURE_ALGORITHM,
            created=int(params["created"]),
            expires=int(params["expires"]),
            headers=params.get("headers") or SIGNED_HEADERS,
            signature=params["signature"],
        )


def encode(envelope: SignatureEnvelope) -> str:
    """Serialize to the Authorization header value."""
    return (
        f'{SIGNATURE_PREFIX}keyId="{envelope.key_id}",'
        f'algorithm="{envelope.algorithm}",'
        f'created="{envelope.created}",'
        f'expires="{envelope.expires}",'
        f'headers="{envelope.headers}",'
        f'signature="{envelope.signature}"'
    )


def decode(header: str) -> dict[str, str]:
    """Parse ``key="value"`` tokens; never raises.

    Unknown fields are kept, missing ones are simply absent; the caller
    decides which are required.

    Example:
        >>> decode('keyId="a|k1|ed25519", created="1"')
        {'keyId': 'a|k1|ed25519', 'created': '1'}
    """
    content = header.strip()
    if content.startswith(SIGNATURE_PREFIX):
        content = content[len(SIGNATURE_PREFIX) :]
    return {match.group(1): match.group(2) for match in _PARAM_RE.finditer(content)}


def create_authorization_header(
    body: bytes,
    private_key: Ed25519PrivateKey | str,
    subscriber_id: str,
    unique_key_id: str,
    ttl_seconds: int = DEFAULT_SIGNATURE_TTL_SECONDS,
    now: int | None = None,
) -> str:
    """Sign ``body`` (the exact bytes to be sent) and return the header value.

    Raises:
        ValueError: If the private key is malformed
    """
    created = int(time.time()) if now is None else now
    expires = created + ttl_seconds
    to_sign = signing_string(created, expires, digest(body)).encode("utf-8")
    envelope = SignatureEnvelope(
        key_id=f"{subscriber_id}|{unique_key_id}|{SIGNATURE_ALGORITHM}",
        created=created,
        expires=expires,
        signature=sign_base64(to_sign, private_key),
    )
    return encode(envelope)


@runtime_checkable
class KeyResolver(Protocol):
    """Looks up a counterparty's base64 signing public key."""

    def resolve(self, subscriber_id: str, unique_key_id: str | None) -> str | None:
        """Return the key, or None when the subscriber is unknown."""
        ...


class StaticKeyResolver:
    """KeyResolver over a fixed mapping.

    Keys of ``keys`` are either ``subscriber_id|unique_key_id`` or a bare
    ``subscriber_id``; ``default_key`` answers any subscriber not listed.
    """

    def __init__(
        self, keys: Mapping[str, str] | None = None, default_key: str | None = None
    ) -> None:
        self._keys = dict(keys or {})
        self._default_key = default_key

    def resolve(self, subscriber_id: str, unique_key_id: str | None) -> str | None:
        if unique_key_id:
            key = self._keys.get(f"{subscriber_id}|{unique_key_id}")
            if key:
                return key
        return self._keys.get(subscriber_id) or self._default_key


class AuthVerdict(str, Enum):
    VALID = "valid"
    MISSING = "missing"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    UNKNOWN_KEY = "unknown_key"
    INVALID_SIGNATURE = "invalid_signature"


class VerificationResult(BAPBaseModel):
    verdict: AuthVerdict
    message: str = ""
    key_id: str | None = None

    @property
    def valid(self) -> bool:
        return self.verdict is AuthVerdict.VALID


_VERDICT_MESSAGES = {
    AuthVerdict.VALID: "",
    AuthVerdict.MISSING: "Missing Authorization header",
    AuthVerdict.MALFORMED: "Malformed Authorization header",
    AuthVerdict.EXPIRED: "Authorization header expired",
    AuthVerdict.NOT_YET_VALID: "Authorization header created in the future",
    AuthVerdict.UNKNOWN_KEY: "No public key known for signer",
    AuthVerdict.INVALID_SIGNATURE: "Invalid signature",
}


def _result(
    verdict: AuthVerdict, key_id: str | None = None, detail: str | None = None
) -> VerificationResult:
    message = _VERDICT_MESSAGES[verdict]
    if detail:
        message = f"{message}: {detail}"
    return VerificationResult(verdict=verdict, message=message, key_id=key_id)


def verify_authorization_header(
    header: str | None,
    body: bytes,
    key_resolver: KeyResolver,
    now: int | None = None,
) -> VerificationResult:
    """Verify an inbound Authorization header against the raw request body.

    Checks, in order: presence, required fields, validity window (expired
    before signature, so an expired header with a good signature reports
    EXPIRED), algorithm, signer key, then the signature itself.
    """
    if not header or not header.strip():
        return _result(AuthVerdict.MISSING)

    params = decode(header)
    try:
        envelope = SignatureEnvelope.from_params(params)
    except ValueError as e:
        return _result(AuthVerdict.MALFORMED, params.get("keyId"), str(e))

    current = int(time.time()) if now is None else now
    if envelope.is_expired(current):
        return _result(AuthVerdict.EXPIRED, envelope.key_id)
    if envelope.created > current + MAX_FUTURE_TOLERANCE_SECONDS:
        return _result(AuthVerdict.NOT_YET_VALID, envelope.key_id)
    if envelope.algorithm.lower() != SIGNATURE_ALGORITHM:
        return _result(
            AuthVerdict.MALFORMED, envelope.key_id, f"unsupported algorithm {envelope.algorithm}"
        )

    public_key = key_resolver.resolve(envelope.subscriber_id, envelope.unique_key_id)
    if not public_key:
        return _result(AuthVerdict.UNKNOWN_KEY, envelope.key_id)

    to_verify = signing_string(envelope.created, envelope.expires, digest(body)).encode("utf-8")
    if not verify(to_verify, envelope.signature, public_key):
        return _result(AuthVerdict.INVALID_SIGNATURE, envelope.key_id)

    logger.debug("bap.auth.verified", key_id=envelope.key_id)
    return _result(AuthVerdict.VALID, envelope.key_id)
