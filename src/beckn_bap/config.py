"""BAP configuration.

One BAPConfig is built at startup (normally by ``BAPConfig.from_env()``)
and handed explicitly to the dispatcher, the callback handler and the app.
Nothing here writes back to the environment.

Environment variables:
    BAP_SUBSCRIBER_ID, BAP_SUBSCRIBER_URL, BAP_UNIQUE_KEY_ID: network identity
    BAP_SIGNING_PRIVATE_KEY, BAP_SIGNING_PUBLIC_KEY: Ed25519, base64
    BAP_ENCRYPTION_PRIVATE_KEY, BAP_ENCRYPTION_PUBLIC_KEY: X25519, base64 raw or DER
    BAP_REGISTRY_PUBLIC_KEY: registry X25519 key for on_subscribe
    BAP_GATEWAY_URL: where /search goes (and any call without a bpp_uri)
    BAP_DOMAIN, BAP_CITY, BAP_COUNTRY, BAP_CORE_VERSION: context defaults
    BAP_REQUEST_TIMEOUT: outbound timeout in seconds
    BAP_SIGNATURE_TTL: outbound Authorization validity in seconds
    BAP_VERIFY_SIGNATURES, BAP_STRICT_CONTEXT: true/false
    BAP_TRUSTED_KEYS: JSON object of subscriber_id[|unique_key_id] -> public key
"""

from __future__ import annotations

import json
import os
from typing import Any, Mapping

from pydantic import Field, ValidationError, field_validator, model_validator

from beckn_bap.crypto.authorization import StaticKeyResolver
from beckn_bap.crypto.keys import (
    generate_signing_keypair,
    load_encryption_private_key,
    load_encryption_public_key,
    load_signing_public_key,
    signing_public_key_from_private,
)
from beckn_bap.errors import ConfigurationError
from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.constants import (
    DEFAULT_CITY,
    DEFAULT_CORE_VERSION,
    DEFAULT_COUNTRY,
    DEFAULT_DOMAIN,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SIGNATURE_TTL_SECONDS,
)
from beckn_bap.observability import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "BAP_"
DEFAULT_SUBSCRIBER_ID = "ondc-logistics-bap.example.com"
DEFAULT_SUBSCRIBER_URL = "http://localhost:3000"
DEFAULT_UNIQUE_KEY_ID = "key-1"
DEFAULT_GATEWAY_URL = "https://preprod.gateway.ondc.org"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(name, f"{name} must be true or false, got {value!r}")


class BAPConfig(BAPBaseModel):
    """Identity, keys and network settings of this BAP.

    When no signing private key is supplied an ephemeral pair is generated
    and ``ephemeral_keys`` is set; such a BAP can sign but nobody on a real
    network will know its public key.
    """

    subscriber_id: str = Field(default=DEFAULT_SUBSCRIBER_ID, min_length=1)
    subscriber_url: str = Field(default=DEFAULT_SUBSCRIBER_URL, min_length=1)
    unique_key_id: str = Field(default=DEFAULT_UNIQUE_KEY_ID, min_length=1)
    signing_private_key: str
    signing_public_key: str
    encryption_private_key: str | None = None
    encryption_public_key: str | None = None
    registry_public_key: str | None = None
    gateway_url: str = DEFAULT_GATEWAY_URL
    domain: str = DEFAULT_DOMAIN
    city: str = DEFAULT_CITY
    country: str = DEFAULT_COUNTRY
    core_version: str = DEFAULT_CORE_VERSION
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)
    signature_ttl: int = Field(default=DEFAULT_SIGNATURE_TTL_SECONDS, gt=0)
    verify_signatures: bool = True
    strict_context: bool = True
    trusted_keys: dict[str, str] = Field(default_factory=dict)
    ephemeral_keys: bool = False

    @model_validator(mode="before")
    @classmethod
    def fill_signing_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("signing_private_key"):
            pair = generate_signing_keypair()
            data["signing_private_key"] = pair.private_key
            data["signing_public_key"] = pair.public_key
            data["ephemeral_keys"] = True
            logger.warning(
                "bap.config.ephemeral_signing_keys",
                subscriber_id=data.get("subscriber_id", DEFAULT_SUBSCRIBER_ID),
                public_key=pair.public_key,
            )
        elif not data.get("signing_public_key"):
            data["signing_public_key"] = signing_public_key_from_private(
                data["signing_private_key"]
            )
        return data

    @model_validator(mode="after")
    def check_signing_pair(self) -> "BAPConfig":
        derived = signing_public_key_from_private(self.signing_private_key)
        load_signing_public_key(self.signing_public_key)
        if derived != self.signing_public_key:
            raise ValueError("signing_public_key does not match signing_private_key")
        return self

    @field_validator("encryption_private_key")
    @classmethod
    def check_encryption_private_key(cls, v: str | None) -> str | None:
        if v:
            load_encryption_private_key(v)
        return v or None

    @field_validator("encryption_public_key", "registry_public_key")
    @classmethod
    def check_encryption_public_key(cls, v: str | None) -> str | None:
        if v:
            load_encryption_public_key(v)
        return v or None

    @field_validator("gateway_url", "subscriber_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def key_id(self) -> str:
        return f"{self.subscriber_id}|{self.unique_key_id}"

    @property
    def can_answer_challenges(self) -> bool:
        return bool(self.encryption_private_key and self.registry_public_key)

    def key_resolver(self) -> StaticKeyResolver:
        """Resolver over ``trusted_keys``.

        With no trusted keys configured, this BAP's own public key answers
        for every signer (a closed test network sharing one key pair).
        """
        if self.trusted_keys:
            return StaticKeyResolver(self.trusted_keys)
        return StaticKeyResolver(default_key=self.signing_public_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BAPConfig":
        """Build from ``BAP_*`` variables; unset variables keep their defaults.

        Raises:
            ConfigurationError: If a variable is present but invalid
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        data: dict[str, Any] = {}
        for name in (
            "SUBSCRIBER_ID",
            "SUBSCRIBER_URL",
            "UNIQUE_KEY_ID",
            "SIGNING_PRIVATE_KEY",
            "SIGNING_PUBLIC_KEY",
            "ENCRYPTION_PRIVATE_KEY",
            "ENCRYPTION_PUBLIC_KEY",
            "REGISTRY_PUBLIC_KEY",
            "GATEWAY_URL",
            "DOMAIN",
            "CITY",
            "COUNTRY",
            "CORE_VERSION",
            "REQUEST_TIMEOUT",
            "SIGNATURE_TTL",
        ):
            value = get(name)
            if value is not None:
                data[name.lower()] = value

        for name in ("VERIFY_SIGNATURES", "STRICT_CONTEXT"):
            value = get(name)
            if value is not None:
                data[name.lower()] = _parse_bool(ENV_PREFIX + name, value)

        trusted = get("TRUSTED_KEYS")
        if trusted is not None:
            try:
                parsed = json.loads(trusted)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    ENV_PREFIX + "TRUSTED_KEYS", f"BAP_TRUSTED_KEYS is not valid JSON: {e}"
                ) from e
            if not isinstance(parsed, dict):
                raise ConfigurationError(
                    ENV_PREFIX + "TRUSTED_KEYS", "BAP_TRUSTED_KEYS must be a JSON object"
                )
            data["trusted_keys"] = parsed

        try:
            return cls(**data)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(ENV_PREFIX + "*", f"Invalid BAP configuration: {e}") from e
