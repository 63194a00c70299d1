"""ProtocolContext: the envelope attached to every Beckn message.

The context carries routing (bap/bpp identity and URIs), correlation
(transaction_id, message_id) and validity (timestamp, ttl) metadata.
message_id and timestamp are generated when not supplied.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import ConfigDict, Field, field_validator

from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.constants import (
    CONTEXT_REQUIRED_FIELDS,
    DEFAULT_CITY,
    DEFAULT_CORE_VERSION,
    DEFAULT_COUNTRY,
    DEFAULT_DOMAIN,
    DEFAULT_TTL,
)
from beckn_bap.models.enums import Action
from beckn_bap.models.ids import generate_id
from beckn_bap.models.validators import validate_iso_duration


class ProtocolContext(BAPBaseModel):
    """Beckn message context.

    Inbound contexts may carry fields this model does not name (the network
    adds its own); they are kept rather than rejected.

    Example:
        >>> ctx = ProtocolContext(
        ...     action="search",
        ...     bap_id="bap.example.com",
        ...     bap_uri="https://bap.example.com",
        ...     transaction_id="t-1",
        ... )
        >>> ctx.message_id is not None
        True
    """

    model_config = ConfigDict(extra="allow")

    domain: str = DEFAULT_DOMAIN
    country: str = DEFAULT_COUNTRY
    city: str = DEFAULT_CITY
    action: Action
    core_version: str = DEFAULT_CORE_VERSION
    bap_id: str = Field(..., min_length=1)
    bap_uri: str = Field(..., min_length=1)
    bpp_id: str | None = None
    bpp_uri: str | None = None
    transaction_id: str = Field(..., min_length=1)
    message_id: str | None = Field(default=None, description="Unique per call (auto-generated)")
    timestamp: datetime | None = Field(default=None, description="Creation instant (UTC)")
    ttl: str = DEFAULT_TTL

    @field_validator("message_id", mode="before")
    @classmethod
    def generate_message_id_if_missing(cls, v: str | None) -> str:
        if v is None:
            return generate_id()
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def generate_timestamp_if_missing(cls, v: datetime | str | None) -> datetime | str:
        if v is None:
            return datetime.now(timezone.utc)
        return v

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: str) -> str:
        return validate_iso_duration(v)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict, omitting unset optional bpp fields."""
        return self.model_dump(mode="json", exclude_none=True)

    def echo(self) -> dict[str, Any]:
        """Copy of this context with a fresh timestamp, for ACK bodies."""
        return self.model_copy(update={"timestamp": datetime.now(timezone.utc)}).to_wire()


def build_context(
    action: Action | str,
    transaction_id: str,
    bap_id: str,
    bap_uri: str,
    message_id: str | None = None,
    bpp_id: str | None = None,
    bpp_uri: str | None = None,
    domain: str = DEFAULT_DOMAIN,
    country: str = DEFAULT_COUNTRY,
    city: str = DEFAULT_CITY,
    core_version: str = DEFAULT_CORE_VERSION,
    ttl: str = DEFAULT_TTL,
) -> ProtocolContext:
    """Build an outbound context with a fresh message_id and timestamp."""
    return ProtocolContext(
        domain=domain,
        country=country,
        city=city,
        action=Action(action),
        core_version=core_version,
        bap_id=bap_id,
        bap_uri=bap_uri,
        bpp_id=bpp_id,
        bpp_uri=bpp_uri,
        transaction_id=transaction_id,
        message_id=message_id,
        ttl=ttl,
    )


def validate_context(
    context: dict[str, Any],
    expected_domain: str | None = DEFAULT_DOMAIN,
    expected_core_version: str | None = DEFAULT_CORE_VERSION,
) -> list[str]:
    """Check a raw inbound context; return a list of problems (empty when valid).

    Passing ``None`` for an expectation skips that check.

    Example:
        >>> validate_context({"domain": "ONDC:LOG10"})[0]
        'Missing required field: context.country'
    """
    errors = [
        f"Missing required field: context.{name}"
        for name in CONTEXT_REQUIRED_FIELDS
        if not context.get(name)
    ]

    domain = context.get("domain")
    if expected_domain and domain and domain != expected_domain:
        errors.append(f"Invalid domain: {domain}, expected {expected_domain}")

    core_version = context.get("core_version")
    if expected_core_version and core_version and core_version != expected_core_version:
        errors.append(f"Invalid core_version: {core_version}, expected {expected_core_version}")

    action = context.get("action")
    if action:
        try:
            Action(action)
        except ValueError:
            errors.append(f"Unknown action: {action}")

    return errors
