"""Constants for the Beckn/ONDC protocol profile used by the BAP.

Defaults follow the ONDC logistics domain (ONDC:LOG10, core 1.2.0).
"""

DEFAULT_DOMAIN = "ONDC:LOG10"
DEFAULT_CORE_VERSION = "1.2.0"
DEFAULT_COUNTRY = "IND"
DEFAULT_CITY = "std:011"

DEFAULT_TTL = "PT30S"
"""Protocol TTL for a single request/callback exchange (ISO 8601 duration)."""

DEFAULT_SIGNATURE_TTL_SECONDS = 30
"""Seconds between ``created`` and ``expires`` in outbound Authorization headers."""

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
"""Outbound HTTP timeout; matches the protocol TTL convention."""

SIGNATURE_ALGORITHM = "ed25519"
DIGEST_ALGORITHM_LABEL = "BLAKE-512"
SIGNED_HEADERS = "(created) (expires) digest"

CONTEXT_REQUIRED_FIELDS = (
    "domain",
    "country",
    "city",
    "action",
    "core_version",
    "bap_id",
    "bap_uri",
    "transaction_id",
    "message_id",
    "timestamp",
)
