"""Registry subscription request body.

The participant POSTs this to the registry's /subscribe; the registry
then calls back /on_subscribe with an encrypted challenge.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from beckn_bap.config import BAPConfig
from beckn_bap.errors import ConfigurationError
from beckn_bap.models.ids import generate_id

REGISTRY_URLS = {
    "staging": "https://staging.registry.ondc.org/subscribe",
    "preprod": "https://preprod.registry.ondc.org/ondc/subscribe",
    "production": "https://prod.registry.ondc.org/subscribe",
}

BUYER_APP_OPS_NO = 1
KEY_VALIDITY = timedelta(days=3650)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_subscribe_payload(
    config: BAPConfig,
    now: datetime | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Registry /subscribe body registering this BAP as a buyer app.

    Raises:
        ConfigurationError: If no encryption public key is configured
    """
    if not config.encryption_public_key:
        raise ConfigurationError(
            "encryption_public_key", "An encryption public key is required to subscribe"
        )
    now = now or datetime.now(timezone.utc)
    return {
        "context": {"operation": {"ops_no": BUYER_APP_OPS_NO}},
        "message": {
            "request_id": request_id or generate_id(),
            "timestamp": _iso(now),
            "entity": {
                "subscriber_id": config.subscriber_id,
                "country": config.country,
                "city": config.city,
                "domain": config.domain,
                "signing_public_key": config.signing_public_key,
                "enc_public_key": config.encryption_public_key,
                "valid_from": _iso(now),
                "valid_until": _iso(now + KEY_VALIDITY),
                "unique_key_id": config.unique_key_id,
            },
            "network_participant": [
                {
                    "subscriber_url": config.subscriber_url,
                    "domain": config.domain,
                    "type": "buyerApp",
                    "msn": False,
                    "city_code": [config.city],
                }
            ],
        },
    }
