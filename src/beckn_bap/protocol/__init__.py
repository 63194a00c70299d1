"""Logistics-profile message builders, registry payloads and result views."""

from beckn_bap.protocol.messages import (
    build_cancel_message,
    build_location,
    build_order,
    build_search_intent,
    build_status_message,
    default_billing,
    default_payment,
)
from beckn_bap.protocol.registry import REGISTRY_URLS, build_subscribe_payload
from beckn_bap.protocol.results import flatten_providers, search_results

__all__ = [
    "build_cancel_message",
    "build_location",
    "build_order",
    "build_search_intent",
    "build_status_message",
    "default_billing",
    "default_payment",
    "REGISTRY_URLS",
    "build_subscribe_payload",
    "flatten_providers",
    "search_results",
]
