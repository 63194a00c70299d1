"""Shared pytest fixtures for BAP tests.

Provides key material, a BAPConfig built from it, a fresh correlation
store, and factories for protocol contexts and signed callback bodies.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from beckn_bap.config import BAPConfig
from beckn_bap.crypto.authorization import create_authorization_header
from beckn_bap.crypto.keys import KeyPair, generate_encryption_keypair, generate_signing_keypair
from beckn_bap.observability import reset_metrics
from beckn_bap.state.correlation import TransactionStore

BAP_ID = "bap.test.example.com"
BAP_URI = "https://bap.test.example.com"
BPP_ID = "bpp.test.example.com"
BPP_URI = "https://bpp.test.example.com"
GATEWAY_URL = "https://gateway.test.example.com"
UNIQUE_KEY_ID = "k1"

ContextFactory = Callable[..., dict[str, Any]]
SignedCallbackFactory = Callable[..., tuple[bytes, str]]


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    """Start and end every test with zeroed process metrics."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def signing_keys() -> KeyPair:
    return generate_signing_keypair()


@pytest.fixture
def encryption_keys() -> KeyPair:
    return generate_encryption_keypair()


@pytest.fixture
def registry_keys() -> KeyPair:
    """The registry's X25519 pair (the counterparty in on_subscribe)."""
    return generate_encryption_keypair()


@pytest.fixture
def bap_config(
    signing_keys: KeyPair, encryption_keys: KeyPair, registry_keys: KeyPair
) -> BAPConfig:
    """Strict, signature-verifying config whose own key answers for every signer."""
    return BAPConfig(
        subscriber_id=BAP_ID,
        subscriber_url=BAP_URI,
        unique_key_id=UNIQUE_KEY_ID,
        signing_private_key=signing_keys.private_key,
        signing_public_key=signing_keys.public_key,
        encryption_private_key=encryption_keys.private_key,
        encryption_public_key=encryption_keys.public_key,
        registry_public_key=registry_keys.public_key,
        gateway_url=GATEWAY_URL,
    )


@pytest.fixture
def store() -> TransactionStore:
    return TransactionStore()


@pytest.fixture
def make_context() -> ContextFactory:
    """Factory for an inbound callback context; keyword arguments override fields."""

    def _make(action: str, transaction_id: str = "txn-1", **overrides: Any) -> dict[str, Any]:
        context: dict[str, Any] = {
            "domain": "ONDC:LOG10",
            "country": "IND",
            "city": "std:011",
            "action": action,
            "core_version": "1.2.0",
            "bap_id": BAP_ID,
            "bap_uri": BAP_URI,
            "bpp_id": BPP_ID,
            "bpp_uri": BPP_URI,
            "transaction_id": transaction_id,
            "message_id": f"msg-{action}",
            "timestamp": "2024-01-01T10:00:00.000Z",
            "ttl": "PT30S",
        }
        context.update(overrides)
        return {k: v for k, v in context.items() if v is not None}

    return _make


@pytest.fixture
def signed_callback(
    bap_config: BAPConfig, make_context: ContextFactory
) -> SignedCallbackFactory:
    """Factory returning ``(raw_body, authorization_header)`` for a callback.

    Signed with the config's own key, which its default key resolver trusts.
    """

    def _make(
        action: str,
        transaction_id: str = "txn-1",
        message: dict[str, Any] | None = None,
        error: dict[str, Any] | None = None,
        **context_overrides: Any,
    ) -> tuple[bytes, str]:
        context = make_context(action, transaction_id, **context_overrides)
        body: dict[str, Any] = {"context": context}
        if message is not None:
            body["message"] = message
        if error is not None:
            body["error"] = error
        raw_body = json.dumps(body).encode("utf-8")
        header = create_authorization_header(
            raw_body,
            bap_config.signing_private_key,
            bap_config.subscriber_id,
            bap_config.unique_key_id,
        )
        return raw_body, header

    return _make


@pytest.fixture
def sample_catalog() -> dict[str, Any]:
    """on_search message with one provider offering two priced items."""
    return {
        "catalog": {
            "bpp/providers": [
                {
                    "id": "provider-1",
                    "descriptor": {
                        "name": "Speedy Couriers",
                        "short_desc": "Same-day delivery",
                        "images": [{"url": "https://cdn.example.com/speedy.png"}],
                    },
                    "fulfillments": [
                        {"id": "f-bike", "type": "Delivery", "vehicle": {"category": "Bike"}},
                        {"id": "f-van", "type": "Delivery", "vehicle": {"category": "Van"}},
                    ],
                    "items": [
                        {
                            "id": "item-van",
                            "fulfillment_id": "f-van",
                            "descriptor": {"name": "Van Delivery"},
                            "price": {"currency": "INR", "value": "120.00"},
                            "time": {"duration": "PT45M"},
                        },
                        {
                            "id": "item-bike",
                            "fulfillment_id": "f-bike",
                            "descriptor": {"name": "Bike Delivery"},
                            "price": {"currency": "INR", "value": "59.50"},
                            "time": {"duration": "PT30M"},
                        },
                    ],
                }
            ]
        }
    }
