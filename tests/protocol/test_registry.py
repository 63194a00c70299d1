"""Tests for the registry /subscribe payload."""

from datetime import datetime, timezone

import pytest

from beckn_bap.config import BAPConfig
from beckn_bap.crypto.keys import KeyPair
from beckn_bap.errors import ConfigurationError
from beckn_bap.protocol.registry import REGISTRY_URLS, build_subscribe_payload

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestBuildSubscribePayload:
    def test_entity_carries_identity_and_keys(self, bap_config: BAPConfig) -> None:
        payload = build_subscribe_payload(bap_config, now=NOW, request_id="req-1")
        entity = payload["message"]["entity"]
        assert payload["context"] == {"operation": {"ops_no": 1}}
        assert payload["message"]["request_id"] == "req-1"
        assert entity["subscriber_id"] == bap_config.subscriber_id
        assert entity["signing_public_key"] == bap_config.signing_public_key
        assert entity["enc_public_key"] == bap_config.encryption_public_key
        assert entity["unique_key_id"] == "k1"
        assert entity["domain"] == "ONDC:LOG10"

    def test_validity_window(self, bap_config: BAPConfig) -> None:
        entity = build_subscribe_payload(bap_config, now=NOW)["message"]["entity"]
        assert entity["valid_from"] == "2024-03-01T12:00:00.000Z"
        assert entity["valid_until"].startswith("2034-02-")

    def test_network_participant_is_buyer_app(self, bap_config: BAPConfig) -> None:
        participant = build_subscribe_payload(bap_config)["message"]["network_participant"][0]
        assert participant["type"] == "buyerApp"
        assert participant["subscriber_url"] == bap_config.subscriber_url
        assert participant["city_code"] == ["std:011"]

    def test_request_id_generated(self, bap_config: BAPConfig) -> None:
        first = build_subscribe_payload(bap_config)["message"]["request_id"]
        second = build_subscribe_payload(bap_config)["message"]["request_id"]
        assert first != second

    def test_requires_encryption_key(self, signing_keys: KeyPair) -> None:
        config = BAPConfig(signing_private_key=signing_keys.private_key)
        with pytest.raises(ConfigurationError) as exc_info:
            build_subscribe_payload(config)
        assert exc_info.value.setting == "encryption_public_key"


def test_registry_environments() -> None:
    assert set(REGISTRY_URLS) == {"staging", "preprod", "production"}
    assert all(url.startswith("https://") for url in REGISTRY_URLS.values())
