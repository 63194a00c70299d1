"""Tests for callback payload parsing, enums and ACK/NACK bodies."""

from typing import Any, Callable

import pytest
from pydantic import ValidationError

from beckn_bap.models.enums import Action, ErrorType
from beckn_bap.models.payloads import (
    PAYLOAD_KIND_REGISTRY,
    CatalogPayload,
    ErrorPayload,
    StatusPayload,
    parse_callback_payload,
)
from beckn_bap.models.responses import build_ack, build_nack
from beckn_bap.models.validators import duration_to_minutes, parse_iso_duration

ContextFactory = Callable[..., dict[str, Any]]


class TestAction:
    def test_callback_for_request_verbs(self) -> None:
        assert Action.SEARCH.callback_for() is Action.ON_SEARCH
        assert Action.CONFIRM.callback_for() is Action.ON_CONFIRM

    def test_callback_for_callback_raises(self) -> None:
        with pytest.raises(ValueError):
            Action.ON_SEARCH.callback_for()

    def test_requests_and_callbacks_partition(self) -> None:
        assert set(Action.requests()) | set(Action.callbacks()) == set(Action)
        assert Action.ON_ERROR in Action.callbacks()
        assert all(not action.is_callback() for action in Action.requests())


class TestParseCallbackPayload:
    def test_on_search_is_a_catalog(
        self, make_context: ContextFactory, sample_catalog: dict[str, Any]
    ) -> None:
        payload = parse_callback_payload(
            "on_search", {"context": make_context("on_search"), "message": sample_catalog}
        )
        assert isinstance(payload, CatalogPayload)
        assert payload.kind == "catalog"
        assert payload.bpp_id == "bpp.test.example.com"
        assert [p["id"] for p in payload.providers] == ["provider-1"]

    def test_catalog_providers_fallback_key(self, make_context: ContextFactory) -> None:
        payload = parse_callback_payload(
            Action.ON_SEARCH,
            {
                "context": make_context("on_search"),
                "message": {"catalog": {"providers": [{"id": "p"}, "junk"]}},
            },
        )
        assert payload.providers == [{"id": "p"}]

    def test_error_body_becomes_error_payload(self, make_context: ContextFactory) -> None:
        payload = parse_callback_payload(
            "on_confirm", {"context": make_context("on_confirm"), "error": {"code": "65004"}}
        )
        assert isinstance(payload, ErrorPayload)
        assert payload.error == {"code": "65004"}

    def test_unknown_top_level_keys_ignored(self, make_context: ContextFactory) -> None:
        payload = parse_callback_payload(
            "on_status",
            {"context": make_context("on_status"), "message": {"order": {}}, "extra": 1},
        )
        assert isinstance(payload, StatusPayload)

    def test_null_message_defaults_to_empty(self, make_context: ContextFactory) -> None:
        payload = parse_callback_payload(
            "on_select", {"context": make_context("on_select"), "message": None}
        )
        assert payload.message == {}

    def test_request_action_rejected(self, make_context: ContextFactory) -> None:
        with pytest.raises(ValueError, match="Not a callback action"):
            parse_callback_payload("select", {"context": make_context("select")})

    def test_invalid_context_rejected(self, make_context: ContextFactory) -> None:
        with pytest.raises(ValidationError):
            parse_callback_payload(
                "on_search", {"context": make_context("on_search", transaction_id=None)}
            )

    def test_every_callback_has_a_payload_kind(self) -> None:
        assert set(PAYLOAD_KIND_REGISTRY) == set(Action.callbacks())
        assert PAYLOAD_KIND_REGISTRY[Action.ON_UPDATE] is StatusPayload


class TestAckResponses:
    def test_ack_echoes_context_with_fresh_timestamp(self, make_context: ContextFactory) -> None:
        context = make_context("on_search")
        wire = build_ack(context).to_wire()
        assert wire["message"] == {"ack": {"status": "ACK"}}
        assert wire["context"]["transaction_id"] == "txn-1"
        assert wire["context"]["timestamp"] != context["timestamp"]
        assert context["timestamp"] == "2024-01-01T10:00:00.000Z"
        assert "error" not in wire

    def test_nack_carries_error(self, make_context: ContextFactory) -> None:
        response = build_nack(make_context("on_search"), "401", "Invalid signature")
        wire = response.to_wire()
        assert not response.is_ack
        assert wire["message"] == {"ack": {"status": "NACK"}}
        assert wire["error"] == {
            "type": ErrorType.DOMAIN_ERROR.value,
            "code": "401",
            "message": "Invalid signature",
        }

    def test_ack_without_context(self) -> None:
        assert build_ack(None).is_ack


class TestDurations:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [("PT30S", 30), ("PT45M", 2700), ("PT1H30M", 5400), ("P1D", 86400)],
    )
    def test_parse(self, value: str, seconds: int) -> None:
        assert parse_iso_duration(value).total_seconds() == seconds

    @pytest.mark.parametrize("value", ["", "P", "PT", "30 minutes", "PT5X"])
    def test_parse_rejects(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_iso_duration(value)

    def test_minutes_round_up(self) -> None:
        assert duration_to_minutes("PT90S") == 2
        assert duration_to_minutes("PT45M") == 45

    def test_minutes_default_for_garbage(self) -> None:
        assert duration_to_minutes("soon", default=15) == 15
