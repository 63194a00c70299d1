"""Tests for the FastAPI application.

Tests cover:
- App factory and route registration
- GET /health and GET /metrics
- Network callbacks and /on_subscribe
- Client /api endpoints against a mocked gateway
- Error mapping (400, 404, 502, 504)
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any, Callable

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from beckn_bap.config import BAPConfig
from beckn_bap.crypto.authorization import create_authorization_header
from beckn_bap.crypto.challenge import encrypt_challenge
from beckn_bap.crypto.keys import KeyPair
from beckn_bap.models.enums import Action
from beckn_bap.state.correlation import TransactionStore
from beckn_bap.transport.dispatcher import BecknDispatcher
from beckn_bap.transport.server import PROMETHEUS_CONTENT_TYPE, create_app

SignedCallbackFactory = Callable[..., tuple[bytes, str]]


def _gateway_ack(request: httpx.Request) -> httpx.Response:
    context = json.loads(request.content)["context"]
    return httpx.Response(200, json={"context": context, "message": {"ack": {"status": "ACK"}}})


def _build_app(
    config: BAPConfig,
    store: TransactionStore,
    gateway: Callable[[httpx.Request], httpx.Response] = _gateway_ack,
) -> FastAPI:
    dispatcher = BecknDispatcher(config, store, transport=httpx.MockTransport(gateway))
    return create_app(config, store, dispatcher=dispatcher)


@pytest.fixture
def app(bap_config: BAPConfig, store: TransactionStore) -> FastAPI:
    return _build_app(bap_config, store)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _signed_post(
    client: TestClient, path: str, raw_body: bytes, header: str | None
) -> httpx.Response:
    headers = {"Content-Type": "application/json"}
    if header is not None:
        headers["Authorization"] = header
    return client.post(path, content=raw_body, headers=headers)


class TestAppFactory:
    def test_app_state(self, app: FastAPI, bap_config: BAPConfig, store: TransactionStore) -> None:
        assert app.state.config is bap_config
        assert app.state.store is store
        assert app.state.callback_handler.store is store

    def test_callback_routes_registered(self, app: FastAPI) -> None:
        paths = {getattr(route, "path", None) for route in app.routes}
        for action in Action.callbacks():
            assert f"/{action.value}" in paths
        assert "/on_subscribe" in paths
        assert "/api/search" in paths


class TestOperations:
    def test_health(self, client: TestClient, store: TransactionStore) -> None:
        store.create_transaction("txn-1", "msg", {})
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "subscriber_id": "bap.test.example.com",
            "domain": "ONDC:LOG10",
            "core_version": "1.2.0",
            "transactions": 1,
        }

    def test_metrics_exposition(self, client: TestClient) -> None:
        client.post("/on_search", content=b"garbage")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"] == PROMETHEUS_CONTENT_TYPE
        assert 'bap_callbacks_total{ack="REJECTED",action="on_search"} 1.0' in response.text


class TestCallbackRoutes:
    def test_on_search_ack(
        self,
        client: TestClient,
        store: TransactionStore,
        signed_callback: SignedCallbackFactory,
        sample_catalog: dict[str, Any],
    ) -> None:
        store.create_transaction("txn-1", "msg", {})
        raw_body, header = signed_callback("on_search", message=sample_catalog)
        response = _signed_post(client, "/on_search", raw_body, header)
        assert response.status_code == 200
        assert response.json()["message"]["ack"]["status"] == "ACK"
        assert store.get("txn-1").status.value == "results_ready"

    def test_unsigned_callback_nacked(
        self, client: TestClient, signed_callback: SignedCallbackFactory
    ) -> None:
        raw_body, _ = signed_callback("on_status", message={})
        response = _signed_post(client, "/on_status", raw_body, None)
        assert response.status_code == 200
        assert response.json()["message"]["ack"]["status"] == "NACK"
        assert response.json()["error"]["code"] == "401"

    def test_signed_broken_body_is_http_400(
        self, client: TestClient, bap_config: BAPConfig
    ) -> None:
        header = create_authorization_header(
            b"{", bap_config.signing_private_key, bap_config.subscriber_id, bap_config.unique_key_id
        )
        response = _signed_post(client, "/on_confirm", b"{", header)
        assert response.status_code == 400
        assert response.json()["error"]["type"] == "PROTOCOL-ERROR"

    def test_unsigned_broken_body_nacked(self, client: TestClient) -> None:
        response = client.post("/on_confirm", content=b"{")
        assert response.status_code == 200
        assert response.json()["error"]["code"] == "401"

    def test_on_subscribe(
        self, client: TestClient, encryption_keys: KeyPair, registry_keys: KeyPair
    ) -> None:
        challenge = encrypt_challenge(
            "abc123", encryption_keys.public_key, registry_keys.private_key
        )
        response = client.post("/on_subscribe", json={"challenge": challenge})
        assert response.status_code == 200
        assert response.json() == {"answer": "abc123"}

    def test_on_subscribe_without_challenge(self, client: TestClient) -> None:
        response = client.post("/on_subscribe", json={})
        assert response.status_code == 400


class TestClientApi:
    def test_search_then_results(
        self,
        client: TestClient,
        signed_callback: SignedCallbackFactory,
        sample_catalog: dict[str, Any],
    ) -> None:
        response = client.post(
            "/api/search", json={"pickup": {"gps": "1,1"}, "drop": {"gps": "2,2"}}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "searching"
        assert data["acknowledged"] is True
        transaction_id = data["transaction_id"]

        raw_body, header = signed_callback(
            "on_search", transaction_id=transaction_id, message=sample_catalog
        )
        assert _signed_post(client, "/on_search", raw_body, header).status_code == 200

        results = client.get(f"/api/results/{transaction_id}").json()
        assert results["status"] == "results_ready"
        assert results["provider_count"] == 2
        assert results["providers"][0]["is_cheapest"] is True

        transaction = client.get(f"/api/transactions/{transaction_id}").json()
        assert transaction["id"] == transaction_id
        assert len(transaction["catalogs"]) == 1
        assert transaction["request"]["context"]["action"] == "search"

    def test_select_flow(self, client: TestClient, store: TransactionStore) -> None:
        store.create_transaction("txn-1", "msg", {})
        response = client.post(
            "/api/select",
            json={
                "transaction_id": "txn-1",
                "provider_id": "provider-1",
                "item_id": "item-1",
                "bpp_id": "bpp.test.example.com",
                "bpp_uri": "https://bpp.test.example.com",
            },
        )
        assert response.status_code == 200
        assert response.json()["status"] == "selecting"

    @pytest.mark.parametrize(
        ("path", "body", "status"),
        [
            ("/api/init", {"provider_id": "p", "item_id": "i"}, "initializing"),
            ("/api/confirm", {"provider_id": "p", "item_id": "i"}, "confirming"),
            ("/api/status", {}, "tracking"),
            ("/api/cancel", {"cancellation_reason_id": "005"}, "cancelling"),
        ],
    )
    def test_follow_up_calls(
        self,
        client: TestClient,
        store: TransactionStore,
        path: str,
        body: dict[str, Any],
        status: str,
    ) -> None:
        store.create_transaction("txn-1", "msg", {})
        response = client.post(path, json={"transaction_id": "txn-1", **body})
        assert response.status_code == 200
        assert response.json()["status"] == status

    def test_unknown_transaction_is_404(self, client: TestClient) -> None:
        response = client.post(
            "/api/select",
            json={"transaction_id": "ghost", "provider_id": "p", "item_id": "i"},
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "bap:transaction/not_found"

    @pytest.mark.parametrize("path", ["/api/transactions/ghost", "/api/results/ghost"])
    def test_unknown_transaction_reads_are_404(self, client: TestClient, path: str) -> None:
        assert client.get(path).status_code == 404

    def test_invalid_body_is_400(self, client: TestClient) -> None:
        response = client.post("/api/search", json={"pickup": {}})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "bap:request/invalid"

    def test_gateway_failure_is_502(self, bap_config: BAPConfig, store: TransactionStore) -> None:
        app = _build_app(bap_config, store, lambda r: httpx.Response(500, text="boom"))
        with TestClient(app) as client:
            response = client.post("/api/search", json={"pickup": {}, "drop": {}})
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "bap:transport/connection"

    def test_gateway_timeout_is_504(self, bap_config: BAPConfig, store: TransactionStore) -> None:
        def gateway(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        app = _build_app(bap_config, store, gateway)
        with TestClient(app) as client:
            response = client.post("/api/search", json={"pickup": {}, "drop": {}})
        assert response.status_code == 504
        assert response.json()["error"]["code"] == "bap:transport/timeout"
