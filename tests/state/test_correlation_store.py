"""Tests for the transaction correlation store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from beckn_bap.models.enums import Action, TransactionStatus
from beckn_bap.models.payloads import CatalogPayload, ErrorPayload, StatusPayload
from beckn_bap.observability import get_metrics
from beckn_bap.state.correlation import TransactionStore

S = TransactionStatus
ContextFactory = Callable[..., dict[str, Any]]


@pytest.fixture
def payload(make_context: ContextFactory) -> Callable[..., dict[str, Any]]:
    """Factory for a ``{context, message}`` callback body."""

    def _make(action: str, transaction_id: str = "txn-1", **message: Any) -> dict[str, Any]:
        return {"context": make_context(action, transaction_id), "message": dict(message)}

    return _make


@pytest.fixture
def searching(store: TransactionStore) -> TransactionStore:
    store.create_transaction("txn-1", "msg-search", {"message": {"intent": {}}})
    return store


class TestCreate:
    def test_new_transaction_is_searching(self, store: TransactionStore) -> None:
        transaction = store.create_transaction("txn-1", "msg-1", {"message": {}})
        assert transaction.status is S.SEARCHING
        assert transaction.callback_count == 0
        assert store.count() == 1
        assert get_metrics().get_counter("bap_transactions_created_total") == 1.0

    def test_create_overwrites_existing(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_catalog_data("txn-1", payload("on_search"))
        transaction = searching.create_transaction("txn-1", "msg-again", {})
        assert transaction.status is S.SEARCHING
        assert transaction.catalogs == ()
        assert transaction.message_id == "msg-again"
        assert searching.count() == 1

    def test_get_unknown(self, store: TransactionStore) -> None:
        assert store.get("missing") is None


class TestAppend:
    def test_catalogs_accumulate(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_catalog_data("txn-1", payload("on_search", catalog={"n": 1}))
        transaction = searching.add_catalog_data("txn-1", payload("on_search", catalog={"n": 2}))
        assert transaction is not None
        assert transaction.status is S.RESULTS_READY
        assert [c.message["catalog"]["n"] for c in transaction.catalogs] == [1, 2]
        assert all(isinstance(c, CatalogPayload) for c in transaction.catalogs)

    def test_full_lifecycle(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_catalog_data("txn-1", payload("on_search"))
        assert searching.add_select_data("txn-1", payload("on_select")).status is S.SELECTED
        assert searching.add_init_data("txn-1", payload("on_init")).status is S.INITIALIZED
        assert searching.add_confirm_data("txn-1", payload("on_confirm")).status is S.CONFIRMED
        assert searching.add_cancel_data("txn-1", payload("on_cancel")).status is S.CANCELLED
        assert searching.get("txn-1").callback_count == 5

    def test_unknown_transaction_is_dropped(self, store: TransactionStore, payload: Any) -> None:
        assert store.add_catalog_data("ghost", payload("on_search", "ghost")) is None
        assert store.count() == 0
        assert get_metrics().get_counter("bap_unknown_transaction_total") == 1.0

    def test_catalog_after_select_moves_to_results_ready(
        self, searching: TransactionStore, payload: Any
    ) -> None:
        searching.add_select_data("txn-1", payload("on_select"))
        transaction = searching.add_catalog_data("txn-1", payload("on_search"))
        assert transaction.status is S.RESULTS_READY
        assert len(transaction.selections) == 1
        assert len(transaction.catalogs) == 1
        assert (
            get_metrics().get_counter(
                "bap_out_of_sequence_total",
                {"from_status": "selected", "to_status": "results_ready"},
            )
            == 1.0
        )

    def test_in_order_callbacks_are_not_flagged(
        self, searching: TransactionStore, payload: Any
    ) -> None:
        searching.add_catalog_data("txn-1", payload("on_search"))
        searching.add_select_data("txn-1", payload("on_select"))
        assert "bap_out_of_sequence_total{" not in get_metrics().export_prometheus()

    def test_cancelled_stays_cancelled(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_cancel_data("txn-1", payload("on_cancel"))
        transaction = searching.add_confirm_data("txn-1", payload("on_confirm"))
        assert transaction.status is S.CANCELLED
        assert len(transaction.confirmations) == 1

    def test_error_then_recovery(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_catalog_data("txn-1", payload("on_search"))
        errored = searching.add_error_data(
            "txn-1",
            {"context": payload("on_error")["context"], "error": {"code": "30001"}},
        )
        assert errored.status is S.ERROR
        assert len(errored.catalogs) == 1
        recovered = searching.add_select_data("txn-1", payload("on_select"))
        assert recovered.status is S.SELECTED
        assert len(recovered.errors) == 1

    def test_cancelled_can_still_error(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_cancel_data("txn-1", payload("on_cancel"))
        transaction = searching.add_error_data("txn-1", payload("on_error"))
        assert transaction.status is S.ERROR

    def test_status_updates_leave_status(self, searching: TransactionStore, payload: Any) -> None:
        searching.add_confirm_data("txn-1", payload("on_confirm"))
        transaction = searching.add_status_data("txn-1", payload("on_status", order={"id": "o"}))
        assert transaction.status is S.CONFIRMED
        assert isinstance(transaction.status_updates[0], StatusPayload)

    def test_updated_at_advances(self, searching: TransactionStore, payload: Any) -> None:
        before = searching.get("txn-1").updated_at
        after = searching.add_catalog_data("txn-1", payload("on_search")).updated_at
        assert after >= before

    def test_payload_model_accepted(self, searching: TransactionStore, payload: Any) -> None:
        model = CatalogPayload.model_validate(payload("on_search"))
        transaction = searching.add_catalog_data("txn-1", model)
        assert transaction.catalogs == (model,)


class TestAddCallback:
    def test_routes_by_action(self, searching: TransactionStore, payload: Any) -> None:
        transaction = searching.add_callback(Action.ON_SELECT, "txn-1", payload("on_select"))
        assert transaction.status is S.SELECTED
        assert len(transaction.selections) == 1

    def test_on_update_is_a_status_update(
        self, searching: TransactionStore, payload: Any
    ) -> None:
        transaction = searching.add_callback("on_update", "txn-1", payload("on_update"))
        assert len(transaction.status_updates) == 1
        assert transaction.status is S.SEARCHING

    def test_error_body_on_any_action_is_an_error(
        self, searching: TransactionStore, make_context: ContextFactory
    ) -> None:
        body = {"context": make_context("on_search"), "error": {"code": "40000"}}
        transaction = searching.add_callback("on_search", "txn-1", body)
        assert transaction.status is S.ERROR
        assert transaction.catalogs == ()
        assert isinstance(transaction.errors[0], ErrorPayload)

    def test_on_error(self, searching: TransactionStore, make_context: ContextFactory) -> None:
        body = {"context": make_context("on_error"), "error": {"code": "50001"}}
        assert searching.add_callback("on_error", "txn-1", body).status is S.ERROR

    def test_request_action_rejected(self, searching: TransactionStore, payload: Any) -> None:
        with pytest.raises(ValueError, match="Not a callback action"):
            searching.add_callback("search", "txn-1", payload("on_search"))


class TestReadViews:
    def test_view_mutation_does_not_leak(self, searching: TransactionStore) -> None:
        view = searching.get("txn-1")
        view.request["message"]["tampered"] = True
        assert "tampered" not in searching.get("txn-1").request["message"]

    def test_payload_view_mutation_does_not_leak(
        self, searching: TransactionStore, payload: Any
    ) -> None:
        returned = searching.add_catalog_data(
            "txn-1", payload("on_search", catalog={"providers": [{"id": "A"}]})
        )
        returned.catalogs[0].message["catalog"]["providers"].append({"id": "X"})
        view = searching.get("txn-1")
        view.catalogs[0].message["tampered"] = True
        view.catalogs[0].message["catalog"]["providers"].append({"id": "INJECTED"})

        stored = searching.get("txn-1").catalogs[0].message
        assert stored == {"catalog": {"providers": [{"id": "A"}]}}

    def test_caller_body_is_not_shared(self, searching: TransactionStore, payload: Any) -> None:
        body = payload("on_search", catalog={"providers": [{"id": "A"}]})
        searching.add_catalog_data("txn-1", body)
        body["message"]["catalog"]["providers"].append({"id": "LATE"})

        stored = searching.get("txn-1").catalogs[0].message
        assert stored["catalog"]["providers"] == [{"id": "A"}]

    def test_caller_model_is_not_shared(self, searching: TransactionStore, payload: Any) -> None:
        model = CatalogPayload.model_validate(payload("on_search", catalog={"n": 1}))
        searching.add_catalog_data("txn-1", model)
        model.message["catalog"]["n"] = 2
        assert searching.get("txn-1").catalogs[0].message["catalog"] == {"n": 1}

    def test_lists_are_tuples(self, searching: TransactionStore) -> None:
        view = searching.get("txn-1")
        assert isinstance(view.catalogs, tuple)
        assert isinstance(view.errors, tuple)


class TestConcurrency:
    def test_concurrent_appends_are_all_recorded(
        self, searching: TransactionStore, payload: Any
    ) -> None:
        bodies = [payload("on_search", catalog={"n": n}) for n in range(100)]

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda body: searching.add_catalog_data("txn-1", body), bodies))

        transaction = searching.get("txn-1")
        assert len(transaction.catalogs) == 100
        assert sorted(c.message["catalog"]["n"] for c in transaction.catalogs) == list(range(100))
        assert transaction.status is S.RESULTS_READY

    def test_concurrent_transactions_are_isolated(
        self, store: TransactionStore, payload: Any
    ) -> None:
        ids = [f"txn-{n}" for n in range(20)]
        for transaction_id in ids:
            store.create_transaction(transaction_id, "msg", {})

        def append(transaction_id: str) -> None:
            for _ in range(5):
                store.add_catalog_data(transaction_id, payload("on_search", transaction_id))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(append, ids))

        assert all(len(store.get(t).catalogs) == 5 for t in ids)


class TestMaintenance:
    def test_sweep_evicts_stale(self, searching: TransactionStore) -> None:
        later = datetime.now(timezone.utc) + timedelta(minutes=10)
        assert searching.sweep(60, now=later) == 1
        assert searching.count() == 0
        assert get_metrics().get_counter("bap_transactions_evicted_total") == 1.0

    def test_sweep_keeps_recent(self, searching: TransactionStore) -> None:
        assert searching.sweep(timedelta(hours=1)) == 0
        assert searching.count() == 1

    def test_ids_and_clear(self, searching: TransactionStore) -> None:
        searching.create_transaction("txn-2", "msg", {})
        assert sorted(searching.transaction_ids()) == ["txn-1", "txn-2"]
        searching.clear()
        assert searching.count() == 0
