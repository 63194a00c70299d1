"""Transaction correlation store.

Joins every asynchronous callback to the transaction that caused it. A
transaction is created once, by the outbound search; every later callback
appends to it and moves it to the stage the callback reports. Appends are
never dropped: after a cancellation the payload is still recorded but the
status stays put, and a callback that arrives against the stage order (a
late on_search after on_select) is logged and counted. Payloads are copied
on the way in and on the way out, so no caller shares state with the store.

Example:
    >>> store = TransactionStore()
    >>> store.create_transaction("t-1", "m-1", {"message": {}}).status
    <TransactionStatus.SEARCHING: 'searching'>
    >>> store.get("missing") is None
    True
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from beckn_bap.models.enums import Action, TransactionStatus
from beckn_bap.models.payloads import (
    CallbackPayload,
    CancelPayload,
    CatalogPayload,
    ConfirmPayload,
    ErrorPayload,
    InitPayload,
    SelectPayload,
    StatusPayload,
    parse_callback_payload,
)
from beckn_bap.models.transaction import Transaction
from beckn_bap.observability import get_logger, get_metrics
from beckn_bap.state.machine import can_transition, is_out_of_order, record_transition
from beckn_bap.state.repository import TransactionRecord, TransactionRepository
from beckn_bap.state.stores.memory import InMemoryTransactionRepository

logger = get_logger(__name__)

PayloadInput = CallbackPayload | dict[str, Any]


def _coerce(payload_class: type[CallbackPayload], payload: PayloadInput) -> CallbackPayload:
    if isinstance(payload, payload_class):
        return payload
    if isinstance(payload, CallbackPayload):
        payload = payload.model_dump(exclude={"kind"})
    return payload_class.model_validate(payload)


class TransactionStore:
    """Thread-safe transaction store over a TransactionRepository.

    All operations are synchronous and never await, so the store can be
    shared between FastAPI's threadpool handlers and the event loop.
    """

    def __init__(self, repository: TransactionRepository | None = None) -> None:
        self._repository = repository or InMemoryTransactionRepository()

    def create_transaction(
        self, transaction_id: str, message_id: str, request: dict[str, Any]
    ) -> Transaction:
        """Create a transaction in ``searching``; an existing id is overwritten."""
        transaction, replaced = self._repository.create(transaction_id, message_id, request)
        get_metrics().increment_counter("bap_transactions_created_total")
        if replaced:
            logger.warning(
                "bap.transaction.overwritten",
                transaction_id=transaction_id,
                message_id=message_id,
            )
        else:
            logger.info(
                "bap.transaction.created",
                transaction_id=transaction_id,
                message_id=message_id,
            )
        return transaction

    def get(self, transaction_id: str) -> Transaction | None:
        return self._repository.get(transaction_id)

    def _append(
        self,
        transaction_id: str,
        field_name: str,
        payload: CallbackPayload,
        target: TransactionStatus | None,
    ) -> Transaction | None:
        payload = payload.model_copy(deep=True)

        def mutate(record: TransactionRecord) -> None:
            getattr(record, field_name).append(payload)
            record.touch()
            if target is None or target is record.status:
                return
            previous = record.status
            applied = can_transition(previous, target)
            if applied:
                record.status = target
                record_transition(transaction_id, previous, target)
            if is_out_of_order(previous, target):
                get_metrics().increment_counter(
                    "bap_out_of_sequence_total",
                    {"from_status": previous.value, "to_status": target.value},
                )
                logger.warning(
                    "bap.transaction.out_of_sequence",
                    transaction_id=transaction_id,
                    status=previous.value,
                    attempted=target.value,
                    applied=applied,
                    kind=payload.kind,
                )

        transaction = self._repository.update(transaction_id, mutate)
        if transaction is None:
            get_metrics().increment_counter("bap_unknown_transaction_total")
            logger.warning(
                "bap.transaction.unknown",
                transaction_id=transaction_id,
                kind=payload.kind,
            )
        return transaction

    def add_catalog_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        """Append an on_search catalog; moves to ``results_ready``."""
        return self._append(
            transaction_id,
            "catalogs",
            _coerce(CatalogPayload, payload),
            TransactionStatus.RESULTS_READY,
        )

    def add_select_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        return self._append(
            transaction_id,
            "selections",
            _coerce(SelectPayload, payload),
            TransactionStatus.SELECTED,
        )

    def add_init_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        return self._append(
            transaction_id,
            "init_results",
            _coerce(InitPayload, payload),
            TransactionStatus.INITIALIZED,
        )

    def add_confirm_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        return self._append(
            transaction_id,
            "confirmations",
            _coerce(ConfirmPayload, payload),
            TransactionStatus.CONFIRMED,
        )

    def add_cancel_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        return self._append(
            transaction_id,
            "cancellations",
            _coerce(CancelPayload, payload),
            TransactionStatus.CANCELLED,
        )

    def add_status_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        """Append an on_status/on_update payload; the status is left alone."""
        return self._append(
            transaction_id, "status_updates", _coerce(StatusPayload, payload), None
        )

    def add_error_data(self, transaction_id: str, payload: PayloadInput) -> Transaction | None:
        """Append an error; moves to ``error`` and keeps everything already recorded."""
        return self._append(
            transaction_id, "errors", _coerce(ErrorPayload, payload), TransactionStatus.ERROR
        )

    def add_callback(
        self, action: Action | str, transaction_id: str, payload: PayloadInput
    ) -> Transaction | None:
        """Route a callback to the append operation for its action.

        A payload carrying an error object is recorded as an error whatever
        action it arrived on.

        Raises:
            ValueError: If ``action`` is not a callback action
        """
        action = Action(action)
        if isinstance(payload, dict):
            payload = parse_callback_payload(action, payload)
        if isinstance(payload, ErrorPayload) or action is Action.ON_ERROR:
            return self.add_error_data(transaction_id, payload)
        handlers = {
            Action.ON_SEARCH: self.add_catalog_data,
            Action.ON_SELECT: self.add_select_data,
            Action.ON_INIT: self.add_init_data,
            Action.ON_CONFIRM: self.add_confirm_data,
            Action.ON_CANCEL: self.add_cancel_data,
            Action.ON_STATUS: self.add_status_data,
            Action.ON_UPDATE: self.add_status_data,
        }
        handler = handlers.get(action)
        if handler is None:
            raise ValueError(f"Not a callback action: {action.value}")
        return handler(transaction_id, payload)

    def count(self) -> int:
        return self._repository.count()

    def transaction_ids(self) -> list[str]:
        return self._repository.ids()

    def clear(self) -> None:
        self._repository.clear()

    def sweep(self, max_age: timedelta | float, now: datetime | None = None) -> int:
        """Evict transactions not updated within ``max_age``.

        Args:
            max_age: Age as a timedelta or in seconds
            now: Reference instant (default: current UTC time)

        Returns:
            Number of transactions evicted
        """
        if not isinstance(max_age, timedelta):
            max_age = timedelta(seconds=max_age)
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        evicted = self._repository.evict_older_than(cutoff)
        if evicted:
            get_metrics().increment_counter("bap_transactions_evicted_total", value=evicted)
            logger.info(
                "bap.transaction.swept",
                evicted=evicted,
                max_age_seconds=max_age.total_seconds(),
            )
        return evicted
