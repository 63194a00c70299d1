"""In-memory TransactionRepository implementation."""

from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Any

from beckn_bap.models.transaction import Transaction
from beckn_bap.state.repository import RecordMutator, TransactionRecord


class InMemoryTransactionRepository:
    """In-memory implementation of TransactionRepository.

    Keeps records in a dict for the life of the process. Two levels of
    locking: the map lock guards only lookup, insert and delete; each
    record carries its own lock for appends, so callbacks for different
    transactions never wait on each other.

    Lock order is always map lock, then record lock. The map lock is released
    before a mutator runs; only eviction holds both.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, TransactionRecord] = {}

    def _lookup(self, transaction_id: str) -> TransactionRecord | None:
        with self._lock:
            return self._records.get(transaction_id)

    @staticmethod
    def _retire(record: TransactionRecord) -> None:
        with record.lock:
            record.removed = True

    def create(
        self, transaction_id: str, message_id: str, request: dict[str, Any]
    ) -> tuple[Transaction, bool]:
        record = TransactionRecord(
            id=transaction_id, message_id=message_id, request=copy.deepcopy(request)
        )
        with record.lock:
            view = record.snapshot()
        with self._lock:
            previous = self._records.get(transaction_id)
            if previous is not None:
                self._retire(previous)
            self._records[transaction_id] = record
        return view, previous is not None

    def get(self, transaction_id: str) -> Transaction | None:
        record = self._lookup(transaction_id)
        if record is None:
            return None
        with record.lock:
            if record.removed:
                return None
            return record.snapshot()

    def update(self, transaction_id: str, mutator: RecordMutator) -> Transaction | None:
        record = self._lookup(transaction_id)
        if record is None:
            return None
        with record.lock:
            if record.removed:
                return None
            mutator(record)
            return record.snapshot()

    def evict_older_than(self, cutoff: datetime) -> int:
        # Age check and removal happen under both locks.
        evicted = 0
        with self._lock:
            for transaction_id, record in list(self._records.items()):
                with record.lock:
                    if record.updated_at < cutoff:
                        record.removed = True
                        del self._records[transaction_id]
                        evicted += 1
        return evicted

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            for record in self._records.values():
                self._retire(record)
            self._records.clear()


__all__ = ["InMemoryTransactionRepository"]
