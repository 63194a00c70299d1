"""Storage interface for the transaction correlation store.

The store's semantics (state machine, append rules) live in
``beckn_bap.state.correlation``; a repository only keeps records and
guarantees that a mutation of one record is atomic with respect to every
other access to that record.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

from beckn_bap.models.enums import TransactionStatus
from beckn_bap.models.payloads import (
    CallbackPayload,
    CancelPayload,
    CatalogPayload,
    ConfirmPayload,
    ErrorPayload,
    InitPayload,
    SelectPayload,
    StatusPayload,
)
from beckn_bap.models.transaction import Transaction


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


PayloadT = TypeVar("PayloadT", bound=CallbackPayload)


def _copies(payloads: list[PayloadT]) -> tuple[PayloadT, ...]:
    return tuple(payload.model_copy(deep=True) for payload in payloads)


@dataclass
class TransactionRecord:
    """Mutable storage form of a Transaction.

    Only touched while ``lock`` is held; callers outside the repository
    see it through snapshot(). A record taken out of the repository is
    flagged ``removed`` under its lock and must not be mutated afterwards.
    """

    id: str
    message_id: str
    request: dict[str, Any]
    status: TransactionStatus = TransactionStatus.SEARCHING
    catalogs: list[CatalogPayload] = field(default_factory=list)
    selections: list[SelectPayload] = field(default_factory=list)
    init_results: list[InitPayload] = field(default_factory=list)
    confirmations: list[ConfirmPayload] = field(default_factory=list)
    cancellations: list[CancelPayload] = field(default_factory=list)
    status_updates: list[StatusPayload] = field(default_factory=list)
    errors: list[ErrorPayload] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    removed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def snapshot(self) -> Transaction:
        """Immutable view; call with ``lock`` held."""
        return Transaction(
            id=self.id,
            message_id=self.message_id,
            status=self.status,
            request=copy.deepcopy(self.request),
            catalogs=_copies(self.catalogs),
            selections=_copies(self.selections),
            init_results=_copies(self.init_results),
            confirmations=_copies(self.confirmations),
            cancellations=_copies(self.cancellations),
            status_updates=_copies(self.status_updates),
            errors=_copies(self.errors),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


RecordMutator = Callable[[TransactionRecord], None]


@runtime_checkable
class TransactionRepository(Protocol):
    """Protocol for transaction storage backends.

    Implementations must be safe to call from multiple threads and from
    the event loop; none of these methods may await.
    """

    def create(
        self, transaction_id: str, message_id: str, request: dict[str, Any]
    ) -> tuple[Transaction, bool]:
        """Insert a fresh record, replacing any record with the same id.

        Returns:
            The new transaction view and whether an existing record was replaced
        """
        ...

    def get(self, transaction_id: str) -> Transaction | None:
        """Return a snapshot of the record, or None if unknown."""
        ...

    def update(self, transaction_id: str, mutator: RecordMutator) -> Transaction | None:
        """Apply ``mutator`` to the record under its lock.

        Returns:
            Snapshot taken after the mutation, or None if the id is unknown
            or the record was evicted or replaced before its lock was taken
            (the mutator is not called and nothing is created)
        """
        ...

    def evict_older_than(self, cutoff: datetime) -> int:
        """Delete records whose ``updated_at`` is before ``cutoff``; return how many."""
        ...

    def ids(self) -> list[str]:
        ...

    def count(self) -> int:
        ...

    def clear(self) -> None:
        ...
