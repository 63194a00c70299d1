"""Transaction: the aggregate root of the correlation store.

Instances are immutable read views. The store builds a fresh one after
every mutation; list fields are tuples so callers cannot append to the
store's internal state through a view.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.enums import TransactionStatus
from beckn_bap.models.payloads import (
    CancelPayload,
    CatalogPayload,
    ConfirmPayload,
    ErrorPayload,
    InitPayload,
    SelectPayload,
    StatusPayload,
)


class Transaction(BAPBaseModel):
    """Merged view of every message exchanged under one transaction_id.

    Attributes:
        id: Caller-chosen transaction_id
        message_id: message_id of the originating outbound call
        status: Current lifecycle status
        request: The original outbound request body
        catalogs: on_search payloads in arrival order
        selections: on_select payloads in arrival order
        init_results: on_init payloads in arrival order
        confirmations: on_confirm payloads in arrival order
        cancellations: on_cancel payloads in arrival order
        status_updates: on_status/on_update payloads in arrival order
        errors: error payloads in arrival order
    """

    id: str
    message_id: str
    status: TransactionStatus = TransactionStatus.SEARCHING
    request: dict[str, Any] = Field(default_factory=dict)
    catalogs: tuple[CatalogPayload, ...] = ()
    selections: tuple[SelectPayload, ...] = ()
    init_results: tuple[InitPayload, ...] = ()
    confirmations: tuple[ConfirmPayload, ...] = ()
    cancellations: tuple[CancelPayload, ...] = ()
    status_updates: tuple[StatusPayload, ...] = ()
    errors: tuple[ErrorPayload, ...] = ()
    created_at: datetime
    updated_at: datetime

    @property
    def callback_count(self) -> int:
        return sum(
            len(items)
            for items in (
                self.catalogs,
                self.selections,
                self.init_results,
                self.confirmations,
                self.cancellations,
                self.status_updates,
                self.errors,
            )
        )
