"""BAP transaction state.

The state machine for the transaction lifecycle and the correlation store
that joins asynchronous callbacks to the transaction that caused them.

Example:
    >>> from beckn_bap.models.enums import TransactionStatus
    >>> can_transition(TransactionStatus.SEARCHING, TransactionStatus.SELECTED)
    True
"""

from .correlation import TransactionStore
from .machine import STAGE_RANK, can_transition, is_out_of_order
from .repository import TransactionRecord, TransactionRepository
from .stores.memory import InMemoryTransactionRepository
from beckn_bap.models.enums import TransactionStatus

__all__ = [
    "TransactionStatus",
    "STAGE_RANK",
    "can_transition",
    "is_out_of_order",
    "TransactionRecord",
    "TransactionRepository",
    "InMemoryTransactionRepository",
    "TransactionStore",
]
