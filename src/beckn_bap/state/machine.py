"""Transaction state machine.

The lifecycle of a transaction is an ordered sequence of stages::

    searching -> results_ready -> selected -> initialized -> confirmed | cancelled

Every callback moves the transaction to the stage it reports, whatever the
current stage: callbacks for one transaction can arrive out of order (an
on_select before the on_search it answers) and the network, not this
store, decides which business flows are valid. ``error`` is reachable from
any state and may recover to any stage; ``cancelled`` is terminal.

Moves against the stage order are still allowed but flagged by
is_out_of_order() so they can be logged and counted.

Example:
    >>> from beckn_bap.models.enums import TransactionStatus
    >>> can_transition(TransactionStatus.SELECTED, TransactionStatus.RESULTS_READY)
    True
    >>> can_transition(TransactionStatus.CANCELLED, TransactionStatus.CONFIRMED)
    False
"""

from beckn_bap.models.enums import TransactionStatus
from beckn_bap.observability import get_logger, get_metrics

__all__ = [
    "TransactionStatus",
    "STAGE_RANK",
    "can_transition",
    "is_out_of_order",
    "record_transition",
]

logger = get_logger(__name__)

STAGE_RANK: dict[TransactionStatus, int] = {
    TransactionStatus.SEARCHING: 0,
    TransactionStatus.RESULTS_READY: 1,
    TransactionStatus.SELECTED: 2,
    TransactionStatus.INITIALIZED: 3,
    TransactionStatus.CONFIRMED: 4,
    TransactionStatus.CANCELLED: 5,
}


def can_transition(from_status: TransactionStatus, to_status: TransactionStatus) -> bool:
    """Check if a transaction may move from one status to another.

    Args:
        from_status: Current transaction status
        to_status: Target transaction status

    Returns:
        True unless ``from_status`` is terminal and ``to_status`` is not ``error``

    Example:
        >>> can_transition(TransactionStatus.CANCELLED, TransactionStatus.ERROR)
        True
        >>> can_transition(TransactionStatus.CONFIRMED, TransactionStatus.SELECTED)
        True
    """
    if to_status is TransactionStatus.ERROR:
        return True
    return not from_status.is_terminal()


def is_out_of_order(from_status: TransactionStatus, to_status: TransactionStatus) -> bool:
    """True when a move goes back along the stage order (``error`` is never ranked)."""
    if from_status not in STAGE_RANK or to_status not in STAGE_RANK:
        return False
    return STAGE_RANK[to_status] < STAGE_RANK[from_status]


def record_transition(
    transaction_id: str, from_status: TransactionStatus, to_status: TransactionStatus
) -> None:
    """Count and log an applied status change (no-op when unchanged)."""
    if from_status is to_status:
        return
    get_metrics().increment_counter(
        "bap_state_transitions_total",
        {"from_status": from_status.value, "to_status": to_status.value},
    )
    logger.debug(
        "bap.transaction.transition",
        transaction_id=transaction_id,
        from_status=from_status.value,
        to_status=to_status.value,
    )
