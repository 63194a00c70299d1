"""Enumerations for the BAP.

String enums so values serialize directly into protocol JSON.
"""

from enum import Enum


class Action(str, Enum):
    """Protocol verbs and their asynchronous callbacks.

    Example:
        >>> Action.SEARCH.callback_for()
        <Action.ON_SEARCH: 'on_search'>
        >>> Action.ON_SEARCH.is_callback()
        True
    """

    SEARCH = "search"
    SELECT = "select"
    INIT = "init"
    CONFIRM = "confirm"
    STATUS = "status"
    CANCEL = "cancel"
    UPDATE = "update"
    ON_SEARCH = "on_search"
    ON_SELECT = "on_select"
    ON_INIT = "on_init"
    ON_CONFIRM = "on_confirm"
    ON_STATUS = "on_status"
    ON_CANCEL = "on_cancel"
    ON_UPDATE = "on_update"
    ON_ERROR = "on_error"

    def is_callback(self) -> bool:
        return self.value.startswith("on_")

    def callback_for(self) -> "Action":
        """Return the callback action answering this request verb."""
        if self.is_callback():
            raise ValueError(f"{self.value} is already a callback action")
        return Action(f"on_{self.value}")

    @classmethod
    def requests(cls) -> tuple["Action", ...]:
        return tuple(action for action in cls if not action.is_callback())

    @classmethod
    def callbacks(cls) -> tuple["Action", ...]:
        return tuple(action for action in cls if action.is_callback())


class TransactionStatus(str, Enum):
    """Lifecycle states of a transaction in the correlation store.

    ``cancelled`` is terminal. ``error`` is reachable from every state.

    Example:
        >>> TransactionStatus.CANCELLED.is_terminal()
        True
    """

    SEARCHING = "searching"
    RESULTS_READY = "results_ready"
    SELECTED = "selected"
    INITIALIZED = "initialized"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @classmethod
    def terminal_states(cls) -> frozenset["TransactionStatus"]:
        return frozenset({cls.CANCELLED})

    def is_terminal(self) -> bool:
        return self in self.terminal_states()


class AckStatus(str, Enum):
    """Synchronous acknowledgement returned for every protocol call."""

    ACK = "ACK"
    NACK = "NACK"


class ErrorType(str, Enum):
    """Error ``type`` values carried in NACK and on_error bodies."""

    DOMAIN_ERROR = "DOMAIN-ERROR"
    PROTOCOL_ERROR = "PROTOCOL-ERROR"
    POLICY_ERROR = "POLICY-ERROR"
    INTERNAL_ERROR = "INTERNAL-ERROR"
