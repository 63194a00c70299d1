"""BAP protocol models.

Pydantic models for the protocol context, callback payloads, ACK/NACK
responses and the correlation store's Transaction view.
"""

from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.context import ProtocolContext, build_context, validate_context
from beckn_bap.models.enums import AckStatus, Action, ErrorType, TransactionStatus
from beckn_bap.models.ids import generate_id
from beckn_bap.models.payloads import (
    PAYLOAD_KIND_REGISTRY,
    CallbackPayload,
    CancelPayload,
    CatalogPayload,
    ConfirmPayload,
    ErrorPayload,
    InitPayload,
    PayloadType,
    SelectPayload,
    StatusPayload,
    parse_callback_payload,
)
from beckn_bap.models.responses import AckResponse, build_ack, build_nack
from beckn_bap.models.transaction import Transaction

__all__ = [
    "BAPBaseModel",
    "ProtocolContext",
    "build_context",
    "validate_context",
    "AckStatus",
    "Action",
    "ErrorType",
    "TransactionStatus",
    "generate_id",
    "PAYLOAD_KIND_REGISTRY",
    "CallbackPayload",
    "CancelPayload",
    "CatalogPayload",
    "ConfirmPayload",
    "ErrorPayload",
    "InitPayload",
    "PayloadType",
    "SelectPayload",
    "StatusPayload",
    "parse_callback_payload",
    "AckResponse",
    "build_ack",
    "build_nack",
    "Transaction",
]
