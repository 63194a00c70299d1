"""Synchronous ACK/NACK responses.

Every protocol call, inbound or outbound, is answered immediately with
``{context, message: {ack: {status}}}``; a NACK also carries an ``error``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.enums import AckStatus, ErrorType


class Ack(BAPBaseModel):
    status: AckStatus


class AckMessage(BAPBaseModel):
    ack: Ack


class ProtocolError(BAPBaseModel):
    type: ErrorType = ErrorType.DOMAIN_ERROR
    code: str
    message: str


class AckResponse(BAPBaseModel):
    """Wire body of an ACK or NACK.

    ``context`` is the request context echoed back with a fresh timestamp.
    """

    context: dict[str, Any]
    message: AckMessage
    error: ProtocolError | None = None

    @property
    def is_ack(self) -> bool:
        return self.message.ack.status is AckStatus.ACK

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def _echo_context(context: dict[str, Any] | None) -> dict[str, Any]:
    echoed = dict(context or {})
    echoed["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return echoed


def build_ack(context: dict[str, Any] | None) -> AckResponse:
    return AckResponse(
        context=_echo_context(context),
        message=AckMessage(ack=Ack(status=AckStatus.ACK)),
    )


def build_nack(
    context: dict[str, Any] | None,
    code: str,
    message: str,
    error_type: ErrorType = ErrorType.DOMAIN_ERROR,
) -> AckResponse:
    return AckResponse(
        context=_echo_context(context),
        message=AckMessage(ack=Ack(status=AckStatus.NACK)),
        error=ProtocolError(type=error_type, code=code, message=message),
    )
