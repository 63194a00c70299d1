"""Typed callback payloads.

Every callback body is ``{context, message}`` or ``{context, error}``. The
message itself is opaque to the BAP core, but each callback kind gets its
own tagged model so the correlation store's append operations are
distinguishable by type rather than by inspecting dict keys.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field

from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.context import ProtocolContext
from beckn_bap.models.enums import Action


class CallbackPayload(BAPBaseModel):
    """Common shape of a received callback."""

    model_config = ConfigDict(extra="ignore")

    kind: str
    context: ProtocolContext
    message: dict[str, Any] = Field(default_factory=dict)
    error: dict[str, Any] | None = None

    @property
    def bpp_id(self) -> str | None:
        return self.context.bpp_id


class CatalogPayload(CallbackPayload):
    """on_search: one provider catalog (one BPP answering one search)."""

    kind: Literal["catalog"] = "catalog"

    @property
    def providers(self) -> list[dict[str, Any]]:
        catalog = self.message.get("catalog") or {}
        providers = catalog.get("bpp/providers") or catalog.get("providers") or []
        return [p for p in providers if isinstance(p, dict)]


class SelectPayload(CallbackPayload):
    """on_select: quote for a selected item."""

    kind: Literal["select"] = "select"


class InitPayload(CallbackPayload):
    """on_init: draft order with payment and billing terms."""

    kind: Literal["init"] = "init"


class ConfirmPayload(CallbackPayload):
    """on_confirm: confirmed order."""

    kind: Literal["confirm"] = "confirm"


class CancelPayload(CallbackPayload):
    """on_cancel: cancelled order."""

    kind: Literal["cancel"] = "cancel"


class StatusPayload(CallbackPayload):
    """on_status / on_update: fulfillment progress."""

    kind: Literal["status"] = "status"


class ErrorPayload(CallbackPayload):
    """on_error, or any callback carrying an ``error`` object."""

    kind: Literal["error"] = "error"


PayloadType = (
    CatalogPayload
    | SelectPayload
    | InitPayload
    | ConfirmPayload
    | CancelPayload
    | StatusPayload
    | ErrorPayload
)

PAYLOAD_KIND_REGISTRY: dict[Action, type[CallbackPayload]] = {
    Action.ON_SEARCH: CatalogPayload,
    Action.ON_SELECT: SelectPayload,
    Action.ON_INIT: InitPayload,
    Action.ON_CONFIRM: ConfirmPayload,
    Action.ON_CANCEL: CancelPayload,
    Action.ON_STATUS: StatusPayload,
    Action.ON_UPDATE: StatusPayload,
    Action.ON_ERROR: ErrorPayload,
}


def parse_callback_payload(action: Action | str, body: dict[str, Any]) -> CallbackPayload:
    """Validate a raw callback body into the payload variant for ``action``.

    A body carrying an ``error`` object and no ``message`` is an error
    payload whatever action it arrived on.

    Raises:
        ValueError: If ``action`` is not a callback action
        pydantic.ValidationError: If the context is invalid
    """
    action = Action(action)
    payload_class = PAYLOAD_KIND_REGISTRY.get(action)
    if payload_class is None:
        raise ValueError(f"Not a callback action: {action.value}")
    if body.get("error") and not body.get("message"):
        payload_class = ErrorPayload
    data = {k: v for k, v in body.items() if k in ("context", "message", "error")}
    if data.get("message") is None:
        data.pop("message", None)
    return payload_class.model_validate(data)
