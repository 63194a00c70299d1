"""Request bodies of the client-facing ``/api`` endpoints.

These come from the BAP's own client apps, not the network, so unknown
fields are ignored rather than rejected.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ClientRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SearchRequest(ClientRequest):
    pickup: dict[str, Any]
    drop: dict[str, Any]
    transaction_id: str | None = None


class RoutedRequest(ClientRequest):
    """A follow-up call on an existing transaction, optionally routed to a BPP."""

    transaction_id: str = Field(..., min_length=1)
    bpp_id: str | None = None
    bpp_uri: str | None = None


class SelectRequest(RoutedRequest):
    provider_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    fulfillment_id: str | None = None


class InitRequest(SelectRequest):
    billing: dict[str, Any] | None = None


class ConfirmRequest(InitRequest):
    payment: dict[str, Any] | None = None


class StatusRequest(RoutedRequest):
    order_id: str | None = None


class CancelRequest(RoutedRequest):
    cancellation_reason_id: str = Field(..., min_length=1)
    order_id: str | None = None
