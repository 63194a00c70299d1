"""Client-facing view of search results.

Flattens every on_search catalog recorded for a transaction into one row
per offered item, sorted cheapest first.
"""

from __future__ import annotations

from typing import Any

from beckn_bap.models.payloads import CatalogPayload
from beckn_bap.models.transaction import Transaction
from beckn_bap.models.validators import duration_to_minutes

DEFAULT_ETA = "PT60M"


def _price(item: dict[str, Any]) -> float:
    try:
        return float((item.get("price") or {}).get("value") or 0)
    except (TypeError, ValueError):
        return 0.0


def _catalog_rows(catalog: CatalogPayload) -> list[dict[str, Any]]:
    rows = []
    for provider in catalog.providers:
        descriptor = provider.get("descriptor") or {}
        images = descriptor.get("images") or [{}]
        fulfillments = {f.get("id"): f for f in provider.get("fulfillments") or []}
        for item in provider.get("items") or []:
            fulfillment = fulfillments.get(item.get("fulfillment_id")) or {}
            eta = (item.get("time") or {}).get("duration") or DEFAULT_ETA
            rows.append(
                {
                    "id": provider.get("id"),
                    "name": descriptor.get("name") or "Unknown",
                    "short_desc": descriptor.get("short_desc") or "",
                    "logo_url": images[0].get("url") or "",
                    "item_id": item.get("id"),
                    "item_name": (item.get("descriptor") or {}).get("name") or "Delivery",
                    "price": _price(item),
                    "currency": (item.get("price") or {}).get("currency") or "INR",
                    "eta": eta,
                    "eta_minutes": duration_to_minutes(eta),
                    "vehicle_category": (fulfillment.get("vehicle") or {}).get("category")
                    or "Bike",
                    "fulfillment_id": fulfillment.get("id") or "",
                    "fulfillment_type": fulfillment.get("type") or "Delivery",
                    "bpp_id": catalog.context.bpp_id or "",
                    "bpp_uri": catalog.context.bpp_uri or "",
                    "tags": item.get("tags") or [],
                    "is_cheapest": False,
                }
            )
    return rows


def flatten_providers(transaction: Transaction) -> list[dict[str, Any]]:
    """One row per item across all catalogs, cheapest first; the first row is flagged."""
    rows = [row for catalog in transaction.catalogs for row in _catalog_rows(catalog)]
    rows.sort(key=lambda row: row["price"])
    if rows:
        rows[0]["is_cheapest"] = True
    return rows


def search_results(transaction: Transaction) -> dict[str, Any]:
    """Body of ``GET /api/results/{transaction_id}``."""
    providers = flatten_providers(transaction)
    return {
        "transaction_id": transaction.id,
        "status": transaction.status.value,
        "providers": providers,
        "provider_count": len(providers),
        "updated_at": transaction.updated_at.isoformat(),
    }
