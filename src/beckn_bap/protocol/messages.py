"""Message bodies for outbound calls in the ONDC logistics profile.

Each builder returns the ``message`` object of a request; the dispatcher
wraps it with a context. Location inputs are loose mappings as submitted by
client apps (``gps``, ``address``, ``building``, ``locality``, ``city``,
``state``, ``pincode``); anything missing falls back to the profile's
Delhi/Noida defaults.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from beckn_bap.models.constants import DEFAULT_COUNTRY

DEFAULT_CATEGORY = "Express Delivery"
DEFAULT_FULFILLMENT_TYPE = "Delivery"
DEFAULT_PAYMENT_TYPE = "POST-FULFILLMENT"
ITEM_DESCRIPTOR_CODE = "P2P"

DEFAULT_PICKUP: dict[str, str] = {
    "gps": "28.6139,77.2090",
    "address": "Pickup Location",
    "city": "New Delhi",
    "state": "Delhi",
    "pincode": "110001",
}
DEFAULT_DROP: dict[str, str] = {
    "gps": "28.5355,77.3910",
    "address": "Drop Location",
    "city": "Noida",
    "state": "Uttar Pradesh",
    "pincode": "201301",
}
DEFAULT_CONTACTS: tuple[dict[str, str], dict[str, str]] = (
    {"phone": "9876543210", "email": "sender@example.com"},
    {"phone": "9876543211", "email": "receiver@example.com"},
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_location(
    place: Mapping[str, Any] | None, defaults: Mapping[str, str]
) -> dict[str, Any]:
    """Beckn ``location`` object from a loose client-supplied place."""
    place = place or {}

    def pick(key: str) -> Any:
        return place.get(key) or defaults.get(key, "")

    return {
        "gps": pick("gps"),
        "address": {
            "name": pick("address"),
            "building": pick("building"),
            "locality": pick("locality"),
            "city": pick("city"),
            "state": pick("state"),
            "country": DEFAULT_COUNTRY,
            "area_code": pick("pincode"),
        },
    }


def build_search_intent(
    pickup: Mapping[str, Any] | None,
    drop: Mapping[str, Any] | None,
    category: str = DEFAULT_CATEGORY,
    weight_kg: float = 5,
    dimensions_cm: tuple[float, float, float] = (30, 20, 15),
    goods_category: str = "Grocery",
    collection_amount: str = "0",
) -> dict[str, Any]:
    """``message`` for /search: a delivery intent from ``pickup`` to ``drop``.

    Example:
        >>> intent = build_search_intent({"gps": "12.9,77.6"}, None)
        >>> intent["intent"]["fulfillment"]["start"]["location"]["gps"]
        '12.9,77.6'
    """
    length, breadth, height = dimensions_cm
    return {
        "intent": {
            "category": {"id": category},
            "provider": {
                "time": {
                    "days": "1,2,3,4,5,6,7",
                    "schedule": {"holidays": []},
                    "range": {"start": "0000", "end": "2359"},
                },
            },
            "fulfillment": {
                "type": DEFAULT_FULFILLMENT_TYPE,
                "start": {"location": build_location(pickup, DEFAULT_PICKUP)},
                "end": {"location": build_location(drop, DEFAULT_DROP)},
            },
            "payment": {
                "type": DEFAULT_PAYMENT_TYPE,
                "@ondc/org/collection_amount": collection_amount,
            },
            "@ondc/org/payload_details": {
                "weight": {"unit": "kilogram", "value": weight_kg},
                "dimensions": {
                    "length": {"unit": "centimeter", "value": length},
                    "breadth": {"unit": "centimeter", "value": breadth},
                    "height": {"unit": "centimeter", "value": height},
                },
                "category": goods_category,
                "dangerous_goods": False,
            },
        }
    }


def default_billing() -> dict[str, Any]:
    now = _now()
    return {
        "name": "ONDC Logistics User",
        "phone": "9999999999",
        "email": "user@example.com",
        "address": {
            "name": "Billing Address",
            "building": "123",
            "locality": "Main Street",
            "city": "New Delhi",
            "state": "Delhi",
            "country": DEFAULT_COUNTRY,
            "area_code": "110001",
        },
        "tax_number": "GSTIN1234567890",
        "created_at": now,
        "updated_at": now,
    }


def default_payment() -> dict[str, Any]:
    return {
        "type": DEFAULT_PAYMENT_TYPE,
        "collected_by": "BAP",
        "@ondc/org/settlement_details": [
            {
                "settlement_counterparty": "buyer-app",
                "settlement_type": "neft",
                "beneficiary_name": "ONDC Logistics BAP",
                "settlement_bank_account_no": "1234567890",
                "settlement_ifsc_code": "SBIN0000001",
            }
        ],
    }


def build_order(
    provider_id: str,
    item_id: str,
    fulfillment_id: str | None = None,
    pickup: Mapping[str, Any] | None = None,
    drop: Mapping[str, Any] | None = None,
    billing: Mapping[str, Any] | None = None,
    payment: Mapping[str, Any] | None = None,
    contacts: tuple[Mapping[str, str], Mapping[str, str]] | None = None,
) -> dict[str, Any]:
    """``message`` for /select, /init and /confirm.

    /select sends only provider, item and fulfillment; /init and /confirm
    add billing, payment and pickup/drop contacts.
    """
    fulfillment: dict[str, Any] = {
        "id": fulfillment_id or "",
        "type": DEFAULT_FULFILLMENT_TYPE,
        "start": {"location": build_location(pickup, DEFAULT_PICKUP)},
        "end": {"location": build_location(drop, DEFAULT_DROP)},
    }
    if contacts is not None:
        fulfillment["start"]["contact"] = dict(contacts[0])
        fulfillment["end"]["contact"] = dict(contacts[1])

    order: dict[str, Any] = {
        "provider": {"id": provider_id},
        "items": [
            {
                "id": item_id,
                "fulfillment_id": fulfillment_id or "",
                "category_id": DEFAULT_CATEGORY,
                "descriptor": {"code": ITEM_DESCRIPTOR_CODE},
            }
        ],
        "fulfillments": [fulfillment],
    }
    if billing is not None:
        order["billing"] = dict(billing)
    if payment is not None:
        order["payment"] = dict(payment)
    return {"order": order}


def build_cancel_message(order_id: str, cancellation_reason_id: str) -> dict[str, Any]:
    return {"order_id": order_id, "cancellation_reason_id": cancellation_reason_id}


def build_status_message(order_id: str) -> dict[str, Any]:
    return {"order_id": order_id}
