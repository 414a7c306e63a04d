"""Viewer-dependent rendering of deliveries.

Couriers browsing unclaimed work see where to go and who is asking, but not
how to reach them. Contact phones are disclosed to a courier only once the
delivery is assigned to that courier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from entregahub.db.models.base import Role, as_utc

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from entregahub.db.models.deliveries import Delivery

# Fields hidden from couriers who have not claimed the delivery
CONTACT_FIELDS = ("merchant_phone", "business_phone")


def can_see_contacts(delivery: Delivery, viewer_id: UUID, viewer_role: Role) -> bool:
    """Whether the viewer may see merchant and business phone numbers."""
    if viewer_role == Role.COURIER:
        return delivery.courier_id is not None and delivery.courier_id == viewer_id
    return True


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def render_delivery(
    delivery: Delivery,
    viewer_id: UUID,
    viewer_role: Role,
) -> dict[str, Any]:
    """Render a delivery for a viewer, with parties loaded.

    Args:
        delivery: Delivery with merchant, business and courier relationships loaded.
        viewer_id: Account requesting the view.
        viewer_role: Role of that account.

    Returns:
        JSON-ready dictionary. Contact fields are None when redacted.
    """
    merchant = delivery.merchant
    business = delivery.business
    courier = delivery.courier

    data: dict[str, Any] = {
        "id": str(delivery.delivery_id),
        "status": delivery.status.value,
        "merchant_id": str(delivery.merchant_id),
        "business_id": str(delivery.business_id),
        "courier_id": str(delivery.courier_id) if delivery.courier_id else None,
        "preferred_courier_id": (
            str(delivery.preferred_courier_id) if delivery.preferred_courier_id else None
        ),
        "pickup_address": delivery.pickup_address,
        "dropoff_address": delivery.dropoff_address,
        "price": str(delivery.price),
        "notes": delivery.notes,
        "merchant_name": merchant.name if merchant else None,
        "merchant_phone": merchant.phone_e164 if merchant else None,
        "business_name": business.name if business else None,
        "business_phone": business.phone_e164 if business else None,
        "courier_name": courier.name if courier else None,
        "courier_phone": courier.phone_e164 if courier else None,
        "created_at": _iso(delivery.created_at),
        "preferred_until": _iso(delivery.preferred_until),
        "expires_at": _iso(delivery.expires_at),
        "accepted_at": _iso(delivery.accepted_at),
        "accept_by": _iso(delivery.accept_by),
        "picked_up_at": _iso(delivery.picked_up_at),
        "completed_at": _iso(delivery.completed_at),
        "canceled_at": _iso(delivery.canceled_at),
        "canceled_by": delivery.canceled_by.value if delivery.canceled_by else None,
        "cancel_reason": delivery.cancel_reason,
        "issue_at": _iso(delivery.issue_at),
        "issue_reason": delivery.issue_reason,
    }

    if not can_see_contacts(delivery, viewer_id, viewer_role):
        for key in CONTACT_FIELDS:
            data[key] = None

    return data
