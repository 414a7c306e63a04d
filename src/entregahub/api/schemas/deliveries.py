"""Pydantic schemas for delivery API endpoints.

Request models only check shape; business rules (positive price, non-blank
addresses, ownership) are enforced by the lifecycle service so every caller
gets the same errors.
"""

from __future__ import annotations

# NOTE: datetime, Decimal and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

from entregahub.db.models.base import CanceledBy, DeliveryStatus

# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


class CreateDeliveryRequest(BaseModel):
    """Request schema for offering a new delivery to couriers."""

    business_id: UUID = Field(..., description="Business originating the delivery")
    pickup_address: str = Field(..., max_length=500, description="Pickup address")
    dropoff_address: str = Field(..., max_length=500, description="Dropoff address")
    price: Decimal = Field(..., description="Amount paid to the courier")
    notes: str | None = Field(None, max_length=1000, description="Notes for the courier")
    preferred_courier_id: UUID | None = Field(
        None,
        description="Courier who gets an exclusive window to accept first",
    )

    model_config = ConfigDict(extra="forbid")


class CancelRequest(BaseModel):
    """Optional body for cancellation endpoints."""

    reason: str | None = Field(None, max_length=500, description="Why the delivery is canceled")

    model_config = ConfigDict(extra="forbid")


class IssueRequest(BaseModel):
    """Body for reporting a problem with a delivery."""

    reason: str = Field(..., max_length=500, description="What went wrong")

    model_config = ConfigDict(extra="forbid")


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


class DeliveryResponse(BaseModel):
    """A delivery as seen by the caller.

    Contact phones are null for couriers who have not claimed the delivery.
    """

    id: UUID
    status: DeliveryStatus
    merchant_id: UUID
    business_id: UUID
    courier_id: UUID | None = None
    preferred_courier_id: UUID | None = None

    pickup_address: str
    dropoff_address: str
    price: Decimal
    notes: str | None = None

    merchant_name: str | None = None
    merchant_phone: str | None = None
    business_name: str | None = None
    business_phone: str | None = None
    courier_name: str | None = None
    courier_phone: str | None = None

    created_at: datetime
    preferred_until: datetime | None = None
    expires_at: datetime | None = None
    accepted_at: datetime | None = None
    accept_by: datetime | None = None
    picked_up_at: datetime | None = None
    completed_at: datetime | None = None
    canceled_at: datetime | None = None
    canceled_by: CanceledBy | None = None
    cancel_reason: str | None = None
    issue_at: datetime | None = None
    issue_reason: str | None = None


class DeliveryListResponse(BaseModel):
    """List of deliveries visible to the caller."""

    items: list[DeliveryResponse] = Field(default_factory=list)
    total: int = 0
