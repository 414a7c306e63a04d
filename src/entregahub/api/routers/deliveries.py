"""Delivery API router.

Merchant and courier operations on deliveries. Routes only resolve the caller
and delegate to the lifecycle service; authorization on the delivery itself
and every state check happen there.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID  # noqa: TC003 - path parameter type resolved at runtime

from fastapi import APIRouter, Depends, status

from entregahub.api.dependencies import LifecycleService  # noqa: TC001
from entregahub.api.middleware.auth import (  # noqa: TC001
    AuthenticatedUser,
    CourierUser,
    CurrentUser,
    MerchantUser,
    require_role,
)
from entregahub.api.schemas.deliveries import (
    CancelRequest,
    CreateDeliveryRequest,
    DeliveryListResponse,
    DeliveryResponse,
    IssueRequest,
)
from entregahub.db.models.base import Role
from entregahub.services.lifecycle import CreateDeliveryInput
from entregahub.services.redaction import render_delivery

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/deliveries",
    tags=["deliveries"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Insufficient permissions"},
    },
)

MerchantOrCourier = Annotated[
    AuthenticatedUser,
    Depends(require_role(Role.MERCHANT, Role.COURIER)),
]


def _list_response(items: list[dict]) -> DeliveryListResponse:
    return DeliveryListResponse(
        items=[DeliveryResponse.model_validate(item) for item in items],
        total=len(items),
    )


# -----------------------------------------------------------------------------
# Listings
# -----------------------------------------------------------------------------


@router.get("/available", response_model=DeliveryListResponse)
async def list_available(user: CourierUser, service: LifecycleService) -> DeliveryListResponse:
    """Open offers the courier may accept. Contact phones are withheld."""
    return _list_response(await service.list_available(user.user_id))


@router.get("/active", response_model=DeliveryListResponse)
async def list_active(user: CourierUser, service: LifecycleService) -> DeliveryListResponse:
    """Deliveries the courier has accepted or is carrying."""
    return _list_response(await service.list_active(user.user_id))


@router.get("", response_model=DeliveryListResponse)
async def list_mine(user: MerchantUser, service: LifecycleService) -> DeliveryListResponse:
    """The merchant's own deliveries, newest first."""
    return _list_response(await service.list_for_merchant(user.user_id))


# -----------------------------------------------------------------------------
# Merchant operations
# -----------------------------------------------------------------------------


@router.post(
    "",
    response_model=DeliveryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_delivery(
    request: CreateDeliveryRequest,
    user: MerchantUser,
    service: LifecycleService,
) -> DeliveryResponse:
    """Offer a new delivery to couriers.

    With a preferred courier, the offer is hidden from everybody else until
    the priority window lapses.
    """
    delivery = await service.create(
        user.user_id,
        CreateDeliveryInput(
            business_id=request.business_id,
            pickup_address=request.pickup_address,
            dropoff_address=request.dropoff_address,
            price=request.price,
            notes=request.notes,
            preferred_courier_id=request.preferred_courier_id,
        ),
    )
    return DeliveryResponse.model_validate(render_delivery(delivery, user.user_id, user.role))


@router.get("/{delivery_id}", response_model=DeliveryResponse)
async def get_delivery(
    delivery_id: UUID,
    user: CurrentUser,
    service: LifecycleService,
) -> DeliveryResponse:
    """Fetch one delivery as the caller is allowed to see it."""
    return DeliveryResponse.model_validate(
        await service.get_one(user.user_id, user.role, delivery_id)
    )


@router.post("/{delivery_id}/cancel", response_model=DeliveryResponse)
async def cancel_delivery(
    delivery_id: UUID,
    user: MerchantOrCourier,
    service: LifecycleService,
    body: CancelRequest | None = None,
) -> DeliveryResponse:
    """Cancel a delivery.

    Merchants may withdraw it until pickup. Couriers may give back a delivery
    they accepted but have not picked up.
    """
    reason = body.reason if body else None
    if user.role == Role.MERCHANT:
        result = await service.cancel_by_merchant(user.user_id, delivery_id, reason)
    else:
        result = await service.cancel_by_courier(user.user_id, delivery_id, reason)
    return DeliveryResponse.model_validate(
        render_delivery(result.delivery, user.user_id, user.role)
    )


# -----------------------------------------------------------------------------
# Courier operations
# -----------------------------------------------------------------------------


@router.post("/{delivery_id}/accept", response_model=DeliveryResponse)
async def accept_delivery(
    delivery_id: UUID,
    user: CourierUser,
    service: LifecycleService,
) -> DeliveryResponse:
    """Claim an available delivery. Returns 409 when another courier won."""
    result = await service.accept(user.user_id, delivery_id)
    return DeliveryResponse.model_validate(
        render_delivery(result.delivery, user.user_id, user.role)
    )


@router.post("/{delivery_id}/pickup", response_model=DeliveryResponse)
async def pickup_delivery(
    delivery_id: UUID,
    user: CourierUser,
    service: LifecycleService,
) -> DeliveryResponse:
    result = await service.pickup(user.user_id, delivery_id)
    return DeliveryResponse.model_validate(
        render_delivery(result.delivery, user.user_id, user.role)
    )


@router.post("/{delivery_id}/complete", response_model=DeliveryResponse)
async def complete_delivery(
    delivery_id: UUID,
    user: CourierUser,
    service: LifecycleService,
) -> DeliveryResponse:
    result = await service.complete(user.user_id, delivery_id)
    return DeliveryResponse.model_validate(
        render_delivery(result.delivery, user.user_id, user.role)
    )


@router.post("/{delivery_id}/issue", response_model=DeliveryResponse)
async def report_issue(
    delivery_id: UUID,
    request: IssueRequest,
    user: CourierUser,
    service: LifecycleService,
) -> DeliveryResponse:
    """Flag an accepted or in-transit delivery for human follow-up."""
    result = await service.report_issue(user.user_id, delivery_id, request.reason)
    return DeliveryResponse.model_validate(
        render_delivery(result.delivery, user.user_id, user.role)
    )
