"""Admin API router.

Operator endpoints. Every route requires the ADMIN role.
"""

from __future__ import annotations

import logging
from uuid import UUID  # noqa: TC003 - path parameter type resolved at runtime

from fastapi import APIRouter

from entregahub.api.dependencies import LifecycleService  # noqa: TC001
from entregahub.api.middleware.auth import AdminUser  # noqa: TC001
from entregahub.api.schemas.deliveries import DeliveryResponse
from entregahub.services.redaction import render_delivery

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Admin role required"},
    },
)


@router.get("/deliveries/{delivery_id}", response_model=DeliveryResponse)
async def get_delivery(
    delivery_id: UUID,
    user: AdminUser,
    service: LifecycleService,
) -> DeliveryResponse:
    return DeliveryResponse.model_validate(
        await service.get_one(user.user_id, user.role, delivery_id)
    )


@router.post("/deliveries/{delivery_id}/cancel", response_model=DeliveryResponse)
async def cancel_delivery(
    delivery_id: UUID,
    user: AdminUser,
    service: LifecycleService,
) -> DeliveryResponse:
    """Cancel a delivery on behalf of the marketplace.

    A delivery already picked up is moved to ISSUE instead of CANCELED.
    Finished deliveries (COMPLETED, CANCELED, ISSUE) return 409.
    """
    result = await service.cancel_by_admin(delivery_id, admin_id=user.user_id)
    logger.info(
        "Admin canceled delivery: delivery_id=%s, admin_id=%s, status=%s",
        delivery_id,
        user.user_id,
        result.new_status.value,
    )
    return DeliveryResponse.model_validate(
        render_delivery(result.delivery, user.user_id, user.role)
    )
