"""Pydantic request and response schemas for the EntregaHub API."""

from entregahub.api.schemas.deliveries import (
    CancelRequest,
    CreateDeliveryRequest,
    DeliveryListResponse,
    DeliveryResponse,
    IssueRequest,
)

__all__ = [
    "CancelRequest",
    "CreateDeliveryRequest",
    "DeliveryListResponse",
    "DeliveryResponse",
    "IssueRequest",
]
