"""SQLAlchemy ORM models for EntregaHub.

- base: Common metadata, column annotations and enums
- parties: User accounts and businesses
- deliveries: The delivery lifecycle row
"""

from entregahub.db.models.base import (
    Base,
    BusinessStatus,
    CanceledBy,
    DeliveryStatus,
    Role,
    metadata,
)
from entregahub.db.models.deliveries import Delivery
from entregahub.db.models.parties import Business, User

__all__ = [
    "Base",
    "Business",
    "BusinessStatus",
    "CanceledBy",
    "Delivery",
    "DeliveryStatus",
    "Role",
    "User",
    "metadata",
]
