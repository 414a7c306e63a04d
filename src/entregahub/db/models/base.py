"""Base model definitions, mixins, and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Reusable column annotations for ids and timestamps
- Enum types used across multiple models
"""

import enum
import uuid
from datetime import UTC, datetime
from typing import Annotated

from sqlalchemy import DateTime, MetaData, String, Uuid
from sqlalchemy.orm import DeclarativeBase, mapped_column, registry

# Naming convention for constraints ensures consistent migration generation.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

type_registry = registry()


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from stores without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# Ids are generated client-side so inserts behave the same on every backend
UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
]

TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), nullable=False, default=utcnow),
]

OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]

ShortString = Annotated[str, mapped_column(String(100))]
MediumString = Annotated[str, mapped_column(String(255))]
LongString = Annotated[str, mapped_column(String(1000))]


class Base(DeclarativeBase):
    """Declarative base for all EntregaHub models."""

    metadata = metadata
    registry = type_registry


# =============================================================================
# Common Enums
# =============================================================================


class DeliveryStatus(enum.Enum):
    """Delivery lifecycle states.

    States:
        AVAILABLE: Offered to couriers, nobody has claimed it yet
        ACCEPTED: Claimed by a courier, waiting for pickup
        PICKED_UP: In transit
        COMPLETED: Handed over at the dropoff address
        CANCELED: Withdrawn before pickup (courier, merchant, admin or system)
        ISSUE: Needs human intervention (reported, stale, or canceled in transit)
    """

    AVAILABLE = "AVAILABLE"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    ISSUE = "ISSUE"


class CanceledBy(enum.Enum):
    """Who canceled a delivery.

    Values:
        COURIER: The assigned courier gave the job back before pickup
        MERCHANT: The owning merchant withdrew the delivery
        SYSTEM: The cleanup scheduler expired it
    """

    COURIER = "COURIER"
    MERCHANT = "MERCHANT"
    SYSTEM = "SYSTEM"


class Role(enum.Enum):
    """Account role.

    Values:
        MERCHANT: Owns businesses and creates deliveries
        COURIER: Claims and carries deliveries
        ADMIN: Operates the marketplace
    """

    MERCHANT = "MERCHANT"
    COURIER = "COURIER"
    ADMIN = "ADMIN"


class BusinessStatus(enum.Enum):
    """Business approval lifecycle.

    Only ACTIVE businesses may originate deliveries.
    """

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"
