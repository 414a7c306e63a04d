"""Delivery model: the row every lifecycle transition is applied to.

Status values and timestamp columns are a durable contract also read by
reporting and analytics tooling.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from decimal import Decimal  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from entregahub.db.models.base import (
    Base,
    CanceledBy,
    DeliveryStatus,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
)
from entregahub.db.models.parties import Business, User


class Delivery(Base):
    """A delivery request from a merchant's business to a dropoff address."""

    __tablename__ = "deliveries"

    delivery_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    status: Mapped[DeliveryStatus] = mapped_column(
        Enum(DeliveryStatus, name="delivery_status", create_constraint=True),
        nullable=False,
        default=DeliveryStatus.AVAILABLE,
    )

    # Owning actors, immutable after creation
    merchant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.business_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Set by a successful accept, cleared only by the abandonment revert
    courier_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=True,
    )

    # Priority offer: hidden from other couriers until preferred_until
    preferred_courier_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    preferred_until: Mapped[OptionalTimestampTZ]

    pickup_address: Mapped[str] = mapped_column(String(500), nullable=False)
    dropoff_address: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Deadlines
    expires_at: Mapped[OptionalTimestampTZ]  # accept before this
    accept_by: Mapped[OptionalTimestampTZ]  # pick up before this

    # Lifecycle timestamps
    accepted_at: Mapped[OptionalTimestampTZ]
    picked_up_at: Mapped[OptionalTimestampTZ]
    completed_at: Mapped[OptionalTimestampTZ]
    canceled_at: Mapped[OptionalTimestampTZ]
    canceled_by: Mapped[CanceledBy | None] = mapped_column(
        Enum(CanceledBy, name="canceled_by", create_constraint=True),
        nullable=True,
    )
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    issue_at: Mapped[OptionalTimestampTZ]
    issue_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    merchant: Mapped[User] = relationship("User", foreign_keys=[merchant_id], lazy="raise")
    courier: Mapped[User | None] = relationship("User", foreign_keys=[courier_id], lazy="raise")
    business: Mapped[Business] = relationship("Business", lazy="raise")

    __table_args__ = (
        CheckConstraint("price > 0", name="price_positive"),
        Index("ix_deliveries_status", "status"),
        Index("ix_deliveries_merchant_id", "merchant_id"),
        Index("ix_deliveries_courier_id", "courier_id"),
        Index("ix_deliveries_created_at", "created_at"),
        Index("ix_deliveries_status_expires_at", "status", "expires_at"),
        Index("ix_deliveries_status_accept_by", "status", "accept_by"),
        Index("ix_deliveries_status_picked_up_at", "status", "picked_up_at"),
    )
