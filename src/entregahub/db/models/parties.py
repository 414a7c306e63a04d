"""Marketplace actors: user accounts and the businesses merchants own."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from entregahub.db.models.base import (
    Base,
    BusinessStatus,
    Role,
    TimestampTZ,
    UUIDPrimaryKey,
)


class User(Base):
    """Marketplace account.

    Role and active flag are managed by elevated-privilege flows outside the
    delivery lifecycle; the lifecycle only reads them.
    """

    __tablename__ = "users"

    user_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # E.164 phone, shown to counterparts only once a delivery is claimed
    phone_e164: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)

    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", create_constraint=True),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    businesses: Mapped[list[Business]] = relationship(
        "Business",
        back_populates="owner",
    )

    __table_args__ = (Index("ix_users_role", "role"),)


class Business(Base):
    """A merchant's business; gates whether deliveries may be created."""

    __tablename__ = "businesses"

    business_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone_e164: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[BusinessStatus] = mapped_column(
        Enum(BusinessStatus, name="business_status", create_constraint=True),
        nullable=False,
        default=BusinessStatus.PENDING,
    )

    owner: Mapped[User] = relationship("User", back_populates="businesses")

    __table_args__ = (
        Index("ix_businesses_owner_id", "owner_id"),
        Index("ix_businesses_status", "status"),
    )
