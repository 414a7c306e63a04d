"""Initial schema: users, businesses and deliveries.

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

Creates:
- users (marketplace accounts with role and active flag)
- businesses (merchant-owned, approval status)
- deliveries (lifecycle row with deadlines and terminal-state metadata)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DELIVERY_STATUSES = ("AVAILABLE", "ACCEPTED", "PICKED_UP", "COMPLETED", "CANCELED", "ISSUE")
CANCELED_BY = ("COURIER", "MERCHANT", "SYSTEM")
USER_ROLES = ("MERCHANT", "COURIER", "ADMIN")
BUSINESS_STATUSES = ("PENDING", "ACTIVE", "SUSPENDED", "REJECTED")


def upgrade() -> None:
    """Apply migration: initial schema."""
    op.create_table(
        "users",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone_e164", sa.String(20), nullable=True),
        sa.Column(
            "role",
            sa.Enum(*USER_ROLES, name="user_role", create_constraint=True),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", name="pk_users"),
        sa.UniqueConstraint("phone_e164", name="uq_users_phone_e164"),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "businesses",
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone_e164", sa.String(20), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*BUSINESS_STATUSES, name="business_status", create_constraint=True),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("business_id", name="pk_businesses"),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["users.user_id"],
            name="fk_businesses_owner_id_users",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_businesses_owner_id", "businesses", ["owner_id"])
    op.create_index("ix_businesses_status", "businesses", ["status"])

    op.create_table(
        "deliveries",
        sa.Column("delivery_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*DELIVERY_STATUSES, name="delivery_status", create_constraint=True),
            nullable=False,
        ),
        sa.Column("merchant_id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("courier_id", sa.Uuid(), nullable=True),
        sa.Column("preferred_courier_id", sa.Uuid(), nullable=True),
        sa.Column("preferred_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_address", sa.String(500), nullable=False),
        sa.Column("dropoff_address", sa.String(500), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accept_by", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "canceled_by",
            sa.Enum(*CANCELED_BY, name="canceled_by", create_constraint=True),
            nullable=True,
        ),
        sa.Column("cancel_reason", sa.String(500), nullable=True),
        sa.Column("issue_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("issue_reason", sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint("delivery_id", name="pk_deliveries"),
        sa.CheckConstraint("price > 0", name="ck_deliveries_price_positive"),
        sa.ForeignKeyConstraint(
            ["merchant_id"],
            ["users.user_id"],
            name="fk_deliveries_merchant_id_users",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["businesses.business_id"],
            name="fk_deliveries_business_id_businesses",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["courier_id"],
            ["users.user_id"],
            name="fk_deliveries_courier_id_users",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["preferred_courier_id"],
            ["users.user_id"],
            name="fk_deliveries_preferred_courier_id_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_deliveries_status", "deliveries", ["status"])
    op.create_index("ix_deliveries_merchant_id", "deliveries", ["merchant_id"])
    op.create_index("ix_deliveries_courier_id", "deliveries", ["courier_id"])
    op.create_index("ix_deliveries_created_at", "deliveries", ["created_at"])
    op.create_index("ix_deliveries_status_expires_at", "deliveries", ["status", "expires_at"])
    op.create_index("ix_deliveries_status_accept_by", "deliveries", ["status", "accept_by"])
    op.create_index(
        "ix_deliveries_status_picked_up_at", "deliveries", ["status", "picked_up_at"]
    )


def downgrade() -> None:
    """Revert migration: drop all tables and enum types."""
    op.drop_table("deliveries")
    op.drop_table("businesses")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in ("delivery_status", "canceled_by", "business_status", "user_role"):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
