"""Repository over the relational store for delivery lifecycle operations.

All writes to a delivery row go through conditional updates: a single
UPDATE ... WHERE keyed on the expected prior state, returning the number of
rows it touched. Callers never read a row to decide whether to write it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select, update
from sqlalchemy.orm import joinedload

from entregahub.db.models.base import DeliveryStatus, utcnow
from entregahub.db.models.deliveries import Delivery
from entregahub.db.models.parties import Business, User

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Deliveries a courier is still working on
COURIER_ACTIVE_STATUSES = (DeliveryStatus.ACCEPTED, DeliveryStatus.PICKED_UP)


def visible_to_courier(courier_id: uuid.UUID, now: datetime) -> ColumnElement[bool]:
    """Priority-offer filter: no reservation, reserved for this courier, or lapsed."""
    return or_(
        Delivery.preferred_courier_id.is_(None),
        Delivery.preferred_courier_id == courier_id,
        Delivery.preferred_until.is_(None),
        Delivery.preferred_until <= now,
    )


class DeliveryStore:
    """Store operations consumed by the lifecycle engine and cleanup sweeps.

    Example:
        store = DeliveryStore(session)
        affected = await store.conditional_update(
            delivery_id,
            [Delivery.status == DeliveryStatus.ACCEPTED, Delivery.courier_id == courier_id],
            {"status": DeliveryStatus.PICKED_UP, "picked_up_at": now},
        )
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_id(
        self,
        delivery_id: uuid.UUID,
        *,
        with_parties: bool = False,
    ) -> Delivery | None:
        """Load a delivery, always refreshing any copy already in the session.

        Args:
            delivery_id: UUID of the delivery.
            with_parties: Also load merchant, courier and business rows.
        """
        stmt = select(Delivery).where(Delivery.delivery_id == delivery_id)
        if with_parties:
            stmt = stmt.options(*self._party_loaders())
        stmt = stmt.execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def insert(self, delivery: Delivery) -> Delivery:
        """Persist a new delivery row."""
        self.session.add(delivery)
        await self.session.flush()
        return delivery

    async def conditional_update(
        self,
        delivery_id: uuid.UUID,
        expected: Iterable[ColumnElement[bool]],
        values: Mapping[str, Any],
    ) -> int:
        """Atomically update one delivery if it still matches the expected state.

        Args:
            delivery_id: UUID of the delivery to update.
            expected: Criteria the row must match at write time.
            values: Column values to set.

        Returns:
            Number of rows updated (0 or 1).
        """
        return await self.bulk_conditional_update(
            [Delivery.delivery_id == delivery_id, *expected],
            values,
        )

    async def bulk_conditional_update(
        self,
        criteria: Iterable[ColumnElement[bool]],
        values: Mapping[str, Any],
    ) -> int:
        """Atomically update every delivery matching the criteria.

        Returns:
            Number of rows updated.
        """
        data = dict(values)
        data.setdefault("updated_at", utcnow())

        stmt = (
            update(Delivery)
            .where(*criteria)
            .values(**data)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def find_available_for(
        self,
        courier_id: uuid.UUID,
        now: datetime,
    ) -> list[Delivery]:
        """Unclaimed deliveries this courier is allowed to see, newest first."""
        stmt = (
            select(Delivery)
            .where(
                Delivery.status == DeliveryStatus.AVAILABLE,
                Delivery.courier_id.is_(None),
                visible_to_courier(courier_id, now),
            )
            .options(*self._party_loaders())
            .order_by(Delivery.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def find_active_for_courier(self, courier_id: uuid.UUID) -> list[Delivery]:
        """Deliveries assigned to the courier that are still in progress."""
        stmt = (
            select(Delivery)
            .where(
                Delivery.courier_id == courier_id,
                Delivery.status.in_(COURIER_ACTIVE_STATUSES),
            )
            .options(*self._party_loaders())
            .order_by(Delivery.accepted_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def find_for_merchant(self, merchant_id: uuid.UUID) -> list[Delivery]:
        """Every delivery a merchant created, newest first."""
        stmt = (
            select(Delivery)
            .where(Delivery.merchant_id == merchant_id)
            .options(*self._party_loaders())
            .order_by(Delivery.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def find_business(self, business_id: uuid.UUID) -> Business | None:
        stmt = select(Business).where(Business.business_id == business_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_user(self, user_id: uuid.UUID) -> User | None:
        stmt = select(User).where(User.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _party_loaders() -> tuple:
        return (
            joinedload(Delivery.merchant),
            joinedload(Delivery.courier),
            joinedload(Delivery.business),
        )
