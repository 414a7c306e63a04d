"""Bulk cleanup sweeps over stuck deliveries.

Each tick runs three independent sweeps, each a single conditional UPDATE
over every matching row:

- Expiry: AVAILABLE offers nobody accepted before expires_at are canceled
- Abandonment: ACCEPTED deliveries not picked up before accept_by return to
  the pool with the courier cleared
- Stale: PICKED_UP deliveries in transit for too long are flagged as ISSUE

The sweeps share the predicates used by the lifecycle engine, so a sweep and
a user action racing on the same row resolve to exactly one winner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from entregahub.db.models.base import CanceledBy, DeliveryStatus, utcnow
from entregahub.db.models.deliveries import Delivery
from entregahub.db.store import DeliveryStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from entregahub.core.config import LifecycleSettings

logger = logging.getLogger(__name__)

EXPIRED_REASON = "EXPIRED: No courier accepted in time"
STALE_REASON = "STALE: Delivery in transit for too long"


@dataclass
class SweepReport:
    """Rows touched by one cleanup tick.

    Attributes:
        expired: AVAILABLE deliveries canceled by the system.
        reverted: Abandoned ACCEPTED deliveries returned to AVAILABLE.
        stale: PICKED_UP deliveries moved to ISSUE.
        failed: Names of sweeps that raised; their counts stay at zero.
        ran_at: Reference time used by every sweep in the tick.
    """

    expired: int = 0
    reverted: int = 0
    stale: int = 0
    failed: list[str] = field(default_factory=list)
    ran_at: datetime | None = None

    @property
    def total(self) -> int:
        return self.expired + self.reverted + self.stale

    def to_dict(self) -> dict[str, Any]:
        return {
            "expired": self.expired,
            "reverted": self.reverted,
            "stale": self.stale,
            "failed": list(self.failed),
            "ran_at": self.ran_at.isoformat() if self.ran_at else None,
        }


class DeliveryCleanupService:
    """Runs the periodic cleanup sweeps.

    Each sweep commits on its own, so a failing sweep neither rolls back nor
    prevents the others.

    Example:
        async with session_factory() as session:
            report = await DeliveryCleanupService(session, settings.lifecycle).run_sweeps()
    """

    def __init__(self, session: AsyncSession, settings: LifecycleSettings) -> None:
        self.session = session
        self._store = DeliveryStore(session)
        self._settings = settings

    async def run_sweeps(self, now: datetime | None = None) -> SweepReport:
        """Run all three sweeps against a single reference time."""
        now = now or utcnow()
        report = SweepReport(ran_at=now)

        sweeps: list[tuple[str, Callable[[datetime], Awaitable[int]]]] = [
            ("expired", self.expire_unaccepted),
            ("reverted", self.revert_abandoned),
            ("stale", self.flag_stale_in_transit),
        ]

        for name, sweep in sweeps:
            try:
                count = await sweep(now)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                report.failed.append(name)
                logger.exception("Cleanup sweep failed: sweep=%s, error=%s", name, e)
                continue

            setattr(report, name, count)
            if count:
                logger.info("Cleanup sweep applied: sweep=%s, count=%d", name, count)
            else:
                logger.debug("Cleanup sweep found nothing: sweep=%s", name)

        logger.debug(
            "Cleanup tick complete: expired=%d, reverted=%d, stale=%d, failed=%s",
            report.expired,
            report.reverted,
            report.stale,
            report.failed,
        )
        return report

    async def expire_unaccepted(self, now: datetime) -> int:
        """Cancel AVAILABLE deliveries whose acceptance window has passed."""
        return await self._store.bulk_conditional_update(
            [
                Delivery.status == DeliveryStatus.AVAILABLE,
                Delivery.expires_at < now,
            ],
            {
                "status": DeliveryStatus.CANCELED,
                "canceled_at": now,
                "canceled_by": CanceledBy.SYSTEM,
                "cancel_reason": EXPIRED_REASON,
                "updated_at": now,
            },
        )

    async def revert_abandoned(self, now: datetime) -> int:
        """Return ACCEPTED deliveries not picked up in time to the pool."""
        values: dict[str, Any] = {
            "status": DeliveryStatus.AVAILABLE,
            "courier_id": None,
            "accepted_at": None,
            "accept_by": None,
            "updated_at": now,
        }
        if self._settings.refresh_expiry_on_revert:
            values["expires_at"] = now + self._settings.offer_expiry

        return await self._store.bulk_conditional_update(
            [
                Delivery.status == DeliveryStatus.ACCEPTED,
                Delivery.accept_by < now,
            ],
            values,
        )

    async def flag_stale_in_transit(self, now: datetime) -> int:
        """Move deliveries stuck in transit to ISSUE."""
        return await self._store.bulk_conditional_update(
            [
                Delivery.status == DeliveryStatus.PICKED_UP,
                Delivery.picked_up_at < now - self._settings.stale_in_transit,
            ],
            {
                "status": DeliveryStatus.ISSUE,
                "issue_at": now,
                "issue_reason": STALE_REASON,
                "updated_at": now,
            },
        )
