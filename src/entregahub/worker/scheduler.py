"""Periodic driver for the delivery cleanup sweeps.

Every tick opens a fresh session, runs the three sweeps and sleeps until the
next interval or until shutdown is requested. A failing tick is logged and the
loop keeps going.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from entregahub.worker.cleanup import DeliveryCleanupService, SweepReport

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from entregahub.core.config import LifecycleSettings

logger = logging.getLogger(__name__)


async def run_cleanup_tick(
    session_factory: async_sessionmaker[AsyncSession],
    settings: LifecycleSettings,
) -> SweepReport:
    """Run one cleanup tick in its own session."""
    async with session_factory() as session:
        return await DeliveryCleanupService(session, settings).run_sweeps()


async def run_cleanup_loop(
    session_factory: async_sessionmaker[AsyncSession],
    settings: LifecycleSettings,
    interval: float = 60.0,
    shutdown_event: asyncio.Event | None = None,
    on_report: Callable[[SweepReport], None] | None = None,
) -> None:
    """Run the cleanup sweeps until shutdown is requested.

    Args:
        session_factory: Factory for creating database sessions.
        settings: Lifecycle windows used by the sweeps.
        interval: Seconds between ticks.
        shutdown_event: Event to signal shutdown.
        on_report: Called with each tick's report.
    """
    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    logger.info(
        "Cleanup scheduler starting: interval=%ss, offer_expiry=%s, "
        "pickup_timeout=%s, stale_after=%s",
        interval,
        settings.offer_expiry,
        settings.pickup_timeout,
        settings.stale_in_transit,
    )

    while not shutdown_event.is_set():
        try:
            report = await run_cleanup_tick(session_factory, settings)
            if on_report is not None:
                on_report(report)
        except Exception as e:
            logger.exception("Error in cleanup loop: %s", e)

        # Wait for next tick (uses wait_for to allow shutdown)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=interval,
            )

    logger.info("Cleanup scheduler stopped")
