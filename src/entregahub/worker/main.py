"""EntregaHub worker entry point.

This module runs the cleanup scheduler as a standalone process:
- Loads and validates settings from the environment
- Builds its own engine and session factory
- Handles graceful shutdown via SIGTERM/SIGINT
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING, NoReturn

from entregahub.core.logs import configure_logging
from entregahub.db import build_engine, build_session_factory
from entregahub.worker.scheduler import run_cleanup_loop

if TYPE_CHECKING:
    from entregahub.core.config import Settings

logger = logging.getLogger(__name__)

# Global shutdown event for signal handling
_shutdown_event: asyncio.Event | None = None


def _handle_shutdown(signum: int) -> None:
    """Handle shutdown signals gracefully."""
    logger.info("Shutdown signal received (signal=%d)", signum)
    if _shutdown_event is not None:
        _shutdown_event.set()


async def _async_main(settings: Settings, shutdown_event: asyncio.Event) -> None:
    """Async entry point for the worker.

    Args:
        settings: Validated application settings.
        shutdown_event: Event to signal shutdown request.
    """
    if not settings.scheduler.enabled:
        logger.warning("Cleanup scheduler disabled by configuration, nothing to run")
        return

    engine = build_engine(settings.database)
    session_factory = build_session_factory(engine)
    try:
        await run_cleanup_loop(
            session_factory,
            settings.lifecycle,
            interval=settings.scheduler.cleanup_interval_seconds,
            shutdown_event=shutdown_event,
        )
    finally:
        await engine.dispose()


def run() -> NoReturn:
    """Run the worker process.

    This is the main entry point for the worker. It:
    - Sets up logging
    - Registers signal handlers for graceful shutdown
    - Loads configuration from environment variables
    - Runs the cleanup loop until a shutdown signal arrives
    """
    from entregahub.core.settings import get_settings

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("EntregaHub Worker starting (environment=%s)", settings.environment.value)

    async def _run_with_event() -> None:
        """Create event loop context and run main."""
        global _shutdown_event
        _shutdown_event = asyncio.Event()

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, _handle_shutdown, signum)

        await _async_main(settings, _shutdown_event)

    try:
        asyncio.run(_run_with_event())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")
    except Exception as e:
        logger.exception("Worker failed: %s", e)
        sys.exit(1)

    logger.info("EntregaHub Worker shutdown complete")
    sys.exit(0)


if __name__ == "__main__":
    run()
