"""EntregaHub API service.

FastAPI application providing:
- Merchant delivery creation, listing and cancellation
- Courier discovery, accept, pickup, completion, cancellation and issue reports
- Admin cancellation

This module provides the app factory pattern for creating configured
FastAPI instances suitable for testing and production deployment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from entregahub.api.middleware import ErrorHandlerMiddleware, request_validation_handler
from entregahub.api.routers import admin_router, deliveries_router
from entregahub.db import close_engine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from entregahub.core.config import Settings
    from entregahub.services.notifier import Notifier

logger = logging.getLogger(__name__)

API_TITLE = "EntregaHub API"
API_DESCRIPTION = """
Local delivery marketplace API.

Callers are identified by the `X-User-ID` header set by the authentication
gateway.

## Namespaces

- **/deliveries** - Merchant and courier operations
- **/admin** - Operator endpoints (admin role)
"""


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    notifier: Notifier | None = app.state.notifier
    if notifier is not None:
        await notifier.aclose()
    if app.state.owns_engine:
        await close_engine()


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Settings to use. Loaded from the environment on first
            request when omitted.
        session_factory: Session factory to use. Built from settings on
            first request when omitted.
        notifier: Notifier to use. Built from settings when omitted.

    Returns:
        Configured FastAPI application ready to serve requests.

    Example:
        # For testing
        app = create_app(test_settings, session_factory=factory, notifier=notifier)
    """
    version = settings.app_version if settings else "0.1.0"

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=_lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.notifier = notifier
    # The default engine is built lazily from settings and disposed on shutdown
    app.state.owns_engine = session_factory is None

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(deliveries_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    logger.info("EntregaHub API application created (version=%s)", version)

    return app
