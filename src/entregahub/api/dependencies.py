"""FastAPI dependencies shared by the routers.

The application factory stores the session factory, settings and notifier on
``app.state``; when they are absent (plain ``create_app()``) the process-wide
defaults are built from the environment on first use.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from entregahub.services.lifecycle import DeliveryLifecycleService
from entregahub.services.notifier import Notifier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from entregahub.core.config import Settings


def get_app_settings(request: Request) -> Settings:
    settings = request.app.state.settings
    if settings is None:
        from entregahub.core.settings import get_settings

        settings = get_settings()
        request.app.state.settings = settings
    return settings


def _get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    factory = request.app.state.session_factory
    if factory is None:
        from entregahub.db import get_session_factory

        factory = get_session_factory()
        request.app.state.session_factory = factory
    return factory


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session per request, rolled back on error."""
    session = _get_session_factory(request)()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_notifier(request: Request) -> Notifier:
    notifier = request.app.state.notifier
    if notifier is None:
        notifier = Notifier.from_settings(get_app_settings(request).notifications)
        request.app.state.notifier = notifier
    return notifier


def get_lifecycle_service(
    request: Request,
    db: DbSession,
) -> DeliveryLifecycleService:
    """Lifecycle service bound to the request's session."""
    settings = get_app_settings(request)
    return DeliveryLifecycleService(db, settings.lifecycle, get_notifier(request))


LifecycleService = Annotated[DeliveryLifecycleService, Depends(get_lifecycle_service)]
