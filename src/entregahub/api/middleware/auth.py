"""Caller identity resolution and role gating.

Authentication happens upstream: the gateway verifies the user and forwards
the account id in the ``X-User-ID`` header. This module loads that account,
rejects unknown or deactivated ones and checks the route's roles.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request

from entregahub.api.dependencies import DbSession
from entregahub.api.middleware.errors import AuthenticationError, AuthorizationError
from entregahub.db.models.base import Role
from entregahub.db.store import DeliveryStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-ID"


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """The account making the request.

    Attributes:
        user_id: Account id.
        role: Account role.
        name: Display name, for logs.
    """

    user_id: uuid.UUID
    role: Role
    name: str

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles


async def get_current_user(request: Request, db: DbSession) -> AuthenticatedUser:
    """Resolve the caller from the gateway header.

    Raises:
        AuthenticationError: Header missing, malformed, or unknown account.
        AuthorizationError: Account is deactivated.
    """
    raw = request.headers.get(USER_ID_HEADER)
    if not raw:
        raise AuthenticationError()

    try:
        user_id = uuid.UUID(raw)
    except ValueError:
        raise AuthenticationError("Malformed user id") from None

    user = await DeliveryStore(db).find_user(user_id)
    if user is None:
        raise AuthenticationError("Unknown user")

    if not user.is_active:
        logger.warning("Request from deactivated account: user_id=%s", user_id)
        raise AuthorizationError("Account is deactivated")

    return AuthenticatedUser(user_id=user.user_id, role=user.role, name=user.name)


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


def require_role(*roles: Role) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """Factory for creating role-checking dependencies.

    Usage:
        @router.post("/{delivery_id}/accept")
        async def accept(user: Annotated[AuthenticatedUser, Depends(require_role(Role.COURIER))]):
            ...
    """

    async def _check_role(user: CurrentUser) -> AuthenticatedUser:
        if not user.has_role(*roles):
            raise AuthorizationError(
                f"Role required: {', '.join(r.value for r in roles)}",
                detail={"role": user.role.value},
            )
        return user

    return _check_role


MerchantUser = Annotated[AuthenticatedUser, Depends(require_role(Role.MERCHANT))]
CourierUser = Annotated[AuthenticatedUser, Depends(require_role(Role.COURIER))]
AdminUser = Annotated[AuthenticatedUser, Depends(require_role(Role.ADMIN))]
