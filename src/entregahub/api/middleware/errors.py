"""Error handling middleware for consistent JSON error responses.

Every error leaves the API with the same body:
- error: Machine-readable code (not_found, forbidden, conflict, ...)
- message: Human-readable description
- detail: Optional structured information (current status, field, ...)

Lifecycle errors are mapped by their ``kind``; the route handlers never
translate them by hand.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from entregahub.services.errors import DeliveryError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi.exceptions import RequestValidationError
    from starlette.responses import Response

logger = logging.getLogger(__name__)

# HTTP status for each lifecycle error kind
ERROR_STATUS_BY_KIND: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
    "validation": status.HTTP_400_BAD_REQUEST,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


class APIError(Exception):
    """Errors raised by the access layer itself (authentication, roles)."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 400,
        detail: dict[str, Any] | None = None,
    ) -> None:
        self.error = error
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class AuthenticationError(APIError):
    """Caller could not be identified (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            error="unauthorized",
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class AuthorizationError(APIError):
    """Caller is identified but not allowed on this route (403)."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(
            error="forbidden",
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


def build_error_response(
    error: str,
    message: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a standardized error response."""
    body: dict[str, Any] = {
        "error": error,
        "message": message,
    }
    if detail:
        body["detail"] = detail

    return JSONResponse(status_code=status_code, content=body)


def delivery_error_response(exc: DeliveryError) -> JSONResponse:
    """Map a lifecycle error to its HTTP response."""
    status_code = ERROR_STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return build_error_response(
        error=exc.kind,
        message=exc.message,
        status_code=status_code,
        detail=exc.detail,
    )


async def request_validation_handler(
    _request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report malformed request bodies the same way as lifecycle validation errors."""
    return build_error_response(
        error="validation",
        message="Request validation failed",
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"errors": jsonable_encoder(exc.errors())},
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns consistent JSON errors.

    Handles:
    - DeliveryError and subclasses: mapped by kind
    - APIError and subclasses: access layer errors
    - HTTPException: FastAPI's built-in HTTP errors
    - Generic exceptions: Unexpected errors (logged, returns 500)
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        try:
            return await call_next(request)
        except DeliveryError as exc:
            return delivery_error_response(exc)
        except APIError as exc:
            return build_error_response(
                error=exc.error,
                message=exc.message,
                status_code=exc.status_code,
                detail=exc.detail,
            )
        except HTTPException as exc:
            return build_error_response(
                error="http_error",
                message=str(exc.detail),
                status_code=exc.status_code,
            )
        except Exception:
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                error="internal_error",
                message="An internal error occurred",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
