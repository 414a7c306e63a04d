"""EntregaHub API middleware components.

- Consistent JSON error responses, including lifecycle error mapping
- Caller identity and role dependencies
"""

from entregahub.api.middleware.auth import (
    AdminUser,
    AuthenticatedUser,
    CourierUser,
    CurrentUser,
    MerchantUser,
    get_current_user,
    require_role,
)
from entregahub.api.middleware.errors import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ErrorHandlerMiddleware,
    build_error_response,
    request_validation_handler,
)

__all__ = [
    "APIError",
    "AdminUser",
    "AuthenticatedUser",
    "AuthenticationError",
    "AuthorizationError",
    "CourierUser",
    "CurrentUser",
    "ErrorHandlerMiddleware",
    "MerchantUser",
    "build_error_response",
    "get_current_user",
    "request_validation_handler",
    "require_role",
]
