"""EntregaHub API routers.

- deliveries: Merchant and courier delivery operations
- admin: Operator endpoints (admin role)
"""

from entregahub.api.routers.admin import router as admin_router
from entregahub.api.routers.deliveries import router as deliveries_router

__all__ = [
    "admin_router",
    "deliveries_router",
]
