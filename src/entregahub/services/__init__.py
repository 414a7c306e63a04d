"""EntregaHub service layer.

- DeliveryLifecycleService: Delivery state machine with atomic conditional transitions
- Notifier: Best-effort counterpart notifications with provider fallback
- render_delivery: Viewer-dependent rendering with contact redaction
- Error taxonomy mapped to HTTP responses by the API layer
"""

from entregahub.services.errors import (
    ConflictError,
    DeliveryError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    NotificationUnavailableError,
)
from entregahub.services.lifecycle import (
    CreateDeliveryInput,
    DeliveryLifecycleService,
    TransitionResult,
)
from entregahub.services.notifier import (
    LogNotificationProvider,
    NotificationKind,
    NotificationMessage,
    Notifier,
    RetryPolicy,
    WebhookNotificationProvider,
)
from entregahub.services.redaction import can_see_contacts, render_delivery

__all__ = [
    "ConflictError",
    "CreateDeliveryInput",
    "DeliveryError",
    "DeliveryLifecycleService",
    "ForbiddenError",
    "InvalidInputError",
    "LogNotificationProvider",
    "NotFoundError",
    "NotificationKind",
    "NotificationMessage",
    "NotificationUnavailableError",
    "Notifier",
    "RetryPolicy",
    "TransitionResult",
    "WebhookNotificationProvider",
    "can_see_contacts",
    "render_delivery",
]
