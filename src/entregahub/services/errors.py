"""Error taxonomy for delivery lifecycle operations.

Each error carries a machine-readable ``kind`` so the access layer can map it
to a response without inspecting messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from entregahub.db.models.base import DeliveryStatus


class DeliveryError(Exception):
    """Base exception for lifecycle operations."""

    kind = "error"

    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class NotFoundError(DeliveryError):
    """Referenced delivery, business or user does not exist."""

    kind = "not_found"

    def __init__(self, resource: str, identifier: object) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found: {identifier}",
            detail={"resource": resource, "id": str(identifier)},
        )


class ForbiddenError(DeliveryError):
    """Caller is not the actor authorized for this delivery or business."""

    kind = "forbidden"


class ConflictError(DeliveryError):
    """The current state of the delivery does not allow the operation."""

    kind = "conflict"

    def __init__(
        self,
        message: str,
        current_status: DeliveryStatus | None = None,
        reason: str | None = None,
    ) -> None:
        self.current_status = current_status
        self.reason = reason
        detail: dict[str, Any] = {}
        if current_status is not None:
            detail["current_status"] = current_status.value
        if reason:
            detail["reason"] = reason
        super().__init__(message, detail=detail or None)


class InvalidInputError(DeliveryError):
    """Malformed input, rejected before the store is touched."""

    kind = "validation"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, detail={"field": field} if field else None)


class NotificationUnavailableError(DeliveryError):
    """Every notification provider was exhausted.

    Never raised past the notifier: transitions succeed regardless.
    """

    kind = "unavailable"
