"""Delivery lifecycle state machine service.

This module implements the delivery state machine with:
- Monotonic state transitions along a fixed graph
- Atomic conditional updates keyed on (id, expected status, expected actor)
- Failure classification (not found / conflict / forbidden) after a no-op write
- Best-effort notifications to the counterpart after each commit
- Priority offers reserved for a preferred courier for a limited window

No transition reads a row to decide whether to write it. A conditional update
that touches zero rows is followed by a read whose only purpose is to explain
the failure to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, ClassVar

from entregahub.db.models.base import (
    BusinessStatus,
    CanceledBy,
    DeliveryStatus,
    Role,
    as_utc,
    utcnow,
)
from entregahub.db.models.deliveries import Delivery
from entregahub.db.store import DeliveryStore, visible_to_courier
from entregahub.services.errors import (
    ConflictError,
    DeliveryError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from entregahub.services.notifier import NotificationKind
from entregahub.services.redaction import render_delivery

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from entregahub.core.config import LifecycleSettings
    from entregahub.services.notifier import Notifier

logger = logging.getLogger(__name__)

MAX_ADDRESS_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MAX_REASON_LENGTH = 500
MAX_PRICE = Decimal("99999999.99")

ADMIN_CANCEL_REASON = "Cancelled by Admin"
ADMIN_IN_TRANSIT_ISSUE_REASON = "Cancelled by Admin while in transit"
COURIER_CANCEL_REASON = "Canceled by courier"


@dataclass(frozen=True, slots=True)
class CreateDeliveryInput:
    """Merchant-supplied fields for a new delivery.

    Attributes:
        business_id: Business originating the delivery (must be owned and ACTIVE).
        pickup_address: Where the courier collects the goods.
        dropoff_address: Where the goods are handed over.
        price: Amount paid to the courier; must be positive.
        notes: Optional free text for the courier.
        preferred_courier_id: Courier offered the job first, if any.
    """

    business_id: UUID
    pickup_address: str
    dropoff_address: str
    price: Decimal | float | int | str
    notes: str | None = None
    preferred_courier_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of a successful transition.

    Attributes:
        delivery: The delivery as stored after the transition, parties loaded.
        action: Name of the operation that ran.
        from_statuses: Statuses the delivery was allowed to be in.
        new_status: Status after the transition.
        occurred_at: Timestamp written by the transition.
    """

    delivery: Delivery
    action: str
    from_statuses: tuple[DeliveryStatus, ...]
    new_status: DeliveryStatus
    occurred_at: datetime


@dataclass(frozen=True, slots=True)
class _ActorGuard:
    """Row column that must hold the caller's id for the write to apply."""

    column: str
    actor_id: UUID
    message: str


class DeliveryLifecycleService:
    """Service owning every delivery state transition.

    The state machine follows this flow:
        AVAILABLE -> ACCEPTED -> PICKED_UP -> COMPLETED
            |           |  ^        |
            v           v  |        v
        CANCELED    CANCELED/ISSUE  ISSUE
                        |           |
                        |           +-> CANCELED (admin only)
                        +-> AVAILABLE (abandonment revert, system only)

    Example:
        service = DeliveryLifecycleService(session, settings.lifecycle, notifier)
        result = await service.accept(courier_id, delivery_id)
        print(result.delivery.accept_by)
    """

    # Transitions are monotonic except for the system revert of an abandoned acceptance
    VALID_TRANSITIONS: ClassVar[dict[DeliveryStatus, set[DeliveryStatus]]] = {
        DeliveryStatus.AVAILABLE: {
            DeliveryStatus.ACCEPTED,
            DeliveryStatus.CANCELED,
        },
        DeliveryStatus.ACCEPTED: {
            DeliveryStatus.PICKED_UP,
            DeliveryStatus.CANCELED,
            DeliveryStatus.ISSUE,
            DeliveryStatus.AVAILABLE,  # Abandonment revert
        },
        DeliveryStatus.PICKED_UP: {
            DeliveryStatus.COMPLETED,
            DeliveryStatus.ISSUE,
        },
        # Terminal states - no transitions out
        DeliveryStatus.COMPLETED: set(),
        DeliveryStatus.CANCELED: set(),
        # Closed for couriers; an admin may still force it to CANCELED
        DeliveryStatus.ISSUE: {DeliveryStatus.CANCELED},
    }

    def __init__(
        self,
        session: AsyncSession,
        settings: LifecycleSettings,
        notifier: Notifier | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            session: SQLAlchemy async session for database operations.
            settings: Lifecycle time windows.
            notifier: Counterpart notifications; None disables them.
            clock: Source of the current time.
        """
        self._session = session
        self._store = DeliveryStore(session)
        self._settings = settings
        self._notifier = notifier
        self._clock = clock

    def is_valid_transition(
        self,
        from_status: DeliveryStatus,
        to_status: DeliveryStatus,
    ) -> bool:
        """Check if a transition is an edge of the lifecycle graph."""
        return to_status in self.VALID_TRANSITIONS.get(from_status, set())

    def is_terminal_state(self, status: DeliveryStatus) -> bool:
        """Check if a status has no outgoing transitions."""
        return len(self.VALID_TRANSITIONS.get(status, set())) == 0

    # -------------------------------------------------------------------------
    # Merchant operations
    # -------------------------------------------------------------------------

    async def create(self, merchant_id: UUID, data: CreateDeliveryInput) -> Delivery:
        """Create a delivery offer for one of the merchant's active businesses.

        Raises:
            InvalidInputError: Malformed addresses, notes or price.
            NotFoundError: Business or preferred courier does not exist.
            ForbiddenError: Merchant does not own the business, or it is not active.
        """
        pickup = _required_text(data.pickup_address, "pickup_address", MAX_ADDRESS_LENGTH)
        dropoff = _required_text(data.dropoff_address, "dropoff_address", MAX_ADDRESS_LENGTH)
        notes = _optional_text(data.notes, "notes", MAX_NOTES_LENGTH)
        price = _positive_price(data.price)

        business = await self._store.find_business(data.business_id)
        if business is None:
            raise NotFoundError("Business", data.business_id)
        if business.owner_id != merchant_id:
            raise ForbiddenError("You do not own this business")
        if business.status != BusinessStatus.ACTIVE:
            raise ForbiddenError(
                f"Business is not active (status={business.status.value})",
                detail={"business_status": business.status.value},
            )

        if data.preferred_courier_id is not None:
            await self._check_preferred_courier(data.preferred_courier_id)

        now = self._clock()
        delivery = Delivery(
            status=DeliveryStatus.AVAILABLE,
            merchant_id=merchant_id,
            business_id=business.business_id,
            pickup_address=pickup,
            dropoff_address=dropoff,
            price=price,
            notes=notes,
            created_at=now,
            updated_at=now,
            expires_at=now + self._settings.offer_expiry,
        )
        if data.preferred_courier_id is not None:
            delivery.preferred_courier_id = data.preferred_courier_id
            delivery.preferred_until = now + self._settings.priority_offer

        await self._store.insert(delivery)
        await self._session.commit()

        logger.info(
            "Delivery created",
            extra={
                "delivery_id": str(delivery.delivery_id),
                "merchant_id": str(merchant_id),
                "business_id": str(business.business_id),
                "preferred_courier_id": (
                    str(data.preferred_courier_id) if data.preferred_courier_id else None
                ),
            },
        )

        created = await self._store.find_by_id(delivery.delivery_id, with_parties=True)
        if created is None:
            raise NotFoundError("Delivery", delivery.delivery_id)
        return created

    async def cancel_by_merchant(
        self,
        merchant_id: UUID,
        delivery_id: UUID,
        reason: str | None = None,
    ) -> TransitionResult:
        """Withdraw a delivery that has not been picked up yet."""
        cancel_reason = (
            _optional_text(reason, "reason", MAX_REASON_LENGTH)
            or self._settings.default_cancel_reason
        )
        now = self._clock()

        result = await self._guarded_transition(
            delivery_id,
            action="cancel",
            from_statuses=(DeliveryStatus.AVAILABLE, DeliveryStatus.ACCEPTED),
            to_status=DeliveryStatus.CANCELED,
            values={
                "canceled_at": now,
                "canceled_by": CanceledBy.MERCHANT,
                "cancel_reason": cancel_reason,
            },
            occurred_at=now,
            actor=_ActorGuard("merchant_id", merchant_id, "Not your delivery"),
        )

        courier_id = result.delivery.courier_id
        if courier_id is not None:
            self._notify(
                courier_id,
                NotificationKind.DELIVERY_CANCELED_BY_MERCHANT,
                result.delivery,
                reason=cancel_reason,
            )
        return result

    # -------------------------------------------------------------------------
    # Courier operations
    # -------------------------------------------------------------------------

    async def accept(self, courier_id: UUID, delivery_id: UUID) -> TransitionResult:
        """Claim an available delivery. At most one courier can win.

        Raises:
            NotFoundError: Delivery does not exist.
            ConflictError: Already taken, no longer available, or reserved
                for another courier.
        """
        now = self._clock()

        def explain(delivery: Delivery) -> DeliveryError | None:
            if delivery.courier_id is not None:
                return ConflictError(
                    "Delivery already taken",
                    current_status=delivery.status,
                    reason="already_taken",
                )
            if self._reserved_for_other(delivery, courier_id, now):
                return ConflictError(
                    "Delivery is reserved for another courier",
                    current_status=delivery.status,
                    reason="reserved",
                )
            return None

        result = await self._guarded_transition(
            delivery_id,
            action="accept",
            from_statuses=(DeliveryStatus.AVAILABLE,),
            to_status=DeliveryStatus.ACCEPTED,
            values={
                "courier_id": courier_id,
                "accepted_at": now,
                "accept_by": now + self._settings.pickup_timeout,
            },
            occurred_at=now,
            extra_criteria=(
                Delivery.courier_id.is_(None),
                visible_to_courier(courier_id, now),
            ),
            explain=explain,
        )

        self._notify(
            result.delivery.merchant_id,
            NotificationKind.DELIVERY_ACCEPTED,
            result.delivery,
        )
        return result

    async def pickup(self, courier_id: UUID, delivery_id: UUID) -> TransitionResult:
        """Record that the assigned courier collected the goods."""
        now = self._clock()
        return await self._guarded_transition(
            delivery_id,
            action="pickup",
            from_statuses=(DeliveryStatus.ACCEPTED,),
            to_status=DeliveryStatus.PICKED_UP,
            values={"picked_up_at": now},
            occurred_at=now,
            actor=_ActorGuard("courier_id", courier_id, "Not your delivery"),
        )

    async def complete(self, courier_id: UUID, delivery_id: UUID) -> TransitionResult:
        """Record the hand-over at the dropoff address."""
        now = self._clock()
        result = await self._guarded_transition(
            delivery_id,
            action="complete",
            from_statuses=(DeliveryStatus.PICKED_UP,),
            to_status=DeliveryStatus.COMPLETED,
            values={"completed_at": now},
            occurred_at=now,
            actor=_ActorGuard("courier_id", courier_id, "Not your delivery"),
        )

        self._notify(
            result.delivery.merchant_id,
            NotificationKind.DELIVERY_COMPLETED,
            result.delivery,
        )
        return result

    async def cancel_by_courier(
        self,
        courier_id: UUID,
        delivery_id: UUID,
        reason: str | None = None,
    ) -> TransitionResult:
        """Give an accepted delivery back before pickup."""
        cancel_reason = _optional_text(reason, "reason", MAX_REASON_LENGTH) or COURIER_CANCEL_REASON
        now = self._clock()

        result = await self._guarded_transition(
            delivery_id,
            action="cancel",
            from_statuses=(DeliveryStatus.ACCEPTED,),
            to_status=DeliveryStatus.CANCELED,
            values={
                "canceled_at": now,
                "canceled_by": CanceledBy.COURIER,
                "cancel_reason": cancel_reason,
            },
            occurred_at=now,
            actor=_ActorGuard("courier_id", courier_id, "Not your delivery"),
        )

        self._notify(
            result.delivery.merchant_id,
            NotificationKind.DELIVERY_CANCELED_BY_COURIER,
            result.delivery,
            reason=cancel_reason,
        )
        return result

    async def report_issue(
        self,
        courier_id: UUID,
        delivery_id: UUID,
        reason: str,
    ) -> TransitionResult:
        """Flag a delivery for human intervention."""
        issue_reason = _required_text(reason, "reason", MAX_REASON_LENGTH)
        now = self._clock()

        result = await self._guarded_transition(
            delivery_id,
            action="report_issue",
            from_statuses=(DeliveryStatus.ACCEPTED, DeliveryStatus.PICKED_UP),
            to_status=DeliveryStatus.ISSUE,
            values={"issue_at": now, "issue_reason": issue_reason},
            occurred_at=now,
            actor=_ActorGuard("courier_id", courier_id, "Not your delivery"),
        )

        self._notify(
            result.delivery.merchant_id,
            NotificationKind.DELIVERY_ISSUE_REPORTED,
            result.delivery,
            reason=issue_reason,
        )
        return result

    # -------------------------------------------------------------------------
    # Admin operations
    # -------------------------------------------------------------------------

    async def cancel_by_admin(
        self,
        delivery_id: UUID,
        admin_id: UUID | None = None,
    ) -> TransitionResult:
        """Cancel any delivery that has not been completed.

        A delivery already in transit is never canceled: it is moved to ISSUE
        instead so the goods are accounted for. A delivery in ISSUE is closed
        as CANCELED. The cancel leaves canceled_by empty and names the admin
        in cancel_reason.

        Raises:
            NotFoundError: Delivery does not exist.
            ConflictError: Delivery is COMPLETED or already CANCELED.
        """
        now = self._clock()
        cancelable = (DeliveryStatus.AVAILABLE, DeliveryStatus.ACCEPTED, DeliveryStatus.ISSUE)

        affected = await self._store.conditional_update(
            delivery_id,
            [Delivery.status.in_(cancelable)],
            {
                "status": DeliveryStatus.CANCELED,
                "canceled_at": now,
                "canceled_by": None,
                "cancel_reason": ADMIN_CANCEL_REASON,
            },
        )
        from_statuses: tuple[DeliveryStatus, ...] = cancelable
        to_status = DeliveryStatus.CANCELED

        if affected == 0:
            affected = await self._store.conditional_update(
                delivery_id,
                [Delivery.status == DeliveryStatus.PICKED_UP],
                {
                    "status": DeliveryStatus.ISSUE,
                    "issue_at": now,
                    "issue_reason": ADMIN_IN_TRANSIT_ISSUE_REASON,
                },
            )
            from_statuses = (DeliveryStatus.PICKED_UP,)
            to_status = DeliveryStatus.ISSUE

        if affected == 0:
            error = await self._classify_failure(
                delivery_id,
                action="cancel",
                from_statuses=(*cancelable, DeliveryStatus.PICKED_UP),
            )
            # Nothing was written; end the transaction without expiring loaded rows
            await self._session.commit()
            self._log_rejection(delivery_id, "admin_cancel", admin_id, error)
            raise error

        await self._session.commit()
        result = await self._finish(delivery_id, "admin_cancel", from_statuses, to_status, now)
        self._log_transition(result, admin_id)

        delivery = result.delivery
        self._notify(delivery.merchant_id, NotificationKind.DELIVERY_CANCELED_BY_ADMIN, delivery)
        if delivery.courier_id is not None:
            self._notify(delivery.courier_id, NotificationKind.DELIVERY_CANCELED_BY_ADMIN, delivery)
        return result

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_available(self, courier_id: UUID) -> list[dict[str, Any]]:
        """Open offers this courier may claim, without contact details."""
        deliveries = await self._store.find_available_for(courier_id, self._clock())
        return [render_delivery(d, courier_id, Role.COURIER) for d in deliveries]

    async def list_active(self, courier_id: UUID) -> list[dict[str, Any]]:
        """Deliveries the courier has accepted or picked up."""
        deliveries = await self._store.find_active_for_courier(courier_id)
        return [render_delivery(d, courier_id, Role.COURIER) for d in deliveries]

    async def list_for_merchant(self, merchant_id: UUID) -> list[dict[str, Any]]:
        """Every delivery the merchant created, newest first."""
        deliveries = await self._store.find_for_merchant(merchant_id)
        return [render_delivery(d, merchant_id, Role.MERCHANT) for d in deliveries]

    async def get_one(
        self,
        caller_id: UUID,
        role: Role,
        delivery_id: UUID,
    ) -> dict[str, Any]:
        """Fetch a single delivery as the caller is allowed to see it.

        Raises:
            NotFoundError: Delivery does not exist.
            ForbiddenError: Caller has no view of this delivery.
        """
        delivery = await self._store.find_by_id(delivery_id, with_parties=True)
        if delivery is None:
            raise NotFoundError("Delivery", delivery_id)

        if role == Role.MERCHANT and delivery.merchant_id != caller_id:
            raise ForbiddenError("Access denied")

        if role == Role.COURIER and delivery.courier_id != caller_id:
            open_offer = (
                delivery.status == DeliveryStatus.AVAILABLE
                and delivery.courier_id is None
                and not self._reserved_for_other(delivery, caller_id, self._clock())
            )
            if not open_offer:
                raise ForbiddenError("Access denied")

        return render_delivery(delivery, caller_id, role)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _guarded_transition(
        self,
        delivery_id: UUID,
        *,
        action: str,
        from_statuses: tuple[DeliveryStatus, ...],
        to_status: DeliveryStatus,
        values: dict[str, Any],
        occurred_at: datetime,
        actor: _ActorGuard | None = None,
        extra_criteria: Iterable[ColumnElement[bool]] = (),
        explain: Callable[[Delivery], DeliveryError | None] | None = None,
    ) -> TransitionResult:
        """Apply one conditional update and commit, or classify and raise.

        Args:
            delivery_id: UUID of the delivery.
            action: Operation name for errors and logs.
            from_statuses: Statuses the row must be in.
            to_status: Status written on success.
            values: Other columns written on success.
            occurred_at: Timestamp of the transition.
            actor: Column that must equal the caller's id.
            extra_criteria: Further conditions on the row.
            explain: Turns a row that failed extra_criteria into an error.
        """
        for from_status in from_statuses:
            if not self.is_valid_transition(from_status, to_status):
                msg = f"{action}: {from_status.value} -> {to_status.value} is not a lifecycle edge"
                raise ValueError(msg)

        criteria: list[ColumnElement[bool]] = [Delivery.status.in_(from_statuses)]
        if actor is not None:
            criteria.append(getattr(Delivery, actor.column) == actor.actor_id)
        criteria.extend(extra_criteria)

        affected = await self._store.conditional_update(
            delivery_id,
            criteria,
            {"status": to_status, **values},
        )

        if affected == 0:
            error = await self._classify_failure(
                delivery_id,
                action=action,
                from_statuses=from_statuses,
                actor=actor,
                explain=explain,
            )
            # Nothing was written; end the transaction without expiring loaded rows
            await self._session.commit()
            self._log_rejection(delivery_id, action, actor.actor_id if actor else None, error)
            raise error

        await self._session.commit()
        result = await self._finish(delivery_id, action, from_statuses, to_status, occurred_at)
        self._log_transition(result, actor.actor_id if actor else None)
        return result

    async def _classify_failure(
        self,
        delivery_id: UUID,
        *,
        action: str,
        from_statuses: tuple[DeliveryStatus, ...],
        actor: _ActorGuard | None = None,
        explain: Callable[[Delivery], DeliveryError | None] | None = None,
    ) -> DeliveryError:
        """Explain why a conditional update matched no row.

        Precedence: not found, then wrong status, then wrong actor. The read
        only shapes the error; it never leads to a write.
        """
        delivery = await self._store.find_by_id(delivery_id)
        if delivery is None:
            return NotFoundError("Delivery", delivery_id)

        if delivery.status not in from_statuses:
            if action == "accept":
                taken = delivery.status in (
                    DeliveryStatus.ACCEPTED,
                    DeliveryStatus.PICKED_UP,
                    DeliveryStatus.COMPLETED,
                )
                return ConflictError(
                    "Delivery already taken" if taken else "Delivery is no longer available",
                    current_status=delivery.status,
                    reason="already_taken" if taken else "not_available",
                )
            expected = ", ".join(s.value for s in from_statuses)
            return ConflictError(
                f"Cannot {action} a delivery in status {delivery.status.value} "
                f"(requires {expected})",
                current_status=delivery.status,
                reason="wrong_status",
            )

        if actor is not None and getattr(delivery, actor.column) != actor.actor_id:
            return ForbiddenError(actor.message)

        if explain is not None:
            error = explain(delivery)
            if error is not None:
                return error

        # The row changed between the write and this read
        return ConflictError(
            "Delivery changed concurrently, retry the operation",
            current_status=delivery.status,
            reason="concurrent_update",
        )

    async def _finish(
        self,
        delivery_id: UUID,
        action: str,
        from_statuses: tuple[DeliveryStatus, ...],
        to_status: DeliveryStatus,
        occurred_at: datetime,
    ) -> TransitionResult:
        delivery = await self._store.find_by_id(delivery_id, with_parties=True)
        if delivery is None:
            raise NotFoundError("Delivery", delivery_id)
        return TransitionResult(
            delivery=delivery,
            action=action,
            from_statuses=from_statuses,
            new_status=to_status,
            occurred_at=occurred_at,
        )

    async def _check_preferred_courier(self, courier_id: UUID) -> None:
        courier = await self._store.find_user(courier_id)
        if courier is None:
            raise NotFoundError("Courier", courier_id)
        if courier.role != Role.COURIER or not courier.is_active:
            raise InvalidInputError(
                "Preferred courier must be an active courier account",
                field="preferred_courier_id",
            )

    @staticmethod
    def _reserved_for_other(delivery: Delivery, courier_id: UUID, now: datetime) -> bool:
        if delivery.preferred_courier_id is None or delivery.preferred_courier_id == courier_id:
            return False
        preferred_until = as_utc(delivery.preferred_until)
        return preferred_until is not None and preferred_until > now

    def _notify(
        self,
        user_id: UUID,
        kind: NotificationKind,
        delivery: Delivery,
        **extra: Any,
    ) -> None:
        if self._notifier is None:
            return
        payload = {
            "delivery_id": str(delivery.delivery_id),
            "status": delivery.status.value,
            **extra,
        }
        self._notifier.notify(user_id, kind, payload)

    @staticmethod
    def _log_transition(result: TransitionResult, actor_id: UUID | None) -> None:
        logger.info(
            "Delivery transition completed",
            extra={
                "delivery_id": str(result.delivery.delivery_id),
                "action": result.action,
                "from_status": ",".join(s.value for s in result.from_statuses),
                "to_status": result.new_status.value,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )

    @staticmethod
    def _log_rejection(
        delivery_id: UUID,
        action: str,
        actor_id: UUID | None,
        error: DeliveryError,
    ) -> None:
        logger.warning(
            "Delivery transition rejected",
            extra={
                "delivery_id": str(delivery_id),
                "action": action,
                "actor_id": str(actor_id) if actor_id else None,
                "error_kind": error.kind,
                "error": error.message,
            },
        )


def _required_text(value: str | None, field: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"{field} is required", field=field)
    if len(text) > max_length:
        raise InvalidInputError(f"{field} must be at most {max_length} characters", field=field)
    return text


def _optional_text(value: str | None, field: str, max_length: int) -> str | None:
    if value is None or not value.strip():
        return None
    return _required_text(value, field, max_length)


def _positive_price(value: Decimal | float | int | str) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidInputError("price must be a number", field="price") from e

    if not price.is_finite():
        raise InvalidInputError("price must be a number", field="price")
    if price > MAX_PRICE:
        raise InvalidInputError("price is too large", field="price")

    # Stored with two decimals, so the rounded amount is what must be positive
    price = price.quantize(Decimal("0.01"))
    if price <= 0:
        raise InvalidInputError("price must be greater than zero", field="price")
    return price
