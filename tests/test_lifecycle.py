"""Tests for the delivery lifecycle state machine against a real store.

Test Categories:
1. Creation and input validation
2. Happy path through every transition
3. Exclusive accept under concurrency
4. Monotonic transitions and actor binding
5. Failure classification precedence
6. Admin cancellation
7. Notifications never affect transition outcomes
8. Contact redaction and priority offers
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from entregahub.core.config import LifecycleSettings
from entregahub.db.models import BusinessStatus, CanceledBy, DeliveryStatus, Role
from entregahub.db.models.base import as_utc
from entregahub.db.store import DeliveryStore
from entregahub.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from entregahub.services.lifecycle import (
    ADMIN_CANCEL_REASON,
    ADMIN_IN_TRANSIT_ISSUE_REASON,
    CreateDeliveryInput,
    DeliveryLifecycleService,
    TransitionResult,
)
from entregahub.services.notifier import NotificationKind, Notifier, RetryPolicy
from tests.conftest import RecordingProvider
from tests.factories import T0, create_business, create_delivery, create_user


def make_input(parties, **overrides) -> CreateDeliveryInput:
    values = {
        "business_id": parties.business.business_id,
        "pickup_address": "Rua Augusta 100",
        "dropoff_address": "Av. Paulista 1578",
        "price": "15.00",
    }
    values.update(overrides)
    return CreateDeliveryInput(**values)


async def reload(session_factory, delivery_id):
    async with session_factory() as session:
        return await DeliveryStore(session).find_by_id(delivery_id)


# =============================================================================
# Creation
# =============================================================================


class TestCreate:
    """Tests for delivery creation."""

    @pytest.mark.asyncio
    async def test_create_sets_available_and_deadlines(self, service, parties, clock):
        """New deliveries are AVAILABLE, unassigned, and expire after the offer window."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))

        assert delivery.status == DeliveryStatus.AVAILABLE
        assert delivery.courier_id is None
        assert delivery.merchant_id == parties.merchant.user_id
        assert delivery.price == Decimal("15.00")
        assert as_utc(delivery.expires_at) == clock.now + timedelta(minutes=60)
        assert delivery.preferred_courier_id is None
        assert delivery.preferred_until is None

    @pytest.mark.asyncio
    async def test_create_with_preferred_courier_sets_priority_window(
        self, service, parties, clock
    ):
        """A preferred courier reserves the offer for the priority window."""
        delivery = await service.create(
            parties.merchant.user_id,
            make_input(parties, preferred_courier_id=parties.courier.user_id),
        )

        assert delivery.preferred_courier_id == parties.courier.user_id
        assert as_utc(delivery.preferred_until) == clock.now + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_create_strips_addresses(self, service, parties):
        delivery = await service.create(
            parties.merchant.user_id,
            make_input(parties, pickup_address="  Rua Augusta 100  "),
        )
        assert delivery.pickup_address == "Rua Augusta 100"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"pickup_address": "   "}, "pickup_address"),
            ({"dropoff_address": ""}, "dropoff_address"),
            ({"price": "0"}, "price"),
            ({"price": "-3.50"}, "price"),
            ({"price": "abc"}, "price"),
            ({"price": "0.004"}, "price"),
            ({"price": "NaN"}, "price"),
            ({"notes": "x" * 1001}, "notes"),
        ],
    )
    async def test_create_rejects_invalid_input(self, service, parties, overrides, field):
        """Malformed input is rejected as a validation error."""
        with pytest.raises(InvalidInputError) as exc_info:
            await service.create(parties.merchant.user_id, make_input(parties, **overrides))

        assert exc_info.value.field == field
        assert exc_info.value.kind == "validation"

    @pytest.mark.asyncio
    async def test_create_unknown_business_is_not_found(self, service, parties):
        with pytest.raises(NotFoundError):
            await service.create(
                parties.merchant.user_id, make_input(parties, business_id=uuid4())
            )

    @pytest.mark.asyncio
    async def test_create_for_someone_elses_business_is_forbidden(self, service, parties):
        """Merchants may only create deliveries for businesses they own."""
        with pytest.raises(ForbiddenError):
            await service.create(parties.other_merchant.user_id, make_input(parties))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [BusinessStatus.PENDING, BusinessStatus.SUSPENDED, BusinessStatus.REJECTED],
    )
    async def test_create_for_inactive_business_is_forbidden(
        self, session, service, parties, status
    ):
        business = await create_business(session, parties.merchant, status=status)
        await session.commit()

        with pytest.raises(ForbiddenError) as exc_info:
            await service.create(
                parties.merchant.user_id,
                make_input(parties, business_id=business.business_id),
            )
        assert exc_info.value.detail == {"business_status": status.value}

    @pytest.mark.asyncio
    async def test_create_with_unknown_preferred_courier(self, service, parties):
        with pytest.raises(NotFoundError):
            await service.create(
                parties.merchant.user_id,
                make_input(parties, preferred_courier_id=uuid4()),
            )

    @pytest.mark.asyncio
    async def test_create_with_non_courier_preferred(self, service, parties):
        with pytest.raises(InvalidInputError) as exc_info:
            await service.create(
                parties.merchant.user_id,
                make_input(parties, preferred_courier_id=parties.admin.user_id),
            )
        assert exc_info.value.field == "preferred_courier_id"

    @pytest.mark.asyncio
    async def test_create_with_inactive_preferred_courier(self, session, service, parties):
        inactive = await create_user(session, Role.COURIER, is_active=False)
        await session.commit()

        with pytest.raises(InvalidInputError):
            await service.create(
                parties.merchant.user_id,
                make_input(parties, preferred_courier_id=inactive.user_id),
            )


# =============================================================================
# Happy path
# =============================================================================


class TestHappyPath:
    """Tests walking a delivery through the whole lifecycle."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, service, parties, clock, notifier, recorder):
        """AVAILABLE -> ACCEPTED -> PICKED_UP -> COMPLETED with timestamps."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        courier_id = parties.courier.user_id

        clock.advance(minutes=5)
        accepted = await service.accept(courier_id, delivery.delivery_id)
        assert isinstance(accepted, TransitionResult)
        assert accepted.new_status == DeliveryStatus.ACCEPTED
        assert accepted.delivery.courier_id == courier_id
        assert as_utc(accepted.delivery.accepted_at) == clock.now
        assert as_utc(accepted.delivery.accept_by) == clock.now + timedelta(minutes=45)

        clock.advance(minutes=10)
        picked = await service.pickup(courier_id, delivery.delivery_id)
        assert picked.delivery.status == DeliveryStatus.PICKED_UP
        assert as_utc(picked.delivery.picked_up_at) == clock.now

        clock.advance(minutes=20)
        completed = await service.complete(courier_id, delivery.delivery_id)
        assert completed.delivery.status == DeliveryStatus.COMPLETED
        assert as_utc(completed.delivery.completed_at) == clock.now
        assert completed.from_statuses == (DeliveryStatus.PICKED_UP,)

        await notifier.drain()
        kinds = [m.kind for m in recorder.sent]
        assert kinds == [NotificationKind.DELIVERY_ACCEPTED, NotificationKind.DELIVERY_COMPLETED]
        assert all(m.user_id == parties.merchant.user_id for m in recorder.sent)
        ref = str(delivery.delivery_id)[:8]
        assert recorder.sent[0].text == f"Your delivery {ref} was accepted by a courier."
        assert recorder.sent[1].text == f"Your delivery {ref} has been completed!"

    @pytest.mark.asyncio
    async def test_transition_result_carries_parties(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        result = await service.accept(parties.courier.user_id, delivery.delivery_id)

        assert result.delivery.courier.name == "Carla Courier"
        assert result.delivery.merchant.name == "Ana Merchant"
        assert result.delivery.business.name == "Padaria Central"

    @pytest.mark.asyncio
    async def test_courier_cancel_before_pickup(self, service, parties, notifier, recorder):
        """The assigned courier can give back an accepted delivery."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        result = await service.cancel_by_courier(parties.courier.user_id, delivery.delivery_id)

        assert result.delivery.status == DeliveryStatus.CANCELED
        assert result.delivery.canceled_by == CanceledBy.COURIER
        assert result.delivery.canceled_at is not None
        await notifier.drain()
        assert recorder.sent[-1].kind == NotificationKind.DELIVERY_CANCELED_BY_COURIER
        assert recorder.sent[-1].user_id == parties.merchant.user_id

    @pytest.mark.asyncio
    async def test_merchant_cancel_available_uses_default_reason(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))

        result = await service.cancel_by_merchant(parties.merchant.user_id, delivery.delivery_id)

        assert result.delivery.status == DeliveryStatus.CANCELED
        assert result.delivery.canceled_by == CanceledBy.MERCHANT
        assert result.delivery.cancel_reason == "Canceled by merchant"

    @pytest.mark.asyncio
    async def test_merchant_cancel_accepted_notifies_courier(
        self, service, parties, notifier, recorder
    ):
        """Canceling an accepted delivery tells the assigned courier."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        result = await service.cancel_by_merchant(
            parties.merchant.user_id, delivery.delivery_id, "Customer gave up"
        )

        assert result.delivery.cancel_reason == "Customer gave up"
        await notifier.drain()
        last = recorder.sent[-1]
        assert last.kind == NotificationKind.DELIVERY_CANCELED_BY_MERCHANT
        assert last.user_id == parties.courier.user_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("picked_up", [False, True])
    async def test_report_issue(self, service, parties, picked_up):
        """Issues can be reported on accepted and in-transit deliveries."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        if picked_up:
            await service.pickup(parties.courier.user_id, delivery.delivery_id)

        result = await service.report_issue(
            parties.courier.user_id, delivery.delivery_id, "  Flat tire  "
        )

        assert result.delivery.status == DeliveryStatus.ISSUE
        assert result.delivery.issue_reason == "Flat tire"
        assert result.delivery.issue_at is not None

    @pytest.mark.asyncio
    async def test_report_issue_requires_reason(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(InvalidInputError):
            await service.report_issue(parties.courier.user_id, delivery.delivery_id, "  ")


# =============================================================================
# Exclusive accept
# =============================================================================


class TestExclusiveAccept:
    """Tests that at most one courier ever wins an accept."""

    @pytest.mark.asyncio
    async def test_concurrent_accepts_have_exactly_one_winner(
        self, session_factory, make_service, parties, notifier, recorder
    ):
        """Simultaneous accepts from many couriers: one success, the rest 'already taken'."""
        async with session_factory() as session:
            delivery = await make_service(session).create(
                parties.merchant.user_id, make_input(parties)
            )
            extra = [await create_user(session, Role.COURIER) for _ in range(6)]
            await session.commit()

        couriers = [parties.courier, parties.other_courier, *extra]

        async def attempt(courier):
            async with session_factory() as session:
                try:
                    return await make_service(session).accept(
                        courier.user_id, delivery.delivery_id
                    )
                except ConflictError as e:
                    return e

        outcomes = await asyncio.gather(*(attempt(c) for c in couriers))

        winners = [o for o in outcomes if isinstance(o, TransitionResult)]
        losers = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(winners) == 1
        assert len(losers) == len(couriers) - 1
        assert all(e.reason == "already_taken" for e in losers)

        stored = await reload(session_factory, delivery.delivery_id)
        assert stored.status == DeliveryStatus.ACCEPTED
        assert stored.courier_id == winners[0].delivery.courier_id

        await notifier.drain()
        accepted = [m for m in recorder.sent if m.kind == NotificationKind.DELIVERY_ACCEPTED]
        assert len(accepted) == 1

    @pytest.mark.asyncio
    async def test_second_accept_is_already_taken(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.accept(parties.other_courier.user_id, delivery.delivery_id)

        assert exc_info.value.reason == "already_taken"
        assert exc_info.value.current_status == DeliveryStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_accept_canceled_is_not_available(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.cancel_by_merchant(parties.merchant.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.accept(parties.courier.user_id, delivery.delivery_id)

        assert exc_info.value.reason == "not_available"


# =============================================================================
# Monotonic transitions and actor binding
# =============================================================================


class TestGuards:
    """Tests that transitions only follow graph edges and bind to their actor."""

    @pytest.mark.asyncio
    async def test_cannot_complete_available(self, service, parties):
        """No skipping AVAILABLE -> COMPLETED."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))

        with pytest.raises(ConflictError) as exc_info:
            await service.complete(parties.courier.user_id, delivery.delivery_id)

        assert exc_info.value.current_status == DeliveryStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_cannot_pickup_twice(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError):
            await service.pickup(parties.courier.user_id, delivery.delivery_id)

    @pytest.mark.asyncio
    async def test_merchant_cannot_cancel_in_transit(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError):
            await service.cancel_by_merchant(parties.merchant.user_id, delivery.delivery_id)

    @pytest.mark.asyncio
    async def test_courier_cannot_cancel_after_pickup(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError):
            await service.cancel_by_courier(parties.courier.user_id, delivery.delivery_id)

    @pytest.mark.asyncio
    async def test_terminal_states_reject_everything(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)
        await service.complete(parties.courier.user_id, delivery.delivery_id)

        for call in (
            service.pickup(parties.courier.user_id, delivery.delivery_id),
            service.complete(parties.courier.user_id, delivery.delivery_id),
            service.report_issue(parties.courier.user_id, delivery.delivery_id, "late"),
            service.cancel_by_merchant(parties.merchant.user_id, delivery.delivery_id),
        ):
            with pytest.raises(ConflictError):
                await call

    @pytest.mark.asyncio
    async def test_other_courier_cannot_pickup(self, service, parties, session_factory):
        """A courier who did not accept cannot move the delivery."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ForbiddenError):
            await service.pickup(parties.other_courier.user_id, delivery.delivery_id)

        stored = await reload(session_factory, delivery.delivery_id)
        assert stored.status == DeliveryStatus.ACCEPTED
        assert stored.courier_id == parties.courier.user_id

    @pytest.mark.asyncio
    async def test_other_courier_cannot_complete_or_report(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ForbiddenError):
            await service.complete(parties.other_courier.user_id, delivery.delivery_id)
        with pytest.raises(ForbiddenError):
            await service.report_issue(parties.other_courier.user_id, delivery.delivery_id, "x")

    @pytest.mark.asyncio
    async def test_other_merchant_cannot_cancel(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))

        with pytest.raises(ForbiddenError):
            await service.cancel_by_merchant(parties.other_merchant.user_id, delivery.delivery_id)

    def test_transition_graph(self):
        """The graph allows the abandonment revert and the admin close of ISSUE."""
        service = DeliveryLifecycleService(MagicMock(), LifecycleSettings())
        assert service.is_valid_transition(DeliveryStatus.AVAILABLE, DeliveryStatus.ACCEPTED)
        assert service.is_valid_transition(DeliveryStatus.ACCEPTED, DeliveryStatus.AVAILABLE)
        assert service.is_valid_transition(DeliveryStatus.PICKED_UP, DeliveryStatus.ISSUE)
        assert not service.is_valid_transition(DeliveryStatus.AVAILABLE, DeliveryStatus.COMPLETED)
        assert not service.is_valid_transition(DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELED)
        assert service.is_valid_transition(DeliveryStatus.ISSUE, DeliveryStatus.CANCELED)
        assert not service.is_valid_transition(DeliveryStatus.ISSUE, DeliveryStatus.AVAILABLE)
        assert not service.is_valid_transition(DeliveryStatus.ISSUE, DeliveryStatus.COMPLETED)

        for status in (DeliveryStatus.COMPLETED, DeliveryStatus.CANCELED):
            assert service.is_terminal_state(status)
        assert not service.is_terminal_state(DeliveryStatus.ISSUE)
        assert not service.is_terminal_state(DeliveryStatus.ACCEPTED)


# =============================================================================
# Failure classification
# =============================================================================


class TestFailureClassification:
    """Tests for the not found / conflict / forbidden precedence."""

    @pytest.mark.asyncio
    async def test_unknown_delivery_is_not_found(self, service, parties):
        missing = uuid4()
        for call in (
            service.accept(parties.courier.user_id, missing),
            service.pickup(parties.courier.user_id, missing),
            service.cancel_by_merchant(parties.merchant.user_id, missing),
            service.cancel_by_admin(missing),
        ):
            with pytest.raises(NotFoundError):
                await call

    @pytest.mark.asyncio
    async def test_wrong_status_wins_over_wrong_actor(self, service, parties):
        """A delivery in the wrong status reports Conflict even for the wrong actor."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))

        with pytest.raises(ConflictError):
            await service.pickup(parties.other_courier.user_id, delivery.delivery_id)

    @pytest.mark.asyncio
    async def test_pickup_after_abandonment_revert_is_conflict(
        self, session, service, parties, lifecycle_settings
    ):
        """A courier racing the revert sweep loses cleanly."""
        from entregahub.worker.cleanup import DeliveryCleanupService

        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        cleanup = DeliveryCleanupService(session, lifecycle_settings)
        report = await cleanup.run_sweeps(now=T0 + timedelta(minutes=46))
        assert report.reverted == 1

        with pytest.raises(ConflictError) as exc_info:
            await service.pickup(parties.courier.user_id, delivery.delivery_id)
        assert exc_info.value.current_status == DeliveryStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_rejected_transition_leaves_row_untouched(
        self, service, parties, session_factory
    ):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        before = await reload(session_factory, delivery.delivery_id)

        with pytest.raises(ConflictError):
            await service.complete(parties.courier.user_id, delivery.delivery_id)

        after = await reload(session_factory, delivery.delivery_id)
        assert after.status == before.status
        assert after.updated_at == before.updated_at


# =============================================================================
# Admin cancellation
# =============================================================================


class TestAdminCancel:
    """Tests for cancelByAdmin."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("accepted", [False, True])
    async def test_admin_cancels_before_pickup(self, service, parties, accepted):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        if accepted:
            await service.accept(parties.courier.user_id, delivery.delivery_id)

        result = await service.cancel_by_admin(delivery.delivery_id, parties.admin.user_id)

        assert result.new_status == DeliveryStatus.CANCELED
        assert result.delivery.canceled_by is None
        assert result.delivery.cancel_reason == ADMIN_CANCEL_REASON

    @pytest.mark.asyncio
    async def test_admin_cancel_in_transit_becomes_issue(
        self, service, parties, notifier, recorder
    ):
        """Goods already picked up are flagged instead of canceled."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)

        result = await service.cancel_by_admin(delivery.delivery_id)

        assert result.new_status == DeliveryStatus.ISSUE
        assert result.delivery.status == DeliveryStatus.ISSUE
        assert result.delivery.issue_reason == ADMIN_IN_TRANSIT_ISSUE_REASON
        assert result.delivery.canceled_at is None

        await notifier.drain()
        notified = {
            m.user_id for m in recorder.sent if m.kind == NotificationKind.DELIVERY_CANCELED_BY_ADMIN
        }
        assert notified == {parties.merchant.user_id, parties.courier.user_id}

    @pytest.mark.asyncio
    async def test_admin_closes_issue_as_canceled(self, service, parties, session_factory):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)
        await service.report_issue(parties.courier.user_id, delivery.delivery_id, "Flat tire")

        result = await service.cancel_by_admin(delivery.delivery_id, parties.admin.user_id)

        assert result.new_status == DeliveryStatus.CANCELED
        assert result.from_statuses == (
            DeliveryStatus.AVAILABLE,
            DeliveryStatus.ACCEPTED,
            DeliveryStatus.ISSUE,
        )
        stored = await reload(session_factory, delivery.delivery_id)
        assert stored.status == DeliveryStatus.CANCELED
        assert stored.canceled_by is None
        assert stored.cancel_reason == ADMIN_CANCEL_REASON
        assert stored.issue_reason == "Flat tire"
        assert stored.courier_id == parties.courier.user_id

    @pytest.mark.asyncio
    async def test_admin_cannot_cancel_completed(self, service, parties, session_factory):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)
        await service.complete(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.cancel_by_admin(delivery.delivery_id)

        assert exc_info.value.current_status == DeliveryStatus.COMPLETED
        stored = await reload(session_factory, delivery.delivery_id)
        assert stored.status == DeliveryStatus.COMPLETED
        assert stored.canceled_at is None

    @pytest.mark.asyncio
    async def test_admin_cannot_cancel_twice(self, service, parties):
        """The original canceler is kept."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.cancel_by_merchant(parties.merchant.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.cancel_by_admin(delivery.delivery_id)

        assert exc_info.value.current_status == DeliveryStatus.CANCELED

    @pytest.mark.asyncio
    async def test_loaded_delivery_readable_after_rejection(self, service, parties):
        """A rejected transition leaves rows held by the caller loaded."""
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)
        await service.pickup(parties.courier.user_id, delivery.delivery_id)
        await service.complete(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ConflictError):
            await service.cancel_by_admin(delivery.delivery_id)
        with pytest.raises(ConflictError):
            await service.pickup(parties.courier.user_id, delivery.delivery_id)

        assert delivery.pickup_address == "Rua Augusta 100"
        assert delivery.merchant_id == parties.merchant.user_id
        assert delivery.business.business_id == parties.business.business_id


# =============================================================================
# Notifications
# =============================================================================


class TestNotifications:
    """Tests that notification delivery never changes a transition outcome."""

    @pytest.mark.asyncio
    async def test_failing_notifier_does_not_fail_transitions(
        self, session, lifecycle_settings, parties, clock, session_factory
    ):
        failing = RecordingProvider(fail=True)
        notifier = Notifier([failing], RetryPolicy(max_retries=1, retry_delay=0, timeout=1.0))
        service = DeliveryLifecycleService(session, lifecycle_settings, notifier, clock=clock)

        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        result = await service.accept(parties.courier.user_id, delivery.delivery_id)
        await notifier.drain()

        assert result.delivery.status == DeliveryStatus.ACCEPTED
        assert failing.attempts == 2
        stored = await reload(session_factory, delivery.delivery_id)
        assert stored.status == DeliveryStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_service_without_notifier(self, session, lifecycle_settings, parties, clock):
        service = DeliveryLifecycleService(session, lifecycle_settings, None, clock=clock)

        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        result = await service.accept(parties.courier.user_id, delivery.delivery_id)

        assert result.delivery.status == DeliveryStatus.ACCEPTED


# =============================================================================
# Reads, redaction and priority offers
# =============================================================================


class TestReads:
    """Tests for listings, get_one authorization and contact redaction."""

    @pytest.mark.asyncio
    async def test_available_listing_hides_contacts(self, service, parties):
        """Couriers browsing open offers do not see merchant or business phones."""
        await service.create(parties.merchant.user_id, make_input(parties))

        items = await service.list_available(parties.courier.user_id)

        assert len(items) == 1
        assert items[0]["merchant_phone"] is None
        assert items[0]["business_phone"] is None
        assert items[0]["business_name"] == "Padaria Central"
        assert items[0]["pickup_address"] == "Rua Augusta 100"

    @pytest.mark.asyncio
    async def test_assigned_courier_sees_contacts(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        view = await service.get_one(parties.courier.user_id, Role.COURIER, delivery.delivery_id)
        active = await service.list_active(parties.courier.user_id)

        assert view["merchant_phone"] == parties.merchant.phone_e164
        assert view["business_phone"] == parties.business.phone_e164
        assert [d["id"] for d in active] == [str(delivery.delivery_id)]
        assert active[0]["merchant_phone"] == parties.merchant.phone_e164

    @pytest.mark.asyncio
    async def test_accepted_delivery_leaves_available_listing(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        assert await service.list_available(parties.other_courier.user_id) == []

    @pytest.mark.asyncio
    async def test_other_courier_cannot_view_assigned_delivery(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))
        await service.accept(parties.courier.user_id, delivery.delivery_id)

        with pytest.raises(ForbiddenError):
            await service.get_one(
                parties.other_courier.user_id, Role.COURIER, delivery.delivery_id
            )

    @pytest.mark.asyncio
    async def test_merchant_views(self, service, parties, clock):
        first = await service.create(parties.merchant.user_id, make_input(parties))
        clock.advance(minutes=1)
        second = await service.create(parties.merchant.user_id, make_input(parties))

        items = await service.list_for_merchant(parties.merchant.user_id)
        assert [d["id"] for d in items] == [str(second.delivery_id), str(first.delivery_id)]
        assert await service.list_for_merchant(parties.other_merchant.user_id) == []

        view = await service.get_one(parties.merchant.user_id, Role.MERCHANT, first.delivery_id)
        assert view["merchant_phone"] == parties.merchant.phone_e164

        with pytest.raises(ForbiddenError):
            await service.get_one(
                parties.other_merchant.user_id, Role.MERCHANT, first.delivery_id
            )

    @pytest.mark.asyncio
    async def test_admin_sees_everything(self, service, parties):
        delivery = await service.create(parties.merchant.user_id, make_input(parties))

        view = await service.get_one(parties.admin.user_id, Role.ADMIN, delivery.delivery_id)

        assert view["merchant_phone"] == parties.merchant.phone_e164

    @pytest.mark.asyncio
    async def test_get_unknown_is_not_found(self, service, parties):
        with pytest.raises(NotFoundError):
            await service.get_one(parties.admin.user_id, Role.ADMIN, uuid4())


class TestPriorityOffer:
    """Tests for offers reserved to a preferred courier."""

    @pytest.mark.asyncio
    async def test_hidden_from_others_until_window_lapses(self, service, parties, clock):
        delivery = await service.create(
            parties.merchant.user_id,
            make_input(parties, preferred_courier_id=parties.courier.user_id),
        )

        preferred = await service.list_available(parties.courier.user_id)
        assert [d["id"] for d in preferred] == [str(delivery.delivery_id)]
        assert await service.list_available(parties.other_courier.user_id) == []

        clock.advance(minutes=31)
        others = await service.list_available(parties.other_courier.user_id)
        assert [d["id"] for d in others] == [str(delivery.delivery_id)]

    @pytest.mark.asyncio
    async def test_other_courier_cannot_accept_during_window(self, service, parties, clock):
        delivery = await service.create(
            parties.merchant.user_id,
            make_input(parties, preferred_courier_id=parties.courier.user_id),
        )

        with pytest.raises(ConflictError) as exc_info:
            await service.accept(parties.other_courier.user_id, delivery.delivery_id)
        assert exc_info.value.reason == "reserved"

        with pytest.raises(ForbiddenError):
            await service.get_one(
                parties.other_courier.user_id, Role.COURIER, delivery.delivery_id
            )

        clock.advance(minutes=30)
        result = await service.accept(parties.other_courier.user_id, delivery.delivery_id)
        assert result.delivery.courier_id == parties.other_courier.user_id

    @pytest.mark.asyncio
    async def test_preferred_courier_accepts_during_window(self, service, parties):
        delivery = await service.create(
            parties.merchant.user_id,
            make_input(parties, preferred_courier_id=parties.courier.user_id),
        )

        result = await service.accept(parties.courier.user_id, delivery.delivery_id)

        assert result.delivery.courier_id == parties.courier.user_id

    @pytest.mark.asyncio
    async def test_reservation_without_deadline_is_open(self, session, service, parties):
        """A preferred courier without preferred_until does not hide the offer."""
        delivery = await create_delivery(
            session,
            parties.merchant,
            parties.business,
            preferred_courier_id=parties.courier.user_id,
            preferred_until=None,
        )
        await session.commit()

        items = await service.list_available(parties.other_courier.user_id)
        assert [d["id"] for d in items] == [str(delivery.delivery_id)]
