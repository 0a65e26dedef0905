"""Service-level tests for the request lifecycle and driver matching."""

from __future__ import annotations

from datetime import timedelta

import pytest

from ambulance_dispatch.domain.enums import RequestStatus
from ambulance_dispatch.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ambulance_dispatch.services.lifecycle import LifecycleService
from ambulance_dispatch.services.matching import MatchingService


@pytest.fixture
def lifecycle(db_session, clock) -> LifecycleService:
    return LifecycleService(db_session, clock=clock)


@pytest.fixture
def matching(db_session, clock) -> MatchingService:
    return MatchingService(db_session, clock=clock)


async def _new(lifecycle, requester="R1", pickup="123 Main St", destination="City Hospital"):
    return await lifecycle.create(requester, pickup, destination, priority="high")


def _naive(ts):
    return ts.replace(tzinfo=None)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_is_pending_and_unassigned(self, lifecycle):
        req = await _new(lifecycle)
        assert req.id
        assert req.status == RequestStatus.PENDING
        assert req.driver_ref is None

        stored = await lifecycle.get(req.id)
        assert stored.pickup_text == "123 Main St"
        assert stored.priority.value == "high"

    @pytest.mark.asyncio
    async def test_create_without_destination_fails(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create("R1", "123 Main St", "")
        assert await lifecycle.list_for_requester("R1") == []

    @pytest.mark.asyncio
    async def test_get_missing_request(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.get("does-not-exist")


class TestClaim:
    @pytest.mark.asyncio
    async def test_claim_assigns_driver_and_eta(self, lifecycle, clock):
        req = await _new(lifecycle)
        claimed = await lifecycle.claim(req.id, "D1", "Near Main St")
        claimed_at = clock.last

        assert claimed.status == RequestStatus.ACCEPTED
        assert claimed.driver_ref == "D1"
        assert claimed.location_text == "Near Main St"
        assert _naive(claimed.estimated_arrival) == _naive(claimed_at + timedelta(minutes=10))
        assert _naive(claimed.updated_at) == _naive(claimed_at)

    @pytest.mark.asyncio
    async def test_second_claim_conflicts(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "Near Main St")

        with pytest.raises(ConflictError):
            await lifecycle.claim(req.id, "D2", "Elsewhere")

        stored = await lifecycle.get(req.id)
        assert stored.driver_ref == "D1"
        assert stored.location_text == "Near Main St"

    @pytest.mark.asyncio
    async def test_claim_of_cancelled_request_conflicts(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.cancel(req.id, "R1")
        with pytest.raises(ConflictError):
            await lifecycle.claim(req.id, "D1", "here")

    @pytest.mark.asyncio
    async def test_custom_eta_offset(self, db_session, clock):
        service = LifecycleService(db_session, clock=clock, eta_offset=timedelta(minutes=4))
        req = await _new(service)
        claimed = await service.claim(req.id, "D1", "here")
        assert _naive(claimed.estimated_arrival) == _naive(clock.last + timedelta(minutes=4))


class TestAdvance:
    @pytest.mark.asyncio
    async def test_forward_then_backwards(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "Near Main St")

        en_route = await lifecycle.advance(req.id, "D1", RequestStatus.EN_ROUTE)
        assert en_route.status == RequestStatus.EN_ROUTE
        arrived = await lifecycle.advance(req.id, "D1", "arrived", "At the door")
        assert arrived.status == RequestStatus.ARRIVED
        assert arrived.location_text == "At the door"

        with pytest.raises(InvalidTransitionError):
            await lifecycle.advance(req.id, "D1", RequestStatus.EN_ROUTE)
        assert (await lifecycle.get(req.id)).status == RequestStatus.ARRIVED

    @pytest.mark.asyncio
    async def test_completion_stamps_completed_at(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "x")
        for status in ("en-route", "arrived", "completed"):
            done = await lifecycle.advance(req.id, "D1", status)
        assert done.status == RequestStatus.COMPLETED
        assert done.completed_at is not None

        with pytest.raises(InvalidTransitionError):
            await lifecycle.advance(req.id, "D1", RequestStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_other_driver_cannot_advance(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "x")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.advance(req.id, "D2", RequestStatus.EN_ROUTE)
        assert (await lifecycle.get(req.id)).status == RequestStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_skip_is_rejected(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "x")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.advance(req.id, "D1", RequestStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_rejected_advance_logs_status_value(self, lifecycle, caplog):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "x")
        with caplog.at_level("WARNING", logger="ambulance_dispatch.services.lifecycle"):
            with pytest.raises(InvalidTransitionError):
                await lifecycle.advance(req.id, "D1", RequestStatus.ARRIVED)
        assert "from accepted to arrived by D1" in caplog.text
        assert "RequestStatus" not in caplog.text


class TestCancel:
    @pytest.mark.asyncio
    async def test_requester_cancels_pending(self, lifecycle):
        req = await _new(lifecycle)
        cancelled = await lifecycle.cancel(req.id, "R1", "Found a taxi")
        assert cancelled.status == RequestStatus.CANCELLED
        assert cancelled.cancellation_reason == "Found a taxi"
        assert cancelled.cancelled_by == "R1"

    @pytest.mark.asyncio
    async def test_cancel_completed_conflicts_and_changes_nothing(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "x")
        for status in ("en-route", "arrived", "completed"):
            await lifecycle.advance(req.id, "D1", status)
        before = await lifecycle.get(req.id)

        with pytest.raises(ConflictError):
            await lifecycle.cancel(req.id, "R1", "too late")

        after = await lifecycle.get(req.id)
        assert after == before

    @pytest.mark.asyncio
    async def test_cancel_twice_conflicts(self, lifecycle):
        req = await _new(lifecycle)
        first = await lifecycle.cancel(req.id, "R1", "first")
        with pytest.raises(ConflictError):
            await lifecycle.cancel(req.id, "R1", "second")
        after = await lifecycle.get(req.id)
        assert after.cancellation_reason == "first"
        assert after.updated_at == first.updated_at


class TestUpdateLocation:
    @pytest.mark.asyncio
    async def test_update_keeps_status(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "Depot")
        moved = await lifecycle.update_location(req.id, "Junction 4", latitude=19.1, longitude=72.9)
        assert moved.status == RequestStatus.ACCEPTED
        assert moved.location_text == "Junction 4"
        assert moved.driver_latitude == pytest.approx(19.1)

    @pytest.mark.asyncio
    async def test_update_after_cancel_is_rejected(self, lifecycle):
        req = await _new(lifecycle)
        await lifecycle.claim(req.id, "D1", "Depot")
        await lifecycle.cancel(req.id, "D1")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.update_location(req.id, "Junction 4")
        assert (await lifecycle.get(req.id)).location_text == "Depot"


class TestListings:
    @pytest.mark.asyncio
    async def test_lists_by_requester_and_driver(self, lifecycle):
        a = await _new(lifecycle, requester="R1")
        b = await _new(lifecycle, requester="R1")
        await _new(lifecycle, requester="R2")
        await lifecycle.claim(a.id, "D1", "x")

        mine = await lifecycle.list_for_requester("R1")
        assert [r.id for r in mine] == [b.id, a.id]  # newest first
        assert [r.id for r in await lifecycle.list_for_driver("D1")] == [a.id]

    @pytest.mark.asyncio
    async def test_active_for_requester(self, lifecycle):
        req = await _new(lifecycle)
        assert await lifecycle.active_for_requester("R1") is None

        await lifecycle.claim(req.id, "D1", "x")
        active = await lifecycle.active_for_requester("R1")
        assert active is not None and active.id == req.id

        await lifecycle.cancel(req.id, "R1")
        assert await lifecycle.active_for_requester("R1") is None


class TestMatching:
    @pytest.mark.asyncio
    async def test_pending_pool_oldest_first(self, lifecycle, matching):
        first = await _new(lifecycle)
        second = await _new(lifecycle)
        third = await _new(lifecycle)
        await lifecycle.claim(second.id, "D9", "x")

        pool = await matching.list_pending()
        assert [r.id for r in pool] == [first.id, third.id]
        assert all(r.driver_ref is None for r in pool)

    @pytest.mark.asyncio
    async def test_unavailable_driver_sees_empty_pool(self, lifecycle, matching):
        await matching.register_driver("D1", is_available=True)
        await matching.register_driver("D2", is_available=True)
        req = await _new(lifecycle)

        assert [r.id for r in await matching.list_pending("D1")] == [req.id]

        await matching.toggle_availability("D1", False)
        assert await matching.list_pending("D1") == []
        assert [r.id for r in await matching.list_pending("D2")] == [req.id]

        stored = await lifecycle.get(req.id)
        assert stored.status == RequestStatus.PENDING
        assert stored.driver_ref is None

    @pytest.mark.asyncio
    async def test_toggle_does_not_touch_claimed_requests(self, lifecycle, matching):
        await matching.register_driver("D1", is_available=True)
        req = await _new(lifecycle)
        claimed = await lifecycle.claim(req.id, "D1", "x")

        await matching.toggle_availability("D1", False, location="Home")
        assert await lifecycle.get(req.id) == claimed
        assert (await matching.get_driver("D1")).current_location == "Home"

    @pytest.mark.asyncio
    async def test_unknown_driver(self, matching):
        assert await matching.list_pending("ghost") == []
        with pytest.raises(NotFoundError):
            await matching.toggle_availability("ghost", True)

    @pytest.mark.asyncio
    async def test_list_available_drivers(self, matching):
        await matching.register_driver("D1", is_available=True)
        await matching.register_driver("D2", is_available=False)
        await matching.register_driver("D3", is_available=True)
        assert [d.driver_ref for d in await matching.list_available_drivers()] == ["D1", "D3"]

    @pytest.mark.asyncio
    async def test_register_requires_ref(self, matching):
        with pytest.raises(ValidationError):
            await matching.register_driver("  ")
