"""
Service tests for stage actions and rider assignment.

Run against in-memory SQLite so the conditional UPDATE, the audit insert and
the commit boundaries are exercised for real.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from src.domain.enums import (
    ActingParty,
    AssignmentRole,
    BookingStatus,
    DeliveryType,
    ServiceType,
    Stage,
    StageStatus,
)
from src.domain.errors import (
    BookingNotFound,
    InvalidStageConfiguration,
    NoRiderSelected,
    RecordStoreUnavailable,
    ReloadFailed,
    RiderNotFound,
    StageActionMismatch,
    StaleState,
)
from src.infrastructure.models import BookingModel, RiderAssignmentModel
from src.infrastructure.repositories import BookingRepository
from src.services.booking_workflow import BookingWorkflow
from src.services.rider_assignment import RiderAssignmentService
from tests.conftest import assert_stage_invariant


def _entry(booking, stage):
    return booking.tracking.stages[booking.tracking.index_of(stage)]


async def _audit_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(RiderAssignmentModel))


@pytest.fixture
def workflow(db_session, notifier):
    return BookingWorkflow(db_session, notifier)


@pytest.fixture
def assignments(db_session, notifier):
    return RiderAssignmentService(
        db_session, notifier, assigned_by="admin", otp_source=lambda: "4821"
    )


# ── Stage actions ─────────────────────────────────────────────────────


class TestStageActions:
    @pytest.mark.asyncio
    async def test_admin_starts_cleaning_after_quality_check(self, workflow, add_booking, notifier):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)

        booking = await workflow.perform_action(booking_id, ActingParty.ADMIN)

        assert booking.tracking.current_stage == "cleaning_started"
        assert booking.status is BookingStatus.IN_PROGRESS
        assert _entry(booking, Stage.QUALITY_CHECK).status is StageStatus.COMPLETED
        assert _entry(booking, Stage.QUALITY_CHECK).completed_at is not None
        assert _entry(booking, Stage.CLEANING_STARTED).status is StageStatus.IN_PROGRESS
        assert _entry(booking, Stage.CLEANING_STARTED).started_at is not None
        assert booking.stage_version == 1
        assert notifier.successes == ["Stage updated successfully!"]
        assert notifier.changes == [(booking_id, "cleaning_started")]

    @pytest.mark.asyncio
    async def test_rider_delivers_and_booking_completes(self, workflow, add_booking, notifier):
        booking_id = await add_booking(stage=Stage.OUT_FOR_DELIVERY)

        booking = await workflow.perform_action(booking_id, ActingParty.RIDER)

        assert booking.tracking.current_stage == "delivered"
        assert booking.status is BookingStatus.COMPLETED
        delivered = _entry(booking, Stage.DELIVERED)
        assert delivered.status is StageStatus.COMPLETED
        assert delivered.completed_at is not None
        assert _entry(booking, Stage.OUT_FOR_DELIVERY).status is StageStatus.COMPLETED
        assert notifier.successes == ["Action completed successfully!"]

    @pytest.mark.asyncio
    async def test_system_confirms_booking(self, workflow, add_booking, notifier):
        booking_id = await add_booking(
            ServiceType.HELMET_REPAIR, DeliveryType.MANUAL_PICKUP, status=BookingStatus.PENDING
        )

        booking = await workflow.perform_action(booking_id, ActingParty.SYSTEM)

        assert booking.tracking.current_stage == "ready_for_service"
        assert booking.status is BookingStatus.IN_PROGRESS
        assert notifier.successes == ["Booking confirmed"]

    @pytest.mark.asyncio
    async def test_ready_for_pickup_sets_status(self, workflow, add_booking):
        booking_id = await add_booking(
            delivery_type=DeliveryType.MANUAL_PICKUP, stage=Stage.QUALITY_ASSURANCE
        )
        booking = await workflow.perform_action(booking_id, ActingParty.ADMIN)
        assert booking.status is BookingStatus.READY_FOR_PICKUP

    @pytest.mark.asyncio
    async def test_wrong_party_is_rejected(self, workflow, add_booking, notifier):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)

        with pytest.raises(StageActionMismatch):
            await workflow.perform_action(booking_id, ActingParty.RIDER)

        booking = await workflow.get_booking(booking_id)
        assert booking.tracking.current_stage == "quality_check"
        assert booking.stage_version == 0
        assert notifier.errors == ["Action not allowed at the current stage"]
        assert notifier.successes == []

    @pytest.mark.asyncio
    async def test_assignment_stage_needs_assign_call(self, workflow, add_booking):
        booking_id = await add_booking(stage=Stage.PICKUP_SCHEDULED)
        with pytest.raises(StageActionMismatch, match="pickup rider assignment"):
            await workflow.perform_action(booking_id, ActingParty.ADMIN)

    @pytest.mark.asyncio
    async def test_terminal_stage_takes_no_action(self, workflow, add_booking):
        booking_id = await add_booking(
            delivery_type=DeliveryType.MANUAL_PICKUP,
            stage=Stage.COMPLETED,
            status=BookingStatus.COMPLETED,
        )
        with pytest.raises(StageActionMismatch, match="already complete"):
            await workflow.perform_action(booking_id, ActingParty.SYSTEM)

    @pytest.mark.asyncio
    async def test_missing_target_entry(self, workflow, add_booking, notifier):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK, drop=[Stage.CLEANING_STARTED])

        with pytest.raises(InvalidStageConfiguration):
            await workflow.perform_action(booking_id, ActingParty.ADMIN)

        booking = await workflow.get_booking(booking_id)
        assert booking.tracking.current_stage == "quality_check"
        assert _entry(booking, Stage.QUALITY_CHECK).status is StageStatus.IN_PROGRESS
        assert notifier.errors == ["Invalid stage configuration"]

    @pytest.mark.asyncio
    async def test_unknown_booking(self, workflow, notifier):
        with pytest.raises(BookingNotFound):
            await workflow.perform_action("nope", ActingParty.ADMIN)
        assert notifier.errors == ["Booking not found"]

    @pytest.mark.asyncio
    async def test_expected_stage_guards_against_double_click(self, workflow, add_booking):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        await workflow.perform_action(booking_id, ActingParty.ADMIN, expected_stage="quality_check")

        with pytest.raises(StaleState):
            await workflow.perform_action(
                booking_id, ActingParty.ADMIN, expected_stage="quality_check"
            )

        booking = await workflow.get_booking(booking_id)
        assert booking.tracking.current_stage == "cleaning_started"

    @pytest.mark.asyncio
    async def test_stale_copy_cannot_overwrite(self, workflow, add_booking, notifier):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        stale = await workflow.get_booking(booking_id)
        await workflow.perform_action(booking_id, ActingParty.ADMIN)

        with pytest.raises(StaleState):
            await workflow.advance(stale, Stage.CLEANING_STARTED, ActingParty.ADMIN)

        booking = await workflow.get_booking(booking_id)
        assert booking.tracking.current_stage == "cleaning_started"
        assert booking.stage_version == 1
        assert notifier.successes == ["Stage updated successfully!"]

    @pytest.mark.asyncio
    async def test_unknown_tracking_keys_survive_writes(self, workflow, add_booking, db_session):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        model = await db_session.get(BookingModel, booking_id)
        model.tracking = {**model.tracking, "estimatedDelivery": "2026-02-03"}
        await db_session.commit()

        await workflow.perform_action(booking_id, ActingParty.ADMIN)

        model = await db_session.get(BookingModel, booking_id, populate_existing=True)
        assert model.tracking["estimatedDelivery"] == "2026-02-03"
        assert model.helmet_details == {"brand": "Studds"}

    @pytest.mark.asyncio
    async def test_reads_are_repeatable(self, workflow, add_booking):
        booking_id = await add_booking(stage=Stage.QUALITY_ASSURANCE)
        first = await workflow.get_booking(booking_id)
        second = await workflow.get_booking(booking_id)
        assert first.tracking.to_document() == second.tracking.to_document()
        assert first.status is second.status

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, workflow, add_booking, db_session, notifier, monkeypatch):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        monkeypatch.setattr(
            db_session,
            "execute",
            AsyncMock(side_effect=OperationalError("UPDATE bookings", {}, Exception("disk I/O error"))),
        )

        with pytest.raises(RecordStoreUnavailable):
            await workflow.perform_action(booking_id, ActingParty.ADMIN)

        assert notifier.errors == ["Record store unavailable"]
        assert notifier.successes == []

    @pytest.mark.asyncio
    async def test_store_failure_with_dead_connection(self, workflow, add_booking, db_session, notifier, monkeypatch):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        dropped = OperationalError("UPDATE bookings", {}, Exception("connection reset"))
        monkeypatch.setattr(db_session, "execute", AsyncMock(side_effect=dropped))
        monkeypatch.setattr(db_session, "rollback", AsyncMock(side_effect=dropped))

        with pytest.raises(RecordStoreUnavailable):
            await workflow.perform_action(booking_id, ActingParty.ADMIN)

        db_session.rollback.assert_awaited()
        assert notifier.errors == ["Record store unavailable"]

    @pytest.mark.asyncio
    async def test_change_saved_but_reload_fails(self, workflow, add_booking, db_session, notifier, monkeypatch):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        booking = await workflow.get_booking(booking_id)
        monkeypatch.setattr(
            workflow.bookings, "get", AsyncMock(side_effect=RecordStoreUnavailable())
        )

        with pytest.raises(ReloadFailed):
            await workflow.advance(booking, Stage.CLEANING_STARTED, ActingParty.ADMIN)

        assert notifier.successes == ["Stage updated successfully!"]
        assert notifier.errors == ["Change saved, but the booking could not be reloaded"]
        stored = await BookingRepository(db_session).get(booking_id)
        assert stored.tracking.current_stage == "cleaning_started"
        assert stored.stage_version == 1

    @pytest.mark.asyncio
    async def test_advance_only_to_next_stage(self, workflow, add_booking, notifier):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        booking = await workflow.get_booking(booking_id)

        with pytest.raises(StageActionMismatch, match="quality_assurance"):
            await workflow.advance(booking, Stage.QUALITY_ASSURANCE, ActingParty.ADMIN)

        booking = await workflow.get_booking(booking_id)
        assert booking.tracking.current_stage == "quality_check"
        assert booking.stage_version == 0
        assert_stage_invariant(booking.tracking)
        assert notifier.successes == []


# ── Rider assignment ──────────────────────────────────────────────────


class TestAssignment:
    @pytest.mark.asyncio
    async def test_pickup_assignment(self, assignments, add_booking, add_rider, db_session, notifier):
        booking_id = await add_booking(stage=Stage.PICKUP_SCHEDULED, status=BookingStatus.PENDING)
        rider_id = await add_rider(name="Priya Patel", phone_number="+919800000002")

        result = await assignments.assign(booking_id, rider_id)
        booking = result.booking

        assert booking.tracking.current_stage == "out_for_pickup"
        assert booking.status is BookingStatus.ASSIGNED_FOR_PICKUP
        assert _entry(booking, Stage.PICKUP_SCHEDULED).status is StageStatus.COMPLETED
        assert _entry(booking, Stage.OUT_FOR_PICKUP).status is StageStatus.IN_PROGRESS
        assert booking.pickup_rider_id == rider_id
        assert booking.pickup_rider.rider_name == "Priya Patel"
        assert booking.pickup_rider.rider_phone == "+919800000002"
        assert booking.pickup_rider.assigned_by == "admin"
        assert booking.pickup_rider.otp == "4821"
        assert booking.delivery_rider is None
        assert booking.is_available_for_pickup is False
        assert booking.stage_version == 1

        assert result.assignment.assignment_type is AssignmentRole.PICKUP
        assert result.assignment.otp == "4821"
        assert result.assignment.customer_name == "Karan Joshi"
        assert await _audit_count(db_session) == 1

        assert notifier.successes == ["Pickup rider assigned successfully!"]
        assert notifier.changes == [(booking_id, "out_for_pickup")]

    @pytest.mark.asyncio
    async def test_delivery_assignment(self, assignments, add_booking, add_rider, notifier):
        booking_id = await add_booking(ServiceType.HELMET_REPAIR, stage=Stage.READY_FOR_DELIVERY)
        rider_id = await add_rider()

        result = await assignments.assign(booking_id, rider_id)

        assert result.booking.tracking.current_stage == "out_for_delivery"
        assert result.booking.status is BookingStatus.ASSIGNED_FOR_DELIVERY
        assert result.booking.delivery_rider_id == rider_id
        assert result.booking.delivery_rider.otp == "4821"
        assert result.booking.pickup_rider is None
        assert notifier.successes == ["Delivery rider assigned successfully!"]

    @pytest.mark.asyncio
    async def test_no_rider_selected(self, assignments, add_booking, db_session, notifier):
        booking_id = await add_booking(stage=Stage.PICKUP_SCHEDULED)

        with pytest.raises(NoRiderSelected):
            await assignments.assign(booking_id, None)

        booking = await BookingWorkflow(db_session, notifier).get_booking(booking_id)
        assert booking.tracking.current_stage == "pickup_scheduled"
        assert booking.pickup_rider is None
        assert await _audit_count(db_session) == 0
        assert notifier.errors == ["Please select a rider"]

    @pytest.mark.asyncio
    async def test_unknown_rider(self, assignments, add_booking, db_session):
        booking_id = await add_booking(stage=Stage.PICKUP_SCHEDULED)
        with pytest.raises(RiderNotFound):
            await assignments.assign(booking_id, "ghost")
        assert await _audit_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_unknown_booking(self, assignments, add_rider):
        rider_id = await add_rider()
        with pytest.raises(BookingNotFound):
            await assignments.assign("nope", rider_id)

    @pytest.mark.asyncio
    async def test_stage_without_assignment(self, assignments, add_booking, add_rider, db_session):
        booking_id = await add_booking(stage=Stage.QUALITY_CHECK)
        rider_id = await add_rider()

        with pytest.raises(StageActionMismatch):
            await assignments.assign(booking_id, rider_id)
        assert await _audit_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_missing_out_stage_entry(self, assignments, add_booking, add_rider, db_session, notifier):
        booking_id = await add_booking(stage=Stage.PICKUP_SCHEDULED, drop=[Stage.OUT_FOR_PICKUP])
        rider_id = await add_rider()

        with pytest.raises(InvalidStageConfiguration, match="out_for_pickup"):
            await assignments.assign(booking_id, rider_id)

        booking = await BookingWorkflow(db_session, notifier).get_booking(booking_id)
        assert booking.tracking.current_stage == "pickup_scheduled"
        assert booking.stage_version == 0
        assert booking.pickup_rider is None
        assert booking.is_available_for_pickup is True
        assert await _audit_count(db_session) == 0
        assert notifier.errors == ["Invalid stage configuration"]

    @pytest.mark.asyncio
    async def test_second_assignment_for_same_leg_is_stale(self, assignments, add_booking, add_rider, db_session):
        booking_id = await add_booking(stage=Stage.PICKUP_SCHEDULED)
        rider_id = await add_rider()
        await assignments.assign(booking_id, rider_id, expected_stage="pickup_scheduled")

        with pytest.raises(StaleState):
            await assignments.assign(booking_id, rider_id, expected_stage="pickup_scheduled")
        assert await _audit_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_history_newest_first(self, assignments, workflow, add_booking, add_rider):
        booking_id = await add_booking(ServiceType.HELMET_REPAIR, stage=Stage.PICKUP_SCHEDULED)
        pickup_rider = await add_rider(name="Aarav Sharma")
        delivery_rider = await add_rider(name="Sneha Gupta", phone_number="+919800000004")

        await assignments.assign(booking_id, pickup_rider)
        for party in [ActingParty.RIDER, ActingParty.RIDER] + [ActingParty.ADMIN] * 4:
            await workflow.perform_action(booking_id, party)
        await assignments.assign(booking_id, delivery_rider)

        history = await assignments.assignment_history(booking_id)
        assert [a.assignment_type for a in history] == [
            AssignmentRole.DELIVERY,
            AssignmentRole.PICKUP,
        ]
        assert [a.rider_name for a in history] == ["Sneha Gupta", "Aarav Sharma"]

    @pytest.mark.asyncio
    async def test_history_of_unknown_booking(self, assignments):
        with pytest.raises(BookingNotFound):
            await assignments.assignment_history("nope")

    @pytest.mark.asyncio
    async def test_rider_search(self, assignments, add_rider):
        await add_rider(name="Aarav Sharma", phone_number="+919800000001", email="aarav@example.com")
        await add_rider(name="Priya Patel", phone_number="+919800000002", email="priya@example.com")

        assert [r.name for r in await assignments.list_riders()] == ["Aarav Sharma", "Priya Patel"]
        assert [r.name for r in await assignments.list_riders("patel")] == ["Priya Patel"]
        assert await assignments.list_riders("nobody") == []


# ── End to end ────────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_doorstep_washing_from_confirmation_to_delivery(
        self, workflow, assignments, add_booking, add_rider, notifier
    ):
        booking_id = await add_booking(status=BookingStatus.PENDING)
        rider_id = await add_rider()

        booking = await workflow.perform_action(booking_id, ActingParty.SYSTEM)
        assert booking.tracking.current_stage == "pickup_scheduled"

        booking = (await assignments.assign(booking_id, rider_id)).booking
        assert_stage_invariant(booking.tracking)

        steps = [ActingParty.RIDER, ActingParty.RIDER] + [ActingParty.ADMIN] * 4
        for party in steps:
            booking = await workflow.perform_action(booking_id, party)
            assert_stage_invariant(booking.tracking)
        assert booking.tracking.current_stage == "ready_for_delivery"
        assert booking.status is BookingStatus.READY_FOR_DELIVERY

        booking = (await assignments.assign(booking_id, rider_id)).booking
        assert booking.status is BookingStatus.ASSIGNED_FOR_DELIVERY

        booking = await workflow.perform_action(booking_id, ActingParty.RIDER)
        assert booking.tracking.current_stage == "delivered"
        assert booking.status is BookingStatus.COMPLETED
        assert all(e.status is StageStatus.COMPLETED for e in booking.tracking.stages)
        assert booking.stage_version == 10
        assert notifier.errors == []

    @pytest.mark.asyncio
    async def test_manual_pickup_repair_needs_only_admin(self, workflow, add_booking):
        booking_id = await add_booking(ServiceType.HELMET_REPAIR, DeliveryType.MANUAL_PICKUP)

        booking = await workflow.perform_action(booking_id, ActingParty.SYSTEM)
        while booking.tracking.current_stage != "completed":
            booking = await workflow.perform_action(booking_id, ActingParty.ADMIN)
            assert_stage_invariant(booking.tracking)

        assert booking.status is BookingStatus.COMPLETED
        assert booking.stage_version == 8
