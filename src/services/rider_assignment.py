"""
Rider Assignment Subsystem
==========================

Binds a rider to the pickup or delivery leg the booking is waiting on.
The leg is never chosen by the caller: ``pickup_scheduled`` takes a pickup
rider, ``ready_for_delivery`` a delivery rider.

One assignment writes, in a single transaction:

* the booking: rider snapshot (plus one-time code for doorstep orders),
  plain rider id, ``isAvailableforPickup = false``, tracking moved to
  ``out_for_pickup`` / ``out_for_delivery``, status ``assigned_for_*``
* one ``rider_assignments`` audit row

The booking UPDATE is conditional on the stage version that was read, so
two operators assigning at the same time cannot both win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .base import WorkflowService, ensure_stage, transition_fields
from src.config import settings
from src.domain.assignment import filter_riders, generate_otp, plan_assignment
from src.domain.entities import Booking, Rider, RiderAssignment
from src.domain.enums import AssignmentRole
from src.domain.errors import NoRiderSelected
from src.infrastructure.repositories import BookingRepository, RiderRepository, commit

logger = logging.getLogger(__name__)

RIDER_FIELDS: dict[AssignmentRole, tuple[str, str]] = {
    AssignmentRole.PICKUP: ("pickup_rider", "pickup_rider_id"),
    AssignmentRole.DELIVERY: ("delivery_rider", "delivery_rider_id"),
}


@dataclass(frozen=True)
class AssignmentResult:
    booking: Booking
    assignment: RiderAssignment


class RiderAssignmentService(WorkflowService):
    def __init__(
        self,
        session,
        notifier,
        assigned_by: str = settings.admin_identity,
        otp_source: Callable[[], str] = generate_otp,
        **kwargs,
    ):
        super().__init__(session, notifier, **kwargs)
        self.assigned_by = assigned_by
        self.otp_source = otp_source
        self.bookings = BookingRepository(session)
        self.riders = RiderRepository(session)

    async def list_riders(self, query: Optional[str] = None) -> list[Rider]:
        async with self.reported("rider roster"):
            riders = await self.riders.list_all()
        return filter_riders(riders, query)

    async def assignment_history(self, booking_id: str) -> list[RiderAssignment]:
        async with self.reported("assignment history", bookingId=booking_id):
            await self.bookings.get(booking_id)
            return await self.bookings.list_assignments(booking_id)

    async def assign(
        self,
        booking_id: str,
        rider_id: Optional[str],
        expected_stage: Optional[str] = None,
    ) -> AssignmentResult:
        async with self.reported("rider assignment", bookingId=booking_id):
            if not rider_id:
                raise NoRiderSelected()

            booking = await self.bookings.get(booking_id)
            ensure_stage(booking, expected_stage)
            rider = await self.riders.get_by_id(rider_id)

            now = self.clock()
            plan = plan_assignment(
                booking, rider, now, self.assigned_by, otp_source=self.otp_source
            )
            rider_field, rider_id_field = RIDER_FIELDS[plan.role]
            fields = transition_fields(booking, plan.transition, now)
            fields.update(
                {
                    rider_field: plan.snapshot.to_document(),
                    rider_id_field: rider.id,
                    "is_available_for_pickup": False,
                }
            )

            await self.bookings.update(
                booking.id, fields, expected_version=booking.stage_version
            )
            audit = await self.bookings.insert_assignment(plan.audit)
            await commit(self.session)

            logger.info(
                "Booking %s: %s rider %s assigned, now %s",
                booking.booking_number,
                plan.role.value,
                rider.id,
                plan.transition.target_stage,
            )
            label = "Pickup" if plan.role is AssignmentRole.PICKUP else "Delivery"
            await self.notifier.notify_success(
                f"{label} rider assigned successfully!", bookingId=booking.id
            )
            await self.notifier.booking_changed(booking.id, plan.transition.target_stage)

            refreshed = await self.reload(self.bookings, booking.id)
        return AssignmentResult(booking=refreshed, assignment=audit)
