"""
Stage Transition Engine
=======================

Persists stage changes for a booking:

1. compute the new stages array and status (``plan_transition``)
2. write ``tracking``, ``status``, ``updatedAt`` in one conditional UPDATE
3. commit, notify, publish a change event
4. re-read the booking and return the stored copy

Flows
-----
``perform_action`` looks up the current stage in the catalog and advances
to its successor when the declared party is the stage's actor: admins for
workshop stages, riders for the legs they drive, the system for the
confirmation step.  Assignment stages go through ``RiderAssignmentService``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .base import WorkflowService, ensure_stage, transition_fields
from src.domain.catalog import StageInfo, lookup
from src.domain.entities import Booking, stage_id
from src.domain.enums import ACTOR_FOR_PARTY, ActingParty, StageActor
from src.domain.errors import InvalidStageConfiguration, StageActionMismatch
from src.domain.transitions import plan_transition
from src.infrastructure.repositories import BookingRepository, commit

logger = logging.getLogger(__name__)

SUCCESS_MESSAGES: dict[ActingParty, str] = {
    ActingParty.ADMIN: "Stage updated successfully!",
    ActingParty.RIDER: "Action completed successfully!",
    ActingParty.SYSTEM: "Booking confirmed",
}


def current_stage_info(booking: Booking) -> Optional[StageInfo]:
    return lookup(
        booking.service_type, booking.delivery_type, booking.tracking.current_stage
    )


def required_action(booking: Booking, party: ActingParty) -> StageInfo:
    """Catalog entry for the current stage, if *party* may complete it."""
    info = current_stage_info(booking)
    if info is None:
        raise InvalidStageConfiguration(
            f"Stage '{booking.tracking.current_stage}' is not part of the "
            f"{booking.service_type.value}/{booking.delivery_type.value} sequence"
        )
    if info.is_terminal:
        raise StageActionMismatch(f"Booking {booking.booking_number} is already complete")
    if info.actor is StageActor.ASSIGNMENT_REQUIRED:
        raise StageActionMismatch(
            f"Stage '{info.stage.value}' needs a {info.assignment_role.value} rider assignment"
        )
    if info.actor is not ACTOR_FOR_PARTY[party]:
        raise StageActionMismatch(
            f"Stage '{info.stage.value}' is completed by {info.actor.value}, not {party.value}"
        )
    return info


def ensure_successor(booking: Booking, target_stage: Any) -> None:
    info = current_stage_info(booking)
    if info is None:
        raise InvalidStageConfiguration(
            f"Stage '{booking.tracking.current_stage}' is not part of the "
            f"{booking.service_type.value}/{booking.delivery_type.value} sequence"
        )
    if info.next_stage is None or info.next_stage.value != stage_id(target_stage):
        raise StageActionMismatch(
            f"Stage '{info.stage.value}' cannot move to '{stage_id(target_stage)}'"
        )


class BookingWorkflow(WorkflowService):
    def __init__(self, session, notifier, **kwargs):
        super().__init__(session, notifier, **kwargs)
        self.bookings = BookingRepository(session)

    async def get_booking(self, booking_id: str) -> Booking:
        async with self.reported("booking load", bookingId=booking_id):
            return await self.bookings.get(booking_id)

    async def advance(
        self, booking: Booking, target_stage: Any, party: ActingParty
    ) -> Booking:
        """Move *booking* to *target_stage* and return the re-read booking.

        Only the catalog successor of the current stage is accepted; any
        other target raises ``StageActionMismatch``.
        """
        async with self.reported("stage update", bookingId=booking.id):
            ensure_successor(booking, target_stage)
            return await self._advance(booking, target_stage, party)

    async def perform_action(
        self,
        booking_id: str,
        party: ActingParty,
        expected_stage: Optional[str] = None,
    ) -> Booking:
        """Run the admin, rider or system action the current stage asks for."""
        async with self.reported("stage action", bookingId=booking_id, party=party.value):
            booking = await self.bookings.get(booking_id)
            ensure_stage(booking, expected_stage)
            info = required_action(booking, party)
            return await self._advance(booking, info.next_stage, party)

    async def _advance(
        self, booking: Booking, target_stage: Any, party: ActingParty
    ) -> Booking:
        now = self.clock()
        transition = plan_transition(booking, target_stage, now)
        await self.bookings.update(
            booking.id,
            transition_fields(booking, transition, now),
            expected_version=booking.stage_version,
        )
        await commit(self.session)

        logger.info(
            "Booking %s: %s -> %s (%s, by %s)",
            booking.booking_number,
            booking.tracking.current_stage,
            transition.target_stage,
            transition.status.value,
            party.value,
        )
        await self.notifier.notify_success(SUCCESS_MESSAGES[party], bookingId=booking.id)
        await self.notifier.booking_changed(booking.id, transition.target_stage)
        return await self.reload(self.bookings, booking.id)
