"""
Rider assignment rules.

Pure decisions behind binding a rider to the pickup or delivery leg of a
booking: which leg the current stage asks for, whether a one-time code is
issued, and what the booking and audit record look like afterwards.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from .catalog import lookup
from .entities import Booking, Rider, RiderAssignment, RiderSnapshot
from .enums import AssignmentRole, BookingStatus, Stage
from .errors import NoRiderSelected, StageActionMismatch
from .transitions import StageTransition, plan_transition

OUT_STAGE: dict[AssignmentRole, Stage] = {
    AssignmentRole.PICKUP: Stage.OUT_FOR_PICKUP,
    AssignmentRole.DELIVERY: Stage.OUT_FOR_DELIVERY,
}

ASSIGNED_STATUS: dict[AssignmentRole, BookingStatus] = {
    AssignmentRole.PICKUP: BookingStatus.ASSIGNED_FOR_PICKUP,
    AssignmentRole.DELIVERY: BookingStatus.ASSIGNED_FOR_DELIVERY,
}


def generate_otp(randbelow: Callable[[int], int] = secrets.randbelow) -> str:
    """Uniform 4-digit code in 1000..9999."""
    return str(1000 + randbelow(9000))


def filter_riders(riders: Iterable[Rider], query: Optional[str]) -> list[Rider]:
    if not query:
        return list(riders)
    return [rider for rider in riders if rider.matches(query)]


def assignment_role_for(booking: Booking) -> AssignmentRole:
    """Leg that the booking's current stage is waiting on a rider for."""
    info = lookup(
        booking.service_type, booking.delivery_type, booking.tracking.current_stage
    )
    if info is None or info.assignment_role is None:
        raise StageActionMismatch(
            f"Stage '{booking.tracking.current_stage}' does not take a rider assignment"
        )
    return info.assignment_role


@dataclass(frozen=True)
class AssignmentPlan:
    role: AssignmentRole
    snapshot: RiderSnapshot
    transition: StageTransition
    audit: RiderAssignment

    @property
    def otp(self) -> Optional[str]:
        return self.snapshot.otp


def plan_assignment(
    booking: Booking,
    rider: Optional[Rider],
    now: datetime,
    assigned_by: str,
    otp_source: Callable[[], str] = generate_otp,
) -> AssignmentPlan:
    """Everything an assignment writes, computed up front.

    Raises ``NoRiderSelected`` before looking at the booking at all, then
    ``StageActionMismatch`` or ``InvalidStageConfiguration`` if the booking
    is not in a state that can take the rider.
    """
    if rider is None:
        raise NoRiderSelected()

    role = assignment_role_for(booking)
    otp = otp_source() if booking.is_doorstep else None
    transition = plan_transition(
        booking, OUT_STAGE[role], now, status=ASSIGNED_STATUS[role]
    )
    audit = RiderAssignment(
        booking_id=booking.id,
        booking_number=booking.booking_number,
        rider_id=rider.id,
        rider_name=rider.name,
        assignment_type=role,
        customer_name=booking.customer_name,
        customer_address=booking.customer_address,
        assigned_at=now,
        assigned_by=assigned_by,
        otp=otp,
    )
    return AssignmentPlan(
        role=role,
        snapshot=rider.snapshot(now, assigned_by, otp),
        transition=transition,
        audit=audit,
    )
