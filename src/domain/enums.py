"""Domain enumerations for bookings, tracking stages and rider assignment."""

import enum


class ServiceType(str, enum.Enum):
    WATERLESS_WASHING = "Waterless Washing"
    HELMET_REPAIR = "Helmet Repair"


class DeliveryType(str, enum.Enum):
    DOORSTEP = "doorstep"
    MANUAL_PICKUP = "pickup"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED_FOR_PICKUP = "assigned_for_pickup"
    IN_PROGRESS = "in_progress"
    READY_FOR_DELIVERY = "ready_for_delivery"
    READY_FOR_PICKUP = "ready_for_pickup"
    ASSIGNED_FOR_DELIVERY = "assigned_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StageStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Stage(str, enum.Enum):
    BOOKING_CONFIRMED = "booking_confirmed"

    # Doorstep legs
    PICKUP_SCHEDULED = "pickup_scheduled"
    OUT_FOR_PICKUP = "out_for_pickup"
    HELMET_PICKED_UP = "helmet_picked_up"
    READY_FOR_DELIVERY = "ready_for_delivery"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"

    # Manual pickup legs
    READY_FOR_SERVICE = "ready_for_service"
    HELMET_RECEIVED = "helmet_received"
    READY_FOR_PICKUP = "ready_for_pickup"
    COMPLETED = "completed"

    # Workshop
    QUALITY_CHECK = "quality_check"
    CLEANING_STARTED = "cleaning_started"
    CLEANING_IN_PROGRESS = "cleaning_in_progress"
    CLEANING_COMPLETED = "cleaning_completed"
    REPAIR_STARTED = "repair_started"
    REPAIR_IN_PROGRESS = "repair_in_progress"
    REPAIR_COMPLETED = "repair_completed"
    QUALITY_ASSURANCE = "quality_assurance"


class StageActor(str, enum.Enum):
    SYSTEM = "system"
    ADMIN = "admin"
    RIDER = "rider"
    ASSIGNMENT_REQUIRED = "assignment_required"


class AssignmentRole(str, enum.Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class ActingParty(str, enum.Enum):
    """Who claims to be completing a stage."""

    SYSTEM = "system"
    ADMIN = "admin"
    RIDER = "rider"


TERMINAL_STAGES: frozenset[Stage] = frozenset({Stage.DELIVERED, Stage.COMPLETED})

# Stages whose name doubles as the booking status once reached
STATUS_STAGES: frozenset[Stage] = frozenset(
    {Stage.READY_FOR_DELIVERY, Stage.READY_FOR_PICKUP}
)

ACTOR_FOR_PARTY: dict[ActingParty, StageActor] = {
    ActingParty.SYSTEM: StageActor.SYSTEM,
    ActingParty.ADMIN: StageActor.ADMIN,
    ActingParty.RIDER: StageActor.RIDER,
}
