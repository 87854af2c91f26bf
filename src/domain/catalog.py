"""
Stage Catalog
=============

Static table ``(ServiceType, DeliveryType, Stage) -> StageInfo`` describing,
for every stage of a booking, who moves it forward and where it goes next.

Sequences
---------
* **Doorstep**: confirmed -> pickup scheduled [assign] -> out for pickup
  [rider] -> picked up [rider] -> quality check -> workshop leg ->
  quality assurance -> ready for delivery [assign] -> out for delivery
  [rider] -> delivered.
* **Manual pickup**: confirmed -> ready for service -> helmet received ->
  quality check -> workshop leg -> quality assurance -> ready for pickup ->
  completed.  Every step is an admin action.

The workshop leg after ``quality_check`` is picked from the service type:
washing goes through the cleaning stages, repair through the repair stages.

The table is built once at import and walked for every combination; a
sequence that does not reach a terminal stage raises
``CatalogIntegrityError`` before the application can serve anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .entities import TrackingStage, Tracking
from .enums import (
    TERMINAL_STAGES,
    AssignmentRole,
    DeliveryType,
    ServiceType,
    Stage,
    StageActor,
    StageStatus,
)


class CatalogIntegrityError(Exception):
    """Raised when a stage sequence cannot be walked to a terminal stage."""


@dataclass(frozen=True)
class StageInfo:
    stage: Stage
    actor: StageActor
    next_stage: Optional[Stage]
    title: str
    description: str = ""
    action_label: Optional[str] = None
    assignment_role: Optional[AssignmentRole] = None

    @property
    def is_terminal(self) -> bool:
        return self.next_stage is None


CatalogKey = tuple[ServiceType, DeliveryType, Stage]


# ── Sequence builders ─────────────────────────────────────────────────


def _workshop_stages(
    service_type: ServiceType, delivery_type: DeliveryType
) -> list[StageInfo]:
    """The cleaning or repair leg between quality check and assurance."""
    doorstep = delivery_type is DeliveryType.DOORSTEP
    if service_type is ServiceType.WATERLESS_WASHING:
        start = Stage.CLEANING_STARTED if doorstep else Stage.CLEANING_IN_PROGRESS
        return [
            StageInfo(
                stage=start,
                actor=StageActor.ADMIN,
                next_stage=Stage.CLEANING_COMPLETED,
                title="Cleaning In Progress",
                description="Mark the cleaning process as completed",
                action_label="Complete Cleaning",
            ),
            StageInfo(
                stage=Stage.CLEANING_COMPLETED,
                actor=StageActor.ADMIN,
                next_stage=Stage.QUALITY_ASSURANCE,
                title="Cleaning Completed",
                description="Proceed to quality assurance",
                action_label="Start Quality Assurance",
            ),
        ]

    start = Stage.REPAIR_STARTED if doorstep else Stage.REPAIR_IN_PROGRESS
    return [
        StageInfo(
            stage=start,
            actor=StageActor.ADMIN,
            next_stage=Stage.REPAIR_COMPLETED,
            title="Repair In Progress",
            description="Mark the repair work as completed",
            action_label="Complete Repair",
        ),
        StageInfo(
            stage=Stage.REPAIR_COMPLETED,
            actor=StageActor.ADMIN,
            next_stage=Stage.QUALITY_ASSURANCE,
            title="Repair Completed",
            description="Proceed to quality assurance",
            action_label="Start Quality Assurance",
        ),
    ]


def _quality_check(first_workshop_stage: Stage) -> StageInfo:
    return StageInfo(
        stage=Stage.QUALITY_CHECK,
        actor=StageActor.ADMIN,
        next_stage=first_workshop_stage,
        title="Initial Quality Check",
        description="Perform quality assessment of the helmet",
        action_label="Complete Quality Check",
    )


def _doorstep_stages(service_type: ServiceType) -> list[StageInfo]:
    workshop = _workshop_stages(service_type, DeliveryType.DOORSTEP)
    return [
        StageInfo(
            stage=Stage.BOOKING_CONFIRMED,
            actor=StageActor.SYSTEM,
            next_stage=Stage.PICKUP_SCHEDULED,
            title="Booking Confirmed",
            description="Payment received and booking confirmed",
        ),
        StageInfo(
            stage=Stage.PICKUP_SCHEDULED,
            actor=StageActor.ASSIGNMENT_REQUIRED,
            next_stage=Stage.OUT_FOR_PICKUP,
            title="Assign Pickup Rider",
            description="A rider needs to be assigned to pick up the helmet",
            action_label="Assign Pickup Rider",
            assignment_role=AssignmentRole.PICKUP,
        ),
        StageInfo(
            stage=Stage.OUT_FOR_PICKUP,
            actor=StageActor.RIDER,
            next_stage=Stage.HELMET_PICKED_UP,
            title="Out for Pickup",
            description="Rider is on the way to collect the helmet",
            action_label="Confirm Pickup Started",
        ),
        StageInfo(
            stage=Stage.HELMET_PICKED_UP,
            actor=StageActor.RIDER,
            next_stage=Stage.QUALITY_CHECK,
            title="Confirm Helmet Pickup",
            description="Rider needs to confirm helmet has been picked up",
            action_label="Confirm Pickup Complete",
        ),
        _quality_check(workshop[0].stage),
        *workshop,
        StageInfo(
            stage=Stage.QUALITY_ASSURANCE,
            actor=StageActor.ADMIN,
            next_stage=Stage.READY_FOR_DELIVERY,
            title="Quality Assurance",
            description="Mark helmet ready for delivery",
            action_label="Mark Ready for Delivery",
        ),
        StageInfo(
            stage=Stage.READY_FOR_DELIVERY,
            actor=StageActor.ASSIGNMENT_REQUIRED,
            next_stage=Stage.OUT_FOR_DELIVERY,
            title="Assign Delivery Rider",
            description="A rider needs to be assigned to deliver the helmet",
            action_label="Assign Delivery Rider",
            assignment_role=AssignmentRole.DELIVERY,
        ),
        StageInfo(
            stage=Stage.OUT_FOR_DELIVERY,
            actor=StageActor.RIDER,
            next_stage=Stage.DELIVERED,
            title="Out for Delivery",
            description="Rider needs to confirm delivery completion",
            action_label="Confirm Delivery",
        ),
        StageInfo(
            stage=Stage.DELIVERED,
            actor=StageActor.SYSTEM,
            next_stage=None,
            title="Delivered Successfully",
            description="Helmet has been delivered to customer",
        ),
    ]


def _manual_pickup_stages(service_type: ServiceType) -> list[StageInfo]:
    workshop = _workshop_stages(service_type, DeliveryType.MANUAL_PICKUP)
    return [
        StageInfo(
            stage=Stage.BOOKING_CONFIRMED,
            actor=StageActor.SYSTEM,
            next_stage=Stage.READY_FOR_SERVICE,
            title="Booking Confirmed",
            description="Payment received and booking confirmed",
        ),
        StageInfo(
            stage=Stage.READY_FOR_SERVICE,
            actor=StageActor.ADMIN,
            next_stage=Stage.HELMET_RECEIVED,
            title="Ready for Service",
            description="Customer needs to visit service center with helmet",
            action_label="Confirm Customer Visit",
        ),
        StageInfo(
            stage=Stage.HELMET_RECEIVED,
            actor=StageActor.ADMIN,
            next_stage=Stage.QUALITY_CHECK,
            title="Helmet Received",
            description="Confirm helmet received at service center",
            action_label="Confirm Helmet Received",
        ),
        _quality_check(workshop[0].stage),
        *workshop,
        StageInfo(
            stage=Stage.QUALITY_ASSURANCE,
            actor=StageActor.ADMIN,
            next_stage=Stage.READY_FOR_PICKUP,
            title="Quality Assurance",
            description="Mark helmet ready for customer pickup",
            action_label="Mark Ready for Pickup",
        ),
        StageInfo(
            stage=Stage.READY_FOR_PICKUP,
            actor=StageActor.ADMIN,
            next_stage=Stage.COMPLETED,
            title="Ready for Pickup",
            description="Confirm when customer picks up the helmet",
            action_label="Confirm Customer Pickup",
        ),
        StageInfo(
            stage=Stage.COMPLETED,
            actor=StageActor.SYSTEM,
            next_stage=None,
            title="Service Completed",
            description="Helmet has been picked up by customer",
        ),
    ]


def _build_catalog() -> dict[CatalogKey, StageInfo]:
    table: dict[CatalogKey, StageInfo] = {}
    for service_type in ServiceType:
        for delivery_type in DeliveryType:
            if delivery_type is DeliveryType.DOORSTEP:
                infos = _doorstep_stages(service_type)
            else:
                infos = _manual_pickup_stages(service_type)
            for info in infos:
                table[(service_type, delivery_type, info.stage)] = info
    return table


# ── Walking & validation ──────────────────────────────────────────────


def _walk(
    table: dict[CatalogKey, StageInfo],
    service_type: ServiceType,
    delivery_type: DeliveryType,
) -> list[Stage]:
    sequence: list[Stage] = []
    stage: Optional[Stage] = Stage.BOOKING_CONFIRMED
    while stage is not None:
        if stage in sequence:
            raise CatalogIntegrityError(
                f"Cycle at {stage.value} for {service_type.value}/{delivery_type.value}"
            )
        info = table.get((service_type, delivery_type, stage))
        if info is None:
            raise CatalogIntegrityError(
                f"No entry for {stage.value} in {service_type.value}/{delivery_type.value}"
            )
        sequence.append(stage)
        stage = info.next_stage

    if sequence[-1] not in TERMINAL_STAGES:
        raise CatalogIntegrityError(
            f"{service_type.value}/{delivery_type.value} ends at non-terminal "
            f"stage {sequence[-1].value}"
        )
    return sequence


def validate_catalog(table: dict[CatalogKey, StageInfo]) -> None:
    """Check every combination is walkable and has no unreachable entries."""
    for service_type in ServiceType:
        for delivery_type in DeliveryType:
            reachable = set(_walk(table, service_type, delivery_type))
            declared = {
                stage
                for (s, d, stage) in table
                if s is service_type and d is delivery_type
            }
            orphans = declared - reachable
            if orphans:
                names = ", ".join(sorted(o.value for o in orphans))
                raise CatalogIntegrityError(f"Unreachable stages: {names}")

    for info in table.values():
        needs_role = info.actor is StageActor.ASSIGNMENT_REQUIRED
        if needs_role != (info.assignment_role is not None):
            raise CatalogIntegrityError(
                f"Stage {info.stage.value} has inconsistent assignment role"
            )


STAGE_CATALOG: dict[CatalogKey, StageInfo] = _build_catalog()
validate_catalog(STAGE_CATALOG)


# ── Public lookups ────────────────────────────────────────────────────


def lookup(service_type, delivery_type, stage) -> Optional[StageInfo]:
    """Return the ``StageInfo`` for *stage*, or ``None`` if it is unknown."""
    try:
        key = (ServiceType(service_type), DeliveryType(delivery_type), Stage(stage))
    except ValueError:
        return None
    return STAGE_CATALOG.get(key)


def canonical_sequence(
    service_type: ServiceType, delivery_type: DeliveryType
) -> list[Stage]:
    return _walk(STAGE_CATALOG, service_type, delivery_type)


def initial_tracking(
    service_type: ServiceType,
    delivery_type: DeliveryType,
    confirmed_at: datetime,
) -> Tracking:
    """Fresh tracking document for a newly confirmed booking."""
    stages = []
    for stage in canonical_sequence(service_type, delivery_type):
        info = STAGE_CATALOG[(service_type, delivery_type, stage)]
        stages.append(TrackingStage(stage=stage.value, description=info.title))

    stages[0].status = StageStatus.IN_PROGRESS
    stages[0].started_at = confirmed_at
    return Tracking(current_stage=Stage.BOOKING_CONFIRMED.value, stages=stages)
