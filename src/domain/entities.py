"""
Domain entities for the booking workflow.

Bookings are stored as documents: ``tracking`` and the rider snapshots are
embedded objects with camelCase keys.  The entities here convert to and from
those documents and keep any key they do not know about, so a write never
drops fields another client put there.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from .enums import AssignmentRole, BookingStatus, DeliveryType, ServiceType, StageStatus


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def stage_id(stage: Any) -> str:
    """Plain string id for a ``Stage`` member or a raw stage name."""
    return getattr(stage, "value", stage)


# ── Tracking ──────────────────────────────────────────────────────────

_STAGE_KEYS = frozenset({"stage", "description", "status", "startedAt", "completedAt"})


@dataclass
class TrackingStage:
    stage: str
    description: str = ""
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def start(self, at: datetime) -> TrackingStage:
        return replace(self, status=StageStatus.IN_PROGRESS, started_at=at)

    def complete(self, at: datetime) -> TrackingStage:
        return replace(self, status=StageStatus.COMPLETED, completed_at=at)

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.extra)
        doc["stage"] = self.stage
        doc["description"] = self.description
        doc["status"] = self.status.value
        if self.started_at is not None:
            doc["startedAt"] = _format_ts(self.started_at)
        if self.completed_at is not None:
            doc["completedAt"] = _format_ts(self.completed_at)
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> TrackingStage:
        return cls(
            stage=doc["stage"],
            description=doc.get("description", ""),
            status=StageStatus(doc.get("status", StageStatus.PENDING.value)),
            started_at=_parse_ts(doc.get("startedAt")),
            completed_at=_parse_ts(doc.get("completedAt")),
            extra={k: v for k, v in doc.items() if k not in _STAGE_KEYS},
        )


@dataclass
class Tracking:
    current_stage: str
    stages: list[TrackingStage] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def index_of(self, stage: Any) -> Optional[int]:
        wanted = stage_id(stage)
        for index, entry in enumerate(self.stages):
            if entry.stage == wanted:
                return index
        return None

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.extra)
        doc["currentStage"] = self.current_stage
        doc["stages"] = [entry.to_document() for entry in self.stages]
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Tracking:
        return cls(
            current_stage=doc.get("currentStage", ""),
            stages=[TrackingStage.from_document(s) for s in doc.get("stages", [])],
            extra={
                k: v for k, v in doc.items() if k not in ("currentStage", "stages")
            },
        )


# ── Riders ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RiderSnapshot:
    """Rider identity copied onto a booking at assignment time.

    Name and phone are frozen: later profile edits on the rider record do
    not reach bookings that were already assigned.
    """

    rider_id: str
    rider_name: str
    rider_phone: str
    assigned_at: datetime
    assigned_by: str
    otp: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        doc = {
            "riderId": self.rider_id,
            "riderName": self.rider_name,
            "riderPhone": self.rider_phone,
            "assignedAt": _format_ts(self.assigned_at),
            "assignedBy": self.assigned_by,
        }
        if self.otp is not None:
            doc["otp"] = self.otp
        return doc

    @classmethod
    def from_document(cls, doc: Optional[dict[str, Any]]) -> Optional[RiderSnapshot]:
        if not doc:
            return None
        return cls(
            rider_id=doc["riderId"],
            rider_name=doc.get("riderName", ""),
            rider_phone=doc.get("riderPhone", ""),
            assigned_at=_parse_ts(doc.get("assignedAt")),
            assigned_by=doc.get("assignedBy", ""),
            otp=doc.get("otp"),
        )


@dataclass
class Rider:
    id: str
    name: str = ""
    phone_number: str = ""
    email: Optional[str] = None
    profile_image: Optional[str] = None
    total_orders: int = 0

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, phone or email."""
        if not query.strip():
            return True
        needle = query.lower()
        return any(
            needle in value.lower()
            for value in (self.name, self.phone_number, self.email)
            if value
        )

    def snapshot(
        self, assigned_at: datetime, assigned_by: str, otp: Optional[str] = None
    ) -> RiderSnapshot:
        return RiderSnapshot(
            rider_id=self.id,
            rider_name=self.name,
            rider_phone=self.phone_number,
            assigned_at=assigned_at,
            assigned_by=assigned_by,
            otp=otp,
        )


# ── Aggregate root ────────────────────────────────────────────────────


@dataclass
class Booking:
    id: str
    booking_number: str
    service_type: ServiceType
    delivery_type: DeliveryType
    status: BookingStatus
    tracking: Tracking
    pickup_rider: Optional[RiderSnapshot] = None
    delivery_rider: Optional[RiderSnapshot] = None
    pickup_rider_id: Optional[str] = None
    delivery_rider_id: Optional[str] = None
    is_available_for_pickup: bool = True
    customer_details: dict[str, Any] = field(default_factory=dict)
    address_details: dict[str, Any] = field(default_factory=dict)
    helmet_details: dict[str, Any] = field(default_factory=dict)
    pricing: dict[str, Any] = field(default_factory=dict)
    schedule: dict[str, Any] = field(default_factory=dict)
    stage_version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_doorstep(self) -> bool:
        return self.delivery_type is DeliveryType.DOORSTEP

    @property
    def customer_name(self) -> str:
        first = self.customer_details.get("firstName") or ""
        last = self.customer_details.get("lastName") or ""
        return f"{first} {last}".strip()

    @property
    def customer_address(self) -> Optional[str]:
        return self.address_details.get("fullAddress")


@dataclass
class RiderAssignment:
    """Append-only audit entry written once per assignment."""

    booking_id: str
    booking_number: str
    rider_id: str
    rider_name: str
    assignment_type: AssignmentRole
    customer_name: str
    customer_address: Optional[str]
    assigned_at: datetime
    assigned_by: str
    status: str = "active"
    otp: Optional[str] = None
    id: Optional[str] = None


@dataclass
class AllotmentConfig:
    same_rider_for_pickup_and_delivery: bool = False
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
