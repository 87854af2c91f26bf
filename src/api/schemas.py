"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.domain.enums import (
    ActingParty,
    AssignmentRole,
    BookingStatus,
    DeliveryType,
    ServiceType,
    Stage,
    StageActor,
    StageStatus,
)


# ── Requests ──────────────────────────────────────────────────────────


class StageActionRequest(BaseModel):
    party: ActingParty = ActingParty.ADMIN
    expected_stage: Optional[str] = Field(
        None,
        description="Stage the caller saw; the action is refused if the booking moved on.",
    )


class AssignRiderRequest(BaseModel):
    rider_id: Optional[str] = None
    expected_stage: Optional[str] = Field(
        None,
        description="Stage the caller saw; the assignment is refused if the booking moved on.",
    )


class EnableAllotmentRequest(BaseModel):
    secret: str


# ── Responses ─────────────────────────────────────────────────────────


class StageEntryResponse(BaseModel):
    stage: str
    description: str = ""
    status: StageStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TrackingResponse(BaseModel):
    current_stage: str
    stages: list[StageEntryResponse] = []

    model_config = {"from_attributes": True}


class RiderSnapshotResponse(BaseModel):
    rider_id: str
    rider_name: str
    rider_phone: str
    assigned_at: Optional[datetime] = None
    assigned_by: str
    otp: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: str
    booking_number: str
    service_type: ServiceType
    delivery_type: DeliveryType
    status: BookingStatus
    tracking: TrackingResponse
    pickup_rider: Optional[RiderSnapshotResponse] = None
    delivery_rider: Optional[RiderSnapshotResponse] = None
    pickup_rider_id: Optional[str] = None
    delivery_rider_id: Optional[str] = None
    is_available_for_pickup: bool
    customer_details: dict[str, Any] = {}
    address_details: dict[str, Any] = {}
    helmet_details: dict[str, Any] = {}
    pricing: dict[str, Any] = {}
    schedule: dict[str, Any] = {}
    stage_version: int
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StageInfoResponse(BaseModel):
    stage: Stage
    actor: StageActor
    next_stage: Optional[Stage] = None
    title: str
    description: str
    action_label: Optional[str] = None
    assignment_role: Optional[AssignmentRole] = None
    is_terminal: bool

    model_config = {"from_attributes": True}


class BookingDetailResponse(BaseModel):
    booking: BookingResponse
    stage_info: Optional[StageInfoResponse] = None


class RiderResponse(BaseModel):
    id: str
    name: str
    phone_number: str
    email: Optional[str] = None
    profile_image: Optional[str] = None
    total_orders: int = 0

    model_config = {"from_attributes": True}


class RiderAssignmentResponse(BaseModel):
    id: Optional[str] = None
    booking_id: str
    booking_number: str
    rider_id: str
    rider_name: str
    assignment_type: AssignmentRole
    customer_name: str
    customer_address: Optional[str] = None
    assigned_at: datetime
    assigned_by: str
    status: str
    otp: Optional[str] = None

    model_config = {"from_attributes": True}


class AssignmentResultResponse(BaseModel):
    booking: BookingResponse
    assignment: RiderAssignmentResponse


class AllotmentConfigResponse(BaseModel):
    same_rider_for_pickup_and_delivery: bool
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
