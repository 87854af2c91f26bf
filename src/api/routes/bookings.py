"""
Booking workflow endpoints
==========================

GET  /api/v1/bookings/{booking_id}             -- booking + what the current stage needs
POST /api/v1/bookings/{booking_id}/actions     -- complete an admin / rider / system stage
POST /api/v1/bookings/{booking_id}/assign      -- assign the pickup or delivery rider
GET  /api/v1/bookings/{booking_id}/assignments -- assignment audit history
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_notifier
from src.api.middleware import limiter
from src.api.schemas import (
    AssignmentResultResponse,
    AssignRiderRequest,
    BookingDetailResponse,
    BookingResponse,
    ErrorResponse,
    RiderAssignmentResponse,
    StageActionRequest,
    StageInfoResponse,
)
from src.config import settings
from src.domain.entities import Booking
from src.infrastructure.events import NotificationSink
from src.services.booking_workflow import BookingWorkflow, current_stage_info
from src.services.rider_assignment import RiderAssignmentService

router = APIRouter(prefix="/bookings", tags=["bookings"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _detail(booking: Booking) -> BookingDetailResponse:
    info = current_stage_info(booking)
    return BookingDetailResponse(
        booking=BookingResponse.model_validate(booking),
        stage_info=StageInfoResponse.model_validate(info) if info else None,
    )


@router.get(
    "/{booking_id}",
    response_model=BookingDetailResponse,
    summary="Get a booking and the action its current stage requires",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
):
    booking = await BookingWorkflow(db, notifier).get_booking(booking_id)
    return _detail(booking)


@router.post(
    "/{booking_id}/actions",
    response_model=BookingDetailResponse,
    summary="Complete the current stage",
    description=(
        "Advances the booking to the next stage of its sequence. The declared "
        "party must match the stage's actor; assignment stages are refused."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def perform_stage_action(
    request: Request,
    booking_id: str,
    body: StageActionRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
):
    booking = await BookingWorkflow(db, notifier).perform_action(
        booking_id, body.party, expected_stage=body.expected_stage
    )
    return _detail(booking)


@router.post(
    "/{booking_id}/assign",
    response_model=AssignmentResultResponse,
    summary="Assign a rider to the leg the booking is waiting on",
    responses={400: {"model": ErrorResponse}, **_ERRORS},
)
@limiter.limit(settings.rate_limit)
async def assign_rider(
    request: Request,
    booking_id: str,
    body: AssignRiderRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
):
    result = await RiderAssignmentService(db, notifier).assign(
        booking_id, body.rider_id, expected_stage=body.expected_stage
    )
    return AssignmentResultResponse(
        booking=BookingResponse.model_validate(result.booking),
        assignment=RiderAssignmentResponse.model_validate(result.assignment),
    )


@router.get(
    "/{booking_id}/assignments",
    response_model=list[RiderAssignmentResponse],
    summary="Assignment audit history, newest first",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def list_assignments(
    request: Request,
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
):
    history = await RiderAssignmentService(db, notifier).assignment_history(booking_id)
    return [RiderAssignmentResponse.model_validate(a) for a in history]
