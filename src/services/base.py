"""Shared plumbing for workflow services: clock, failure reporting, field mapping."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Booking, stage_id
from src.domain.errors import (
    BookingWorkflowError,
    RecordStoreUnavailable,
    ReloadFailed,
    StaleState,
)
from src.domain.transitions import StageTransition
from src.infrastructure.events import NotificationSink
from src.infrastructure.repositories import BookingRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_stage(booking: Booking, expected_stage: Optional[Any]) -> None:
    """Reject the call if the caller was looking at an older stage."""
    if expected_stage is None:
        return
    if booking.tracking.current_stage != stage_id(expected_stage):
        raise StaleState(
            f"Booking {booking.booking_number} is at "
            f"'{booking.tracking.current_stage}', not '{stage_id(expected_stage)}'"
        )


def transition_fields(
    booking: Booking, transition: StageTransition, now: datetime
) -> dict[str, Any]:
    """Column values that persist *transition* and bump the stage version."""
    return {
        "tracking": transition.tracking.to_document(),
        "status": transition.status.value,
        "stage_version": booking.stage_version + 1,
        "updated_at": now,
    }


class WorkflowService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: NotificationSink,
        clock: Clock = utcnow,
    ):
        self.session = session
        self.notifier = notifier
        self.clock = clock

    async def _rollback(self) -> None:
        """Roll back, tolerating a session whose connection is already gone."""
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback failed", exc_info=True)

    async def reload(self, bookings: BookingRepository, booking_id: str) -> Booking:
        """Re-read a booking after its change was committed."""
        try:
            return await bookings.get(booking_id)
        except RecordStoreUnavailable as exc:
            raise ReloadFailed(
                f"Booking {booking_id} was saved but could not be re-read"
            ) from exc

    @asynccontextmanager
    async def reported(self, action: str, **context: Any):
        """Roll back, log and notify on failure, then re-raise."""
        try:
            yield
        except BookingWorkflowError as exc:
            await self._rollback()
            if isinstance(exc, RecordStoreUnavailable):
                logger.exception("%s failed (%s)", action, context)
            else:
                logger.warning("%s rejected (%s): %s", action, context, exc.detail)
            await self.notifier.notify_error(exc.user_message, action=action, **context)
            raise
        except Exception:
            await self._rollback()
            logger.exception("Unexpected error during %s (%s)", action, context)
            await self.notifier.notify_error(
                BookingWorkflowError.user_message, action=action, **context
            )
            raise
