"""
Stage Transition Engine -- pure part.

Computes the new ``tracking`` object and booking ``status`` for a move from
the booking's current stage to a target stage.  Nothing here touches the
record store; the services persist the result as one update.

Rules
-----
* current entry  -> ``completed`` with ``completedAt``
* target entry   -> ``completed`` with ``completedAt`` if terminal,
  otherwise ``in_progress`` with ``startedAt``
* every other entry is carried over as the same object
* status: terminal -> ``completed``; ready-for-delivery / ready-for-pickup
  -> the stage name itself; anything else -> ``in_progress``
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

from .entities import Booking, Tracking, stage_id
from .enums import STATUS_STAGES, TERMINAL_STAGES, BookingStatus, Stage
from .errors import InvalidStageConfiguration


@dataclass(frozen=True)
class StageTransition:
    tracking: Tracking
    status: BookingStatus

    @property
    def target_stage(self) -> str:
        return self.tracking.current_stage


def _as_stage(value: Any) -> Optional[Stage]:
    try:
        return Stage(stage_id(value))
    except ValueError:
        return None


def is_terminal_stage(stage: Any) -> bool:
    return _as_stage(stage) in TERMINAL_STAGES


def status_for_stage(target_stage: Any) -> BookingStatus:
    stage = _as_stage(target_stage)
    if stage in TERMINAL_STAGES:
        return BookingStatus.COMPLETED
    if stage in STATUS_STAGES:
        return BookingStatus(stage.value)
    return BookingStatus.IN_PROGRESS


def plan_transition(
    booking: Booking,
    target_stage: Any,
    now: datetime,
    status: Optional[BookingStatus] = None,
) -> StageTransition:
    """Build the tracking/status pair for moving *booking* to *target_stage*.

    *status* overrides the status derived from the target stage; rider
    assignment uses it to record ``assigned_for_pickup`` and friends.

    Raises ``InvalidStageConfiguration`` when either the current or the
    target stage has no entry in the booking's stages array.
    """
    tracking = booking.tracking
    target = stage_id(target_stage)

    current_index = tracking.index_of(tracking.current_stage)
    target_index = tracking.index_of(target)
    if current_index is None or target_index is None:
        missing = tracking.current_stage if current_index is None else target
        raise InvalidStageConfiguration(
            f"Booking {booking.booking_number} has no '{missing}' stage entry"
        )

    stages = list(tracking.stages)
    stages[current_index] = stages[current_index].complete(now)
    if is_terminal_stage(target):
        stages[target_index] = stages[target_index].complete(now)
    else:
        stages[target_index] = stages[target_index].start(now)

    return StageTransition(
        tracking=replace(tracking, current_stage=target, stages=stages),
        status=status or status_for_stage(target),
    )
