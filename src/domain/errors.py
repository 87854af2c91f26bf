"""
Error kinds raised by the booking workflow.

Every error carries the HTTP status it maps to and a short message that is
safe to show to an operator.  The API layer converts the whole hierarchy
into JSON error responses; services log and report them before re-raising.
"""

from __future__ import annotations


class BookingWorkflowError(Exception):
    """Base class for all workflow failures."""

    status_code: int = 400
    user_message: str = "Operation failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.user_message
        super().__init__(self.detail)


class InvalidStageConfiguration(BookingWorkflowError):
    """The persisted stages array lacks the current or target stage entry."""

    status_code = 422
    user_message = "Invalid stage configuration"


class NoRiderSelected(BookingWorkflowError):
    status_code = 400
    user_message = "Please select a rider"


class Unauthorized(BookingWorkflowError):
    status_code = 403
    user_message = "Incorrect password. Please try again."


class RecordStoreUnavailable(BookingWorkflowError):
    """Wraps any failure reported by the record store."""

    status_code = 503
    user_message = "Record store unavailable"


class ReloadFailed(RecordStoreUnavailable):
    """The change was committed but the booking could not be read back."""

    user_message = "Change saved, but the booking could not be reloaded"


class BookingNotFound(BookingWorkflowError):
    status_code = 404
    user_message = "Booking not found"


class RiderNotFound(BookingWorkflowError):
    status_code = 404
    user_message = "Rider not found"


class StaleState(BookingWorkflowError):
    """Another writer changed the booking's stage since it was read."""

    status_code = 409
    user_message = "Booking was updated by someone else; reload and retry"


class StageActionMismatch(BookingWorkflowError):
    """The requested action is not the one the current stage expects."""

    status_code = 409
    user_message = "Action not allowed at the current stage"
