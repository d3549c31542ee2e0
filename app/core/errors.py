"""Typed failures raised by the scheduling services.

The API layer maps each class to an HTTP status via ``status_code``; services
never build HTTP responses themselves.
"""


class SchedulingError(Exception):
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class SlotValidationError(SchedulingError):
    """Bad or missing date, malformed time label, invalid interval or range."""

    status_code = 400


class SlotConflictError(SchedulingError):
    """The requested instant is not bookable at commit time."""

    status_code = 409


class BookingNotFoundError(SchedulingError):
    status_code = 404


class BookingStateError(SchedulingError):
    """Status change not permitted from the booking's current status."""

    status_code = 400


class StoreUnavailableError(SchedulingError):
    """A rule, override or booking lookup failed; no partial result is returned."""

    status_code = 503
