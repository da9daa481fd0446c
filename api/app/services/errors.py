"""Domain errors raised by the services and rendered by the API layer.

Every error carries a short machine-readable rule name and a human-readable
message, the same shape the API returns in its ``detail`` list.
"""


class BookingError(Exception):
    """Base class for all domain errors."""

    rule = "booking_error"
    status_code = 400

    def __init__(self, message: str, rule: str | None = None):
        self.message = message
        if rule is not None:
            self.rule = rule
        super().__init__(message)


class ValidationError(BookingError):
    """A required field is missing or invalid. User-correctable."""

    rule = "validation"
    status_code = 422


class ClosedDayError(BookingError):
    rule = "closed_day"
    status_code = 422


class CapacityExceededError(BookingError):
    rule = "capacity"
    status_code = 422


class SlotConflictError(BookingError):
    """The slot overlaps a confirmed booking. The caller may refresh and retry."""

    rule = "court_conflict"
    status_code = 409


class NotFoundError(BookingError):
    rule = "not_found"
    status_code = 404


class PermissionDeniedError(BookingError):
    rule = "forbidden"
    status_code = 403


class UpstreamError(BookingError):
    """The payment or email provider failed."""

    rule = "upstream"
    status_code = 502


class ConfigurationError(BookingError):
    """A required setting (timeout, template id, API key) is missing."""

    rule = "configuration"
    status_code = 500
