from __future__ import annotations


class BookingRejected(Exception):
    """Expected, recoverable outcome of a booking or cancellation request."""

    code = "rejected"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnknownAreaError(BookingRejected):
    code = "unknown_area"


class DuplicateBookingError(BookingRejected):
    code = "duplicate_booking"


class AreaFullError(BookingRejected):
    code = "area_full"


class ParkingNotAvailableError(BookingRejected):
    code = "parking_not_available"


class ParkingFullError(BookingRejected):
    code = "parking_full"


class NotFoundError(BookingRejected):
    code = "not_found"


class ForbiddenError(BookingRejected):
    code = "forbidden"


class DateOutOfRangeError(BookingRejected):
    code = "date_out_of_range"


class StoreError(Exception):
    """Underlying persistence failure."""


class StoreConflictError(StoreError):
    """Uniqueness violation on (employee, date) reported by the store."""
