import logging
from typing import Any

from fastapi import HTTPException, status

from ..domain.errors import (
    AreaFullError,
    BookingRejected,
    DateOutOfRangeError,
    DuplicateBookingError,
    ForbiddenError,
    NotFoundError,
    ParkingFullError,
    ParkingNotAvailableError,
    UnknownAreaError,
)
from ..schemas import RejectionRead
from ..utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong while talking to the booking store. Please try again."

_REJECTION_STATUS: dict[type[BookingRejected], int] = {
    UnknownAreaError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DateOutOfRangeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ParkingNotAvailableError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DuplicateBookingError: status.HTTP_409_CONFLICT,
    AreaFullError: status.HTTP_409_CONFLICT,
    ParkingFullError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
}


def rejection_error(error: BookingRejected) -> HTTPException:
    status_code = _REJECTION_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=RejectionRead.from_error(error).model_dump())


def store_failure(exc: Exception) -> HTTPException:
    logger.exception("booking store failure", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=GENERIC_FAILURE)


def audit(**kwargs: Any) -> None:
    """Emit an audit record; a logging failure never undoes a committed change."""
    try:
        emit_audit_log(**kwargs)
    except RuntimeError:
        logger.exception("failed to emit audit log for %s", kwargs.get("action"))
