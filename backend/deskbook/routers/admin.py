from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_engine, get_session, require_admin
from ..domain.errors import BookingRejected, StoreError
from ..infrastructure.repositories import SqlAlchemyBookingRepository
from ..schemas import (
    AdminBookingsRead,
    AdminLogin,
    AvailabilityRead,
    BookingRead,
    DuplicateGroupRead,
    TokenRead,
)
from ..usecases.bookings import ReservationEngine
from ..utils.auth import check_password, create_access_token
from .common import audit, rejection_error, store_failure

router = APIRouter(prefix="/admin", tags=["admin"])
protected = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/login", response_model=TokenRead)
async def login(payload: AdminLogin) -> TokenRead:
    settings = get_settings()
    if not settings.admin_password:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="admin login is not configured")
    if not check_password(payload.password, settings.admin_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid password")
    lifetime = timedelta(minutes=settings.admin_token_minutes)
    token = create_access_token(
        subject="admin",
        secret=settings.auth_secret,
        algorithm=settings.auth_algorithm,
        expires_delta=lifetime,
    )
    return TokenRead(access_token=token, expires_in=int(lifetime.total_seconds()))


@protected.get("/bookings", response_model=AdminBookingsRead)
async def list_bookings(
    booking_date: date = Query(..., alias="date"),
    area: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    engine: ReservationEngine = Depends(get_engine),
) -> AdminBookingsRead:
    repo = SqlAlchemyBookingRepository(session)
    try:
        listing = await engine.list_bookings(
            repo,
            booking_date=booking_date,
            area_key=engine.registry.canonicalize(area) if area else None,
        )
        availability = await engine.availability(repo, booking_date=booking_date)
        # Duplicates span areas, so they are always detected over the whole day.
        full_day = listing if area is None else await engine.list_bookings(repo, booking_date=booking_date)
    except BookingRejected as exc:
        raise rejection_error(exc)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)

    return AdminBookingsRead(
        date=booking_date,
        bookings=[BookingRead.from_db(booking=booking) for booking in listing],
        availability=AvailabilityRead.from_domain(availability),
        duplicates=[DuplicateGroupRead.from_domain(group) for group in engine.detect_duplicates(full_day)],
    )


@protected.delete("/bookings/{booking_id}", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: str = Depends(require_admin),
    engine: ReservationEngine = Depends(get_engine),
) -> BookingRead:
    repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking = await engine.cancel_booking(repo, booking_id=booking_id, requester_id=admin, is_admin=True)
    except BookingRejected as exc:
        raise rejection_error(exc)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)

    audit(
        action="booking.cancelled",
        initiator="admin",
        employee_id=booking.employee_id,
        booking_id=booking.id,
        booking_date=booking.booking_date,
        area=booking.area_key,
        parking=booking.parking,
        extra={"cancelled_by": admin},
    )
    return BookingRead.from_db(booking=booking)
