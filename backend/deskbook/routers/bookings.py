from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import Requester, get_engine, get_requester, get_session
from ..domain.errors import BookingRejected, StoreError
from ..infrastructure.repositories import SqlAlchemyBookingRepository
from ..schemas import AvailabilityRead, BookingCreate, BookingRead
from ..usecases.bookings import ReservationEngine
from .common import audit, rejection_error, store_failure

router = APIRouter(prefix="", tags=["bookings"])


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    requester: Requester = Depends(get_requester),
    engine: ReservationEngine = Depends(get_engine),
) -> BookingRead:
    repo = SqlAlchemyBookingRepository(session)
    area_key = engine.registry.canonicalize(payload.area)
    try:
        async with session.begin():
            booking = await engine.request_booking(
                repo,
                employee_id=requester.employee_id,
                employee_name=requester.employee_name,
                booking_date=payload.date,
                area_key=area_key,
                wants_parking=payload.parking,
            )
    except BookingRejected as exc:
        audit(
            action="booking.rejected",
            initiator="user",
            employee_id=requester.employee_id,
            booking_date=payload.date,
            area=area_key,
            parking=payload.parking,
            reason=exc.code,
        )
        raise rejection_error(exc)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)

    audit(
        action="booking.created",
        initiator="user",
        employee_id=booking.employee_id,
        booking_id=booking.id,
        booking_date=booking.booking_date,
        area=booking.area_key,
        parking=booking.parking,
    )
    return BookingRead.from_db(booking=booking)


@router.get("/bookings", response_model=List[BookingRead])
async def list_bookings(
    booking_date: date = Query(..., alias="date"),
    area: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    engine: ReservationEngine = Depends(get_engine),
) -> list[BookingRead]:
    repo = SqlAlchemyBookingRepository(session)
    try:
        listing = await engine.list_bookings(
            repo,
            booking_date=booking_date,
            area_key=engine.registry.canonicalize(area) if area else None,
        )
    except BookingRejected as exc:
        raise rejection_error(exc)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)
    return [BookingRead.from_db(booking=booking) for booking in listing]


@router.get("/availability", response_model=AvailabilityRead)
async def get_availability(
    booking_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    engine: ReservationEngine = Depends(get_engine),
) -> AvailabilityRead:
    repo = SqlAlchemyBookingRepository(session)
    try:
        availability = await engine.availability(repo, booking_date=booking_date)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)
    return AvailabilityRead.from_domain(availability)


@router.get("/me/bookings", response_model=List[BookingRead])
async def list_my_bookings(
    session: AsyncSession = Depends(get_session),
    requester: Requester = Depends(get_requester),
    engine: ReservationEngine = Depends(get_engine),
) -> list[BookingRead]:
    repo = SqlAlchemyBookingRepository(session)
    try:
        rows = await engine.upcoming_for_employee(repo, employee_id=requester.employee_id)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)
    return [BookingRead.from_db(booking=booking) for booking in rows]


@router.delete("/bookings/{booking_id}", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    requester: Requester = Depends(get_requester),
    engine: ReservationEngine = Depends(get_engine),
) -> BookingRead:
    repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking = await engine.cancel_booking(repo, booking_id=booking_id, requester_id=requester.employee_id)
    except BookingRejected as exc:
        raise rejection_error(exc)
    except (StoreError, SQLAlchemyError) as exc:
        raise store_failure(exc)

    audit(
        action="booking.cancelled",
        initiator="user",
        employee_id=requester.employee_id,
        booking_id=booking.id,
        booking_date=booking.booking_date,
        area=booking.area_key,
        parking=booking.parking,
    )
    return BookingRead.from_db(booking=booking)
