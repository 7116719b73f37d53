import logging
from datetime import date
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_engine, get_session
from ..domain.errors import BookingRejected, StoreError
from ..infrastructure.repositories import SqlAlchemyBookingRepository
from ..models import Booking
from ..usecases.bookings import AreaAvailability, PoolAvailability, ReservationEngine
from ..utils.slack import USAGE, SlackCommand, SlackCommandError, parse_command, verify_signature
from .common import audit

router = APIRouter(prefix="/slack", tags=["slack"])

logger = logging.getLogger(__name__)


def _reply(text: str, *, public: bool = False) -> dict[str, str]:
    return {"response_type": "in_channel" if public else "ephemeral", "text": text}


def _area_name(engine: ReservationEngine, area_key: str) -> str:
    if area_key in engine.registry:
        return engine.registry.area(area_key).name
    return area_key


def _form_value(form: dict[str, list[str]], name: str) -> str:
    values = form.get(name)
    return values[0] if values else ""


async def _dispatch(
    command: SlackCommand,
    *,
    user_id: str,
    user_name: str,
    session: AsyncSession,
    engine: ReservationEngine,
) -> dict[str, str]:
    repo = SqlAlchemyBookingRepository(session)

    if command.action == "book":
        if command.booking_date is None or command.area is None:
            raise SlackCommandError(USAGE)
        area_key = engine.registry.canonicalize(command.area)
        try:
            async with session.begin():
                booking = await engine.request_booking(
                    repo,
                    employee_id=user_id,
                    employee_name=user_name,
                    booking_date=command.booking_date,
                    area_key=area_key,
                    wants_parking=command.parking,
                )
        except BookingRejected as exc:
            audit(
                action="booking.rejected",
                initiator="slack",
                employee_id=user_id,
                booking_date=command.booking_date,
                area=area_key,
                parking=command.parking,
                reason=exc.code,
            )
            raise
        audit(
            action="booking.created",
            initiator="slack",
            employee_id=user_id,
            booking_id=booking.id,
            booking_date=booking.booking_date,
            area=booking.area_key,
            parking=booking.parking,
        )
        parking_note = "\nParking space reserved" if booking.parking else ""
        return _reply(
            f"Desk booked for {booking.employee_name} on {booking.booking_date.isoformat()}"
            f"\nLocation: {_area_name(engine, booking.area_key)} (booking #{booking.id}){parking_note}",
            public=True,
        )

    if command.action == "list":
        if command.booking_date is None:
            raise SlackCommandError(USAGE)
        area_key = engine.registry.canonicalize(command.area) if command.area else None
        listing = await engine.list_bookings(repo, booking_date=command.booking_date, area_key=area_key)
        availability = await engine.availability(repo, booking_date=command.booking_date)
        return _reply(
            _format_listing(engine, command.booking_date, list(listing), availability.areas, availability.pools)
        )

    if command.action == "mine":
        rows = await engine.upcoming_for_employee(repo, employee_id=user_id)
        if not rows:
            return _reply("You have no upcoming bookings.")
        lines = ["Your upcoming bookings:"]
        for booking in rows:
            parking = " (with parking)" if booking.parking else ""
            lines.append(
                f"#{booking.id} {booking.booking_date.isoformat()} - {_area_name(engine, booking.area_key)}{parking}"
            )
        return _reply("\n".join(lines))

    if command.action == "cancel":
        if command.booking_id is None:
            raise SlackCommandError(USAGE)
        async with session.begin():
            booking = await engine.cancel_booking(repo, booking_id=command.booking_id, requester_id=user_id)
        audit(
            action="booking.cancelled",
            initiator="slack",
            employee_id=user_id,
            booking_id=booking.id,
            booking_date=booking.booking_date,
            area=booking.area_key,
            parking=booking.parking,
        )
        released = " (parking space released)" if booking.parking else ""
        return _reply(
            f"{booking.employee_name} cancelled their booking for {booking.booking_date.isoformat()}"
            f" at {_area_name(engine, booking.area_key)}{released}",
            public=True,
        )

    return _reply(USAGE)


def _format_listing(
    engine: ReservationEngine,
    booking_date: date,
    bookings: list[Booking],
    areas: list[AreaAvailability],
    pools: list[PoolAvailability],
) -> str:
    day = booking_date.isoformat()
    if not bookings:
        return f"No bookings found for {day}"

    counts = {entry.area.key: entry for entry in areas}
    pool_counts = {entry.pool.key: entry for entry in pools}
    lines = [f"Bookings for {day}", ""]
    current_area = None
    index = 0
    for booking in bookings:
        if booking.area_key != current_area:
            if current_area is not None:
                lines.append("")
            current_area = booking.area_key
            index = 0
            header = _area_name(engine, booking.area_key)
            entry = counts.get(booking.area_key)
            if entry is not None:
                header += f" ({entry.booked}/{entry.area.capacity} desks"
                pool = pool_counts.get(entry.area.pool) if entry.area.pool else None
                if pool is not None:
                    header += f", {pool.used}/{pool.pool.permits} {pool.pool.name} parking"
                header += ")"
            lines.append(header)
        index += 1
        lines.append(f"{index}. {booking.employee_name}{' (parking)' if booking.parking else ''}")
    return "\n".join(lines)


@router.post("/commands")
async def slash_command(
    request: Request,
    session: AsyncSession = Depends(get_session),
    engine: ReservationEngine = Depends(get_engine),
) -> dict[str, str]:
    body = await request.body()
    secret = get_settings().slack_signing_secret
    if secret and not verify_signature(
        signing_secret=secret,
        timestamp=request.headers.get("X-Slack-Request-Timestamp"),
        signature=request.headers.get("X-Slack-Signature"),
        body=body,
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid slack signature")

    try:
        form = parse_qs(body.decode("utf-8"))
    except UnicodeDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="form body is not valid UTF-8") from None
    user_id = _form_value(form, "user_id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="user_id missing")
    user_name = _form_value(form, "user_name") or user_id

    try:
        command = parse_command(_form_value(form, "text"), today=engine.today())
        return await _dispatch(command, user_id=user_id, user_name=user_name, session=session, engine=engine)
    except SlackCommandError as exc:
        return _reply(str(exc))
    except BookingRejected as exc:
        return _reply(exc.message)
    except (StoreError, SQLAlchemyError):
        logger.exception("booking store failure while handling slack command")
        return _reply("Something went wrong. Please try again.")
