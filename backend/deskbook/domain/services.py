from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from .errors import (
    AreaFullError,
    DateOutOfRangeError,
    DuplicateBookingError,
    ParkingFullError,
    ParkingNotAvailableError,
    UnknownAreaError,
)
from .registry import DeskArea, ParkingPool

if TYPE_CHECKING:
    from ..models import Booking


def employee_key(employee: str) -> str:
    """Normalized identity used for the one-booking-per-day rule."""
    return employee.strip().casefold()


def validate_booking_date(booking_date: date, *, today: date, horizon_days: int) -> None:
    if booking_date < today:
        raise DateOutOfRangeError(f"Cannot book {booking_date.isoformat()}: the date is in the past")
    latest = today + timedelta(days=horizon_days)
    if booking_date > latest:
        raise DateOutOfRangeError(
            f"Cannot book {booking_date.isoformat()}: bookings open at most {horizon_days} days ahead"
            f" (latest {latest.isoformat()})"
        )


@dataclass(frozen=True)
class AdmissionSnapshot:
    booking_date: date
    area_key: str
    area: Optional[DeskArea]
    area_booked: int
    pool: Optional[ParkingPool]
    parking_used: int
    existing_area_key: Optional[str] = None

    @property
    def employee_has_booking(self) -> bool:
        return self.existing_area_key is not None


def validate_admission(snapshot: AdmissionSnapshot, *, wants_parking: bool) -> bool:
    """
    Pure admission check, evaluated in a fixed order: duplicate, unknown area,
    area full, parking. Returns the parking flag to persist. Raises domain errors otherwise.
    """
    day = snapshot.booking_date.isoformat()
    if snapshot.employee_has_booking:
        raise DuplicateBookingError(f"You already have a booking for {day} at {snapshot.existing_area_key}")
    area = snapshot.area
    if area is None:
        raise UnknownAreaError(f"Unknown desk area: {snapshot.area_key}")
    if snapshot.area_booked >= area.capacity:
        raise AreaFullError(
            f"{area.name} is fully booked for {day} ({area.capacity}/{area.capacity} desks taken)"
        )
    if wants_parking:
        pool = snapshot.pool
        if pool is None:
            raise ParkingNotAvailableError(f"Parking is not available at {area.name}")
        if snapshot.parking_used >= pool.permits:
            raise ParkingFullError(
                f"All {pool.name} parking spaces are taken for {day} ({pool.permits}/{pool.permits} spaces taken)"
            )
    return wants_parking and area.has_parking


def listing_sort_key(booking: "Booking") -> tuple[str, str, int]:
    return (booking.area_key, booking.employee_name.casefold(), booking.id or 0)


class BookingListing:
    """Finite, restartable view over bookings, ordered by area then employee name."""

    def __init__(self, bookings: Iterable["Booking"]) -> None:
        self._bookings = tuple(bookings)

    def __iter__(self) -> Iterator["Booking"]:
        return iter(sorted(self._bookings, key=listing_sort_key))

    def __len__(self) -> int:
        return len(self._bookings)


@dataclass
class DuplicateGroup:
    key: str
    employee_name: str
    booking_date: date
    bookings: list["Booking"] = field(default_factory=list)


def detect_duplicates(bookings: Iterable["Booking"]) -> list[DuplicateGroup]:
    """Group bookings sharing (trimmed, case-folded employee name, date).

    Only groups with two or more bookings are returned, in order of first appearance.
    """
    groups: dict[str, DuplicateGroup] = {}
    for booking in bookings:
        key = f"{employee_key(booking.employee_name)}-{booking.booking_date.isoformat()}"
        group = groups.get(key)
        if group is None:
            group = groups[key] = DuplicateGroup(
                key=key,
                employee_name=booking.employee_name,
                booking_date=booking.booking_date,
            )
        group.bookings.append(booking)
    return [group for group in groups.values() if len(group.bookings) > 1]
