from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..domain.errors import DuplicateBookingError, ForbiddenError, NotFoundError, StoreConflictError
from ..domain.registry import CapacityRegistry, DeskArea, ParkingPool
from ..domain.repositories import BookingRepository
from ..domain.services import (
    AdmissionSnapshot,
    BookingListing,
    DuplicateGroup,
    detect_duplicates,
    employee_key,
    validate_admission,
    validate_booking_date,
)
from ..models import Booking

__all__ = ["AreaAvailability", "Availability", "PoolAvailability", "ReservationEngine", "detect_duplicates"]

DEFAULT_HORIZON_DAYS = 14


@dataclass(frozen=True)
class AreaAvailability:
    area: DeskArea
    booked: int
    parking: int

    @property
    def remaining(self) -> int:
        return max(self.area.capacity - self.booked, 0)


@dataclass(frozen=True)
class PoolAvailability:
    pool: ParkingPool
    used: int

    @property
    def remaining(self) -> int:
        return max(self.pool.permits - self.used, 0)


@dataclass(frozen=True)
class Availability:
    booking_date: date
    areas: list[AreaAvailability]
    pools: list[PoolAvailability]


class ReservationEngine:
    """Admits or rejects bookings against a capacity registry.

    Counts are read from the repository on every call; nothing is cached between requests.
    """

    def __init__(
        self,
        registry: CapacityRegistry,
        *,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        today: Callable[[], date] = date.today,
    ) -> None:
        if horizon_days < 0:
            raise ValueError("horizon_days must be >= 0")
        self.registry = registry
        self.horizon_days = horizon_days
        self._today = today

    def today(self) -> date:
        return self._today()

    async def request_booking(
        self,
        repo: BookingRepository,
        *,
        employee_id: str,
        employee_name: str,
        booking_date: date,
        area_key: str,
        wants_parking: bool,
    ) -> Booking:
        validate_booking_date(booking_date, today=self.today(), horizon_days=self.horizon_days)

        key = employee_key(employee_id)
        area: Optional[DeskArea] = self.registry.area(area_key) if area_key in self.registry else None
        pool: Optional[ParkingPool] = None
        lock_keys: list[str] = []
        if area is not None:
            lock_keys.append(f"area:{area.key}")
            if wants_parking and area.pool is not None:
                pool = self.registry.pool(area.pool)
                lock_keys.append(f"pool:{pool.key}")

        async with repo.admission_lock(booking_date, lock_keys):
            existing = await repo.find_for_employee(key, booking_date)
            area_booked = await repo.count_for_area(booking_date, area.key) if area is not None else 0
            parking_used = (
                await repo.count_parking(booking_date, self.registry.areas_in_pool(pool.key))
                if pool is not None
                else 0
            )
            snapshot = AdmissionSnapshot(
                booking_date=booking_date,
                area_key=area_key,
                area=area,
                area_booked=area_booked,
                pool=pool,
                parking_used=parking_used,
                existing_area_key=existing.area_key if existing is not None else None,
            )
            parking = validate_admission(snapshot, wants_parking=wants_parking)

            try:
                return await repo.create(
                    employee_id=employee_id,
                    employee_key=key,
                    employee_name=employee_name,
                    booking_date=booking_date,
                    area_key=area_key,
                    parking=parking,
                )
            except StoreConflictError as exc:
                raise DuplicateBookingError(f"You already have a booking for {booking_date.isoformat()}") from exc

    async def cancel_booking(
        self,
        repo: BookingRepository,
        *,
        booking_id: int,
        requester_id: str,
        is_admin: bool = False,
    ) -> Booking:
        booking = await repo.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if not is_admin and booking.employee_key != employee_key(requester_id):
            raise ForbiddenError("You can only cancel your own bookings")
        if await repo.delete(booking) == 0:
            # Removed by a concurrent cancel between the read and the delete.
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def list_bookings(
        self,
        repo: BookingRepository,
        *,
        booking_date: date,
        area_key: str | None = None,
    ) -> BookingListing:
        if area_key is not None:
            self.registry.area(area_key)
        return BookingListing(await repo.list_for_date(booking_date, area_key))

    async def upcoming_for_employee(self, repo: BookingRepository, *, employee_id: str) -> list[Booking]:
        return await repo.list_for_employee(employee_key(employee_id), self.today())

    async def availability(self, repo: BookingRepository, *, booking_date: date) -> Availability:
        booked: dict[str, int] = {}
        parked: dict[str, int] = {}
        for booking in await repo.list_for_date(booking_date):
            booked[booking.area_key] = booked.get(booking.area_key, 0) + 1
            if booking.parking:
                parked[booking.area_key] = parked.get(booking.area_key, 0) + 1

        areas = [
            AreaAvailability(area=area, booked=booked.get(area.key, 0), parking=parked.get(area.key, 0))
            for area in self.registry.areas
        ]
        pools = [
            PoolAvailability(
                pool=pool,
                used=sum(parked.get(key, 0) for key in self.registry.areas_in_pool(pool.key)),
            )
            for pool in self.registry.pools
        ]
        return Availability(booking_date=booking_date, areas=areas, pools=pools)

    @staticmethod
    def detect_duplicates(bookings: list[Booking] | BookingListing) -> list[DuplicateGroup]:
        return detect_duplicates(bookings)
