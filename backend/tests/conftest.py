import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterable, Optional, Sequence

import pytest
from deskbook.domain.errors import StoreConflictError
from deskbook.domain.registry import CapacityRegistry, DeskArea, ParkingPool
from deskbook.models import Booking
from deskbook.usecases.bookings import ReservationEngine

TODAY: date = date(2026, 10, 19)


def make_booking(
    booking_id: int,
    employee: str,
    area_key: str,
    *,
    booking_date: date = TODAY,
    parking: bool = False,
    name: Optional[str] = None,
) -> Booking:
    return Booking(
        id=booking_id,
        employee_id=employee,
        employee_key=employee.strip().casefold(),
        employee_name=name or employee,
        booking_date=booking_date,
        area_key=area_key,
        parking=parking,
        created_at=datetime(2026, 10, 18, 9, 0),
    )


class FakeBookingRepo:
    """In-memory store: per-key asyncio locks stand in for row locks, and
    create() enforces the (employee, date) unique constraint."""

    def __init__(self, bookings: Iterable[Booking] = ()) -> None:
        self.bookings: list[Booking] = list(bookings)
        self._next_id = max((b.id for b in self.bookings), default=0) + 1
        self._locks: dict[tuple[date, str], asyncio.Lock] = {}
        self.lock_calls: list[list[str]] = []

    @asynccontextmanager
    async def admission_lock(self, booking_date: date, lock_keys: Sequence[str]) -> AsyncIterator[None]:
        self.lock_calls.append(list(lock_keys))
        locks = [self._locks.setdefault((booking_date, key), asyncio.Lock()) for key in lock_keys]
        for lock in locks:
            await lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    async def find_for_employee(self, employee_key: str, booking_date: date) -> Optional[Booking]:
        await asyncio.sleep(0)
        for booking in self.bookings:
            if booking.employee_key == employee_key and booking.booking_date == booking_date:
                return booking
        return None

    async def count_for_area(self, booking_date: date, area_key: str) -> int:
        await asyncio.sleep(0)
        return sum(1 for b in self.bookings if b.booking_date == booking_date and b.area_key == area_key)

    async def count_parking(self, booking_date: date, area_keys: Iterable[str]) -> int:
        await asyncio.sleep(0)
        keys = set(area_keys)
        return sum(1 for b in self.bookings if b.booking_date == booking_date and b.area_key in keys and b.parking)

    async def create(
        self,
        *,
        employee_id: str,
        employee_key: str,
        employee_name: str,
        booking_date: date,
        area_key: str,
        parking: bool,
    ) -> Booking:
        await asyncio.sleep(0)
        if any(b.employee_key == employee_key and b.booking_date == booking_date for b in self.bookings):
            raise StoreConflictError("duplicate")
        booking = Booking(
            id=self._next_id,
            employee_id=employee_id,
            employee_key=employee_key,
            employee_name=employee_name,
            booking_date=booking_date,
            area_key=area_key,
            parking=parking,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        self._next_id += 1
        self.bookings.append(booking)
        return booking

    async def get(self, booking_id: int) -> Optional[Booking]:
        return next((b for b in self.bookings if b.id == booking_id), None)

    async def delete(self, booking: Booking) -> int:
        if booking not in self.bookings:
            return 0
        self.bookings.remove(booking)
        return 1

    async def list_for_date(self, booking_date: date, area_key: Optional[str] = None) -> list[Booking]:
        return [
            b
            for b in self.bookings
            if b.booking_date == booking_date and (area_key is None or b.area_key == area_key)
        ]

    async def list_for_employee(self, employee_key: str, start: date) -> list[Booking]:
        rows = [b for b in self.bookings if b.employee_key == employee_key and b.booking_date >= start]
        return sorted(rows, key=lambda b: b.booking_date)


def small_registry() -> CapacityRegistry:
    return CapacityRegistry(
        [
            DeskArea(key="x", name="Area X", capacity=1, pool="site"),
            DeskArea(key="x1", name="Area X1", capacity=5, pool="site"),
            DeskArea(key="x2", name="Area X2", capacity=5, pool="site"),
            DeskArea(key="y", name="Area Y", capacity=5),
        ],
        [ParkingPool(key="site", name="Site", permits=1)],
    )


@pytest.fixture
def registry() -> CapacityRegistry:
    return small_registry()


@pytest.fixture
def engine(registry: CapacityRegistry) -> ReservationEngine:
    return ReservationEngine(registry, horizon_days=14, today=lambda: TODAY)


@pytest.fixture
def repo() -> FakeBookingRepo:
    return FakeBookingRepo()
