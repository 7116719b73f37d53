from __future__ import annotations

from datetime import date
from typing import AsyncContextManager, Iterable, Protocol, Sequence

from ..models import Booking


class BookingRepository(Protocol):
    def admission_lock(self, booking_date: date, lock_keys: Sequence[str]) -> AsyncContextManager[None]: ...

    async def find_for_employee(self, employee_key: str, booking_date: date) -> Booking | None: ...

    async def count_for_area(self, booking_date: date, area_key: str) -> int: ...

    async def count_parking(self, booking_date: date, area_keys: Iterable[str]) -> int: ...

    async def create(
        self,
        *,
        employee_id: str,
        employee_key: str,
        employee_name: str,
        booking_date: date,
        area_key: str,
        parking: bool,
    ) -> Booking: ...

    async def get(self, booking_id: int) -> Booking | None: ...

    async def delete(self, booking: Booking) -> int: ...

    async def list_for_date(self, booking_date: date, area_key: str | None = None) -> list[Booking]: ...

    async def list_for_employee(self, employee_key: str, start: date) -> list[Booking]: ...
