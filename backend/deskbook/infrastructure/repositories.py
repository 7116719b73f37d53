from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Iterable, List, Optional, Sequence

from sqlalchemy import Insert, Select, delete, func, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StoreConflictError, StoreError
from ..domain.repositories import BookingRepository
from ..models import Booking, BookingLock


@asynccontextmanager
async def _store_errors() -> AsyncIterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise StoreConflictError("booking already exists for this employee and date") from exc
    except SQLAlchemyError as exc:
        raise StoreError("booking store failure") from exc


def _insert_lock_rows(dialect_name: str, rows: list[dict[str, Any]]) -> Insert:
    """INSERT that skips (lock_key, booking_date) rows which already exist."""
    if dialect_name == "mysql":
        return mysql_insert(BookingLock).values(rows).prefix_with("IGNORE")
    if dialect_name == "postgresql":
        return postgresql_insert(BookingLock).values(rows).on_conflict_do_nothing()
    if dialect_name == "sqlite":
        return sqlite_insert(BookingLock).values(rows).on_conflict_do_nothing()
    raise StoreError(f"unsupported database dialect: {dialect_name}")


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def admission_lock(self, booking_date: date, lock_keys: Sequence[str]) -> AsyncIterator[None]:
        # Row locks are held until the surrounding transaction commits or rolls back.
        async with _store_errors():
            if lock_keys:
                await self._ensure_lock_rows(booking_date, lock_keys)
            for lock_key in lock_keys:
                await self.session.scalar(
                    select(BookingLock)
                    .where(BookingLock.lock_key == lock_key, BookingLock.booking_date == booking_date)
                    .with_for_update()
                )
        yield

    async def _ensure_lock_rows(self, booking_date: date, lock_keys: Sequence[str]) -> None:
        # Committed on its own connection so the locking SELECT never runs against a gap.
        bind = self.session.bind
        rows = [{"lock_key": key, "booking_date": booking_date} for key in sorted(lock_keys)]
        async with bind.begin() as conn:
            await conn.execute(_insert_lock_rows(bind.dialect.name, rows))

    async def find_for_employee(self, employee_key: str, booking_date: date) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.employee_key == employee_key, Booking.booking_date == booking_date)
            .order_by(Booking.id)
            .limit(1)
        )
        async with _store_errors():
            result = await self.session.scalar(stmt)
        return result if isinstance(result, Booking) else None

    async def count_for_area(self, booking_date: date, area_key: str) -> int:
        stmt = select(func.count(Booking.id)).where(
            Booking.booking_date == booking_date,
            Booking.area_key == area_key,
        )
        async with _store_errors():
            return int(await self.session.scalar(stmt) or 0)

    async def count_parking(self, booking_date: date, area_keys: Iterable[str]) -> int:
        keys = list(area_keys)
        if not keys:
            return 0
        stmt = select(func.count(Booking.id)).where(
            Booking.booking_date == booking_date,
            Booking.area_key.in_(keys),
            Booking.parking.is_(True),
        )
        async with _store_errors():
            return int(await self.session.scalar(stmt) or 0)

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
        booking = Booking(
            employee_id=employee_id,
            employee_key=employee_key,
            employee_name=employee_name,
            booking_date=booking_date,
            area_key=area_key,
            parking=parking,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        async with _store_errors():
            async with self.session.begin_nested():
                self.session.add(booking)
        return booking

    async def get(self, booking_id: int) -> Optional[Booking]:
        async with _store_errors():
            return await self.session.get(Booking, booking_id)

    async def delete(self, booking: Booking) -> int:
        """Delete the booking row; returns how many rows were actually removed."""
        async with _store_errors():
            result = await self.session.execute(delete(Booking).where(Booking.id == booking.id))
        return result.rowcount or 0

    async def list_for_date(self, booking_date: date, area_key: str | None = None) -> List[Booking]:
        stmt: Select[tuple[Booking]] = select(Booking).where(Booking.booking_date == booking_date)
        if area_key is not None:
            stmt = stmt.where(Booking.area_key == area_key)
        async with _store_errors():
            rows = await self.session.scalars(stmt.order_by(Booking.area_key, Booking.created_at))
        return list(rows.all())

    async def list_for_employee(self, employee_key: str, start: date) -> List[Booking]:
        stmt: Select[tuple[Booking]] = (
            select(Booking)
            .where(Booking.employee_key == employee_key, Booking.booking_date >= start)
            .order_by(Booking.booking_date)
        )
        async with _store_errors():
            rows = await self.session.scalars(stmt)
        return list(rows.all())
