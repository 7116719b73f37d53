from datetime import date
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from conftest import make_booking
from deskbook.domain.errors import NotFoundError, StoreConflictError, StoreError
from deskbook.infrastructure.repositories import SqlAlchemyBookingRepository
from deskbook.models import Booking, BookingLock
from deskbook.usecases.bookings import ReservationEngine
from sqlalchemy.dialects import mysql, postgresql
from sqlalchemy.exc import IntegrityError, OperationalError

DAY = date(2026, 10, 20)


class DummyNested:
    def __init__(self, session: "DummySession") -> None:
        self.session = session

    async def __aenter__(self) -> "DummyNested":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        if exc_type is None and self.session.flush_error is not None:
            raise self.session.flush_error
        return False


class DummyResult:
    def __init__(self, rowcount: int) -> None:
        self.rowcount = rowcount


class DummyConnection:
    def __init__(self, bind: "DummyBind") -> None:
        self.bind = bind

    async def __aenter__(self) -> "DummyConnection":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        if exc_type is None:
            self.bind.committed += 1
        return False

    async def execute(self, stmt: Any) -> DummyResult:
        self.bind.log.append(("insert", stmt))
        return DummyResult(1)


class DummyBind:
    def __init__(self, dialect_name: str, log: list[Any]) -> None:
        self.dialect = SimpleNamespace(name=dialect_name)
        self.log = log
        self.committed = 0

    def begin(self) -> DummyConnection:
        return DummyConnection(self)


class DummySession:
    def __init__(
        self,
        scalar_results: Optional[list[Any]] = None,
        flush_error: Optional[Exception] = None,
        rowcount: int = 1,
        dialect_name: str = "mysql",
        stored: Optional[Any] = None,
    ) -> None:
        self.stored = stored
        self.scalar_results = list(scalar_results or [])
        self.flush_error = flush_error
        self.rowcount = rowcount
        self.statements: list[Any] = []
        self.added: list[Any] = []
        self.log: list[Any] = []
        self.bind = DummyBind(dialect_name, self.log)

    async def execute(self, stmt: Any) -> DummyResult:
        self.statements.append(stmt)
        return DummyResult(self.rowcount)

    async def get(self, model: Any, ident: Any) -> Any:
        return self.stored

    async def scalar(self, stmt: Any) -> Any:
        self.statements.append(stmt)
        self.log.append(("select", stmt))
        result = self.scalar_results.pop(0) if self.scalar_results else None
        if isinstance(result, Exception):
            raise result
        return result

    def begin_nested(self) -> DummyNested:
        return DummyNested(self)

    def add(self, obj: Any) -> None:
        self.added.append(obj)


def _repo(session: DummySession) -> SqlAlchemyBookingRepository:
    return SqlAlchemyBookingRepository(session)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_create_maps_integrity_error_to_conflict() -> None:
    session = DummySession(flush_error=IntegrityError("insert", {}, Exception("uq_bookings_employee_date")))
    with pytest.raises(StoreConflictError):
        await _repo(session).create(
            employee_id="a",
            employee_key="a",
            employee_name="A",
            booking_date=DAY,
            area_key="ncl_monument",
            parking=False,
        )


@pytest.mark.asyncio
async def test_create_returns_new_booking() -> None:
    session = DummySession()
    booking = await _repo(session).create(
        employee_id="U1",
        employee_key="u1",
        employee_name="Ann",
        booking_date=DAY,
        area_key="dallas_desk",
        parking=False,
    )
    assert session.added == [booking]
    assert booking.employee_key == "u1"
    assert booking.created_at is not None


@pytest.mark.asyncio
async def test_query_failure_becomes_store_error() -> None:
    session = DummySession(scalar_results=[OperationalError("select", {}, Exception("connection lost"))])
    with pytest.raises(StoreError) as excinfo:
        await _repo(session).count_for_area(DAY, "ncl_monument")
    assert not isinstance(excinfo.value, StoreConflictError)


@pytest.mark.asyncio
async def test_count_parking_without_areas_skips_query() -> None:
    session = DummySession()
    assert await _repo(session).count_parking(DAY, []) == 0
    assert session.statements == []


@pytest.mark.asyncio
async def test_admission_lock_inserts_rows_then_locks_in_order() -> None:
    session = DummySession(scalar_results=[BookingLock(), BookingLock()])
    async with _repo(session).admission_lock(DAY, ["area:ncl_monument", "pool:ncl"]):
        pass

    kinds = [kind for kind, _ in session.log]
    assert kinds == ["insert", "select", "select"]
    assert session.bind.committed == 1
    insert_sql = str(session.log[0][1].compile(dialect=mysql.dialect()))
    assert insert_sql.startswith("INSERT IGNORE INTO booking_locks")
    first, second = (stmt for kind, stmt in session.log if kind == "select")
    assert first._for_update_arg is not None and second._for_update_arg is not None
    assert first.compile().params["lock_key_1"] == "area:ncl_monument"
    assert second.compile().params["lock_key_1"] == "pool:ncl"
    assert session.added == []


@pytest.mark.asyncio
async def test_admission_lock_row_insert_skips_existing_rows_on_postgresql() -> None:
    session = DummySession(scalar_results=[BookingLock()], dialect_name="postgresql")
    async with _repo(session).admission_lock(DAY, ["area:dallas_desk"]):
        pass
    insert_sql = str(session.log[0][1].compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT DO NOTHING" in insert_sql


@pytest.mark.asyncio
async def test_admission_lock_without_keys_touches_nothing() -> None:
    session = DummySession()
    async with _repo(session).admission_lock(DAY, []):
        pass
    assert session.log == []
    assert session.bind.committed == 0


@pytest.mark.asyncio
async def test_delete_reports_removed_rows() -> None:
    booking = Booking(id=7)
    assert await _repo(DummySession(rowcount=1)).delete(booking) == 1
    assert await _repo(DummySession(rowcount=0)).delete(booking) == 0


@pytest.mark.asyncio
async def test_cancel_reports_not_found_when_delete_hits_no_row(engine: ReservationEngine) -> None:
    booking = make_booking(7, "a", "y", booking_date=DAY)
    session = DummySession(rowcount=0, stored=booking)
    with pytest.raises(NotFoundError):
        await engine.cancel_booking(_repo(session), booking_id=7, requester_id="a")
    (stmt,) = session.statements
    assert stmt.compile().params["id_1"] == 7
