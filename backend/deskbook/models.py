from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, String


class Base(DeclarativeBase):
    pass


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("employee_key", "booking_date", name="uq_bookings_employee_date"),
        Index("idx_bookings_date_area", "booking_date", "area_key"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    employee_id: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_key: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    area_key: Mapped[str] = mapped_column(String(64), nullable=False)
    parking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class BookingLock(Base):
    """One row per (date, area) or (date, pool), locked while admitting a booking."""

    __tablename__ = "booking_locks"

    lock_key: Mapped[str] = mapped_column(String(80), primary_key=True)
    booking_date: Mapped[date] = mapped_column(Date, primary_key=True)
