from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from .domain.errors import BookingRejected
from .domain.services import DuplicateGroup
from .models import Booking
from .usecases.bookings import Availability
from .utils.time import utc_naive_to_office


class BookingCreate(BaseModel):
    date: date
    area: str = Field(min_length=1, max_length=64)
    parking: bool = False

    @field_validator("area")
    @classmethod
    def _strip_area(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("area must not be blank")
        return value


class BookingRead(BaseModel):
    booking_id: int
    employee_id: str
    employee_name: str
    date: date
    area: str
    parking: bool
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(
            booking_id=booking.id,
            employee_id=booking.employee_id,
            employee_name=booking.employee_name,
            date=booking.booking_date,
            area=booking.area_key,
            parking=booking.parking,
            created_at=utc_naive_to_office(booking.created_at),
        )


class RejectionRead(BaseModel):
    code: str
    message: str

    @classmethod
    def from_error(cls, error: BookingRejected) -> "RejectionRead":
        return cls(code=error.code, message=error.message)


class AreaAvailabilityRead(BaseModel):
    area: str
    name: str
    capacity: int
    booked: int
    remaining: int
    parking_pool: Optional[str]


class PoolAvailabilityRead(BaseModel):
    pool: str
    name: str
    permits: int
    used: int
    remaining: int


class AvailabilityRead(BaseModel):
    date: date
    areas: list[AreaAvailabilityRead]
    pools: list[PoolAvailabilityRead]

    @classmethod
    def from_domain(cls, availability: Availability) -> "AvailabilityRead":
        return cls(
            date=availability.booking_date,
            areas=[
                AreaAvailabilityRead(
                    area=entry.area.key,
                    name=entry.area.name,
                    capacity=entry.area.capacity,
                    booked=entry.booked,
                    remaining=entry.remaining,
                    parking_pool=entry.area.pool,
                )
                for entry in availability.areas
            ],
            pools=[
                PoolAvailabilityRead(
                    pool=entry.pool.key,
                    name=entry.pool.name,
                    permits=entry.pool.permits,
                    used=entry.used,
                    remaining=entry.remaining,
                )
                for entry in availability.pools
            ],
        )


class DuplicateGroupRead(BaseModel):
    employee_name: str
    date: date
    booking_ids: list[int]

    @classmethod
    def from_domain(cls, group: DuplicateGroup) -> "DuplicateGroupRead":
        return cls(
            employee_name=group.employee_name,
            date=group.booking_date,
            booking_ids=[booking.id for booking in group.bookings],
        )


class AdminBookingsRead(BaseModel):
    date: date
    bookings: list[BookingRead]
    availability: AvailabilityRead
    duplicates: list[DuplicateGroupRead]


class AdminLogin(BaseModel):
    password: str = Field(min_length=1)


class TokenRead(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
