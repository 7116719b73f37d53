from dataclasses import dataclass
from functools import partial
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_registry, get_settings
from .database import async_session
from .usecases.bookings import ReservationEngine
from .utils.auth import ADMIN_ROLE, decode_access_token
from .utils.time import office_today


@dataclass(frozen=True)
class Requester:
    employee_id: str
    employee_name: str


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_engine() -> ReservationEngine:
    settings = get_settings()
    return ReservationEngine(
        get_registry(),
        horizon_days=settings.booking_horizon_days,
        today=partial(office_today, settings.office_timezone),
    )


async def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> Requester:
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    employee_id = x_user_id.strip()
    name = (x_user_name or "").strip() or employee_id
    return Requester(employee_id=employee_id, employee_name=name)


async def require_admin(authorization: str | None = Header(default=None)) -> str:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="admin token required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if authorization is None:
        raise unauthorized
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise unauthorized

    settings = get_settings()
    try:
        claims = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise unauthorized from exc
    if claims["role"] != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="administrator role required")
    return claims["sub"]
