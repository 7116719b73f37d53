from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_OFFICE_TZ = "Europe/London"


def office_today(tz_name: str = DEFAULT_OFFICE_TZ) -> date:
    """Calendar day at the office, used as the booking window's "today"."""
    return datetime.now(timezone.utc).astimezone(ZoneInfo(tz_name)).date()


def utc_naive_to_office(dt: datetime, tz_name: str = DEFAULT_OFFICE_TZ) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
