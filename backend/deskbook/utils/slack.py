from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, Optional

SlackAction = Literal["book", "list", "mine", "cancel", "help"]

MAX_REQUEST_AGE_SECONDS = 60 * 5
PARKING_WORDS = frozenset({"parking", "+parking", "--parking", "p"})

USAGE = (
    "Usage:\n"
    "`/bookdesk book <date> <area> [parking]` book a desk\n"
    "`/bookdesk list [date] [area]` show bookings for a day\n"
    "`/bookdesk mine` show your upcoming bookings\n"
    "`/bookdesk cancel <booking id>` cancel one of your bookings\n"
    "Dates are YYYY-MM-DD, `today` or `tomorrow`."
)


class SlackCommandError(ValueError):
    pass


@dataclass(frozen=True)
class SlackCommand:
    action: SlackAction
    booking_date: Optional[date] = None
    area: Optional[str] = None
    parking: bool = False
    booking_id: Optional[int] = None


def verify_signature(
    *,
    signing_secret: str,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    now: float | None = None,
) -> bool:
    """Check Slack's v0 request signature."""
    if not timestamp or not signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > MAX_REQUEST_AGE_SECONDS:
        return False
    base = b"v0:" + timestamp.encode("ascii") + b":" + body
    expected = "v0=" + hmac.new(signing_secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def parse_date(token: str, *, today: date) -> date:
    lowered = token.lower()
    if lowered == "today":
        return today
    if lowered == "tomorrow":
        return today + timedelta(days=1)
    try:
        return date.fromisoformat(token)
    except ValueError as exc:
        raise SlackCommandError(f"Could not read `{token}` as a date. Use YYYY-MM-DD, today or tomorrow.") from exc


def _looks_like_date(token: str) -> bool:
    return token.lower() in ("today", "tomorrow") or (len(token) == 10 and token[4] == "-" and token[7] == "-")


def parse_command(text: str, *, today: date) -> SlackCommand:
    tokens = text.split()
    if not tokens or tokens[0].lower() == "help":
        return SlackCommand(action="help")

    action, args = tokens[0].lower(), tokens[1:]
    if action == "book":
        if len(args) < 2:
            raise SlackCommandError("Tell me a date and an area, e.g. `book tomorrow ncl_monument parking`.")
        booking_date = parse_date(args[0], today=today)
        rest = args[1:]
        parking = False
        if len(rest) > 1 and rest[-1].lower() in PARKING_WORDS:
            parking = True
            rest = rest[:-1]
        return SlackCommand(action="book", booking_date=booking_date, area=" ".join(rest), parking=parking)

    if action == "list":
        booking_date = today
        if args and _looks_like_date(args[0]):
            booking_date = parse_date(args[0], today=today)
            args = args[1:]
        area = " ".join(args) or None
        if area is not None and area.lower() in ("all", "all offices"):
            area = None
        return SlackCommand(action="list", booking_date=booking_date, area=area)

    if action == "mine":
        return SlackCommand(action="mine")

    if action == "cancel":
        if len(args) != 1 or not args[0].lstrip("#").isdigit():
            raise SlackCommandError("Tell me which booking to cancel, e.g. `cancel 42`. `mine` lists your bookings.")
        return SlackCommand(action="cancel", booking_id=int(args[0].lstrip("#")))

    raise SlackCommandError(f"Unknown command `{action}`.\n{USAGE}")
