"""ISO-8601 helpers shared by the matcher and the overdue sweep."""

import re
from datetime import datetime, time, timezone

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value: str | None, end_of_day: bool = False) -> datetime | None:
    """
    Parse an ISO date or datetime into an aware UTC datetime.

    A bare date is the start of that day, or its last instant when end_of_day
    is set. Naive datetimes are taken as UTC. Unparseable values return None.
    """
    if not value:
        return None
    value = value.strip()
    try:
        if DATE_ONLY.match(value):
            day = datetime.strptime(value, "%Y-%m-%d").date()
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def in_window(instant: str | None, start: str | None, end: str | None) -> bool:
    """Inclusive window check; an unset bound imposes no constraint."""
    moment = parse_instant(instant)
    if moment is None:
        return False
    lower = parse_instant(start)
    upper = parse_instant(end, end_of_day=True)
    if (start and lower is None) or (end and upper is None):
        return False
    if lower and moment < lower:
        return False
    if upper and moment > upper:
        return False
    return True
