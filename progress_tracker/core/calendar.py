"""Week identity in a fixed civil timezone.

Every weekly record is keyed by the Monday that starts its week, computed in
``TRACKER_TIMEZONE`` regardless of where the process runs. Civil dates travel
through the system as ISO ``YYYY-MM-DD`` strings because that is how they are
persisted.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from progress_tracker.errors import ValidationError

TRACKER_TIMEZONE = "Asia/Hong_Kong"
TZ = ZoneInfo(TRACKER_TIMEZONE)

SUNDAY = 0
MONDAY = 1

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def parse_civil_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""

    text = str(value or "").strip()
    if not _ISO_DATE.match(text):
        raise ValidationError(f"Expected a YYYY-MM-DD date, got {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid calendar date {value!r}") from exc


def local_midnight(value: str) -> datetime:
    """Return the instant of local midnight that starts ``value``."""

    return datetime.combine(parse_civil_date(value), time(0, 0), tzinfo=TZ)


def to_civil_date(instant: datetime) -> str:
    """Calendar date of ``instant`` in the tracker timezone.

    Naive datetimes are interpreted as UTC.
    """

    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(TZ).date().isoformat()


def day_of_week(value: str) -> int:
    """Day of week of a civil date, Sunday=0 ... Saturday=6."""

    # date.weekday() is Monday=0 ... Sunday=6
    return (parse_civil_date(value).weekday() + 1) % 7


def add_days(value: str, delta: int) -> str:
    moved = local_midnight(value) + timedelta(days=int(delta))
    return to_civil_date(moved)


def today(now: datetime | None = None) -> str:
    return to_civil_date(now or datetime.now(timezone.utc))


def current_week_start(now: datetime | None = None) -> str:
    """Monday on or before the current civil date."""

    current = today(now)
    delta = (day_of_week(current) + 6) % 7
    return add_days(current, -delta)


def is_week_start(value: str) -> bool:
    """True iff ``value`` is a well-formed date falling on a Monday."""

    try:
        return day_of_week(value) == MONDAY
    except ValidationError:
        return False


def require_week_start(value: str, *, field_name: str = "week_start_date") -> str:
    if not is_week_start(value):
        raise ValidationError(f"{field_name} must be a Monday ({TRACKER_TIMEZONE}), got {value!r}")
    return str(value).strip()


def recent_week_starts(count: int, now: datetime | None = None) -> list[str]:
    """Current week start followed by the ``count - 1`` previous ones, newest first."""

    monday = current_week_start(now)
    return [add_days(monday, -7 * i) for i in range(max(0, int(count)))]


def format_for_display(value: str) -> str:
    """Render a civil date with its weekday, e.g. ``"Mon, 2024-01-01"``."""

    return f"{_WEEKDAY_NAMES[day_of_week(value)]}, {parse_civil_date(value).isoformat()}"
