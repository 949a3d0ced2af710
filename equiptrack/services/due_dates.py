from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..core.config import settings

DUE_RED = "red"
DUE_YELLOW = "yellow"
DUE_GREEN = "green"
DUE_NONE = "none"

UNITS = ("months", "years")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_ts(dt: datetime) -> str:
    """Render an aware datetime the way every timestamp column stores it."""
    return dt.astimezone(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


def now_iso() -> str:
    return format_ts(utcnow())


def parse_ts(value: str | datetime | date | None, tz: str | None = None) -> datetime | None:
    """Parse a stored or user-supplied timestamp.
    Date-only values mean midnight; naive values are read in ``tz`` (the
    configured zone by default). Returns None for blanks.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz or settings.TZ))
    return dt


def normalize_ts(value: str | datetime | date | None) -> str | None:
    """Parse then re-render so every stored timestamp compares as text."""
    try:
        dt = parse_ts(value)
    except ValueError as exc:
        raise ValueError(f"invalid timestamp: {value!r}") from exc
    return format_ts(dt) if dt else None


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day clamps to the end of short months."""
    total = dt.month - 1 + months
    year = dt.year + total // 12
    month = total % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def shift(start: datetime, amount: int, unit: str) -> datetime:
    if unit not in UNITS:
        raise ValueError(f"unit must be one of {', '.join(UNITS)}")
    months = amount * 12 if unit == "years" else amount
    return add_months(start, months)


def due_status(due: str | datetime | None, now: datetime | None = None) -> str:
    """Classify a maintenance due date.

      - red:    due within one month (or overdue)
      - yellow: due within three months
      - green:  later than that
      - none:   no due date set
    """
    due_dt = parse_ts(due) if due else None
    if due_dt is None:
        return DUE_NONE
    now = now or utcnow()
    if due_dt <= add_months(now, 1):
        return DUE_RED
    if due_dt <= add_months(now, 3):
        return DUE_YELLOW
    return DUE_GREEN
