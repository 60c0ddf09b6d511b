"""
Attendance day normalization.

Every producer and consumer of attendance days goes through `normalize_day`.
A CanonicalDay is a plain `datetime.date` computed in one fixed civil offset
(settings.attendance_utc_offset_minutes, +05:30 by default), so the result never
depends on the timezone of the machine running the code.

Accepted inputs:
- None                      -> today in the fixed offset
- datetime.date             -> returned as is
- aware datetime            -> converted to the fixed offset, date part taken
- naive datetime            -> read as wall-clock time in the fixed offset
- "YYYY-MM-DD"              -> that calendar day
- ISO-8601 timestamp string -> parsed, then as for datetimes
- int / float               -> POSIX timestamp (seconds)
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from pydantic import TypeAdapter, ValidationError

from app.core.config import settings
from app.core.exceptions import InvalidDate, PolicyViolation

DateLike = Union[date, datetime, str, int, float]

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME_ADAPTER = TypeAdapter(datetime)


def civil_timezone(offset_minutes: Optional[int] = None) -> timezone:
    if offset_minutes is None:
        offset_minutes = settings.attendance_utc_offset_minutes
    return timezone(timedelta(minutes=offset_minutes))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_civil(value: datetime, tz: timezone) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _parse(value: DateLike, tz: timezone) -> date:
    if isinstance(value, datetime):
        return _to_civil(value, tz).date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        raise InvalidDate(value)
    if isinstance(value, str):
        text = value.strip()
        if _DATE_ONLY.match(text):
            try:
                return date.fromisoformat(text)
            except ValueError:
                raise InvalidDate(value)
        if not text:
            raise InvalidDate(value)
        value = text
    elif not isinstance(value, (int, float)):
        raise InvalidDate(value)
    try:
        parsed = _DATETIME_ADAPTER.validate_python(value)
    except ValidationError:
        raise InvalidDate(value)
    return _to_civil(parsed, tz).date()


def normalize_day(
    value: Optional[DateLike] = None,
    *,
    now: Optional[datetime] = None,
    offset_minutes: Optional[int] = None,
) -> date:
    """Return the CanonicalDay for `value` (today when omitted)."""
    tz = civil_timezone(offset_minutes)
    if value is None or (isinstance(value, str) and not value.strip()):
        current = now or utcnow()
        return _to_civil(current, tz).date()
    return _parse(value, tz)


def today(now: Optional[datetime] = None, offset_minutes: Optional[int] = None) -> date:
    return normalize_day(None, now=now, offset_minutes=offset_minutes)


def is_today(value: Optional[DateLike], now: Optional[datetime] = None) -> bool:
    return normalize_day(value, now=now) == today(now)


def ensure_today(day: date, now: Optional[datetime] = None) -> None:
    """Raise PolicyViolation(onlyTodayAllowed) when `day` is not the current civil day."""
    if not settings.attendance_only_today:
        return
    current = today(now)
    if day != current:
        raise PolicyViolation(
            "onlyTodayAllowed",
            f"Attendance can only be marked or edited for today ({current.isoformat()})",
        )
