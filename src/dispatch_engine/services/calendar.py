"""Service-date helpers in the organization's timezone."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import settings
from ..errors import InvalidInputError


def service_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(settings.timezone)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone '{settings.timezone}'") from exc


def localize(moment: datetime) -> datetime:
    """Attach the service timezone to a naive datetime; aware values pass through."""
    return moment if moment.tzinfo else moment.replace(tzinfo=service_timezone())


def to_utc(moment: datetime) -> datetime:
    return localize(moment).astimezone(timezone.utc)


def parse_service_date(value: str | date | None) -> date:
    """Parse a ``YYYY-MM-DD`` date, rejecting anything else as an input error."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise InvalidInputError("A date in YYYY-MM-DD format is required.")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidInputError(f"Malformed date '{value}'; expected YYYY-MM-DD.") from exc


def parse_departure_time(value: str | None) -> datetime | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidInputError(f"Malformed departure time '{value}'; expected ISO 8601.") from exc
    return localize(parsed)


def local_date(moment: datetime) -> date:
    """Calendar date of ``moment`` in the service timezone; naive values are taken as local."""
    return localize(moment).astimezone(service_timezone()).date()


def day_bounds(service_date: date) -> tuple[datetime, datetime]:
    """UTC start (inclusive) and end (exclusive) of a service date."""
    tz = service_timezone()
    start = datetime.combine(service_date, time.min, tzinfo=tz)
    end = datetime.combine(service_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def default_departure(service_date: date, now: datetime | None = None) -> datetime:
    """The later of now and the start of the workday on ``service_date``."""
    workday_start = datetime.combine(service_date, time(hour=settings.workday_start_hour), tzinfo=service_timezone())
    current = now or datetime.now(timezone.utc)
    return max(workday_start, current)
