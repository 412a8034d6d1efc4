"""Date manipulation utilities"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_month(now: datetime) -> datetime:
    """First instant of the calendar month containing `now`"""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
