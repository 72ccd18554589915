"""Date manipulation utilities"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time in UTC"""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current calendar date on the UTC boundary"""
    return utc_now().date()
