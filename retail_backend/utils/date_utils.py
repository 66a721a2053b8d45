# retail_backend/utils/date_utils.py
from datetime import datetime, timezone
from typing import Optional


def as_utc(moment: Optional[datetime]) -> datetime:
    """Normalise to an aware UTC datetime; naive values are taken as UTC."""
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def date_string(moment: Optional[datetime] = None) -> str:
    """Calendar day as ``YYYY-MM-DD``."""
    return as_utc(moment).strftime("%Y-%m-%d")


def period_of(moment: Optional[datetime] = None) -> tuple[int, int]:
    """(month, year) with a 1-based month."""
    moment = as_utc(moment)
    return moment.month, moment.year
