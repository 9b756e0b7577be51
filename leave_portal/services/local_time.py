from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leave_portal.settings import get_settings

logger = logging.getLogger("leave_portal.local_time")

FALLBACK_TIMEZONE = "Europe/Rome"


@lru_cache
def attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or FALLBACK_TIMEZONE
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("attendance_timezone_invalid", extra={"configured": raw_name})
        return ZoneInfo(FALLBACK_TIMEZONE)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_local_wall_clock(instant: datetime) -> datetime:
    """Return the naive local wall-clock time for ``instant``.

    Naive inputs are already wall-clock values and are returned unchanged.
    """
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(attendance_timezone()).replace(tzinfo=None)
