from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from fusionbridge.schemas.automation import TimeOfDayFilter, TimeOfDayType
from fusionbridge.services.context import LocationRecord

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: Optional[str]) -> Optional[int]:
    """"HH:MM" -> minutes after midnight, None when unparseable."""
    if not value:
        return None
    try:
        hh, mm = value.strip().split(":", 1)
        h, m = int(hh), int(mm)
    except ValueError:
        return None
    if not (0 <= h < 24 and 0 <= m < 60):
        return None
    return h * 60 + m


def local_minutes(at: datetime, tz_name: str) -> int:
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[TimeFilter] Unknown time zone '{tz_name}', using UTC")
        tz = ZoneInfo("UTC")
    local = at.astimezone(tz)
    return local.hour * 60 + local.minute


def minutes_in_range(current: int, start: int, end: int) -> bool:
    """Inclusive range; start > end wraps past midnight."""
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def evaluate_time_of_day(
    time_filter: Optional[TimeOfDayFilter],
    at: datetime,
    location: Optional[LocationRecord] = None,
) -> bool:
    if time_filter is None or time_filter.type == TimeOfDayType.ANY_TIME:
        return True

    tz_name = location.time_zone if location else "UTC"
    current = local_minutes(at, tz_name)

    if time_filter.type == TimeOfDayType.SPECIFIC_TIMES:
        start = parse_hhmm(time_filter.start_time)
        end = parse_hhmm(time_filter.end_time)
        if start is None or end is None:
            logger.warning("[TimeFilter] specific_times filter missing start or end time, blocking")
            return False
        return minutes_in_range(current, start, end)

    if time_filter.type in (TimeOfDayType.DURING_DAY, TimeOfDayType.AT_NIGHT):
        sunrise = parse_hhmm(location.sunrise) if location else None
        sunset = parse_hhmm(location.sunset) if location else None
        if sunrise is None or sunset is None:
            logger.warning(f"[TimeFilter] No sun times for location {location.id if location else '?'}, allowing")
            return True

        sunrise = (sunrise + time_filter.sunrise_offset_minutes) % MINUTES_PER_DAY
        sunset = (sunset + time_filter.sunset_offset_minutes) % MINUTES_PER_DAY
        if time_filter.type == TimeOfDayType.DURING_DAY:
            return minutes_in_range(current, sunrise, sunset)
        return minutes_in_range(current, sunset, sunrise)

    logger.warning(f"[TimeFilter] Unknown filter type {time_filter.type}, allowing")
    return True
