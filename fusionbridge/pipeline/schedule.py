from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from fusionbridge.services.context import LocationRecord


def is_schedule_due(cron_expression: str, now: datetime, time_zone: str) -> bool:
    """True when the cron expression fires in the same local minute as `now`.

    Raises ValueError for a bad expression and KeyError for an unknown zone.
    """
    local_minute = now.astimezone(ZoneInfo(time_zone)).replace(second=0, microsecond=0)
    # cron ticks sit on minute boundaries, so the last one before mm:30 is at or before mm:00
    last_tick = croniter(cron_expression, local_minute + timedelta(seconds=30)).get_prev(datetime)
    return last_tick == local_minute


def schedule_facts(
    cron_expression: str,
    time_zone: str,
    now: datetime,
    location: Optional[LocationRecord],
    location_scope_id: Optional[str] = None,
) -> Dict[str, Any]:
    local = now.astimezone(ZoneInfo(time_zone))
    if location is not None:
        location_facts = {"id": location.id, "name": location.name, "time_zone": location.time_zone}
    elif location_scope_id:
        location_facts = {"id": location_scope_id, "name": None, "time_zone": time_zone}
    else:
        location_facts = None
    return {
        "schedule": {
            "cron_expression": cron_expression,
            "time_zone": time_zone,
            "triggered_at_utc": now.astimezone(ZoneInfo("UTC")).isoformat(),
            "triggered_at_local": local.isoformat(),
            "triggered_at_ms": int(now.timestamp() * 1000),
        },
        "location": location_facts,
        "area": None,
        "device": None,
        "event": None,
        "connector": None,
    }
