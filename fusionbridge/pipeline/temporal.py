from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger

from fusionbridge.pipeline.conditions import evaluate_conditions
from fusionbridge.pipeline.facts import event_facts
from fusionbridge.schemas.automation import TemporalCondition, TemporalConditionType, TemporalScoping
from fusionbridge.schemas.event import StandardizedEvent
from fusionbridge.services.context import ContextRepository
from fusionbridge.services.events_store import EventStore

T = TemporalConditionType

COUNT_CHECKS = {
    T.EVENT_COUNT_EQUALS: lambda n, k: n == k,
    T.EVENT_COUNT_LESS_THAN: lambda n, k: n < k,
    T.EVENT_COUNT_GREATER_THAN: lambda n, k: n > k,
    T.EVENT_COUNT_LESS_THAN_OR_EQUAL: lambda n, k: n <= k,
    T.EVENT_COUNT_GREATER_THAN_OR_EQUAL: lambda n, k: n >= k,
}


def time_window(condition: TemporalCondition, reference: datetime):
    start = reference - timedelta(seconds=condition.time_window_seconds_before or 0)
    end = reference + timedelta(seconds=condition.time_window_seconds_after or 0)
    return min(start, end), max(start, end)


def historical_facts(event: StandardizedEvent) -> Dict[str, Any]:
    """Facts for a stored event; area and location at that time are not known."""
    return {
        "event": event_facts(event),
        "device": {
            "external_id": event.device_id,
            "type": event.device_info.type.value,
            "subtype": event.device_info.subtype.value if event.device_info.subtype else None,
        },
        "connector": {"id": event.connector_id},
        "area": None,
        "location": None,
    }


def _scoped_device_ids(
    condition: TemporalCondition,
    repo: ContextRepository,
    area_id: Optional[str],
    location_id: Optional[str],
) -> Optional[List[str]]:
    """None means any device; an empty list means nothing is in scope."""
    if condition.scoping == TemporalScoping.ANY_DEVICE:
        return None
    if condition.scoping == TemporalScoping.SAME_AREA:
        if not area_id:
            logger.warning("[Temporal] same_area scoping but triggering device has no area")
            return []
        return [d.device_id for d in repo.devices_in_area(area_id)]
    if not location_id:
        logger.warning("[Temporal] same_location scoping but triggering device has no location")
        return []
    return [d.device_id for d in repo.devices_in_location(location_id)]


def evaluate_temporal_condition(
    condition: TemporalCondition,
    trigger: StandardizedEvent,
    store: EventStore,
    repo: ContextRepository,
    area_id: Optional[str] = None,
    location_id: Optional[str] = None,
) -> bool:
    start, end = time_window(condition, trigger.timestamp)

    device_ids = _scoped_device_ids(condition, repo, area_id, location_id)
    if device_ids is not None and not device_ids:
        return condition.type == T.NO_EVENT_OCCURRED

    try:
        candidates = store.find_events_in_window(start, end, device_ids)
    except Exception as e:
        logger.error(f"[Temporal] Event lookup failed for window {start.isoformat()}..{end.isoformat()}: {e}")
        return False

    matched = 0
    for evt in candidates:
        if evt.event_id == trigger.event_id:
            continue
        if condition.event_filter is None or evaluate_conditions(condition.event_filter, historical_facts(evt)):
            matched += 1

    if condition.type == T.EVENT_OCCURRED:
        return matched > 0
    if condition.type == T.NO_EVENT_OCCURRED:
        return matched == 0

    if condition.expected_event_count is None:
        logger.warning(f"[Temporal] {condition.type.value} without expected_event_count")
        return False
    return COUNT_CHECKS[condition.type](matched, condition.expected_event_count)


def evaluate_temporal_conditions(
    conditions: List[TemporalCondition],
    trigger: StandardizedEvent,
    store: EventStore,
    repo: ContextRepository,
    area_id: Optional[str] = None,
    location_id: Optional[str] = None,
) -> bool:
    return all(
        evaluate_temporal_condition(c, trigger, store, repo, area_id, location_id)
        for c in conditions
    )
