"""
Category -> type -> subtype hierarchy for standardized events.

The category of an event is never chosen by a parser directly: it is derived
from the event type through EVENT_HIERARCHY, so a type can only ever appear
under one category.
"""

from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional

from fusionbridge.mappings.definitions import EventCategory, EventSubtype, EventType

EVENT_HIERARCHY: Dict[EventCategory, Dict[EventType, List[EventSubtype]]] = {
    EventCategory.DEVICE_STATE: {
        EventType.STATE_CHANGED: [],
        EventType.BATTERY_LEVEL_CHANGED: [],
        EventType.BUTTON_PRESSED: [],
        EventType.BUTTON_LONG_PRESSED: [],
    },
    EventCategory.ACCESS_CONTROL: {
        EventType.ACCESS_GRANTED: [
            EventSubtype.NORMAL,
            EventSubtype.REMOTE_OVERRIDE,
            EventSubtype.PASSBACK_RETURN,
        ],
        EventType.ACCESS_DENIED: [
            EventSubtype.ANTIPASSBACK_VIOLATION,
            EventSubtype.DOOR_LOCKED,
            EventSubtype.DURESS_PIN,
            EventSubtype.EXPIRED_CREDENTIAL,
            EventSubtype.INVALID_CREDENTIAL,
            EventSubtype.NOT_IN_SCHEDULE,
            EventSubtype.OCCUPANCY_LIMIT,
            EventSubtype.PIN_REQUIRED,
            EventSubtype.NORMAL,
        ],
        EventType.DOOR_HELD_OPEN: [],
        EventType.DOOR_FORCED_OPEN: [],
        EventType.DOOR_SECURED: [
            EventSubtype.FORCED_OPEN_RESOLVED,
            EventSubtype.HELD_OPEN_RESOLVED,
        ],
        EventType.EXIT_REQUEST: [
            EventSubtype.PRESSED,
            EventSubtype.HELD,
            EventSubtype.MOTION,
        ],
    },
    EventCategory.DEVICE_CONNECTIVITY: {
        EventType.DEVICE_ONLINE: [],
        EventType.DEVICE_OFFLINE: [],
    },
    EventCategory.ANALYTICS: {
        EventType.ANALYTICS_EVENT: [],
        EventType.OBJECT_DETECTED: [EventSubtype.PERSON, EventSubtype.VEHICLE],
        EventType.OBJECT_REMOVED: [],
        EventType.MOTION_DETECTED: [],
        EventType.SOUND_DETECTED: [],
        EventType.LICENSE_PLATE_DETECTED: [],
        EventType.LOITERING: [],
        EventType.LINE_CROSSING: [],
        EventType.ARMED_PERSON: [],
        EventType.TAILGATING: [],
        EventType.INTRUSION: [EventSubtype.PERSON, EventSubtype.VEHICLE],
    },
    EventCategory.DIAGNOSTICS: {
        EventType.DEVICE_CHECK_IN: [],
        EventType.POWER_CHECK_IN: [],
    },
    EventCategory.UNKNOWN: {
        EventType.UNKNOWN_EXTERNAL_EVENT: [],
        EventType.SYSTEM_NOTIFICATION: [],
    },
}

# Reverse index built once at import time.
_CATEGORY_BY_TYPE: Dict[EventType, EventCategory] = {
    event_type: category
    for category, types in EVENT_HIERARCHY.items()
    for event_type in types
}


class EventClassification(NamedTuple):
    category: EventCategory
    type: EventType
    subtype: Optional[EventSubtype] = None


def category_for_type(event_type: EventType) -> EventCategory:
    try:
        return _CATEGORY_BY_TYPE[event_type]
    except KeyError:
        raise ValueError(f"EventType '{event_type}' not found in EVENT_HIERARCHY") from None


def create_event_classification(
    event_type: EventType,
    subtype: Optional[EventSubtype] = None,
) -> EventClassification:
    """Build a classification, deriving the category from the type.

    Raises ValueError when the subtype is not listed for the type.
    """
    category = category_for_type(event_type)
    if subtype is not None and subtype not in EVENT_HIERARCHY[category][event_type]:
        raise ValueError(f"EventSubtype '{subtype}' is not valid for EventType '{event_type}'")
    return EventClassification(category=category, type=event_type, subtype=subtype)


UNKNOWN_EVENT_CLASSIFICATION = create_event_classification(EventType.UNKNOWN_EXTERNAL_EVENT)
