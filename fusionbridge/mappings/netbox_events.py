from typing import Dict, Optional

from fusionbridge.mappings.definitions import EventSubtype, EventType
from fusionbridge.mappings.hierarchy import (
    UNKNOWN_EVENT_CLASSIFICATION,
    EventClassification,
    create_event_classification,
)

# Keyed by the NetBox "Descname" activity description.
NETBOX_EVENT_MAP: Dict[str, EventClassification] = {
    "Access granted": create_event_classification(EventType.ACCESS_GRANTED, EventSubtype.NORMAL),
    "Momentary unlock": create_event_classification(EventType.ACCESS_GRANTED, EventSubtype.REMOTE_OVERRIDE),
    "Access denied": create_event_classification(EventType.ACCESS_DENIED),
    "Access not completed": create_event_classification(EventType.ACCESS_DENIED),
    "Access denied: invalid PIN": create_event_classification(
        EventType.ACCESS_DENIED, EventSubtype.INVALID_CREDENTIAL
    ),
    "Access denied: expired credential": create_event_classification(
        EventType.ACCESS_DENIED, EventSubtype.EXPIRED_CREDENTIAL
    ),
    "Access denied: outside schedule": create_event_classification(
        EventType.ACCESS_DENIED, EventSubtype.NOT_IN_SCHEDULE
    ),
    "Access denied: anti-passback": create_event_classification(
        EventType.ACCESS_DENIED, EventSubtype.ANTIPASSBACK_VIOLATION
    ),
    "Portal held open": create_event_classification(EventType.DOOR_HELD_OPEN),
    "Portal forced open": create_event_classification(EventType.DOOR_FORCED_OPEN),
    "Portal held open restored": create_event_classification(
        EventType.DOOR_SECURED, EventSubtype.HELD_OPEN_RESOLVED
    ),
    "Portal forced open restored": create_event_classification(
        EventType.DOOR_SECURED, EventSubtype.FORCED_OPEN_RESOLVED
    ),
    "Request to exit": create_event_classification(EventType.EXIT_REQUEST, EventSubtype.PRESSED),
    "Node online": create_event_classification(EventType.DEVICE_ONLINE),
    "Node offline": create_event_classification(EventType.DEVICE_OFFLINE),
}


def classify_netbox_event(descname: Optional[str]) -> EventClassification:
    if not descname:
        return UNKNOWN_EVENT_CLASSIFICATION
    return NETBOX_EVENT_MAP.get(descname, UNKNOWN_EVENT_CLASSIFICATION)
