from enum import IntEnum
from typing import Dict, Optional

from fusionbridge.mappings.definitions import (
    LEAK_DETECTED,
    MOTION_DETECTED,
    VIBRATION_DETECTED,
    EventType,
)


class SeverityLevel(IntEnum):
    DEFAULT = 0
    WARNING = 1
    CRITICAL = 2


EVENT_TYPE_SEVERITY: Dict[EventType, SeverityLevel] = {
    EventType.ACCESS_DENIED: SeverityLevel.CRITICAL,
    EventType.DOOR_FORCED_OPEN: SeverityLevel.CRITICAL,
    EventType.INTRUSION: SeverityLevel.CRITICAL,
    EventType.ARMED_PERSON: SeverityLevel.CRITICAL,
    EventType.DOOR_HELD_OPEN: SeverityLevel.WARNING,
    EventType.LOITERING: SeverityLevel.WARNING,
    EventType.TAILGATING: SeverityLevel.WARNING,
}

DISPLAY_STATE_SEVERITY: Dict[str, SeverityLevel] = {
    LEAK_DETECTED: SeverityLevel.WARNING,
    MOTION_DETECTED: SeverityLevel.WARNING,
    VIBRATION_DETECTED: SeverityLevel.WARNING,
}


def get_event_severity(event_type: EventType, display_state: Optional[str] = None) -> SeverityLevel:
    # event type takes priority over state
    if event_type in EVENT_TYPE_SEVERITY:
        return EVENT_TYPE_SEVERITY[event_type]
    if display_state:
        return DISPLAY_STATE_SEVERITY.get(display_state, SeverityLevel.DEFAULT)
    return SeverityLevel.DEFAULT
