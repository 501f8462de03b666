"""
Alarm logic: an armed area goes to TRIGGERED when one of its devices reports a security risk.
"""

from typing import Optional

from loguru import logger

from fusionbridge.mappings.definitions import (
    MOTION_DETECTED,
    OPEN,
    VIBRATION_DETECTED,
    ArmedState,
    EventType,
)
from fusionbridge.schemas.event import StandardizedEvent
from fusionbridge.services.context import AreaRecord, ContextRepository, DeviceRecord

ARMED_STATES = (ArmedState.ARMED_AWAY, ArmedState.ARMED_STAY)

RISK_EVENT_TYPES = {
    EventType.DOOR_FORCED_OPEN,
    EventType.DOOR_HELD_OPEN,
    EventType.INTRUSION,
    EventType.ARMED_PERSON,
    EventType.TAILGATING,
    EventType.LOITERING,
    EventType.LINE_CROSSING,
    EventType.MOTION_DETECTED,
}

# STATE_CHANGED display states that count as a breach
RISK_DISPLAY_STATES = {OPEN, MOTION_DETECTED, VIBRATION_DETECTED}


def is_security_risk_event(event: StandardizedEvent) -> bool:
    if event.type in RISK_EVENT_TYPES:
        return True
    if event.type == EventType.STATE_CHANGED:
        return event.payload_dict().get("display_state") in RISK_DISPLAY_STATES
    return False


def apply_alarm_state(
    repo: ContextRepository,
    device: Optional[DeviceRecord],
    event: StandardizedEvent,
) -> Optional[AreaRecord]:
    """Returns the updated area when `event` tripped it, otherwise None."""
    if device is None or not device.area_id:
        return None

    area = repo.get_area(device.area_id)
    if area is None or area.armed_state not in ARMED_STATES:
        return None
    if not is_security_risk_event(event):
        return None

    updated = repo.set_area_armed_state(area.id, ArmedState.TRIGGERED)
    logger.warning(
        f"[ALARM] area={area.id} {area.armed_state.value} -> TRIGGERED "
        f"event={event.event_id} device={device.id} type={event.type.value}"
    )
    return updated
