from typing import Any, Dict, Optional, Tuple

from fusionbridge.mappings.definitions import (
    BinaryState,
    ContactState,
    DeviceSubtype,
    DeviceType,
    IntermediateState,
    LockStatus,
    SensorAlertState,
)
from fusionbridge.schemas.event import TypedDeviceInfo

# Key used for device types that carry no subtype.
NO_SUBTYPE = "null"

# ----------------------------
# Raw value tables (lowercase keys)
# ----------------------------

LOCK_STATES: Dict[str, IntermediateState] = {
    "locked": LockStatus.LOCKED,
    "unlocked": LockStatus.UNLOCKED,
}

BINARY_STATES: Dict[str, IntermediateState] = {
    "open": BinaryState.ON,
    "closed": BinaryState.OFF,
    "on": BinaryState.ON,
    "off": BinaryState.OFF,
}

CONTACT_STATES: Dict[str, IntermediateState] = {
    "open": ContactState.OPEN,
    "closed": ContactState.CLOSED,
}

ALERT_STATES: Dict[str, IntermediateState] = {
    "normal": SensorAlertState.NORMAL,
    "alert": SensorAlertState.ALERT,
}

StateTable = Dict[Tuple[DeviceType, str], Dict[str, IntermediateState]]

YOLINK_STATE_MAP: StateTable = {
    (DeviceType.LOCK, NO_SUBTYPE): LOCK_STATES,
    (DeviceType.OUTLET, DeviceSubtype.MULTI.value): BINARY_STATES,
    (DeviceType.OUTLET, DeviceSubtype.SINGLE.value): BINARY_STATES,
    (DeviceType.SENSOR, DeviceSubtype.CONTACT.value): CONTACT_STATES,
    (DeviceType.SENSOR, DeviceSubtype.LEAK.value): ALERT_STATES,
    (DeviceType.SENSOR, DeviceSubtype.MOTION.value): ALERT_STATES,
    (DeviceType.SENSOR, DeviceSubtype.VIBRATION.value): ALERT_STATES,
    (DeviceType.SWITCH, DeviceSubtype.DIMMER.value): BINARY_STATES,
    (DeviceType.SWITCH, DeviceSubtype.TOGGLE.value): BINARY_STATES,
    (DeviceType.ALARM, DeviceSubtype.SIREN.value): ALERT_STATES,
    (DeviceType.GARAGE_DOOR, NO_SUBTYPE): CONTACT_STATES,
}


def state_key(device_info: TypedDeviceInfo) -> Tuple[DeviceType, str]:
    subtype = device_info.subtype.value if device_info.subtype is not None else NO_SUBTYPE
    return device_info.type, subtype


def translate_raw_state(
    device_info: TypedDeviceInfo,
    raw_state: Any,
    table: Optional[StateTable] = None,
) -> Optional[IntermediateState]:
    """Translate a raw vendor state string into an IntermediateState.

    Returns None when the (type, subtype, value) combination is unknown,
    including non-string input.
    """
    if not isinstance(raw_state, str):
        return None
    values = (table if table is not None else YOLINK_STATE_MAP).get(state_key(device_info))
    if not values:
        return None
    return values.get(raw_state.strip().lower())
