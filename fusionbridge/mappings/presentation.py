from typing import Optional

from loguru import logger

from fusionbridge.mappings.definitions import (
    CANONICAL_STATE_MAP,
    DeviceType,
    IntermediateState,
    SensorAlertState,
)
from fusionbridge.schemas.event import TypedDeviceInfo


def intermediate_state_to_display_string(
    state: Optional[IntermediateState],
    device_info: Optional[TypedDeviceInfo] = None,
) -> Optional[str]:
    """Human-readable display string for an intermediate state.

    Simple one-to-one states need no device context. Sensor alert states
    are resolved per sensor subtype. Returns None when no mapping exists.
    """
    if state is None:
        return None

    simple = CANONICAL_STATE_MAP["simple"]
    if state in simple:
        return simple[state]

    if (
        isinstance(state, SensorAlertState)
        and device_info is not None
        and device_info.type == DeviceType.SENSOR
        and device_info.subtype is not None
    ):
        sensor_map = CANONICAL_STATE_MAP["sensor"].get(device_info.subtype)
        if sensor_map and state in sensor_map:
            return sensor_map[state]

    logger.warning(f"[Presentation] No display mapping for state '{state}' with device info {device_info}")
    return None
