from typing import Dict, Optional

from loguru import logger

from fusionbridge.mappings.definitions import DeviceSubtype, DeviceType
from fusionbridge.schemas.event import UNMAPPED_DEVICE, TypedDeviceInfo


def _info(device_type: DeviceType, subtype: Optional[DeviceSubtype] = None) -> TypedDeviceInfo:
    return TypedDeviceInfo(type=device_type, subtype=subtype)


# ----------------------------
# Vendor type tables
# ----------------------------

YOLINK_DEVICE_TYPES: Dict[str, TypedDeviceInfo] = {
    "COSmokeSensor": _info(DeviceType.SENSOR, DeviceSubtype.CO_SMOKE),
    "CSDevice": UNMAPPED_DEVICE,
    "CellularHub": _info(DeviceType.HUB, DeviceSubtype.CELLULAR),
    "Dimmer": _info(DeviceType.SWITCH, DeviceSubtype.DIMMER),
    "DoorSensor": _info(DeviceType.SENSOR, DeviceSubtype.CONTACT),
    "Finger": UNMAPPED_DEVICE,
    "GarageDoor": _info(DeviceType.GARAGE_DOOR),
    "Hub": _info(DeviceType.HUB, DeviceSubtype.GENERIC),
    "IPCamera": _info(DeviceType.CAMERA),
    "InfraredRemoter": UNMAPPED_DEVICE,
    "LeakSensor": _info(DeviceType.SENSOR, DeviceSubtype.LEAK),
    "Lock": _info(DeviceType.LOCK),
    "Manipulator": UNMAPPED_DEVICE,
    "MotionSensor": _info(DeviceType.SENSOR, DeviceSubtype.MOTION),
    "MultiOutlet": _info(DeviceType.OUTLET, DeviceSubtype.MULTI),
    "Outlet": _info(DeviceType.OUTLET, DeviceSubtype.SINGLE),
    "PowerFailureAlarm": _info(DeviceType.SENSOR, DeviceSubtype.POWER_FAILURE),
    "Siren": _info(DeviceType.ALARM, DeviceSubtype.SIREN),
    "SmartRemoter": UNMAPPED_DEVICE,
    "SpeakerHub": _info(DeviceType.HUB, DeviceSubtype.SPEAKER),
    "Sprinkler": _info(DeviceType.SPRINKLER),
    "Switch": _info(DeviceType.SWITCH, DeviceSubtype.TOGGLE),
    "THSensor": UNMAPPED_DEVICE,
    "Thermostat": _info(DeviceType.THERMOSTAT),
    "VibrationSensor": _info(DeviceType.SENSOR, DeviceSubtype.VIBRATION),
    "WaterDepthSensor": UNMAPPED_DEVICE,
    "WaterMeterController": UNMAPPED_DEVICE,
}

PIKO_DEVICE_TYPES: Dict[str, TypedDeviceInfo] = {
    "Camera": _info(DeviceType.CAMERA),
    "Encoder": _info(DeviceType.ENCODER),
    "IOModule": _info(DeviceType.IO_MODULE),
    "HornSpeaker": _info(DeviceType.ALARM, DeviceSubtype.SIREN),
    "MultisensorCamera": _info(DeviceType.CAMERA),
}

GENEA_DEVICE_TYPES: Dict[str, TypedDeviceInfo] = {
    "Door": _info(DeviceType.DOOR),
}

NETBOX_DEVICE_TYPES: Dict[str, TypedDeviceInfo] = {
    "Portal": _info(DeviceType.DOOR),
    "Reader": _info(DeviceType.DOOR),
}

DEVICE_TYPE_MAP: Dict[str, Dict[str, TypedDeviceInfo]] = {
    "yolink": YOLINK_DEVICE_TYPES,
    "piko": PIKO_DEVICE_TYPES,
    "genea": GENEA_DEVICE_TYPES,
    "netbox": NETBOX_DEVICE_TYPES,
}


def get_device_type_info(connector_category: Optional[str], raw_identifier: Optional[str]) -> TypedDeviceInfo:
    """Map a (connector category, raw vendor type) pair to a TypedDeviceInfo.

    Total: anything not in the tables comes back as Unmapped.
    """
    table = DEVICE_TYPE_MAP.get((connector_category or "").lower())
    if table is None or not raw_identifier:
        return UNMAPPED_DEVICE

    info = table.get(raw_identifier)
    if info is None:
        logger.warning(f"[DeviceIdentification] Unknown {connector_category} device type '{raw_identifier}'")
        return UNMAPPED_DEVICE
    return info
