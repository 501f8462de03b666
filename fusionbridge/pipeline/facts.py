from typing import Any, Dict, Optional

from fusionbridge.mappings.definitions import (
    DeviceType,
    EVENT_CATEGORY_DISPLAY_MAP,
    EVENT_SUBTYPE_DISPLAY_MAP,
    EVENT_TYPE_DISPLAY_MAP,
)
from fusionbridge.schemas.event import StandardizedEvent, TypedDeviceInfo
from fusionbridge.services.context import AreaRecord, ConnectorRecord, DeviceRecord, LocationRecord

MISSING = object()


def effective_device_info(event: StandardizedEvent, device: Optional[DeviceRecord] = None) -> TypedDeviceInfo:
    """The parser's classification wins unless it is Unmapped and the device record knows better."""
    if device is not None and event.device_info.type == DeviceType.UNMAPPED:
        return device.device_info
    return event.device_info


def event_facts(event: StandardizedEvent) -> Dict[str, Any]:
    payload = event.payload_dict()
    return {
        "id": event.event_id,
        "category": event.category.value,
        "type": event.type.value,
        "subtype": event.subtype.value if event.subtype else None,
        "category_display": EVENT_CATEGORY_DISPLAY_MAP.get(event.category),
        "type_display": EVENT_TYPE_DISPLAY_MAP.get(event.type),
        "subtype_display": EVENT_SUBTYPE_DISPLAY_MAP.get(event.subtype) if event.subtype else None,
        "timestamp": event.timestamp.isoformat(),
        "timestamp_ms": event.timestamp_ms,
        "device_id": event.device_id,
        "connector_id": event.connector_id,
        "display_state": payload.get("display_state"),
        "payload": payload,
    }


def build_facts(
    event: StandardizedEvent,
    device: Optional[DeviceRecord] = None,
    connector: Optional[ConnectorRecord] = None,
    area: Optional[AreaRecord] = None,
    location: Optional[LocationRecord] = None,
) -> Dict[str, Any]:
    """Fact tree that conditions and templates are evaluated against."""
    info = effective_device_info(event, device)
    return {
        "event": event_facts(event),
        "device": {
            "id": device.id if device else None,
            "external_id": event.device_id,
            "name": device.name if device else None,
            "type": info.type.value,
            "subtype": info.subtype.value if info.subtype else None,
            "display_state": device.display_state if device else None,
            "area_id": device.area_id if device else None,
        },
        "connector": {
            "id": event.connector_id,
            "name": connector.name if connector else None,
            "category": connector.category if connector else None,
        },
        "area": {
            "id": area.id if area else None,
            "name": area.name if area else None,
            "armed_state": area.armed_state.value if area else None,
        },
        "location": {
            "id": location.id if location else None,
            "name": location.name if location else None,
            "time_zone": location.time_zone if location else None,
        },
    }


def resolve_path(facts: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts; returns MISSING when a segment is absent."""
    current = facts
    for part in path.strip().split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return MISSING
    return current
