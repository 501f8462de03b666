from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from pydantic import BaseModel, Field

from fusionbridge.mappings.definitions import ArmedState
from fusionbridge.schemas.event import UNMAPPED_DEVICE, TypedDeviceInfo


# ----------------------------
# Records
# ----------------------------

class ConnectorRecord(BaseModel):
    id: str
    category: str                         # yolink | genea | piko | netbox
    name: str = ""
    organization_id: Optional[str] = None
    enabled: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)


class LocationRecord(BaseModel):
    id: str
    name: str = ""
    organization_id: Optional[str] = None
    time_zone: str = "UTC"
    sunrise: Optional[str] = None         # HH:MM local, refreshed daily upstream
    sunset: Optional[str] = None


class AreaRecord(BaseModel):
    id: str
    name: str = ""
    location_id: str
    armed_state: ArmedState = ArmedState.DISARMED


class DeviceRecord(BaseModel):
    id: str                               # internal id
    connector_id: str
    device_id: str                        # vendor-native id
    name: str = ""
    raw_type: Optional[str] = None
    device_info: TypedDeviceInfo = Field(default=UNMAPPED_DEVICE)
    display_state: Optional[str] = None
    area_id: Optional[str] = None
    location_id: Optional[str] = None
    raw_device_data: Union[Dict[str, Any], str] = Field(default_factory=dict)
    camera_ids: List[str] = Field(default_factory=list)   # internal ids of associated cameras


# ----------------------------
# Repository contract
# ----------------------------

class ContextRepository(Protocol):
    """Read access to connectors, devices, areas and locations.

    The engine calls it on every pass; implementations must return current
    state, never a snapshot cached across passes.
    """

    def get_connector(self, connector_id: str) -> Optional[ConnectorRecord]: ...

    def get_device(self, internal_id: str) -> Optional[DeviceRecord]: ...

    def find_device(self, connector_id: str, device_id: str) -> Optional[DeviceRecord]: ...

    def get_area(self, area_id: str) -> Optional[AreaRecord]: ...

    def get_location(self, location_id: str) -> Optional[LocationRecord]: ...

    def list_areas(self, location_id: Optional[str] = None) -> List[AreaRecord]: ...

    def devices_in_area(self, area_id: str) -> List[DeviceRecord]: ...

    def devices_in_location(self, location_id: str) -> List[DeviceRecord]: ...

    def set_area_armed_state(self, area_id: str, state: ArmedState) -> Optional[AreaRecord]: ...

    def set_device_display_state(self, internal_id: str, display_state: Optional[str]) -> None: ...


class InMemoryContextRepository:
    """Dict-backed repository used by the runner and the tests."""

    def __init__(
        self,
        connectors: Iterable[ConnectorRecord] = (),
        devices: Iterable[DeviceRecord] = (),
        areas: Iterable[AreaRecord] = (),
        locations: Iterable[LocationRecord] = (),
    ) -> None:
        self._connectors: Dict[str, ConnectorRecord] = {c.id: c for c in connectors}
        self._devices: Dict[str, DeviceRecord] = {d.id: d for d in devices}
        self._areas: Dict[str, AreaRecord] = {a.id: a for a in areas}
        self._locations: Dict[str, LocationRecord] = {loc.id: loc for loc in locations}

    # --- writes ---

    def add_device(self, device: DeviceRecord) -> None:
        self._devices[device.id] = device

    def set_area_armed_state(self, area_id: str, state: ArmedState) -> Optional[AreaRecord]:
        area = self._areas.get(area_id)
        if area is None:
            return None
        updated = area.model_copy(update={"armed_state": state})
        self._areas[area_id] = updated
        return updated

    def set_device_display_state(self, internal_id: str, display_state: Optional[str]) -> None:
        device = self._devices.get(internal_id)
        if device is not None:
            self._devices[internal_id] = device.model_copy(update={"display_state": display_state})

    # --- reads ---

    def list_connectors(self) -> List[ConnectorRecord]:
        return list(self._connectors.values())

    def get_connector(self, connector_id: str) -> Optional[ConnectorRecord]:
        return self._connectors.get(connector_id)

    def get_device(self, internal_id: str) -> Optional[DeviceRecord]:
        return self._devices.get(internal_id)

    def find_device(self, connector_id: str, device_id: str) -> Optional[DeviceRecord]:
        for d in self._devices.values():
            if d.connector_id == connector_id and d.device_id == device_id:
                return d
        return None

    def get_area(self, area_id: str) -> Optional[AreaRecord]:
        return self._areas.get(area_id)

    def get_location(self, location_id: str) -> Optional[LocationRecord]:
        return self._locations.get(location_id)

    def list_areas(self, location_id: Optional[str] = None) -> List[AreaRecord]:
        return [a for a in self._areas.values() if location_id is None or a.location_id == location_id]

    def devices_in_area(self, area_id: str) -> List[DeviceRecord]:
        return [d for d in self._devices.values() if d.area_id == area_id]

    def devices_in_location(self, location_id: str) -> List[DeviceRecord]:
        return [d for d in self._devices.values() if self._location_of(d) == location_id]

    def _location_of(self, device: DeviceRecord) -> Optional[str]:
        if device.location_id:
            return device.location_id
        area = self._areas.get(device.area_id) if device.area_id else None
        return area.location_id if area else None
