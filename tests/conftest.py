"""Shared fixtures: event builders, an in-memory site and fake outbound drivers."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from fusionbridge.mappings.definitions import DeviceSubtype, DeviceType, EventType
from fusionbridge.mappings.hierarchy import create_event_classification
from fusionbridge.pipeline.actions import ActionDispatcher
from fusionbridge.pipeline.automation import AutomationEngine
from fusionbridge.schemas.event import (
    AccessControlPayload,
    StandardizedEvent,
    StateChangePayload,
    TypedDeviceInfo,
)
from fusionbridge.services.audit_store import AutomationAuditStore
from fusionbridge.services.context import (
    AreaRecord,
    ConnectorRecord,
    DeviceRecord,
    InMemoryContextRepository,
    LocationRecord,
)
from fusionbridge.services.device_actions import DeviceActionRegistry, YoLinkHandler
from fusionbridge.services.events_store import EventStore
from fusionbridge.services.notifications import NotificationResult

BASE_TIME = datetime(2025, 3, 10, 14, 0, 0, tzinfo=timezone.utc)

CONTACT_SENSOR = TypedDeviceInfo(type=DeviceType.SENSOR, subtype=DeviceSubtype.CONTACT)
DOOR = TypedDeviceInfo(type=DeviceType.DOOR)


class FakeYoLinkDriver:
    def __init__(self, fail: bool = False) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    async def set_device_state(self, config, device_id, device_token, raw_device_type, target_state):
        self.calls.append({
            "device_id": device_id,
            "token": device_token,
            "raw_type": raw_device_type,
            "state": target_state,
        })
        if self.fail:
            raise RuntimeError("YoLink API unavailable")
        return {"state": target_state}


class FakeGeneaDriver:
    def __init__(self, result: bool = True) -> None:
        self.calls: List[tuple] = []
        self.result = result

    async def lock_door(self, config, door_uuid):
        self.calls.append(("lock", door_uuid))
        return self.result

    async def unlock_door(self, config, door_uuid):
        self.calls.append(("unlock", door_uuid))
        return self.result

    async def quick_grant_door(self, config, door_uuid):
        self.calls.append(("quick_grant", door_uuid))
        return self.result


class RecordingPikoClient:
    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.bookmarks: List[Dict[str, Any]] = []

    async def create_event(self, connector_id, payload):
        self.events.append({"connector_id": connector_id, **payload})
        return {"ok": True}

    async def create_bookmark(self, connector_id, camera_id, payload):
        self.bookmarks.append({"connector_id": connector_id, "camera_id": camera_id, **payload})
        return {"ok": True}


class FakeNotifier:
    def __init__(self, success: bool = True) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.success = success

    async def send(self, message, title=None, user_key=None, priority=0):
        self.sent.append({"message": message, "title": title, "user_key": user_key, "priority": priority})
        if self.success:
            return NotificationResult(success=True, request_id="req-1")
        return NotificationResult(success=False, errors=["user key is invalid"])


@pytest.fixture
def make_event():
    """Factory for standardized events on the front-door contact sensor."""

    def _make(
        device_id: str = "yl-front-door",
        connector_id: str = "conn-yolink",
        event_type: EventType = EventType.STATE_CHANGED,
        subtype=None,
        device_info: TypedDeviceInfo = CONTACT_SENSOR,
        timestamp: Optional[datetime] = None,
        display_state: str = "Open",
    ) -> StandardizedEvent:
        classification = create_event_classification(event_type, subtype)
        if event_type == EventType.STATE_CHANGED:
            payload = StateChangePayload(
                new_state="OPEN" if display_state == "Open" else "CLOSED",
                display_state=display_state,
                raw_state_value=display_state.lower(),
            )
        else:
            payload = AccessControlPayload(event_message="Access event", door_name="Lobby")
        return StandardizedEvent(
            connector_id=connector_id,
            device_id=device_id,
            timestamp=timestamp or BASE_TIME,
            category=classification.category,
            type=classification.type,
            subtype=classification.subtype,
            device_info=device_info,
            payload=payload,
        )

    return _make


@pytest.fixture
def repo():
    """One organization, one location with two areas, a sensor, a switch, a door and a camera."""
    return InMemoryContextRepository(
        connectors=[
            ConnectorRecord(id="conn-yolink", category="yolink", name="Home YoLink", organization_id="org-1"),
            ConnectorRecord(id="conn-genea", category="genea", name="Genea", organization_id="org-1"),
            ConnectorRecord(id="conn-piko", category="piko", name="Piko NVR", organization_id="org-1"),
        ],
        locations=[
            LocationRecord(
                id="loc-1",
                name="HQ",
                organization_id="org-1",
                time_zone="America/New_York",
                sunrise="06:30",
                sunset="18:45",
            ),
        ],
        areas=[
            AreaRecord(id="area-lobby", name="Lobby", location_id="loc-1"),
            AreaRecord(id="area-dock", name="Loading Dock", location_id="loc-1"),
        ],
        devices=[
            DeviceRecord(
                id="dev-front-door",
                connector_id="conn-yolink",
                device_id="yl-front-door",
                name="Front Door",
                raw_type="DoorSensor",
                device_info=CONTACT_SENSOR,
                area_id="area-lobby",
                camera_ids=["dev-cam-lobby"],
            ),
            DeviceRecord(
                id="dev-back-door",
                connector_id="conn-yolink",
                device_id="yl-back-door",
                name="Back Door",
                raw_type="DoorSensor",
                device_info=CONTACT_SENSOR,
                area_id="area-dock",
            ),
            DeviceRecord(
                id="dev-siren-switch",
                connector_id="conn-yolink",
                device_id="yl-switch-1",
                name="Siren Relay",
                raw_type="Switch",
                device_info=TypedDeviceInfo(type=DeviceType.SWITCH, subtype=DeviceSubtype.TOGGLE),
                area_id="area-lobby",
                raw_device_data={"token": "dev-token-1"},
            ),
            DeviceRecord(
                id="dev-lobby-door",
                connector_id="conn-genea",
                device_id="genea-door-uuid",
                name="Lobby Door",
                raw_type="Door",
                device_info=DOOR,
                area_id="area-lobby",
            ),
            DeviceRecord(
                id="dev-cam-lobby",
                connector_id="conn-piko",
                device_id="piko-cam-guid",
                name="Lobby Camera",
                raw_type="Camera",
                device_info=TypedDeviceInfo(type=DeviceType.CAMERA),
                area_id="area-lobby",
            ),
        ],
    )


@pytest.fixture
def yolink_driver():
    return FakeYoLinkDriver()


@pytest.fixture
def genea_driver():
    return FakeGeneaDriver()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def piko():
    return RecordingPikoClient()


@pytest.fixture
def dispatcher(repo, yolink_driver, notifier, piko):
    return ActionDispatcher(
        repo,
        device_actions=DeviceActionRegistry([YoLinkHandler(yolink_driver)]),
        notifier=notifier,
        piko=piko,
        timeout=2.0,
    )


@pytest.fixture
def event_store():
    return EventStore(maxlen=100)


@pytest.fixture
def audit_store():
    return AutomationAuditStore(maxlen=100)


@pytest.fixture
def engine(repo, event_store, dispatcher, audit_store):
    return AutomationEngine(repo, event_store, dispatcher, audit_store)
