from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from fusionbridge.mappings.definitions import (
    DeviceSubtype,
    DeviceType,
    EventCategory,
    EventSubtype,
    EventType,
)


class TypedDeviceInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: DeviceType
    subtype: Optional[DeviceSubtype] = None


UNMAPPED_DEVICE = TypedDeviceInfo(type=DeviceType.UNMAPPED)


# ----------------------------
# Payload variants
# ----------------------------

class StateChangePayload(BaseModel):
    kind: Literal["state_change"] = "state_change"
    new_state: str                        # IntermediateState value
    display_state: str
    raw_state_value: str
    raw_event_payload: Any = None


class UnknownEventPayload(BaseModel):
    kind: Literal["unknown_event"] = "unknown_event"
    original_event_type: Optional[str] = None
    message: str
    raw_event_payload: Any = None


class AccessControlPayload(BaseModel):
    kind: Literal["access_control"] = "access_control"
    event_message: Optional[str] = None
    door_name: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    access_method: Optional[str] = None
    card_number: Optional[str] = None


class AnalyticsPayload(BaseModel):
    kind: Literal["analytics"] = "analytics"
    caption: Optional[str] = None
    description: Optional[str] = None
    raw_timestamp_usec: Optional[str] = None
    analytics_engine_id: Optional[str] = None
    event_resource_id: Optional[str] = None
    object_track_id: Optional[str] = None


class AccessActivityPayload(BaseModel):
    kind: Literal["access_activity"] = "access_activity"
    descname: str
    activity_id: Optional[str] = None
    person_id: Optional[str] = None
    person_name: Optional[str] = None
    partition_name: Optional[str] = None
    portal_key: Optional[str] = None
    portal_name: Optional[str] = None
    reader_name: Optional[str] = None
    reader_key: Optional[str] = None
    reader2_key: Optional[str] = None
    access_rule_name: Optional[str] = None
    access_rule_num: Optional[str] = None
    node_name: Optional[str] = None
    node_unique_id: Optional[str] = None
    node_address: Optional[str] = None
    creation_timestamp: Optional[str] = None
    node_timestamp: Optional[str] = None


EventPayload = Annotated[
    Union[
        StateChangePayload,
        UnknownEventPayload,
        AccessControlPayload,
        AnalyticsPayload,
        AccessActivityPayload,
    ],
    Field(discriminator="kind"),
]


def new_event_id() -> str:
    return str(uuid4())


class StandardizedEvent(BaseModel):
    # ----------------------------
    # Identifiers
    # ----------------------------
    event_id: str = Field(default_factory=new_event_id)
    connector_id: str
    device_id: str                       # vendor-native identifier

    # ----------------------------
    # Timestamps
    # ----------------------------
    timestamp: datetime

    # ----------------------------
    # Classification
    # ----------------------------
    category: EventCategory
    type: EventType
    subtype: Optional[EventSubtype] = None
    device_info: TypedDeviceInfo = Field(default=UNMAPPED_DEVICE)

    # ----------------------------
    # Payload / raw data
    # ----------------------------
    payload: EventPayload
    original_event: Any = None

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp.timestamp() * 1000)

    def payload_dict(self) -> Dict[str, Any]:
        """Payload fields without the discriminator and unset values."""
        data = self.payload.model_dump(mode="json", exclude_none=True)
        data.pop("kind", None)
        return data
