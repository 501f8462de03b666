"""
Boundary models for raw vendor payloads.

Each parser decodes its raw input through one of these models before touching
any field. Essential fields are strict: a mismatch fails validation and the
parser emits nothing. Optional sub-objects are lenient: a malformed one is
replaced by None instead of rejecting the whole payload.
"""

from typing import Any, Dict, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)


class VendorModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


def _none_if_invalid(value: Any, handler):
    try:
        return handler(value)
    except ValidationError:
        return None


# ----------------------------
# YoLink (MQTT report)
# ----------------------------

class YoLinkEventPayload(VendorModel):
    event: StrictStr
    time: Union[StrictInt, StrictFloat]        # epoch milliseconds
    device_id: StrictStr = Field(alias="deviceId")
    msgid: Optional[StrictStr] = None
    data: Optional[Dict[str, Any]] = None

    @field_validator("data", "msgid", mode="wrap")
    @classmethod
    def drop_invalid(cls, value: Any, handler):
        return _none_if_invalid(value, handler)


# ----------------------------
# Genea (webhook)
# ----------------------------

class GeneaActor(VendorModel):
    type: Optional[str] = None
    user_uuid: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class GeneaLocation(VendorModel):
    uuid: Optional[str] = None
    name: Optional[str] = None
    timezone: Optional[str] = None


class GeneaDoor(VendorModel):
    uuid: Optional[StrictStr] = None
    name: Optional[str] = None
    door_status: Optional[str] = None
    model: Optional[str] = None


class GeneaController(VendorModel):
    uuid: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None


class GeneaCard(VendorModel):
    uuid: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    card_number: Optional[str] = None


class GeneaEventPayload(VendorModel):
    uuid: Optional[StrictStr] = None
    event_time: Optional[str] = None
    event_type: Optional[str] = None
    event_action: StrictStr
    event_message: Optional[str] = None
    event_note: Optional[str] = None
    actor: Optional[GeneaActor] = None
    location: Optional[GeneaLocation] = None
    door: Optional[GeneaDoor] = None
    controller: Optional[GeneaController] = None
    card: Optional[GeneaCard] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None

    @field_validator(
        "uuid", "event_time", "event_type", "event_message", "event_note",
        "actor", "location", "door", "controller", "card", "metadata", "created_at",
        mode="wrap",
    )
    @classmethod
    def drop_invalid(cls, value: Any, handler):
        return _none_if_invalid(value, handler)


# ----------------------------
# Piko (JSON-RPC eventParams)
# ----------------------------

class PikoEventParams(VendorModel):
    event_resource_id: StrictStr = Field(alias="eventResourceId")
    event_timestamp_usec: Union[StrictStr, StrictInt] = Field(alias="eventTimestampUsec")
    event_type: Optional[str] = Field(default=None, alias="eventType")
    input_port_id: Optional[str] = Field(default=None, alias="inputPortId")
    caption: Optional[str] = None
    description: Optional[str] = None
    analytics_engine_id: Optional[str] = Field(default=None, alias="analyticsEngineId")
    object_track_id: Optional[str] = Field(default=None, alias="objectTrackId")

    @field_validator(
        "event_type", "input_port_id", "caption", "description",
        "analytics_engine_id", "object_track_id",
        mode="wrap",
    )
    @classmethod
    def drop_invalid(cls, value: Any, handler):
        return _none_if_invalid(value, handler)


class PikoDeviceRaw(VendorModel):
    id: str
    name: Optional[str] = None
    device_type: Optional[str] = Field(default=None, alias="deviceType")


# ----------------------------
# NetBox (webhook)
# ----------------------------

class NetboxEventPayload(VendorModel):
    descname: StrictStr = Field(alias="Descname")
    timestamp: Optional[str] = Field(default=None, alias="Timestamp")
    cdt: Optional[str] = Field(default=None, alias="Cdt")
    ndt: Optional[str] = Field(default=None, alias="Ndt")
    activity_id: Optional[str] = Field(default=None, alias="Activityid")
    node_unique: Optional[str] = Field(default=None, alias="Nodeunique")
    node_name: Optional[str] = Field(default=None, alias="Nodename")
    node_address: Optional[str] = Field(default=None, alias="Nodeaddress")
    person_id: Optional[str] = Field(default=None, alias="Personid")
    person_name: Optional[str] = Field(default=None, alias="Personname")
    part_name: Optional[str] = Field(default=None, alias="Partname")
    portal_key: Optional[str] = Field(default=None, alias="Portalkey")
    portal_name: Optional[str] = Field(default=None, alias="Portalname")
    reader_name: Optional[str] = Field(default=None, alias="Rdrname")
    reader_key: Optional[str] = Field(default=None, alias="Readerkey")
    reader2_key: Optional[str] = Field(default=None, alias="Reader2key")
    access_rule_name: Optional[str] = Field(default=None, alias="Acname")
    access_rule_num: Optional[str] = Field(default=None, alias="Acnum")

    @field_validator(
        "timestamp", "cdt", "ndt", "activity_id", "node_unique", "node_name", "node_address",
        "person_id", "reader_key", "reader2_key", "portal_key", "access_rule_num",
        mode="before",
    )
    @classmethod
    def stringify_numbers(cls, value: Any) -> Any:
        # NetBox sends numeric keys as numbers or strings depending on version
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator(
        "timestamp", "cdt", "ndt", "activity_id", "node_unique", "node_name", "node_address",
        "person_id", "person_name", "part_name", "portal_key", "portal_name", "reader_name",
        "reader_key", "reader2_key", "access_rule_name", "access_rule_num",
        mode="wrap",
    )
    @classmethod
    def drop_invalid(cls, value: Any, handler):
        return _none_if_invalid(value, handler)
