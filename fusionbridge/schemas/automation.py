from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from croniter import croniter
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from fusionbridge.core.errors import RuleConfigError
from fusionbridge.mappings.definitions import ActionableState, ArmedState, EventType


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ----------------------------
# Structured conditions
# ----------------------------

class Operator(str, Enum):
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    LESS_THAN = "less_than"
    LESS_THAN_INCLUSIVE = "less_than_inclusive"
    GREATER_THAN = "greater_than"
    GREATER_THAN_INCLUSIVE = "greater_than_inclusive"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    DOES_NOT_CONTAIN = "does_not_contain"


class ConditionLeaf(StrictModel):
    fact: str                      # dotted path, e.g. "event.display_state"
    operator: Operator
    value: Any = None


class ConditionGroup(StrictModel):
    all: Optional[List[ConditionNode]] = None
    any: Optional[List[ConditionNode]] = None

    @model_validator(mode="after")
    def exactly_one_branch(self) -> "ConditionGroup":
        if (self.all is None) == (self.any is None):
            raise ValueError("condition group needs exactly one of 'all' or 'any'")
        return self


ConditionNode = Union[ConditionGroup, ConditionLeaf]
ConditionGroup.model_rebuild()


def match_everything() -> ConditionGroup:
    return ConditionGroup(all=[])


# ----------------------------
# Time-of-day filter
# ----------------------------

class TimeOfDayType(str, Enum):
    ANY_TIME = "any_time"
    SPECIFIC_TIMES = "specific_times"
    DURING_DAY = "during_day"
    AT_NIGHT = "at_night"


class TimeOfDayFilter(StrictModel):
    type: TimeOfDayType = TimeOfDayType.ANY_TIME
    start_time: Optional[str] = None          # HH:MM, location local time
    end_time: Optional[str] = None
    sunrise_offset_minutes: int = 0
    sunset_offset_minutes: int = 0


# ----------------------------
# Temporal conditions
# ----------------------------

class TemporalConditionType(str, Enum):
    EVENT_OCCURRED = "event_occurred"
    NO_EVENT_OCCURRED = "no_event_occurred"
    EVENT_COUNT_EQUALS = "event_count_equals"
    EVENT_COUNT_LESS_THAN = "event_count_less_than"
    EVENT_COUNT_GREATER_THAN = "event_count_greater_than"
    EVENT_COUNT_LESS_THAN_OR_EQUAL = "event_count_less_than_or_equal"
    EVENT_COUNT_GREATER_THAN_OR_EQUAL = "event_count_greater_than_or_equal"


class TemporalScoping(str, Enum):
    ANY_DEVICE = "any_device"
    SAME_AREA = "same_area"
    SAME_LOCATION = "same_location"


class TemporalCondition(StrictModel):
    id: Optional[str] = None
    type: TemporalConditionType
    expected_event_count: Optional[int] = Field(default=None, ge=0)
    scoping: TemporalScoping = TemporalScoping.ANY_DEVICE
    time_window_seconds_before: Optional[int] = Field(default=None, ge=0)
    time_window_seconds_after: Optional[int] = Field(default=None, ge=0)
    event_filter: Optional[ConditionGroup] = None


# ----------------------------
# Triggers
# ----------------------------

class EventTrigger(StrictModel):
    type: Literal["event"] = "event"
    source_entity_types: List[str] = Field(default_factory=list)   # "Door", "Door.*", "Sensor.Contact"
    event_types: List[EventType] = Field(default_factory=list)     # OR set, empty matches any
    conditions: ConditionGroup = Field(default_factory=match_everything)
    time_of_day: Optional[TimeOfDayFilter] = None


class ScheduledTrigger(StrictModel):
    type: Literal["scheduled"]
    cron_expression: str
    timezone: str = "UTC"                      # overridden by the scoped location's zone

    @field_validator("cron_expression")
    @classmethod
    def valid_cron(cls, v: str) -> str:
        if not croniter.is_valid(v):
            raise ValueError(f"invalid cron expression '{v}'")
        return v


Trigger = Annotated[Union[EventTrigger, ScheduledTrigger], Field(discriminator="type")]


# ----------------------------
# Actions
# ----------------------------

class CreateEventParams(StrictModel):
    target_connector_id: str
    source_template: str = Field(min_length=1)
    caption_template: str = Field(min_length=1)
    description_template: str = Field(min_length=1)


class CreateBookmarkParams(StrictModel):
    target_connector_id: str
    name_template: str = Field(min_length=1)
    description_template: Optional[str] = None
    duration_ms_template: str = "5000"
    tags_template: Optional[str] = None       # comma separated


class HttpHeader(StrictModel):
    key_template: str
    value_template: str = ""


class SendHttpRequestParams(StrictModel):
    url_template: str = Field(min_length=1)
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"
    headers: List[HttpHeader] = Field(default_factory=list)
    body_template: Optional[str] = None


class SetDeviceStateParams(StrictModel):
    target_device_id: str                      # internal device id
    target_state: ActionableState


class SendPushNotificationParams(StrictModel):
    title_template: Optional[str] = None
    message_template: str = Field(min_length=1)
    target_user_key_template: Optional[str] = None   # "__all__" sends to the group
    priority: int = Field(default=0, ge=-2, le=2)


class AreaScoping(str, Enum):
    SPECIFIC_AREAS = "specific_areas"
    ALL_AREAS_IN_SCOPE = "all_areas_in_scope"


class ArmAreaParams(StrictModel):
    scoping: AreaScoping = AreaScoping.SPECIFIC_AREAS
    target_area_ids: List[str] = Field(default_factory=list)
    arm_mode: ArmedState = ArmedState.ARMED_AWAY


class DisarmAreaParams(StrictModel):
    scoping: AreaScoping = AreaScoping.SPECIFIC_AREAS
    target_area_ids: List[str] = Field(default_factory=list)


class CreateEventAction(StrictModel):
    type: Literal["create_event"]
    params: CreateEventParams


class CreateBookmarkAction(StrictModel):
    type: Literal["create_bookmark"]
    params: CreateBookmarkParams


class SendHttpRequestAction(StrictModel):
    type: Literal["send_http_request"]
    params: SendHttpRequestParams


class SetDeviceStateAction(StrictModel):
    type: Literal["set_device_state"]
    params: SetDeviceStateParams


class SendPushNotificationAction(StrictModel):
    type: Literal["send_push_notification"]
    params: SendPushNotificationParams


class ArmAreaAction(StrictModel):
    type: Literal["arm_area"]
    params: ArmAreaParams


class DisarmAreaAction(StrictModel):
    type: Literal["disarm_area"]
    params: DisarmAreaParams


AutomationAction = Annotated[
    Union[
        CreateEventAction,
        CreateBookmarkAction,
        SendHttpRequestAction,
        SetDeviceStateAction,
        SendPushNotificationAction,
        ArmAreaAction,
        DisarmAreaAction,
    ],
    Field(discriminator="type"),
]

SCHEDULED_ACTION_TYPES = ("arm_area", "disarm_area")


class AutomationConfig(StrictModel):
    trigger: Trigger
    temporal_conditions: List[TemporalCondition] = Field(default_factory=list)
    actions: List[AutomationAction] = Field(default_factory=list)

    @model_validator(mode="after")
    def scheduled_actions_only_arm_disarm(self) -> "AutomationConfig":
        if isinstance(self.trigger, ScheduledTrigger):
            bad = [a.type for a in self.actions if a.type not in SCHEDULED_ACTION_TYPES]
            if bad:
                raise ValueError(f"scheduled automations only support arm/disarm actions, got {bad}")
        return self


# ----------------------------
# Stored rule
# ----------------------------

class AutomationRule(BaseModel):
    """A stored automation as handed to the engine.

    `config` is kept raw (dict or JSON text) and decoded on every pass, so a
    rule written by an older schema only fails for itself.
    """

    id: str
    name: str = ""
    enabled: bool = True
    organization_id: Optional[str] = None
    location_scope_id: Optional[str] = None
    config: Union[Dict[str, Any], str]

    def parse_config(self) -> AutomationConfig:
        raw = self.config
        try:
            if isinstance(raw, str):
                raw = json.loads(raw)
            return AutomationConfig.model_validate(raw)
        except (ValueError, ValidationError) as e:
            raise RuleConfigError(f"Invalid configuration for rule {self.id}: {e}") from e
