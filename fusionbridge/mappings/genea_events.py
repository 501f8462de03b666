from typing import Dict, Optional

from fusionbridge.mappings.definitions import EventSubtype, EventType
from fusionbridge.mappings.hierarchy import (
    UNKNOWN_EVENT_CLASSIFICATION,
    EventClassification,
    create_event_classification,
)

_DENIED = EventType.ACCESS_DENIED
_GRANTED = EventType.ACCESS_GRANTED

# Denied actions that carry a specific reason.
_DENIED_WITH_SUBTYPE: Dict[str, EventSubtype] = {
    "SEQUR_ACCESS_DENIED_ACCESS_POINT_LOCKED": EventSubtype.DOOR_LOCKED,
    "SEQUR_ACCESS_DENIED_AFTER_EXPIRATION_DATE": EventSubtype.EXPIRED_CREDENTIAL,
    "SEQUR_ACCESS_DENIED_ANTI_PASSBACK_VIOLATION": EventSubtype.ANTIPASSBACK_VIOLATION,
    "SEQUR_ACCESS_DENIED_DURESS_code_DETECTED": EventSubtype.DURESS_PIN,
    "SEQUR_ACCESS_DENIED_INVALID_PIN": EventSubtype.INVALID_CREDENTIAL,
    "SEQUR_ACCESS_DENIED_INVALID_TIME": EventSubtype.NOT_IN_SCHEDULE,
    "SEQUR_ACCESS_DENIED_OCCUPANCY_LIMIT_REACHED": EventSubtype.OCCUPANCY_LIMIT,
}

# Denied actions with no dedicated subtype.
_DENIED_GENERIC = (
    "SEQUR_ACCESS_DENIED_AIRLOCK",
    "SEQUR_ACCESS_DENIED_AREA_NOT_ENABLED",
    "SEQUR_ACCESS_DENIED_BEFORE_ACTIVATION_DATE",
    "SEQUR_ACCESS_DENIED_CARD_NOT_FOUND",
    "SEQUR_ACCESS_DENIED_COUNT_EXCEEDED",
    "SEQUR_ACCESS_DENIED_DEACTIVATED_CARD",
    "SEQUR_ACCESS_DENIED_ELEVATOR_FLOOR",
    "SEQUR_ACCESS_DENIED_ELEVATOR_FLOOR_UNAUTHORIZED",
    "SEQUR_ACCESS_DENIED_ELEVATOR_TIMEOUT",
    "SEQUR_ACCESS_DENIED_ELEVATOR_UNKNOWN_ERROR",
    "SEQUR_ACCESS_DENIED_HOST_APPROVAL_DENIED",
    "SEQUR_ACCESS_DENIED_HOST_APPROVAL_TIMEOUT",
    "SEQUR_ACCESS_DENIED_INCOMPLETE_CARD_PIN_SEQ",
    "SEQUR_ACCESS_DENIED_INVALID_FACILITY_code",
    "SEQUR_ACCESS_DENIED_INVALID_FORMAT",
    "SEQUR_ACCESS_DENIED_INVALID_ISSUE_code",
    "SEQUR_ACCESS_DENIED_NO_DOOR_ACCESS",
    "SEQUR_ACCESS_DENIED_NO_ESCORT_CARD",
    "SEQUR_ACCESS_DENIED_NO_SECOND_CARD",
    "SEQUR_ACCESS_DENIED_UNAUTHORIZED_ASSETS",
    "SEQUR_ACCESS_DENIED_USE_LIMIT",
)

GENEA_EVENT_MAP: Dict[str, EventClassification] = {
    **{
        action: create_event_classification(_DENIED, subtype)
        for action, subtype in _DENIED_WITH_SUBTYPE.items()
    },
    **{action: create_event_classification(_DENIED) for action in _DENIED_GENERIC},
    "SEQUR_ACCESS_GRANTED": create_event_classification(_GRANTED, EventSubtype.NORMAL),
    "SEQUR_ACCESS_GRANTED_ACCESS_POINT_UNLOCKED": create_event_classification(_GRANTED, EventSubtype.NORMAL),
}


def classify_genea_event(event_action: Optional[str]) -> EventClassification:
    if not event_action:
        return UNKNOWN_EVENT_CLASSIFICATION
    return GENEA_EVENT_MAP.get(event_action, UNKNOWN_EVENT_CLASSIFICATION)
