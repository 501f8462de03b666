"""
Piko analytics classification.

Classification runs in two stages: the analytics input port (plugin specific
and most precise) is checked first, then the generic Piko event type.
"""

from typing import Callable, Dict, Optional

from fusionbridge.mappings.definitions import EventSubtype, EventType
from fusionbridge.mappings.hierarchy import EventClassification, create_event_classification

ALLOWED_PIKO_EVENT_TYPES = (
    "analyticsSdkObjectDetected",
    "analyticsSdkEvent",
    "cameraMotionEvent",
)


def get_object_subtype_from_text(text: Optional[str]) -> Optional[EventSubtype]:
    if not text:
        return None
    lowered = text.lower()
    if "person" in lowered:
        return EventSubtype.PERSON
    if "vehicle" in lowered:
        return EventSubtype.VEHICLE
    return None


def _fixed(event_type: EventType, subtype: Optional[EventSubtype] = None) -> Callable[..., EventClassification]:
    classification = create_event_classification(event_type, subtype)
    return lambda input_port_id=None, caption=None: classification


def _intrusion(input_port_id: Optional[str] = None, caption: Optional[str] = None) -> EventClassification:
    return create_event_classification(EventType.INTRUSION, get_object_subtype_from_text(caption))


def _object_detected(input_port_id: Optional[str] = None, caption: Optional[str] = None) -> EventClassification:
    return create_event_classification(EventType.OBJECT_DETECTED, get_object_subtype_from_text(input_port_id))


Classifier = Callable[..., EventClassification]

PIKO_INPUT_PORT_MAP: Dict[str, Classifier] = {
    "cvedia.rt.loitering": _fixed(EventType.LOITERING),
    "cvedia.rt.armed_person": _fixed(EventType.ARMED_PERSON),
    "cvedia.rt.tailgating": _fixed(EventType.TAILGATING),
    "cvedia.rt.intrusion": _intrusion,
    "cvedia.rt.crossing": _fixed(EventType.LINE_CROSSING),
    "objectremovedetector": _fixed(EventType.OBJECT_REMOVED),
    "cvedia.rt.object_removed": _fixed(EventType.OBJECT_REMOVED),
    "udp.videoa.anpr": _fixed(EventType.LICENSE_PLATE_DETECTED),
    "csg.analytics.object.person": _fixed(EventType.OBJECT_DETECTED, EventSubtype.PERSON),
    "csg.analytics.event.person": _fixed(EventType.OBJECT_DETECTED, EventSubtype.PERSON),
}

PIKO_EVENT_TYPE_MAP: Dict[str, Classifier] = {
    "analyticsSdkObjectDetected": _object_detected,
    "analyticsSdkEvent": _fixed(EventType.ANALYTICS_EVENT),
    "cameraMotionEvent": _fixed(EventType.MOTION_DETECTED),
}

PIKO_UNKNOWN_EVENT = create_event_classification(EventType.ANALYTICS_EVENT)


def classify_piko_event(
    input_port_id: Optional[str],
    piko_event_type: Optional[str],
    caption: Optional[str] = None,
) -> EventClassification:
    port = (input_port_id or "").lower()
    if port and port in PIKO_INPUT_PORT_MAP:
        return PIKO_INPUT_PORT_MAP[port](input_port_id, caption)

    if piko_event_type and piko_event_type in PIKO_EVENT_TYPE_MAP:
        return PIKO_EVENT_TYPE_MAP[piko_event_type](input_port_id, caption)

    return PIKO_UNKNOWN_EVENT
