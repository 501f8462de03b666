from typing import Any, List

from loguru import logger

from fusionbridge.mappings.definitions import DeviceType, EventType
from fusionbridge.mappings.hierarchy import create_event_classification
from fusionbridge.mappings.identification import get_device_type_info
from fusionbridge.mappings.presentation import intermediate_state_to_display_string
from fusionbridge.mappings.states import translate_raw_state
from fusionbridge.pipeline.parsers.common import decode_payload, first_timestamp, from_epoch_ms
from fusionbridge.schemas.event import StandardizedEvent, StateChangePayload, UnknownEventPayload
from fusionbridge.schemas.vendor import YoLinkEventPayload

STATE_CHANGED = create_event_classification(EventType.STATE_CHANGED)
UNKNOWN = create_event_classification(EventType.UNKNOWN_EXTERNAL_EVENT)


def parse_yolink_event(connector_id: str, raw_payload: Any) -> List[StandardizedEvent]:
    """
    Parse a YoLink MQTT report into standardized events.

    A translatable `data.state` on a mapped device always produces a single
    STATE_CHANGED event. Anything else becomes UNKNOWN_EXTERNAL_EVENT so the
    report is still recorded.
    """
    event = decode_payload(YoLinkEventPayload, raw_payload, "YoLink")
    if event is None:
        return []

    raw_type = event.event.split(".")[0]
    device_info = get_device_type_info("yolink", raw_type)
    timestamp = first_timestamp(from_epoch_ms(event.time))
    data = event.data or {}

    raw_state = data.get("state")
    if raw_state is not None and device_info.type != DeviceType.UNMAPPED:
        new_state = translate_raw_state(device_info, raw_state)
        display_state = intermediate_state_to_display_string(new_state, device_info)
        if new_state is not None and display_state is not None:
            return [
                StandardizedEvent(
                    connector_id=connector_id,
                    device_id=event.device_id,
                    timestamp=timestamp,
                    category=STATE_CHANGED.category,
                    type=STATE_CHANGED.type,
                    device_info=device_info,
                    payload=StateChangePayload(
                        new_state=new_state.value,
                        display_state=display_state,
                        raw_state_value=str(raw_state),
                        raw_event_payload=event.data,
                    ),
                    original_event=raw_payload,
                )
            ]
        logger.debug(
            f"[YoLink] Could not translate state '{raw_state}' for {device_info.type.value} "
            f"device {event.device_id}, recording as unknown event"
        )

    return [
        StandardizedEvent(
            connector_id=connector_id,
            device_id=event.device_id,
            timestamp=timestamp,
            category=UNKNOWN.category,
            type=UNKNOWN.type,
            device_info=device_info,
            payload=UnknownEventPayload(
                original_event_type=event.event,
                message=f"Unknown or unhandled YoLink event: {event.event}",
                raw_event_payload=raw_payload,
            ),
            original_event=raw_payload,
        )
    ]
