from typing import Any, List, Mapping, Optional

from loguru import logger

from fusionbridge.mappings.identification import get_device_type_info
from fusionbridge.mappings.piko_events import ALLOWED_PIKO_EVENT_TYPES, classify_piko_event
from fusionbridge.pipeline.parsers.common import decode_payload, first_timestamp, from_epoch_usec
from fusionbridge.schemas.event import AnalyticsPayload, StandardizedEvent
from fusionbridge.schemas.vendor import PikoDeviceRaw, PikoEventParams


def parse_piko_event(
    connector_id: str,
    raw_payload: Any,
    device_guid_map: Optional[Mapping[str, PikoDeviceRaw]] = None,
) -> List[StandardizedEvent]:
    """
    Parse the `eventParams` of a Piko `rest.v3.servers.events.update` message.

    Only analytics and motion event types are admitted; everything else
    from the Piko event bus is dropped.
    """
    params = decode_payload(PikoEventParams, raw_payload, "Piko")
    if params is None:
        return []

    if params.event_type not in ALLOWED_PIKO_EVENT_TYPES:
        logger.debug(f"[Piko] Discarding event type '{params.event_type}' from {params.event_resource_id}")
        return []

    device_id = params.event_resource_id
    timestamp = first_timestamp(from_epoch_usec(params.event_timestamp_usec))

    piko_device = device_guid_map.get(device_id) if device_guid_map else None
    device_info = get_device_type_info("piko", piko_device.device_type if piko_device else None)

    classification = classify_piko_event(params.input_port_id, params.event_type, params.caption)

    return [
        StandardizedEvent(
            connector_id=connector_id,
            device_id=device_id,
            timestamp=timestamp,
            category=classification.category,
            type=classification.type,
            subtype=classification.subtype,
            device_info=device_info,
            payload=AnalyticsPayload(
                caption=params.caption,
                description=params.description,
                raw_timestamp_usec=str(params.event_timestamp_usec),
                analytics_engine_id=params.analytics_engine_id,
                event_resource_id=params.event_resource_id,
                object_track_id=params.object_track_id,
            ),
            original_event=raw_payload,
        )
    ]
