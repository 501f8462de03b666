from typing import Any, List

from loguru import logger

from fusionbridge.mappings.definitions import EventCategory
from fusionbridge.mappings.genea_events import classify_genea_event
from fusionbridge.mappings.identification import get_device_type_info
from fusionbridge.pipeline.parsers.common import decode_payload, first_timestamp, to_utc
from fusionbridge.schemas.event import AccessControlPayload, StandardizedEvent, UnknownEventPayload
from fusionbridge.schemas.vendor import GeneaEventPayload


def parse_genea_event(connector_id: str, raw_payload: Any) -> List[StandardizedEvent]:
    """
    Parse a Genea access-control webhook.

    Classification comes only from `event_action`; `door.door_status` is not
    consulted even when present.
    """
    payload = decode_payload(GeneaEventPayload, raw_payload, "Genea")
    if payload is None:
        return []

    device_id = payload.door.uuid if payload.door else None
    if not device_id:
        logger.warning(f"[Genea] Event {payload.uuid or '?'} has no door.uuid, skipping")
        return []

    timestamp = first_timestamp(to_utc(payload.event_time), to_utc(payload.created_at))
    classification = classify_genea_event(payload.event_action)

    if classification.category == EventCategory.UNKNOWN:
        event_payload = UnknownEventPayload(
            original_event_type=payload.event_action,
            message=payload.event_message or f"Unknown or unhandled Genea event: {payload.event_action}",
            raw_event_payload=raw_payload,
        )
    else:
        event_payload = AccessControlPayload(
            event_message=payload.event_message,
            door_name=payload.door.name or None,
            user_name=(payload.actor.user_name or None) if payload.actor else None,
            user_email=(payload.actor.user_email or None) if payload.actor else None,
            access_method=(payload.card.type or None) if payload.card else None,
            card_number=(payload.card.card_number or None) if payload.card else None,
        )

    return [
        StandardizedEvent(
            connector_id=connector_id,
            device_id=device_id,
            timestamp=timestamp,
            category=classification.category,
            type=classification.type,
            subtype=classification.subtype,
            device_info=get_device_type_info("genea", "Door"),
            payload=event_payload,
            original_event=raw_payload,
        )
    ]
