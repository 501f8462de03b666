from typing import Any, List

from loguru import logger

from fusionbridge.mappings.definitions import EventCategory
from fusionbridge.mappings.identification import get_device_type_info
from fusionbridge.mappings.netbox_events import classify_netbox_event
from fusionbridge.pipeline.parsers.common import decode_payload, first_timestamp, to_utc
from fusionbridge.schemas.event import AccessActivityPayload, StandardizedEvent, UnknownEventPayload
from fusionbridge.schemas.vendor import NetboxEventPayload


def parse_netbox_event(connector_id: str, raw_payload: Any) -> List[StandardizedEvent]:
    payload = decode_payload(NetboxEventPayload, raw_payload, "NetBox")
    if payload is None:
        return []

    device_id = payload.node_unique or payload.node_name
    if not device_id:
        logger.warning(f"[NetBox] Activity '{payload.descname}' has no node identifier, skipping")
        return []

    classification = classify_netbox_event(payload.descname)

    if classification.category == EventCategory.UNKNOWN:
        event_payload = UnknownEventPayload(
            original_event_type=payload.descname,
            message=f"Unknown or unhandled NetBox event: {payload.descname}",
            raw_event_payload=raw_payload,
        )
    else:
        event_payload = AccessActivityPayload(
            descname=payload.descname,
            activity_id=payload.activity_id,
            person_id=payload.person_id,
            person_name=payload.person_name,
            partition_name=payload.part_name,
            portal_key=payload.portal_key,
            portal_name=payload.portal_name,
            reader_name=payload.reader_name,
            reader_key=payload.reader_key,
            reader2_key=payload.reader2_key,
            access_rule_name=payload.access_rule_name,
            access_rule_num=payload.access_rule_num,
            node_name=payload.node_name,
            node_unique_id=payload.node_unique,
            node_address=payload.node_address,
            creation_timestamp=payload.cdt if payload.cdt != payload.timestamp else None,
            node_timestamp=payload.ndt if payload.ndt != payload.timestamp else None,
        )

    return [
        StandardizedEvent(
            connector_id=connector_id,
            device_id=device_id,
            timestamp=first_timestamp(to_utc(payload.timestamp)),
            category=classification.category,
            type=classification.type,
            subtype=classification.subtype,
            device_info=get_device_type_info("netbox", "Portal" if payload.portal_key or payload.portal_name else None),
            payload=event_payload,
            original_event=raw_payload,
        )
    ]
