from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from fusionbridge.pipeline.parsers.genea import parse_genea_event
from fusionbridge.pipeline.parsers.netbox import parse_netbox_event
from fusionbridge.pipeline.parsers.piko import parse_piko_event
from fusionbridge.pipeline.parsers.yolink import parse_yolink_event
from fusionbridge.schemas.event import StandardizedEvent
from fusionbridge.schemas.vendor import PikoDeviceRaw

Parser = Callable[[str, Any], List[StandardizedEvent]]

# ----------------------------
# Parser registry
# ----------------------------

PARSERS: Dict[str, Parser] = {
    "yolink": parse_yolink_event,
    "genea": parse_genea_event,
    "netbox": parse_netbox_event,
    "piko": parse_piko_event,
}

# ----------------------------
# Main dispatcher
# ----------------------------


def parse_event(
    connector_category: str,
    connector_id: str,
    raw_payload: Any,
    device_guid_map: Optional[Mapping[str, PikoDeviceRaw]] = None,
) -> List[StandardizedEvent]:
    """Route a raw vendor payload to the parser for its connector category.

    Never raises for bad input: unknown categories and parser failures both
    yield an empty list.
    """
    category = (connector_category or "").strip().lower()
    parser = PARSERS.get(category)
    if parser is None:
        logger.warning(f"[Normalize] No parser for connector category '{connector_category}'")
        return []

    try:
        if category == "piko":
            return parse_piko_event(connector_id, raw_payload, device_guid_map)
        return parser(connector_id, raw_payload)
    except Exception as e:
        logger.exception(f"[Normalize] {category} parser failed for connector {connector_id}: {e}")
        return []
