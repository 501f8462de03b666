from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from fusionbridge.mappings.definitions import EventType
from fusionbridge.mappings.severity import SeverityLevel, get_event_severity
from fusionbridge.pipeline.alarm import apply_alarm_state
from fusionbridge.pipeline.automation import AutomationEngine
from fusionbridge.pipeline.normalize import parse_event
from fusionbridge.schemas.automation import AutomationRule
from fusionbridge.schemas.event import StandardizedEvent
from fusionbridge.schemas.vendor import PikoDeviceRaw
from fusionbridge.services.context import DeviceRecord
from fusionbridge.services.events_store import EventStore

RulesProvider = Callable[[Optional[str]], Sequence[AutomationRule]]


class EventCollector:
    """Entry point the connection managers hand raw vendor payloads to."""

    def __init__(self, store: EventStore, engine: AutomationEngine, rules: RulesProvider) -> None:
        self.store = store
        self.engine = engine
        self.rules = rules

    async def ingest_event(
        self,
        connector_category: str,
        connector_id: str,
        payload: Any,
        device_guid_map: Optional[Mapping[str, PikoDeviceRaw]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Central intake for one raw payload:
          1) normalize into StandardizedEvent(s) with the vendor parser
          2) keep each event in the event store (for temporal conditions)
          3) update the device's current state and the alarm state of its area
          4) run the automation engine over the organization's rules
          5) log the outcome, with severity
        """
        events = parse_event(connector_category, connector_id, payload, device_guid_map)
        if not events:
            return []

        repo = self.engine.repo
        connector = repo.get_connector(connector_id)
        organization_id = connector.organization_id if connector else None

        results = []
        for event in events:
            self.store.add_event(event)

            display_state = event.payload_dict().get("display_state")
            severity = get_event_severity(event.type, display_state)
            log = logger.warning if severity >= SeverityLevel.WARNING else logger.info
            log(
                f"[INGEST] event={event.event_id} connector={connector_id} device={event.device_id} "
                f"type={event.type.value} subtype={event.subtype.value if event.subtype else '-'} "
                f"severity={severity.name}"
            )

            alarm_area = None
            device = repo.find_device(connector_id, event.device_id)
            if device is None:
                logger.info(f"[INGEST] device {event.device_id} not registered on {connector_id}, state and alarm skipped")
            else:
                self._update_device_state(device, event)
                try:
                    alarm_area = apply_alarm_state(repo, device, event)
                except Exception as e:
                    logger.error(f"[ALARM] event={event.event_id} device={device.id}: {e}")

            engine_result = await self.engine.process_event(event, self.rules(organization_id))
            if engine_result.errors:
                logger.warning(f"[AUTOMATION] event={event.event_id} errors={engine_result.errors}")

            results.append({
                "event": event.model_dump(mode="json"),
                "severity": severity.name,
                "alarm_triggered_area": alarm_area.id if alarm_area else None,
                "rules_triggered": engine_result.rules_triggered,
                "actions_executed": engine_result.actions_executed,
                "actions_failed": engine_result.actions_failed,
            })
        return results

    def _update_device_state(self, device: DeviceRecord, event: StandardizedEvent) -> None:
        if event.type != EventType.STATE_CHANGED:
            return
        display_state = event.payload_dict().get("display_state")
        if not isinstance(display_state, str) or display_state == device.display_state:
            return
        self.engine.repo.set_device_display_state(device.id, display_state)
        logger.info(f"[INGEST] device {device.id} state {device.display_state or '-'} -> {display_state}")
