import asyncio
import json
import signal
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from fusionbridge.connectors.mqtt import YoLinkMqttConnection
from fusionbridge.connectors.piko_ws import PikoWebSocketConnection
from fusionbridge.connectors.registry import ConnectionRegistry
from fusionbridge.core.config import settings
from fusionbridge.core.logging import setup_logging
from fusionbridge.pipeline.actions import ActionDispatcher
from fusionbridge.pipeline.automation import AutomationEngine
from fusionbridge.pipeline.collector import EventCollector
from fusionbridge.schemas.automation import AutomationRule
from fusionbridge.services.audit_store import AutomationAuditStore
from fusionbridge.services.context import (
    AreaRecord,
    ConnectorRecord,
    DeviceRecord,
    InMemoryContextRepository,
    LocationRecord,
)
from fusionbridge.services.device_actions import (
    DeviceActionRegistry,
    GeneaDriver,
    GeneaHandler,
    YoLinkHandler,
    YoLinkHttpDriver,
)
from fusionbridge.services.events_store import EventStore
from fusionbridge.services.notifications import PushoverDriver
from fusionbridge.services.piko_client import PikoClient, PikoHttpClient

STREAMING_CONNECTIONS = {
    "yolink": YoLinkMqttConnection,
    "piko": PikoWebSocketConnection,
}


@dataclass
class FusionBridgeService:
    repo: InMemoryContextRepository
    rules: List[AutomationRule]
    events: EventStore
    audit: AutomationAuditStore
    engine: AutomationEngine
    collector: EventCollector
    connections: ConnectionRegistry


def rules_for_organization(rules: List[AutomationRule], organization_id: Optional[str]) -> List[AutomationRule]:
    # events from an unresolved connector belong to no tenant
    if organization_id is None:
        return []
    return [r for r in rules if r.organization_id in (None, organization_id)]


def build_service(
    repo: InMemoryContextRepository,
    rules: List[AutomationRule],
    piko: Optional[PikoClient] = None,
    genea_driver: Optional[GeneaDriver] = None,
) -> FusionBridgeService:
    device_actions = DeviceActionRegistry([YoLinkHandler(YoLinkHttpDriver())])
    if genea_driver is not None:
        device_actions.register(GeneaHandler(genea_driver))

    events = EventStore()
    audit = AutomationAuditStore()
    dispatcher = ActionDispatcher(
        repo,
        device_actions=device_actions,
        notifier=PushoverDriver() if settings.PUSHOVER_ENABLED else None,
        piko=piko if piko is not None else PikoHttpClient(repo),
    )
    engine = AutomationEngine(repo, events, dispatcher, audit)

    collector = EventCollector(events, engine, lambda org: rules_for_organization(rules, org))
    service = FusionBridgeService(
        repo=repo,
        rules=rules,
        events=events,
        audit=audit,
        engine=engine,
        collector=collector,
        connections=ConnectionRegistry(),
    )

    for connector in repo.list_connectors():
        conn_cls = STREAMING_CONNECTIONS.get(connector.category.lower())
        if conn_cls is None:
            continue  # webhook-fed (genea, netbox)
        conn = conn_cls(connector.id, connector.config, service.collector.ingest_event)
        if not connector.enabled:
            conn.set_disabled(True)
        service.connections.register(conn)

    return service


def load_bootstrap(path: str) -> Dict[str, Any]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    repo = InMemoryContextRepository(
        connectors=[ConnectorRecord.model_validate(c) for c in data.get("connectors", [])],
        devices=[DeviceRecord.model_validate(d) for d in data.get("devices", [])],
        areas=[AreaRecord.model_validate(a) for a in data.get("areas", [])],
        locations=[LocationRecord.model_validate(loc) for loc in data.get("locations", [])],
    )
    rules = [AutomationRule.model_validate(r) for r in data.get("rules", [])]
    return {"repo": repo, "rules": rules}


async def run_scheduler(service: FusionBridgeService, stop: asyncio.Event) -> None:
    """Ticks scheduled automations once per minute, just after the boundary."""
    while not stop.is_set():
        now = datetime.now(timezone.utc)
        try:
            await asyncio.wait_for(stop.wait(), timeout=60 - now.second - now.microsecond / 1e6 + 0.5)
            return
        except asyncio.TimeoutError:
            pass
        try:
            await service.engine.process_scheduled(datetime.now(timezone.utc), service.rules)
        except Exception as e:
            logger.exception(f"[Scheduler] tick failed: {e}")


async def run(service: FusionBridgeService) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    await service.connections.start_all()
    logger.info(f"{settings.SERVICE_NAME} {settings.VERSION} running ({len(service.connections.connections())} connections)")
    scheduler = asyncio.create_task(run_scheduler(service, stop), name="scheduler")
    try:
        await stop.wait()
    finally:
        stop.set()
        await scheduler
        await service.connections.stop_all()
        logger.info(
            f"Shutdown complete ({service.events.count()} events kept, "
            f"{service.audit.count_executions()} automation executions)"
        )


def main() -> None:
    setup_logging()
    if settings.BOOTSTRAP_FILE:
        boot = load_bootstrap(settings.BOOTSTRAP_FILE)
    else:
        logger.warning("BOOTSTRAP_FILE not set, starting with no connectors or rules")
        boot = {"repo": InMemoryContextRepository(), "rules": []}
    asyncio.run(run(build_service(boot["repo"], boot["rules"])))


if __name__ == "__main__":
    main()
