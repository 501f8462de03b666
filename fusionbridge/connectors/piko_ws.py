from __future__ import annotations

import asyncio
import json
from itertools import count
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import websockets
from loguru import logger
from pydantic import ValidationError

from fusionbridge.connectors.registry import EventSink, ManagedConnection, backoff_delay
from fusionbridge.core.config import settings
from fusionbridge.core.errors import ConnectorError
from fusionbridge.schemas.vendor import PikoDeviceRaw

SUBSCRIBE_METHOD = "rest.v3.servers.events.subscribe"
UPDATE_METHOD = "rest.v3.servers.events.update"
DEVICE_REFRESH_INTERVAL_SEC = 12 * 60 * 60

TokenProvider = Callable[[Mapping[str, Any]], Awaitable[str]]
DeviceLoader = Callable[[Mapping[str, Any], str], Awaitable[List[Dict[str, Any]]]]


def relay_url(system_id: str) -> str:
    return f"wss://{system_id}.relay.vmsproxy.com/jsonrpc"


async def _static_token(config: Mapping[str, Any]) -> str:
    token = config.get("accessToken") or config.get("access_token")
    if not token:
        raise ConnectorError("Piko connector has no access token")
    return token


class PikoWebSocketConnection(ManagedConnection):
    """
    Piko event stream over the JSON-RPC WebSocket.

    Keeps a device GUID map (refreshed every 12h) so the parser can type
    the cameras that raise analytics events.
    """

    category = "piko"

    def __init__(
        self,
        connector_id: str,
        config: Mapping[str, Any],
        sink: EventSink,
        token_provider: Optional[TokenProvider] = None,
        device_loader: Optional[DeviceLoader] = None,
    ) -> None:
        super().__init__(connector_id, config, sink)
        self.system_id: Optional[str] = config.get("selectedSystem") or config.get("system_id")
        self.url: Optional[str] = config.get("url") or (relay_url(self.system_id) if self.system_id else None)
        self.token_provider = token_provider or _static_token
        self.device_loader = device_loader
        self.device_guid_map: Dict[str, PikoDeviceRaw] = {}
        self._task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._ids = count(1)

    def details(self) -> Dict[str, Any]:
        return {"system_id": self.system_id, "known_devices": len(self.device_guid_map)}

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        if not self.url:
            raise ConnectorError(f"Piko connector {self.connector_id} has no system id or url")
        self._task = asyncio.create_task(self._run(), name=f"piko-ws-{self.connector_id}")
        if self.device_loader is not None:
            self._refresh_task = asyncio.create_task(self._refresh_devices_periodically())

    async def stop(self) -> None:
        for task in (self._task, self._refresh_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = self._refresh_task = None
        with self._lock:
            self._connected = False
        logger.info(f"[Piko] {self.connector_id} stopped")

    # ----------------------------
    # Device map
    # ----------------------------

    def update_device_map(self, devices: List[Dict[str, Any]]) -> None:
        mapping: Dict[str, PikoDeviceRaw] = {}
        for raw in devices:
            try:
                dev = PikoDeviceRaw.model_validate(raw)
            except ValidationError:
                continue
            mapping[dev.id] = dev
        self.device_guid_map = mapping
        logger.info(f"[Piko] {self.connector_id} device map refreshed ({len(mapping)} devices)")

    async def refresh_devices(self) -> None:
        if self.device_loader is None or not self.system_id:
            return
        try:
            self.update_device_map(await self.device_loader(self.config, self.system_id))
        except Exception as e:
            logger.warning(f"[Piko] {self.connector_id} device refresh failed: {e}")

    async def _refresh_devices_periodically(self) -> None:
        while True:
            await asyncio.sleep(DEVICE_REFRESH_INTERVAL_SEC)
            if not self.disabled:
                await self.refresh_devices()

    # ----------------------------
    # Socket loop
    # ----------------------------

    def subscribe_request(self) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": SUBSCRIBE_METHOD,
            "params": {"eventsOnly": True, "_with": "eventParams"},
        }

    async def _run(self) -> None:
        while not self.disabled:
            try:
                token = await self.token_provider(self.config)
                async with websockets.connect(
                    self.url,
                    additional_headers={"Authorization": f"Bearer {token}"},
                    open_timeout=settings.PIKO_CONNECT_TIMEOUT_SEC,
                    close_timeout=5,
                    max_size=4_000_000,
                ) as ws:
                    await ws.send(json.dumps(self.subscribe_request()))
                    self._mark_connected()
                    logger.info(f"[Piko] {self.connector_id} connected and subscribed")
                    await self.refresh_devices()

                    async for raw in ws:
                        await self.handle_message(raw)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                attempts = self._mark_disconnected(str(e))
                delay = backoff_delay(attempts)
                logger.warning(f"[Piko] {self.connector_id} connection lost ({e}), retry {attempts} in {delay:.0f}s")
                await asyncio.sleep(delay)
                continue

            attempts = self._mark_disconnected("connection closed")
            await asyncio.sleep(backoff_delay(attempts))

    async def handle_message(self, raw: Any) -> None:
        self._mark_activity()
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"[Piko] {self.connector_id} undecodable message")
            return
        if not isinstance(message, dict):
            return

        if "error" in message:
            logger.warning(f"[Piko] {self.connector_id} JSON-RPC error: {message['error']}")
            return

        params = message.get("params")
        if message.get("method") != UPDATE_METHOD or not isinstance(params, dict):
            return
        event_params = params.get("eventParams")
        if not isinstance(event_params, dict):
            return

        self._mark_activity(is_event=True)
        try:
            await self.sink(self.category, self.connector_id, event_params, self.device_guid_map)
        except Exception as e:
            logger.exception(f"[Piko] {self.connector_id} event handling failed: {e}")
