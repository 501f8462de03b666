from __future__ import annotations

import asyncio
import json
from concurrent.futures import Future
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import paho.mqtt.client as mqtt
from loguru import logger

from fusionbridge.connectors.registry import EventSink, ManagedConnection
from fusionbridge.core.config import settings
from fusionbridge.core.errors import ConnectorError
from fusionbridge.services.device_actions import YoLinkHttpDriver

TokenProvider = Callable[[Mapping[str, Any]], Awaitable[str]]

# CONNACK reason codes for an expired or rejected token
AUTH_FAILURE_CODES = (134, 135)


def report_topic(home_id: str) -> str:
    return f"yl-home/{home_id}/+/report"


class YoLinkMqttConnection(ManagedConnection):
    """
    YoLink home event stream over MQTT.

    The broker takes the API access token as username. paho runs its
    network loop in its own thread and reconnects with a doubling delay
    (5s up to 60s); messages are handed back to the asyncio loop that
    called `start()`. A fresh token is fetched after every unexpected
    disconnect or auth refusal so the next attempt does not reuse an
    expired one.
    """

    category = "yolink"

    def __init__(
        self,
        connector_id: str,
        config: Mapping[str, Any],
        sink: EventSink,
        token_provider: Optional[TokenProvider] = None,
    ) -> None:
        super().__init__(connector_id, config, sink)
        self.home_id: Optional[str] = config.get("homeId") or config.get("home_id")
        self.token_provider = token_provider or YoLinkHttpDriver().fetch_access_token
        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._token_refresh: Optional[Future] = None

    def details(self) -> Dict[str, Any]:
        return {"home_id": self.home_id}

    async def start(self) -> None:
        if self._client is not None:
            return
        if not self.home_id:
            raise ConnectorError(f"YoLink connector {self.connector_id} has no homeId")

        token = await self.token_provider(self.config)
        self._loop = asyncio.get_running_loop()

        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"fusionbridge-{self.connector_id}",
        )
        client.username_pw_set(token)
        client.reconnect_delay_set(
            min_delay=int(settings.RECONNECT_BASE_DELAY_SEC),
            max_delay=int(settings.RECONNECT_MAX_DELAY_SEC),
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        logger.info(f"[YoLink] Connecting {self.connector_id} to {settings.YOLINK_MQTT_HOST}:{settings.YOLINK_MQTT_PORT}")
        client.connect_async(settings.YOLINK_MQTT_HOST, settings.YOLINK_MQTT_PORT, keepalive=settings.YOLINK_MQTT_KEEPALIVE)
        client.loop_start()
        self._client = client

    async def stop(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        client.disconnect()
        client.loop_stop()
        with self._lock:
            self._connected = False
        logger.info(f"[YoLink] {self.connector_id} stopped")

    # ----------------------------
    # paho callbacks (network thread)
    # ----------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            attempts = self._mark_disconnected(f"MQTT connect refused: {reason_code}")
            logger.error(f"[YoLink] {self.connector_id} connect refused ({reason_code}), attempt {attempts}")
            if reason_code.value in AUTH_FAILURE_CODES:
                self._request_token_refresh(client)
            return

        self._mark_connected()
        topic = report_topic(self.home_id)
        client.subscribe(topic, qos=0)
        logger.info(f"[YoLink] {self.connector_id} connected, subscribed to {topic}")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        if self._client is None:
            return
        attempts = self._mark_disconnected(f"MQTT disconnected: {reason_code}")
        logger.warning(f"[YoLink] {self.connector_id} disconnected ({reason_code}), reconnect attempt {attempts}")
        self._request_token_refresh(client)

    def _on_message(self, client, userdata, msg):
        payload = self.decode_message(msg.topic, msg.payload)
        self._mark_activity(is_event=payload is not None)
        if payload is None:
            return
        if self._loop is not None and not self._loop.is_closed():
            fut = asyncio.run_coroutine_threadsafe(self.sink(self.category, self.connector_id, payload, None), self._loop)
            fut.add_done_callback(partial(self._report_failure, "pipeline"))

    def decode_message(self, topic: str, raw: bytes) -> Optional[Dict[str, Any]]:
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"[YoLink] {self.connector_id} undecodable message on {topic}: {e}")
            return None
        if not isinstance(payload, dict):
            logger.warning(f"[YoLink] {self.connector_id} non-object message on {topic}")
            return None
        return payload

    # ----------------------------
    # Token refresh and background failures
    # ----------------------------

    def _request_token_refresh(self, client) -> None:
        loop = self._loop
        if client is None or loop is None or loop.is_closed():
            return
        with self._lock:
            if self._token_refresh is not None and not self._token_refresh.done():
                return
            fut = asyncio.run_coroutine_threadsafe(self.refresh_token(client), loop)
            self._token_refresh = fut
        fut.add_done_callback(partial(self._report_failure, "token refresh"))

    async def refresh_token(self, client) -> None:
        """Fetch a new access token and hand it to paho for the next reconnect."""
        token = await self.token_provider(self.config)
        client.username_pw_set(token)
        logger.info(f"[YoLink] {self.connector_id} access token refreshed for reconnect")

    def _report_failure(self, what: str, fut: Future) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"[YoLink] {self.connector_id} {what} failed: {exc}")
