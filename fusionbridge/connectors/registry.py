from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from loguru import logger
from pydantic import BaseModel

from fusionbridge.core.config import settings
from fusionbridge.core.errors import ConnectorError

# (connector_category, connector_id, raw payload, piko device map)
EventSink = Callable[[str, str, Any, Optional[Mapping[str, Any]]], Awaitable[Any]]


def backoff_delay(
    attempt: int,
    base: float = settings.RECONNECT_BASE_DELAY_SEC,
    cap: float = settings.RECONNECT_MAX_DELAY_SEC,
) -> float:
    """Seconds to wait before reconnect attempt `attempt` (1-based): 5, 10, 20, 40, 60, 60 ..."""
    if attempt < 1:
        return 0.0
    return min(base * (2 ** (attempt - 1)), cap)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionState(BaseModel):
    """Point-in-time view of one connection, safe to hand to callers."""

    connector_id: str
    category: str
    connected: bool = False
    reconnecting: bool = False
    disabled: bool = False
    error: Optional[str] = None
    last_activity: Optional[datetime] = None
    last_event: Optional[datetime] = None
    reconnect_attempts: int = 0
    details: Dict[str, Any] = {}


class ManagedConnection(ABC):
    """
    One live link to a vendor system.

    Subclasses call the `_mark_*` helpers from whatever thread or task
    their client library runs on; `state()` may be called from anywhere.
    """

    category: str = ""

    def __init__(self, connector_id: str, config: Mapping[str, Any], sink: EventSink) -> None:
        self.connector_id = connector_id
        self.config = dict(config)
        self.sink = sink
        self._lock = threading.Lock()
        self._connected = False
        self._disabled = False
        self._error: Optional[str] = None
        self._attempts = 0
        self._last_activity: Optional[datetime] = None
        self._last_event: Optional[datetime] = None

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    def details(self) -> Dict[str, Any]:
        return {}

    # ----------------------------
    # State bookkeeping
    # ----------------------------

    def _mark_connected(self) -> None:
        with self._lock:
            self._connected = True
            self._error = None
            self._attempts = 0
            self._last_activity = _now()

    def _mark_disconnected(self, error: Optional[str] = None) -> int:
        """Record a lost or failed connection; returns the new attempt count."""
        with self._lock:
            self._connected = False
            if error:
                self._error = error
            if not self._disabled:
                self._attempts += 1
            return self._attempts

    def _mark_activity(self, is_event: bool = False) -> None:
        with self._lock:
            self._last_activity = _now()
            if is_event:
                self._last_event = self._last_activity

    def set_disabled(self, disabled: bool) -> None:
        with self._lock:
            self._disabled = disabled
            if disabled:
                self._connected = False
                self._attempts = 0

    @property
    def disabled(self) -> bool:
        return self._disabled

    def state(self) -> ConnectionState:
        with self._lock:
            return ConnectionState(
                connector_id=self.connector_id,
                category=self.category,
                connected=self._connected,
                reconnecting=not self._connected and self._attempts > 0 and not self._disabled,
                disabled=self._disabled,
                error=self._error,
                last_activity=self._last_activity,
                last_event=self._last_event,
                reconnect_attempts=self._attempts,
                details=self.details(),
            )


class ConnectionRegistry:
    """Owns every live connection; one instance per running service."""

    def __init__(self) -> None:
        self._connections: Dict[str, ManagedConnection] = {}
        self._lock = threading.Lock()

    def register(self, connection: ManagedConnection) -> None:
        with self._lock:
            if connection.connector_id in self._connections:
                raise ConnectorError(f"Connector {connection.connector_id} is already registered")
            self._connections[connection.connector_id] = connection

    def get(self, connector_id: str) -> Optional[ManagedConnection]:
        with self._lock:
            return self._connections.get(connector_id)

    def connections(self) -> List[ManagedConnection]:
        with self._lock:
            return list(self._connections.values())

    async def unregister(self, connector_id: str) -> None:
        with self._lock:
            connection = self._connections.pop(connector_id, None)
        if connection is not None:
            await connection.stop()

    # ----------------------------
    # Lifecycle
    # ----------------------------

    async def start_all(self) -> None:
        for conn in self.connections():
            if conn.disabled:
                continue
            try:
                await conn.start()
            except Exception as e:
                conn._mark_disconnected(str(e))
                logger.error(f"[Connections] {conn.category}:{conn.connector_id} failed to start: {e}")

    async def stop_all(self) -> None:
        for conn in self.connections():
            try:
                await conn.stop()
            except Exception as e:
                logger.warning(f"[Connections] {conn.category}:{conn.connector_id} stop failed: {e}")

    async def disable(self, connector_id: str) -> None:
        conn = self._require(connector_id)
        conn.set_disabled(True)
        await conn.stop()
        logger.info(f"[Connections] {connector_id} disabled")

    async def enable(self, connector_id: str) -> None:
        conn = self._require(connector_id)
        conn.set_disabled(False)
        await conn.start()
        logger.info(f"[Connections] {connector_id} enabled")

    def _require(self, connector_id: str) -> ManagedConnection:
        conn = self.get(connector_id)
        if conn is None:
            raise ConnectorError(f"Unknown connector {connector_id}")
        return conn

    # ----------------------------
    # State snapshots
    # ----------------------------

    def state(self, connector_id: str) -> Optional[ConnectionState]:
        conn = self.get(connector_id)
        return conn.state() if conn else None

    def states(self) -> List[ConnectionState]:
        return [c.state() for c in self.connections()]
