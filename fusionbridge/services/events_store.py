from collections import deque
from datetime import datetime
from threading import Lock
from typing import Deque, Iterable, List, Optional

from fusionbridge.core.config import settings
from fusionbridge.schemas.event import StandardizedEvent


class EventStore:
    """Last N standardized events, newest at the right.

    Backs the temporal conditions of the automation engine. Connection
    managers feed it from their own threads, so appends and reads share a
    lock.
    """

    def __init__(self, maxlen: int = settings.EVENT_STORE_MAXLEN) -> None:
        self._events: Deque[StandardizedEvent] = deque(maxlen=maxlen)
        self._lock = Lock()

    def add_event(self, evt: StandardizedEvent) -> None:
        with self._lock:
            self._events.append(evt)

    def all_events(self) -> List[StandardizedEvent]:
        with self._lock:
            return list(self._events)

    def find_events_in_window(
        self,
        start: datetime,
        end: datetime,
        device_ids: Optional[Iterable[str]] = None,
    ) -> List[StandardizedEvent]:
        """Events with `start <= timestamp <= end`, optionally limited to vendor device ids."""
        wanted = set(device_ids) if device_ids is not None else None
        return [
            e
            for e in self.all_events()
            if start <= e.timestamp <= end and (wanted is None or e.device_id in wanted)
        ]

    def count(self) -> int:
        return len(self._events)
