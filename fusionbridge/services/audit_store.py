from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Deque, Dict, List, Optional, Sequence
from uuid import uuid4

from fusionbridge.core.config import settings


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"


def determine_execution_status(successful: int, failed: int) -> ExecutionStatus:
    if failed == 0:
        return ExecutionStatus.SUCCESS
    if successful > 0:
        return ExecutionStatus.PARTIAL_FAILURE
    return ExecutionStatus.FAILURE


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AutomationAuditStore:
    """In-memory record of automation executions (most recent first)."""

    def __init__(self, maxlen: int = settings.AUDIT_STORE_MAXLEN) -> None:
        self._executions: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self._lock = Lock()

    def add_execution(self, execution: Dict[str, Any]) -> Dict[str, Any]:
        """Store one rule execution.

        Enriches the record with:
          - execution_id
          - created_at
          - successful_actions / failed_actions (counted from `action_results`)
          - status

        Returns the stored record.
        """
        stored = dict(execution)
        results: Sequence[Dict[str, Any]] = stored.setdefault("action_results", [])

        stored.setdefault("execution_id", str(uuid4()))
        stored.setdefault("created_at", _now())

        ok = sum(1 for r in results if r.get("success"))
        stored.setdefault("successful_actions", ok)
        stored.setdefault("failed_actions", len(results) - ok)
        stored.setdefault(
            "status",
            determine_execution_status(stored["successful_actions"], stored["failed_actions"]).value,
        )

        with self._lock:
            self._executions.appendleft(stored)
        return stored

    def list_executions(self, limit: int = 50, rule_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._executions)
        if rule_id is not None:
            items = [e for e in items if e.get("rule_id") == rule_id]
        return items[:limit]

    def count_executions(self) -> int:
        return len(self._executions)
