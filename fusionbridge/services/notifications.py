from __future__ import annotations

from typing import List, Optional, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from fusionbridge.core.config import settings

ALL_USERS = "__all__"


class NotificationResult(BaseModel):
    success: bool
    error_message: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    request_id: Optional[str] = None


class NotificationDriver(Protocol):
    async def send(
        self,
        message: str,
        title: Optional[str] = None,
        user_key: Optional[str] = None,
        priority: int = 0,
    ) -> NotificationResult: ...


class PushoverDriver:
    """Pushover messages API over httpx.

    A missing or `__all__` user key sends to the configured group key.
    Network and API failures come back as a failed result, never raised.
    """

    def __init__(
        self,
        api_token: str = settings.PUSHOVER_API_TOKEN,
        group_key: str = settings.PUSHOVER_GROUP_KEY,
        api_url: str = settings.PUSHOVER_API_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_token = api_token
        self.group_key = group_key
        self.api_url = api_url
        self._client = client

    async def _post(self, data: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.api_url, data=data)
        async with httpx.AsyncClient(timeout=settings.ACTION_TIMEOUT_SEC) as client:
            return await client.post(self.api_url, data=data)

    async def send(
        self,
        message: str,
        title: Optional[str] = None,
        user_key: Optional[str] = None,
        priority: int = 0,
    ) -> NotificationResult:
        if not self.api_token:
            return NotificationResult(success=False, error_message="Pushover API token is not configured")

        recipient = self.group_key if not user_key or user_key == ALL_USERS else user_key
        if not recipient:
            return NotificationResult(success=False, error_message="No Pushover recipient (user or group key)")

        data = {"token": self.api_token, "user": recipient, "message": message, "priority": str(priority)}
        if title:
            data["title"] = title

        try:
            resp = await self._post(data)
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[Pushover] Network or decode error: {e}")
            return NotificationResult(success=False, error_message=f"Failed to send notification: {e}")

        if resp.is_success and isinstance(body, dict) and body.get("status") == 1:
            return NotificationResult(success=True, request_id=body.get("request"))

        errors = body.get("errors") if isinstance(body, dict) else None
        errors = [str(x) for x in errors] if isinstance(errors, list) else [f"HTTP Error: {resp.status_code}"]
        logger.warning(f"[Pushover] Rejected: {errors}")
        return NotificationResult(success=False, error_message="; ".join(errors), errors=errors)
