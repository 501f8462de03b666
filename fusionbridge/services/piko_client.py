from typing import Any, Dict, Mapping, Optional, Protocol

import httpx
from loguru import logger

from fusionbridge.core.config import settings
from fusionbridge.core.errors import ActionExecutionError
from fusionbridge.services.context import ContextRepository


class PikoClient(Protocol):
    """Outbound calls to a Piko system used by create-event and bookmark actions."""

    async def create_event(self, connector_id: str, payload: Dict[str, Any]) -> Any: ...

    async def create_bookmark(self, connector_id: str, camera_id: str, payload: Dict[str, Any]) -> Any: ...


def api_base_url(config: Mapping[str, Any]) -> str:
    """Cloud systems go through the relay, local ones straight to host:port."""
    if config.get("type") == "local":
        host, port = config.get("host"), config.get("port")
        if not host or not port:
            raise ActionExecutionError("Piko local connector needs host and port")
        return f"https://{host}:{port}"
    system_id = config.get("selectedSystem")
    if not system_id:
        raise ActionExecutionError("Piko cloud connector has no selected system")
    return f"https://{system_id}.relay.vmsproxy.com"


class PikoHttpClient:
    """Piko REST calls over httpx, using the connector's stored bearer token."""

    def __init__(self, repo: ContextRepository, client: Optional[httpx.AsyncClient] = None) -> None:
        self.repo = repo
        self._client = client

    def _target(self, connector_id: str):
        connector = self.repo.get_connector(connector_id)
        if connector is None:
            raise ActionExecutionError(f"Piko connector {connector_id} not found")
        token = connector.config.get("accessToken") or connector.config.get("access_token")
        if not token:
            raise ActionExecutionError(f"Piko connector {connector_id} has no access token")
        return api_base_url(connector.config), token

    async def _post(self, connector_id: str, path: str, payload: Dict[str, Any]) -> Any:
        base_url, token = self._target(connector_id)
        kwargs = {
            "json": payload,
            "headers": {"Authorization": f"Bearer {token}", "Accept": "application/json"},
        }
        if self._client is not None:
            resp = await self._client.post(base_url + path, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=settings.ACTION_TIMEOUT_SEC) as client:
                resp = await client.post(base_url + path, **kwargs)

        if not resp.is_success:
            raise ActionExecutionError(f"Piko {path} failed with status {resp.status_code}")
        data = resp.json() if resp.content else {}
        # legacy endpoints report errors in the body with HTTP 200
        if isinstance(data, dict) and data.get("error") not in (None, "", 0, "0"):
            raise ActionExecutionError(
                f"Piko {path} error: {data.get('errorString') or 'Unknown'} (code {data.get('error')})"
            )
        return data

    async def create_event(self, connector_id: str, payload: Dict[str, Any]) -> Any:
        data = await self._post(connector_id, "/api/createEvent", payload)
        logger.info(f"[Piko] {connector_id} event created, source={payload.get('source')}")
        return data

    async def create_bookmark(self, connector_id: str, camera_id: str, payload: Dict[str, Any]) -> Any:
        if not camera_id:
            raise ActionExecutionError("Piko camera id required for bookmark")
        data = await self._post(connector_id, f"/rest/v3/devices/{camera_id}/bookmarks", payload)
        logger.info(f"[Piko] {connector_id} bookmark '{payload.get('name')}' on camera {camera_id}")
        return data
