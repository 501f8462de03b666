from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import httpx
from loguru import logger

from fusionbridge.core.config import settings
from fusionbridge.core.errors import DeviceActionError
from fusionbridge.mappings.definitions import ActionableState, DeviceType
from fusionbridge.mappings.identification import get_device_type_info
from fusionbridge.services.context import ContextRepository, DeviceRecord


# ----------------------------
# Capabilities (what a device exposes)
# ----------------------------

SUPPORTED_DEVICE_ACTIONS: Dict[str, Dict[DeviceType, Tuple[ActionableState, ...]]] = {
    "yolink": {
        DeviceType.SWITCH: (ActionableState.SET_ON, ActionableState.SET_OFF),
        DeviceType.OUTLET: (ActionableState.SET_ON, ActionableState.SET_OFF),
    },
    "genea": {
        DeviceType.DOOR: (
            ActionableState.SET_LOCKED,
            ActionableState.SET_UNLOCKED,
            ActionableState.QUICK_GRANT,
        ),
    },
}


def get_supported_state_actions(connector_category: Optional[str], device_type: DeviceType) -> Tuple[ActionableState, ...]:
    if not connector_category:
        return ()
    return SUPPORTED_DEVICE_ACTIONS.get(connector_category.lower(), {}).get(device_type, ())


def is_action_supported(connector_category: Optional[str], device_type: DeviceType, action: ActionableState) -> bool:
    return action in get_supported_state_actions(connector_category, device_type)


def device_type_for(connector_category: str, device: DeviceRecord) -> DeviceType:
    """Type from the raw vendor identifier, falling back to the stored classification."""
    info = get_device_type_info(connector_category, device.raw_type) if device.raw_type else device.device_info
    if info.type == DeviceType.UNMAPPED:
        info = device.device_info
    return info.type


# ----------------------------
# Vendor drivers
# ----------------------------

class YoLinkDriver(Protocol):
    async def set_device_state(
        self,
        config: Mapping[str, Any],
        device_id: str,
        device_token: str,
        raw_device_type: str,
        target_state: str,
    ) -> Any: ...


class GeneaDriver(Protocol):
    async def lock_door(self, config: Mapping[str, Any], door_uuid: str) -> bool: ...

    async def unlock_door(self, config: Mapping[str, Any], door_uuid: str) -> bool: ...

    async def quick_grant_door(self, config: Mapping[str, Any], door_uuid: str) -> bool: ...


YOLINK_TOKEN_URL = "https://api.yosmart.com/open/yolink/token"
YOLINK_API_URL = "https://api.yosmart.com/open/yolink/v2/api"
YOLINK_SUCCESS_CODE = "000000"

YOLINK_SET_STATE_METHODS = {
    "Switch": "Switch.setState",
    "Outlet": "Outlet.setState",
    "MultiOutlet": "Outlet.setState",
}


class YoLinkHttpDriver:
    """YoLink open API over httpx: client-credentials token, then a BUDP call."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=settings.ACTION_TIMEOUT_SEC) as client:
            return await client.post(url, **kwargs)

    async def fetch_access_token(self, config: Mapping[str, Any]) -> str:
        uaid = config.get("uaid")
        secret = config.get("clientSecret") or config.get("client_secret")
        if not uaid or not secret:
            raise DeviceActionError("Missing YoLink UAID or Client Secret.")

        resp = await self._post(
            YOLINK_TOKEN_URL,
            data={"grant_type": "client_credentials", "client_id": uaid, "client_secret": secret},
        )
        data = resp.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if resp.status_code >= 400 or not isinstance(token, str):
            raise DeviceActionError(f"Failed to get YoLink token (HTTP {resp.status_code})")
        return token

    async def set_device_state(
        self,
        config: Mapping[str, Any],
        device_id: str,
        device_token: str,
        raw_device_type: str,
        target_state: str,
    ) -> Any:
        method = YOLINK_SET_STATE_METHODS.get(raw_device_type)
        if method is None:
            raise DeviceActionError(f"Cannot set state for unsupported device type: {raw_device_type}")

        access_token = await self.fetch_access_token(config)
        resp = await self._post(
            YOLINK_API_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            json={
                "method": method,
                "targetDevice": device_id,
                "token": device_token,
                "params": {"state": target_state},
            },
        )
        data = resp.json()
        code = data.get("code") if isinstance(data, dict) else None
        if resp.status_code >= 400 or code != YOLINK_SUCCESS_CODE:
            desc = (data.get("desc") or data.get("msg")) if isinstance(data, dict) else None
            raise DeviceActionError(f"YoLink {method} failed: {desc or code or resp.status_code}")
        return data.get("data")


# ----------------------------
# Handlers
# ----------------------------

class DeviceActionHandler(ABC):
    category: str = ""

    def can_handle(self, device: DeviceRecord, action: ActionableState) -> bool:
        return is_action_supported(self.category, device_type_for(self.category, device), action)

    @abstractmethod
    async def execute_state_change(
        self,
        device: DeviceRecord,
        connector_config: Mapping[str, Any],
        action: ActionableState,
    ) -> bool:
        """Apply `action` to the device; raise DeviceActionError on failure."""


class YoLinkHandler(DeviceActionHandler):
    category = "yolink"

    def __init__(self, driver: YoLinkDriver) -> None:
        self.driver = driver

    @staticmethod
    def _device_token(device: DeviceRecord) -> str:
        raw = device.raw_device_data
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise DeviceActionError("Invalid raw device data format.") from e
        token = raw.get("token") if isinstance(raw, dict) else None
        if not token or not isinstance(token, str):
            raise DeviceActionError(f"Missing required device token for YoLink device {device.device_id}.")
        return token

    async def execute_state_change(
        self,
        device: DeviceRecord,
        connector_config: Mapping[str, Any],
        action: ActionableState,
    ) -> bool:
        token = self._device_token(device)
        target = "open" if action == ActionableState.SET_ON else "close"
        logger.info(f"[YoLinkHandler] {device.device_id} -> {target}")
        await self.driver.set_device_state(connector_config, device.device_id, token, device.raw_type or "", target)
        return True


class GeneaHandler(DeviceActionHandler):
    category = "genea"

    def __init__(self, driver: GeneaDriver) -> None:
        self.driver = driver

    async def execute_state_change(
        self,
        device: DeviceRecord,
        connector_config: Mapping[str, Any],
        action: ActionableState,
    ) -> bool:
        door_uuid = device.device_id
        if not door_uuid:
            raise DeviceActionError(f"Missing door UUID for Genea device {device.id}.")

        if action == ActionableState.SET_LOCKED:
            ok = await self.driver.lock_door(connector_config, door_uuid)
        elif action == ActionableState.SET_UNLOCKED:
            ok = await self.driver.unlock_door(connector_config, door_uuid)
        elif action == ActionableState.QUICK_GRANT:
            ok = await self.driver.quick_grant_door(connector_config, door_uuid)
        else:
            raise DeviceActionError(f"Unsupported action {action.value} for Genea door.")

        if not ok:
            raise DeviceActionError(f"Genea door action {action.value} failed for {door_uuid}")
        logger.info(f"[GeneaHandler] {door_uuid} -> {action.value}")
        return True


# ----------------------------
# Registry / entry point
# ----------------------------

class DeviceActionRegistry:
    def __init__(self, handlers: Sequence[DeviceActionHandler] = ()) -> None:
        self._handlers: List[DeviceActionHandler] = list(handlers)

    def register(self, handler: DeviceActionHandler) -> None:
        self._handlers.append(handler)

    def find_handler(self, category: str, device: DeviceRecord, action: ActionableState) -> Optional[DeviceActionHandler]:
        for h in self._handlers:
            if h.category == category and h.can_handle(device, action):
                return h
        return None

    async def request_device_state_change(
        self,
        repo: ContextRepository,
        internal_device_id: str,
        action: ActionableState,
    ) -> bool:
        """Look up the device and its connector, then hand off to the matching handler."""
        device = repo.get_device(internal_device_id)
        if device is None:
            raise DeviceActionError(f"Device not found: {internal_device_id}")

        connector = repo.get_connector(device.connector_id)
        if connector is None:
            raise DeviceActionError(f"Connector {device.connector_id} not found for device {internal_device_id}")

        handler = self.find_handler(connector.category.lower(), device, action)
        if handler is None:
            raise DeviceActionError(
                f"Action '{action.value}' is not supported for device type "
                f"'{device_type_for(connector.category.lower(), device).value}' (raw '{device.raw_type}') "
                f"on connector category '{connector.category}'"
            )

        return await handler.execute_state_change(device, connector.config, action)
