from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from fusionbridge.core.config import settings
from fusionbridge.core.errors import ActionExecutionError
from fusionbridge.mappings.definitions import ArmedState
from fusionbridge.pipeline.tokens import resolve_template
from fusionbridge.schemas.automation import (
    AreaScoping,
    ArmAreaAction,
    AutomationRule,
    CreateBookmarkAction,
    CreateEventAction,
    DisarmAreaAction,
    SendHttpRequestAction,
    SendPushNotificationAction,
    SetDeviceStateAction,
)
from fusionbridge.schemas.event import StandardizedEvent
from fusionbridge.services.context import ContextRepository, DeviceRecord
from fusionbridge.services.device_actions import DeviceActionRegistry
from fusionbridge.services.notifications import NotificationDriver
from fusionbridge.services.piko_client import PikoClient

DEFAULT_BOOKMARK_DURATION_MS = 5000
BODY_METHODS = ("POST", "PUT", "PATCH")


@dataclass
class ActionContext:
    rule: AutomationRule
    event: Optional[StandardizedEvent]          # None for scheduled runs
    facts: Dict[str, Any]
    device: Optional[DeviceRecord] = None

    @property
    def source(self) -> str:
        return self.event.event_id if self.event is not None else "schedule"


@dataclass
class ActionResult:
    index: int
    action_type: str
    success: bool
    error_message: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action_type": self.action_type,
            "success": self.success,
            "error_message": self.error_message,
            "detail": self.detail,
        }


class ActionDispatcher:
    """
    Executes one rule action against the triggering event.

    Each `dispatch` call runs the action once, under its own timeout,
    and reports the outcome as an ActionResult. Nothing is retried and
    nothing raises out of `dispatch`.
    """

    def __init__(
        self,
        repo: ContextRepository,
        device_actions: Optional[DeviceActionRegistry] = None,
        notifier: Optional[NotificationDriver] = None,
        piko: Optional[PikoClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.ACTION_TIMEOUT_SEC,
    ) -> None:
        self.repo = repo
        self.device_actions = device_actions or DeviceActionRegistry()
        self.notifier = notifier
        self.piko = piko
        self.http_client = http_client
        self.timeout = timeout
        self._handlers = {
            "create_event": self._create_event,
            "create_bookmark": self._create_bookmark,
            "send_http_request": self._send_http_request,
            "set_device_state": self._set_device_state,
            "send_push_notification": self._send_push_notification,
            "arm_area": self._arm_area,
            "disarm_area": self._disarm_area,
        }

    async def dispatch(self, index: int, action: Any, ctx: ActionContext) -> ActionResult:
        handler = self._handlers.get(action.type)
        if handler is None:
            return ActionResult(index, str(action.type), False, f"Unsupported action type {action.type}")

        try:
            detail = await asyncio.wait_for(handler(action, ctx), timeout=self.timeout)
        except asyncio.TimeoutError:
            msg = f"timed out after {self.timeout}s"
            logger.error(
                f"[Actions] rule={ctx.rule.id} action={action.type}#{index} source={ctx.source}: {msg}"
            )
            return ActionResult(index, action.type, False, msg)
        except Exception as e:
            logger.error(
                f"[Actions] rule={ctx.rule.id} action={action.type}#{index} source={ctx.source}: {e}"
            )
            return ActionResult(index, action.type, False, str(e))

        logger.info(f"[Actions] rule={ctx.rule.id} action={action.type}#{index} ok")
        return ActionResult(index, action.type, True, detail=detail or {})

    # ----------------------------
    # Helpers
    # ----------------------------

    def _t(self, template: Optional[str], ctx: ActionContext) -> Optional[str]:
        return resolve_template(template, ctx.facts)

    def _piko_target(self, connector_id: str):
        if self.piko is None:
            raise ActionExecutionError("No Piko client configured")
        connector = self.repo.get_connector(connector_id)
        if connector is None:
            raise ActionExecutionError(f"Target connector {connector_id} not found")
        if connector.category.lower() != "piko":
            raise ActionExecutionError(f"Unsupported target connector category {connector.category}")
        return connector

    def _triggering_event(self, ctx: ActionContext) -> StandardizedEvent:
        if ctx.event is None:
            raise ActionExecutionError("Action needs a triggering event")
        return ctx.event

    def _camera_ids(self, ctx: ActionContext) -> List[str]:
        if ctx.device is None:
            return []
        ids = []
        for internal_id in ctx.device.camera_ids:
            cam = self.repo.get_device(internal_id)
            if cam is not None:
                ids.append(cam.device_id)
        return ids

    # ----------------------------
    # Action kinds
    # ----------------------------

    async def _create_event(self, action: CreateEventAction, ctx: ActionContext) -> Dict[str, Any]:
        p = action.params
        connector = self._piko_target(p.target_connector_id)
        payload: Dict[str, Any] = {
            "source": self._t(p.source_template, ctx),
            "caption": self._t(p.caption_template, ctx),
            "description": self._t(p.description_template, ctx),
            "timestamp": self._triggering_event(ctx).timestamp.isoformat(),
        }
        cameras = self._camera_ids(ctx)
        if cameras:
            payload["metadata"] = {"cameraRefs": cameras}
        await self.piko.create_event(connector.id, payload)
        return {"connector_id": connector.id, "camera_refs": cameras}

    async def _create_bookmark(self, action: CreateBookmarkAction, ctx: ActionContext) -> Dict[str, Any]:
        p = action.params
        connector = self._piko_target(p.target_connector_id)
        cameras = self._camera_ids(ctx)
        if not cameras:
            logger.warning(f"[Actions] rule={ctx.rule.id} no cameras associated with source device, bookmark skipped")
            return {"skipped": "no associated cameras"}

        try:
            duration = int(self._t(p.duration_ms_template, ctx) or "")
        except ValueError:
            duration = DEFAULT_BOOKMARK_DURATION_MS
        if duration <= 0:
            duration = DEFAULT_BOOKMARK_DURATION_MS

        tags_raw = self._t(p.tags_template, ctx) or ""
        tags = [t.strip() for t in tags_raw.split(",") if t.strip()]

        payload: Dict[str, Any] = {
            "name": self._t(p.name_template, ctx),
            "startTimeMs": self._triggering_event(ctx).timestamp_ms,
            "durationMs": duration,
        }
        description = self._t(p.description_template, ctx)
        if description:
            payload["description"] = description
        if tags:
            payload["tags"] = tags

        for camera_id in cameras:
            await self.piko.create_bookmark(connector.id, camera_id, payload)
        return {"connector_id": connector.id, "cameras": cameras}

    async def _send_http_request(self, action: SendHttpRequestAction, ctx: ActionContext) -> Dict[str, Any]:
        p = action.params
        url = self._t(p.url_template, ctx)
        headers = {"User-Agent": settings.HTTP_USER_AGENT}
        for h in p.headers:
            key = (self._t(h.key_template, ctx) or "").strip()
            if key:
                headers[key] = self._t(h.value_template, ctx) or ""

        body = None
        if p.method in BODY_METHODS and p.body_template:
            body = self._t(p.body_template, ctx)
            has_ct = any(k.lower() == "content-type" for k in headers)
            if not has_ct and body.strip().startswith("{"):
                headers["Content-Type"] = "application/json"

        if self.http_client is not None:
            resp = await self.http_client.request(p.method, url, headers=headers, content=body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(p.method, url, headers=headers, content=body)

        if not resp.is_success:
            logger.error(f"[Actions] rule={ctx.rule.id} HTTP {resp.status_code} body: {resp.text[:500]}")
            raise ActionExecutionError(f"HTTP request failed with status {resp.status_code}")
        return {"status_code": resp.status_code}

    async def _set_device_state(self, action: SetDeviceStateAction, ctx: ActionContext) -> Dict[str, Any]:
        p = action.params
        await self.device_actions.request_device_state_change(self.repo, p.target_device_id, p.target_state)
        return {"device_id": p.target_device_id, "state": p.target_state.value}

    async def _send_push_notification(self, action: SendPushNotificationAction, ctx: ActionContext) -> Dict[str, Any]:
        if self.notifier is None:
            raise ActionExecutionError("Push notification service is not configured")
        p = action.params
        result = await self.notifier.send(
            message=self._t(p.message_template, ctx) or "",
            title=self._t(p.title_template, ctx),
            user_key=self._t(p.target_user_key_template, ctx),
            priority=p.priority,
        )
        if not result.success:
            detail = ", ".join(result.errors) or result.error_message or "Unknown notification error"
            raise ActionExecutionError(f"Failed to send push notification: {detail}")
        return {"request_id": result.request_id}

    def _target_areas(self, scoping: AreaScoping, area_ids: List[str], ctx: ActionContext) -> List[str]:
        if scoping == AreaScoping.SPECIFIC_AREAS:
            return list(area_ids)
        areas = self.repo.list_areas(ctx.rule.location_scope_id)
        org = ctx.rule.organization_id
        if org:
            # an unscoped rule reaches every area of its own organization, never beyond
            areas = [a for a in areas if self._area_organization(a.location_id) == org]
        return [a.id for a in areas]

    def _area_organization(self, location_id: str) -> Optional[str]:
        location = self.repo.get_location(location_id)
        return location.organization_id if location else None

    def _set_areas(self, area_ids: List[str], state: ArmedState) -> Dict[str, Any]:
        changed, missing = [], []
        for area_id in area_ids:
            if self.repo.set_area_armed_state(area_id, state) is None:
                missing.append(area_id)
            else:
                changed.append(area_id)
        if missing and not changed:
            raise ActionExecutionError(f"Areas not found: {', '.join(missing)}")
        return {"areas": changed, "missing": missing, "state": state.value}

    async def _arm_area(self, action: ArmAreaAction, ctx: ActionContext) -> Dict[str, Any]:
        p = action.params
        areas = self._target_areas(p.scoping, p.target_area_ids, ctx)
        if not areas:
            return {"skipped": "no target areas"}
        return self._set_areas(areas, p.arm_mode)

    async def _disarm_area(self, action: DisarmAreaAction, ctx: ActionContext) -> Dict[str, Any]:
        p = action.params
        areas = self._target_areas(p.scoping, p.target_area_ids, ctx)
        if not areas:
            return {"skipped": "no target areas"}
        return self._set_areas(areas, ArmedState.DISARMED)
