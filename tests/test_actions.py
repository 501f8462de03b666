"""Tests for the action dispatcher."""

import asyncio
import json

import httpx
import pytest
from pydantic import TypeAdapter

from fusionbridge.core.config import settings
from fusionbridge.mappings.definitions import ArmedState
from fusionbridge.pipeline.actions import ActionContext, ActionDispatcher
from fusionbridge.pipeline.facts import build_facts
from fusionbridge.schemas.automation import AutomationAction, AutomationRule
from fusionbridge.services.context import AreaRecord, InMemoryContextRepository, LocationRecord

ACTION = TypeAdapter(AutomationAction)


def action(data):
    return ACTION.validate_python(data)


@pytest.fixture
def ctx(repo, make_event):
    event = make_event()
    device = repo.find_device("conn-yolink", "yl-front-door")
    facts = build_facts(
        event,
        device,
        repo.get_connector("conn-yolink"),
        repo.get_area("area-lobby"),
        repo.get_location("loc-1"),
    )
    rule = AutomationRule(id="rule-1", name="Front door", location_scope_id="loc-1", config={})
    return ActionContext(rule=rule, event=event, facts=facts, device=device)


def dispatch(dispatcher, act, ctx, index=0):
    return asyncio.run(dispatcher.dispatch(index, act, ctx))


class TestHttpRequest:
    """Tests for send_http_request actions."""

    def run_with_transport(self, repo, ctx, act, handler):
        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                dispatcher = ActionDispatcher(repo, http_client=client)
                return await dispatcher.dispatch(0, act, ctx)

        return asyncio.run(go())

    def test_post_json_body(self, repo, ctx):
        """Test templated URL, headers and a JSON body."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"ok": True})

        act = action({
            "type": "send_http_request",
            "params": {
                "url_template": "https://hooks.example.com/{{device.external_id}}",
                "method": "POST",
                "headers": [{"key_template": "X-Area", "value_template": "{{area.name}}"}],
                "body_template": '{"device": "{{device.name}}", "state": "{{event.display_state}}"}',
            },
        })
        result = self.run_with_transport(repo, ctx, act, handler)

        assert result.success
        assert result.detail == {"status_code": 200}
        request = seen["request"]
        assert request.method == "POST"
        assert str(request.url) == "https://hooks.example.com/yl-front-door"
        assert request.headers["User-Agent"] == settings.HTTP_USER_AGENT
        assert request.headers["X-Area"] == "Lobby"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"device": "Front Door", "state": "Open"}

    def test_explicit_content_type_kept(self, repo, ctx):
        """Test a configured content type is not overridden."""
        seen = {}

        def handler(request):
            seen["ct"] = request.headers["content-type"]
            return httpx.Response(204)

        act = action({
            "type": "send_http_request",
            "params": {
                "url_template": "https://hooks.example.com/x",
                "method": "PUT",
                "headers": [{"key_template": "Content-Type", "value_template": "text/plain"}],
                "body_template": "{raw}",
            },
        })
        assert self.run_with_transport(repo, ctx, act, handler).success
        assert seen["ct"] == "text/plain"

    def test_get_sends_no_body(self, repo, ctx):
        """Test a body template is ignored for GET."""
        seen = {}

        def handler(request):
            seen["content"] = request.content
            return httpx.Response(200)

        act = action({
            "type": "send_http_request",
            "params": {"url_template": "https://hooks.example.com/x", "body_template": '{"a": 1}'},
        })
        assert self.run_with_transport(repo, ctx, act, handler).success
        assert seen["content"] == b""

    def test_non_2xx_fails(self, repo, ctx):
        """Test an error status fails the action."""
        act = action({"type": "send_http_request", "params": {"url_template": "https://hooks.example.com/x"}})
        result = self.run_with_transport(repo, ctx, act, lambda request: httpx.Response(503, text="down"))
        assert not result.success
        assert result.error_message == "HTTP request failed with status 503"

    def test_network_error_fails(self, repo, ctx):
        """Test a transport error fails the action without raising."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        act = action({"type": "send_http_request", "params": {"url_template": "https://hooks.example.com/x"}})
        result = self.run_with_transport(repo, ctx, act, handler)
        assert not result.success
        assert "connection refused" in result.error_message


class TestPikoActions:
    """Tests for create_event and create_bookmark actions."""

    def test_create_event(self, dispatcher, ctx, piko):
        """Test a Piko event is created with camera references."""
        act = action({
            "type": "create_event",
            "params": {
                "target_connector_id": "conn-piko",
                "source_template": "FusionBridge",
                "caption_template": "{{device.name}} {{event.display_state}}",
                "description_template": "Area {{area.name}}",
            },
        })
        result = dispatch(dispatcher, act, ctx)

        assert result.success
        sent = piko.events[0]
        assert sent["connector_id"] == "conn-piko"
        assert sent["caption"] == "Front Door Open"
        assert sent["description"] == "Area Lobby"
        assert sent["metadata"] == {"cameraRefs": ["piko-cam-guid"]}

    def test_create_event_wrong_connector(self, dispatcher, ctx):
        """Test the target connector must be a Piko connector."""
        act = action({
            "type": "create_event",
            "params": {
                "target_connector_id": "conn-yolink",
                "source_template": "s",
                "caption_template": "c",
                "description_template": "d",
            },
        })
        result = dispatch(dispatcher, act, ctx)
        assert not result.success
        assert "Unsupported target connector category" in result.error_message

    def test_create_bookmark(self, dispatcher, ctx, piko):
        """Test a bookmark is created on every associated camera."""
        act = action({
            "type": "create_bookmark",
            "params": {
                "target_connector_id": "conn-piko",
                "name_template": "{{device.name}}",
                "duration_ms_template": "10000",
                "tags_template": "door, {{area.name}} ,",
            },
        })
        result = dispatch(dispatcher, act, ctx)

        assert result.success
        bookmark = piko.bookmarks[0]
        assert bookmark["camera_id"] == "piko-cam-guid"
        assert bookmark["name"] == "Front Door"
        assert bookmark["durationMs"] == 10000
        assert bookmark["startTimeMs"] == ctx.event.timestamp_ms
        assert bookmark["tags"] == ["door", "Lobby"]
        assert "description" not in bookmark

    def test_bookmark_bad_duration_defaults(self, dispatcher, ctx, piko):
        """Test an unparseable duration falls back to five seconds."""
        act = action({
            "type": "create_bookmark",
            "params": {"target_connector_id": "conn-piko", "name_template": "n", "duration_ms_template": "soon"},
        })
        assert dispatch(dispatcher, act, ctx).success
        assert piko.bookmarks[0]["durationMs"] == 5000

    def test_bookmark_without_cameras_is_skipped(self, dispatcher, ctx, piko, repo):
        """Test a device with no cameras produces no bookmark."""
        ctx.device = repo.get_device("dev-back-door")
        act = action({"type": "create_bookmark", "params": {"target_connector_id": "conn-piko", "name_template": "n"}})
        result = dispatch(dispatcher, act, ctx)
        assert result.success
        assert result.detail == {"skipped": "no associated cameras"}
        assert piko.bookmarks == []


class TestDeviceAndNotificationActions:
    """Tests for set_device_state and send_push_notification actions."""

    def test_set_device_state(self, dispatcher, ctx, yolink_driver):
        """Test a switch is turned on through the YoLink handler."""
        act = action({
            "type": "set_device_state",
            "params": {"target_device_id": "dev-siren-switch", "target_state": "SET_ON"},
        })
        result = dispatch(dispatcher, act, ctx)

        assert result.success
        assert yolink_driver.calls == [
            {"device_id": "yl-switch-1", "token": "dev-token-1", "raw_type": "Switch", "state": "open"}
        ]

    def test_set_device_state_unsupported(self, dispatcher, ctx, yolink_driver):
        """Test unsupported device and state combinations fail."""
        act = action({
            "type": "set_device_state",
            "params": {"target_device_id": "dev-front-door", "target_state": "SET_ON"},
        })
        result = dispatch(dispatcher, act, ctx)
        assert not result.success
        assert "not supported" in result.error_message
        assert yolink_driver.calls == []

    def test_push_notification(self, dispatcher, ctx, notifier):
        """Test templated push notifications."""
        act = action({
            "type": "send_push_notification",
            "params": {
                "title_template": "{{area.name}} alert",
                "message_template": "{{device.name}} is {{event.display_state}}",
                "target_user_key_template": "__all__",
                "priority": 1,
            },
        })
        result = dispatch(dispatcher, act, ctx)
        assert result.success
        assert result.detail == {"request_id": "req-1"}
        assert notifier.sent == [
            {"message": "Front Door is Open", "title": "Lobby alert", "user_key": "__all__", "priority": 1}
        ]

    def test_push_notification_rejected(self, dispatcher, ctx, notifier):
        """Test a rejected notification fails the action."""
        notifier.success = False
        act = action({"type": "send_push_notification", "params": {"message_template": "hi"}})
        result = dispatch(dispatcher, act, ctx)
        assert not result.success
        assert "user key is invalid" in result.error_message

    def test_priority_out_of_range(self):
        """Test priorities are limited to -2..2."""
        with pytest.raises(ValueError):
            action({"type": "send_push_notification", "params": {"message_template": "hi", "priority": 3}})


class TestAreaActions:
    """Tests for arm_area and disarm_area actions."""

    def test_arm_specific_area(self, dispatcher, ctx, repo):
        """Test arming a listed area."""
        act = action({"type": "arm_area", "params": {"target_area_ids": ["area-dock"], "arm_mode": "ARMED_STAY"}})
        result = dispatch(dispatcher, act, ctx)
        assert result.success
        assert repo.get_area("area-dock").armed_state == ArmedState.ARMED_STAY
        assert repo.get_area("area-lobby").armed_state == ArmedState.DISARMED

    def test_arm_all_areas_in_scope(self, dispatcher, ctx, repo):
        """Test arming every area of the rule's location."""
        act = action({"type": "arm_area", "params": {"scoping": "all_areas_in_scope"}})
        assert dispatch(dispatcher, act, ctx).success
        assert {a.armed_state for a in repo.list_areas("loc-1")} == {ArmedState.ARMED_AWAY}

    def test_all_areas_confined_to_rule_organization(self, ctx):
        """Test an unscoped rule only arms areas of its own organization."""
        repo = InMemoryContextRepository(
            locations=[
                LocationRecord(id="loc-1", organization_id="org-1"),
                LocationRecord(id="loc-2", organization_id="org-2"),
            ],
            areas=[
                AreaRecord(id="area-ours", location_id="loc-1"),
                AreaRecord(id="area-theirs", location_id="loc-2"),
            ],
        )
        rule = AutomationRule(id="r", organization_id="org-1", config={})
        scoped = ActionContext(rule=rule, event=ctx.event, facts=ctx.facts)
        act = action({"type": "arm_area", "params": {"scoping": "all_areas_in_scope"}})

        result = dispatch(ActionDispatcher(repo), act, scoped)

        assert result.detail["areas"] == ["area-ours"]
        assert repo.get_area("area-ours").armed_state == ArmedState.ARMED_AWAY
        assert repo.get_area("area-theirs").armed_state == ArmedState.DISARMED

    def test_disarm(self, dispatcher, ctx, repo):
        """Test disarming an area."""
        repo.set_area_armed_state("area-lobby", ArmedState.ARMED_AWAY)
        act = action({"type": "disarm_area", "params": {"target_area_ids": ["area-lobby"]}})
        assert dispatch(dispatcher, act, ctx).success
        assert repo.get_area("area-lobby").armed_state == ArmedState.DISARMED

    def test_unknown_areas_fail(self, dispatcher, ctx):
        """Test the action fails when no listed area exists."""
        act = action({"type": "arm_area", "params": {"target_area_ids": ["area-ghost"]}})
        result = dispatch(dispatcher, act, ctx)
        assert not result.success
        assert "area-ghost" in result.error_message


class TestDispatch:
    """Tests for dispatch bookkeeping."""

    def test_timeout(self, repo, ctx):
        """Test a slow action fails with a timeout."""

        class SlowNotifier:
            async def send(self, message, title=None, user_key=None, priority=0):
                await asyncio.sleep(5)

        dispatcher = ActionDispatcher(repo, notifier=SlowNotifier(), timeout=0.05)
        act = action({"type": "send_push_notification", "params": {"message_template": "hi"}})
        result = dispatch(dispatcher, act, ctx, index=3)
        assert not result.success
        assert result.index == 3
        assert "timed out" in result.error_message

    def test_result_as_dict(self, dispatcher, ctx):
        """Test the serialized result shape."""
        act = action({"type": "disarm_area", "params": {"target_area_ids": ["area-lobby"]}})
        data = dispatch(dispatcher, act, ctx, index=2).as_dict()
        assert data["index"] == 2
        assert data["action_type"] == "disarm_area"
        assert data["success"] is True
        assert data["error_message"] is None

    def test_event_action_without_event(self, dispatcher, ctx):
        """Test event-bound actions fail cleanly when run from a schedule."""
        scheduled = ActionContext(rule=ctx.rule, event=None, facts={})
        act = action({"type": "create_event", "params": {"target_connector_id": "conn-piko", "source_template": "s", "caption_template": "c", "description_template": "d"}})
        result = dispatch(dispatcher, act, scheduled)
        assert not result.success
        assert result.error_message == "Action needs a triggering event"

    def test_missing_piko_client(self, repo, ctx):
        """Test Piko actions fail when no client is configured."""
        dispatcher = ActionDispatcher(repo)
        act = action({"type": "create_bookmark", "params": {"target_connector_id": "conn-piko", "name_template": "n"}})
        result = dispatch(dispatcher, act, ctx)
        assert not result.success
        assert result.error_message == "No Piko client configured"
