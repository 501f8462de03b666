"""Tests for device capability tables, handlers and the YoLink HTTP driver."""

import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from fusionbridge.core.errors import DeviceActionError
from fusionbridge.mappings.definitions import ActionableState, DeviceType
from fusionbridge.schemas.event import TypedDeviceInfo
from fusionbridge.services.context import DeviceRecord
from fusionbridge.services.device_actions import (
    YOLINK_API_URL,
    YOLINK_TOKEN_URL,
    DeviceActionRegistry,
    GeneaHandler,
    YoLinkHandler,
    YoLinkHttpDriver,
    device_type_for,
    get_supported_state_actions,
    is_action_supported,
)


class TestCapabilities:
    """Tests for the supported action tables."""

    def test_yolink_switch(self):
        """Test YoLink switches support on and off."""
        assert get_supported_state_actions("yolink", DeviceType.SWITCH) == (
            ActionableState.SET_ON,
            ActionableState.SET_OFF,
        )
        assert is_action_supported("YoLink", DeviceType.OUTLET, ActionableState.SET_ON)

    def test_genea_door(self):
        """Test Genea doors support lock, unlock and quick grant."""
        assert is_action_supported("genea", DeviceType.DOOR, ActionableState.QUICK_GRANT)
        assert not is_action_supported("genea", DeviceType.DOOR, ActionableState.SET_ON)

    def test_unknown(self):
        """Test unknown categories and types support nothing."""
        assert get_supported_state_actions("piko", DeviceType.CAMERA) == ()
        assert get_supported_state_actions(None, DeviceType.SWITCH) == ()

    def test_type_from_raw_identifier(self):
        """Test the raw vendor type decides, with the stored classification as fallback."""
        dimmer = DeviceRecord(id="d", connector_id="c", device_id="x", raw_type="Dimmer")
        assert device_type_for("yolink", dimmer) == DeviceType.SWITCH

        relabelled = DeviceRecord(
            id="d",
            connector_id="c",
            device_id="x",
            raw_type="Manipulator",
            device_info=TypedDeviceInfo(type=DeviceType.SWITCH),
        )
        assert device_type_for("yolink", relabelled) == DeviceType.SWITCH

        bare = DeviceRecord(id="d", connector_id="c", device_id="x", raw_type="Manipulator")
        assert device_type_for("yolink", bare) == DeviceType.UNMAPPED


class TestRegistry:
    """Tests for DeviceActionRegistry.request_device_state_change."""

    def test_yolink_off(self, repo, yolink_driver):
        """Test SET_OFF maps to the YoLink 'close' state."""
        registry = DeviceActionRegistry([YoLinkHandler(yolink_driver)])
        ok = asyncio.run(registry.request_device_state_change(repo, "dev-siren-switch", ActionableState.SET_OFF))
        assert ok is True
        assert yolink_driver.calls[0]["state"] == "close"

    def test_genea_actions(self, repo, genea_driver):
        """Test each Genea door action reaches the driver."""
        registry = DeviceActionRegistry()
        registry.register(GeneaHandler(genea_driver))
        for state in (ActionableState.SET_LOCKED, ActionableState.SET_UNLOCKED, ActionableState.QUICK_GRANT):
            asyncio.run(registry.request_device_state_change(repo, "dev-lobby-door", state))
        assert genea_driver.calls == [
            ("lock", "genea-door-uuid"),
            ("unlock", "genea-door-uuid"),
            ("quick_grant", "genea-door-uuid"),
        ]

    def test_genea_driver_refusal(self, repo, genea_driver):
        """Test a driver returning False raises."""
        genea_driver.result = False
        registry = DeviceActionRegistry([GeneaHandler(genea_driver)])
        with pytest.raises(DeviceActionError):
            asyncio.run(registry.request_device_state_change(repo, "dev-lobby-door", ActionableState.SET_LOCKED))

    def test_missing_device(self, repo):
        """Test unknown devices raise."""
        with pytest.raises(DeviceActionError, match="Device not found"):
            asyncio.run(DeviceActionRegistry().request_device_state_change(repo, "nope", ActionableState.SET_ON))

    def test_no_handler_for_category(self, repo, yolink_driver):
        """Test a Genea door without a Genea handler is unsupported."""
        registry = DeviceActionRegistry([YoLinkHandler(yolink_driver)])
        with pytest.raises(DeviceActionError, match="not supported"):
            asyncio.run(registry.request_device_state_change(repo, "dev-lobby-door", ActionableState.SET_LOCKED))

    def test_yolink_requires_token(self, repo, yolink_driver):
        """Test a YoLink device without a token in its raw data raises."""
        repo.add_device(DeviceRecord(id="dev-outlet", connector_id="conn-yolink", device_id="yl-outlet", raw_type="Outlet"))
        registry = DeviceActionRegistry([YoLinkHandler(yolink_driver)])
        with pytest.raises(DeviceActionError, match="token"):
            asyncio.run(registry.request_device_state_change(repo, "dev-outlet", ActionableState.SET_ON))
        assert yolink_driver.calls == []

    def test_yolink_token_from_json_text(self, repo, yolink_driver):
        """Test raw device data stored as JSON text."""
        repo.add_device(
            DeviceRecord(
                id="dev-outlet",
                connector_id="conn-yolink",
                device_id="yl-outlet",
                raw_type="Outlet",
                raw_device_data=json.dumps({"token": "t-2"}),
            )
        )
        registry = DeviceActionRegistry([YoLinkHandler(yolink_driver)])
        asyncio.run(registry.request_device_state_change(repo, "dev-outlet", ActionableState.SET_ON))
        assert yolink_driver.calls[0]["token"] == "t-2"


    def test_can_handle(self, repo, yolink_driver, genea_driver):
        """Test handlers accept only actions their capability table lists for the device."""
        yolink = YoLinkHandler(yolink_driver)
        genea = GeneaHandler(genea_driver)
        switch = repo.get_device("dev-siren-switch")
        door = repo.get_device("dev-lobby-door")

        assert yolink.can_handle(switch, ActionableState.SET_ON)
        assert not yolink.can_handle(switch, ActionableState.SET_LOCKED)
        assert not yolink.can_handle(repo.get_device("dev-front-door"), ActionableState.SET_ON)
        assert genea.can_handle(door, ActionableState.QUICK_GRANT)
        assert not genea.can_handle(door, ActionableState.SET_OFF)

    def test_unsupported_device_type_gated(self, repo, yolink_driver):
        """Test a YoLink device without on/off capability never reaches the driver."""
        repo.add_device(
            DeviceRecord(
                id="dev-valve",
                connector_id="conn-yolink",
                device_id="yl-valve",
                raw_type="Manipulator",
                raw_device_data={"token": "t-3"},
            )
        )
        registry = DeviceActionRegistry([YoLinkHandler(yolink_driver)])
        with pytest.raises(DeviceActionError, match="device type 'Unmapped'"):
            asyncio.run(registry.request_device_state_change(repo, "dev-valve", ActionableState.SET_ON))
        assert yolink_driver.calls == []

    def test_action_outside_capability(self, repo, yolink_driver):
        """Test a contact sensor cannot be switched even with a YoLink handler registered."""
        registry = DeviceActionRegistry([YoLinkHandler(yolink_driver)])
        with pytest.raises(DeviceActionError, match="not supported"):
            asyncio.run(registry.request_device_state_change(repo, "dev-front-door", ActionableState.SET_ON))
        assert yolink_driver.calls == []

    def test_wrong_action_for_door(self, repo, genea_driver):
        """Test a Genea door rejects on/off."""
        registry = DeviceActionRegistry([GeneaHandler(genea_driver)])
        with pytest.raises(DeviceActionError, match="not supported"):
            asyncio.run(registry.request_device_state_change(repo, "dev-lobby-door", ActionableState.SET_ON))
        assert genea_driver.calls == []


class TestYoLinkHttpDriver:
    """Tests for the YoLink open API driver."""

    CONFIG = {"uaid": "ua-1", "clientSecret": "s3cret"}

    def run(self, handler, coro_factory):
        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await coro_factory(YoLinkHttpDriver(client))

        return asyncio.run(go())

    def test_set_state(self):
        """Test the token request and the setState call."""
        requests = []

        def handler(request):
            requests.append(request)
            if str(request.url) == YOLINK_TOKEN_URL:
                return httpx.Response(200, json={"access_token": "acc-1"})
            return httpx.Response(200, json={"code": "000000", "data": {"state": "open"}})

        data = self.run(
            handler,
            lambda d: d.set_device_state(self.CONFIG, "yl-switch-1", "dev-token", "Switch", "open"),
        )

        assert data == {"state": "open"}
        token_form = parse_qs(requests[0].content.decode())
        assert token_form == {"grant_type": ["client_credentials"], "client_id": ["ua-1"], "client_secret": ["s3cret"]}
        assert str(requests[1].url) == YOLINK_API_URL
        assert requests[1].headers["Authorization"] == "Bearer acc-1"
        assert json.loads(requests[1].content) == {
            "method": "Switch.setState",
            "targetDevice": "yl-switch-1",
            "token": "dev-token",
            "params": {"state": "open"},
        }

    def test_api_error_code(self):
        """Test a non-success BUDP code raises."""

        def handler(request):
            if str(request.url) == YOLINK_TOKEN_URL:
                return httpx.Response(200, json={"access_token": "acc-1"})
            return httpx.Response(200, json={"code": "000201", "desc": "Device offline"})

        with pytest.raises(DeviceActionError, match="Device offline"):
            self.run(handler, lambda d: d.set_device_state(self.CONFIG, "x", "t", "Outlet", "close"))

    def test_missing_credentials(self):
        """Test the token request needs UAID and secret."""
        with pytest.raises(DeviceActionError, match="UAID"):
            self.run(lambda r: httpx.Response(200), lambda d: d.fetch_access_token({"uaid": "ua-1"}))

    def test_unsupported_type(self):
        """Test only switch and outlet types can be set."""
        with pytest.raises(DeviceActionError, match="unsupported device type"):
            self.run(lambda r: httpx.Response(200), lambda d: d.set_device_state(self.CONFIG, "x", "t", "Lock", "open"))
