"""Tests for entity type matching, structured conditions, facts and token templates."""

import pytest

from fusionbridge.mappings.definitions import DeviceSubtype, DeviceType
from fusionbridge.pipeline.conditions import (
    evaluate_conditions,
    matches_any_entity_type,
    matches_entity_type,
)
from fusionbridge.pipeline.facts import MISSING, build_facts, effective_device_info, resolve_path
from fusionbridge.pipeline.tokens import resolve_template
from fusionbridge.schemas.automation import ConditionGroup
from fusionbridge.schemas.event import UNMAPPED_DEVICE, TypedDeviceInfo

CONTACT = TypedDeviceInfo(type=DeviceType.SENSOR, subtype=DeviceSubtype.CONTACT)
LEAK = TypedDeviceInfo(type=DeviceType.SENSOR, subtype=DeviceSubtype.LEAK)
DOOR = TypedDeviceInfo(type=DeviceType.DOOR)


def group(data):
    return ConditionGroup.model_validate(data)


class TestEntityTypeMatching:
    """Tests for source entity type patterns."""

    def test_bare_type_matches_any_subtype(self):
        """Test 'Sensor' matches every sensor."""
        assert matches_entity_type("Sensor", CONTACT)
        assert matches_entity_type("Sensor", LEAK)

    def test_wildcard_subtype(self):
        """Test 'Door.*' matches a door with or without subtype."""
        assert matches_entity_type("Door.*", DOOR)
        assert matches_entity_type("Sensor.*", CONTACT)

    def test_exact_subtype(self):
        """Test 'Sensor.Contact' matches only contact sensors."""
        assert matches_entity_type("Sensor.Contact", CONTACT)
        assert not matches_entity_type("Sensor.Contact", LEAK)
        assert not matches_entity_type("Door.Contact", DOOR)

    def test_type_mismatch(self):
        """Test a different type never matches."""
        assert not matches_entity_type("Door.*", CONTACT)
        assert not matches_entity_type("Door", UNMAPPED_DEVICE)

    def test_multi_word_type(self):
        """Test type names with spaces."""
        garage = TypedDeviceInfo(type=DeviceType.GARAGE_DOOR)
        assert matches_entity_type("Garage Door", garage)
        assert matches_entity_type("Garage Door.*", garage)

    def test_empty_list_matches_everything(self):
        """Test an empty pattern list matches any device."""
        assert matches_any_entity_type([], UNMAPPED_DEVICE)

    def test_any_pattern_in_list(self):
        """Test the list is an OR set."""
        assert matches_any_entity_type(["Door.*", "Sensor.Leak"], LEAK)
        assert not matches_any_entity_type(["Door.*", "Sensor.Leak"], CONTACT)


FACTS = {
    "event": {"type": "STATE_CHANGED", "display_state": "Open", "subtype": None, "payload": {"level": 7}},
    "device": {"name": "Front Door", "tags": ["entry", "perimeter"]},
    "area": {"armed_state": "ARMED_AWAY"},
}


class TestConditionEvaluation:
    """Tests for evaluate_conditions."""

    def test_empty_all_is_vacuously_true(self):
        """Test an empty all-group always passes."""
        assert evaluate_conditions(group({"all": []}), FACTS) is True

    def test_empty_any_is_false(self):
        """Test an empty any-group never passes."""
        assert evaluate_conditions(group({"any": []}), FACTS) is False

    def test_all_group(self):
        """Test every leaf of an all-group must pass."""
        node = group({
            "all": [
                {"fact": "event.display_state", "operator": "equal", "value": "Open"},
                {"fact": "area.armed_state", "operator": "equal", "value": "ARMED_AWAY"},
            ]
        })
        assert evaluate_conditions(node, FACTS) is True

        node.all[1].value = "DISARMED"
        assert evaluate_conditions(node, FACTS) is False

    def test_any_group(self):
        """Test one passing leaf is enough for an any-group."""
        node = group({
            "any": [
                {"fact": "event.display_state", "operator": "equal", "value": "Closed"},
                {"fact": "event.type", "operator": "in", "value": ["ACCESS_DENIED", "STATE_CHANGED"]},
            ]
        })
        assert evaluate_conditions(node, FACTS) is True

    def test_nested_groups(self):
        """Test groups nest to any depth."""
        node = group({
            "all": [
                {"any": [
                    {"fact": "event.display_state", "operator": "equal", "value": "Closed"},
                    {"all": [{"fact": "device.name", "operator": "contains", "value": "Door"}]},
                ]},
            ]
        })
        assert evaluate_conditions(node, FACTS) is True

    @pytest.mark.parametrize(
        "fact,operator,value,expected",
        [
            ("event.display_state", "not_equal", "Closed", True),
            ("event.payload.level", "greater_than", 5, True),
            ("event.payload.level", "greater_than", "7", False),
            ("event.payload.level", "greater_than_inclusive", "7", True),
            ("event.payload.level", "less_than", 10, True),
            ("event.payload.level", "less_than_inclusive", 6, False),
            ("event.type", "in", "ACCESS_DENIED, STATE_CHANGED", True),
            ("event.type", "not_in", ["ACCESS_DENIED"], True),
            ("device.tags", "contains", "perimeter", True),
            ("device.tags", "does_not_contain", "interior", True),
            ("device.name", "does_not_contain", "Door", False),
            ("event.subtype", "equal", None, True),
            ("event.missing", "equal", None, True),
            ("event.missing", "greater_than", 1, False),
        ],
    )
    def test_operators(self, fact, operator, value, expected):
        """Test each operator against the fact tree."""
        node = group({"all": [{"fact": fact, "operator": operator, "value": value}]})
        assert evaluate_conditions(node, FACTS) is expected

    def test_group_needs_exactly_one_branch(self):
        """Test a group with both or neither branch is rejected."""
        with pytest.raises(ValueError):
            group({"all": [], "any": []})
        with pytest.raises(ValueError):
            group({})

    def test_unknown_operator_rejected(self):
        """Test operators outside the supported set are rejected."""
        with pytest.raises(ValueError):
            group({"all": [{"fact": "event.type", "operator": "matches", "value": "x"}]})


class TestFacts:
    """Tests for the fact tree."""

    def test_build_facts(self, make_event, repo):
        """Test the fact tree carries event, device, area and location data."""
        event = make_event()
        device = repo.find_device("conn-yolink", "yl-front-door")
        facts = build_facts(
            event,
            device,
            repo.get_connector("conn-yolink"),
            repo.get_area("area-lobby"),
            repo.get_location("loc-1"),
        )
        assert facts["event"]["type"] == "STATE_CHANGED"
        assert facts["event"]["display_state"] == "Open"
        assert facts["event"]["type_display"]
        assert facts["device"]["name"] == "Front Door"
        assert facts["device"]["type"] == "Sensor"
        assert facts["device"]["subtype"] == "Contact"
        assert facts["area"]["name"] == "Lobby"
        assert facts["area"]["armed_state"] == "DISARMED"
        assert facts["location"]["time_zone"] == "America/New_York"

    def test_build_facts_without_context(self, make_event):
        """Test facts for an unregistered device."""
        facts = build_facts(make_event())
        assert facts["device"]["id"] is None
        assert facts["device"]["external_id"] == "yl-front-door"
        assert facts["area"]["id"] is None

    def test_registered_device_refines_unmapped_event(self, make_event, repo):
        """Test the device record is used when the parser could not type the device."""
        event = make_event(device_info=UNMAPPED_DEVICE)
        device = repo.find_device("conn-yolink", "yl-front-door")
        assert effective_device_info(event, device) == device.device_info

    def test_parser_classification_wins(self, make_event, repo):
        """Test a typed event keeps its own classification."""
        event = make_event(device_info=LEAK)
        device = repo.find_device("conn-yolink", "yl-front-door")
        assert effective_device_info(event, device) == LEAK

    def test_resolve_path(self):
        """Test dotted paths through dicts and lists."""
        assert resolve_path(FACTS, "device.tags.1") == "perimeter"
        assert resolve_path(FACTS, "event.subtype") is None
        assert resolve_path(FACTS, "device.tags.5") is MISSING
        assert resolve_path(FACTS, "nope.nothing") is MISSING


class TestTokens:
    """Tests for resolve_template."""

    def test_replaces_tokens(self):
        """Test tokens with and without inner whitespace."""
        out = resolve_template("{{device.name}} is {{ event.display_state }}", FACTS)
        assert out == "Front Door is Open"

    def test_unknown_path_kept(self):
        """Test unknown paths leave the token as written."""
        assert resolve_template("x={{ device.serial }}", FACTS) == "x={{ device.serial }}"

    def test_null_renders_empty(self):
        """Test null facts render as an empty string."""
        assert resolve_template("[{{event.subtype}}]", FACTS) == "[]"

    def test_structures_render_as_json(self):
        """Test dicts and lists render as JSON."""
        assert resolve_template("{{device.tags}}", FACTS) == '["entry", "perimeter"]'
        assert resolve_template("{{event.payload}}", FACTS) == '{"level": 7}'

    def test_booleans(self):
        """Test booleans render in lower case."""
        assert resolve_template("{{flag}}", {"flag": True}) == "true"

    def test_non_string_template(self):
        """Test None passes through untouched."""
        assert resolve_template(None, FACTS) is None
