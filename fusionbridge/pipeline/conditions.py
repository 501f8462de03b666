from typing import Any, Callable, Dict, Iterable

from fusionbridge.pipeline.facts import MISSING, resolve_path
from fusionbridge.schemas.automation import ConditionGroup, ConditionLeaf, Operator
from fusionbridge.schemas.event import TypedDeviceInfo

# ----------------------------
# Source entity type filter
# ----------------------------

WILDCARD = "*"


def matches_entity_type(pattern: str, device_info: TypedDeviceInfo) -> bool:
    """
    "Door" and "Door.*" match any Door, with or without subtype.
    "Sensor.Contact" matches only that subtype.
    """
    type_part, _, subtype_part = pattern.strip().partition(".")
    if type_part != device_info.type.value:
        return False
    if not subtype_part or subtype_part == WILDCARD:
        return True
    return device_info.subtype is not None and device_info.subtype.value == subtype_part


def matches_any_entity_type(patterns: Iterable[str], device_info: TypedDeviceInfo) -> bool:
    patterns = list(patterns)
    if not patterns:
        return True
    return any(matches_entity_type(p, device_info) for p in patterns)


# ----------------------------
# Operators
# ----------------------------

def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [_plain(value)]


def _ordered(cmp: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def op(fact: Any, expected: Any) -> bool:
        if fact is None or expected is None:
            return False
        try:
            return cmp(float(fact), float(expected))
        except (TypeError, ValueError):
            try:
                return cmp(fact, expected)
            except TypeError:
                return False
    return op


def _contains(fact: Any, expected: Any) -> bool:
    if isinstance(fact, str):
        return str(expected) in fact
    if isinstance(fact, (list, tuple, set)):
        return _plain(expected) in [_plain(v) for v in fact]
    return False


OPERATORS: Dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUAL: lambda f, e: f == _plain(e),
    Operator.NOT_EQUAL: lambda f, e: f != _plain(e),
    Operator.LESS_THAN: _ordered(lambda a, b: a < b),
    Operator.LESS_THAN_INCLUSIVE: _ordered(lambda a, b: a <= b),
    Operator.GREATER_THAN: _ordered(lambda a, b: a > b),
    Operator.GREATER_THAN_INCLUSIVE: _ordered(lambda a, b: a >= b),
    Operator.IN: lambda f, e: f in _as_list(e),
    Operator.NOT_IN: lambda f, e: f not in _as_list(e),
    Operator.CONTAINS: _contains,
    Operator.DOES_NOT_CONTAIN: lambda f, e: not _contains(f, e),
}


# ----------------------------
# Tree evaluation
# ----------------------------

def evaluate_leaf(leaf: ConditionLeaf, facts: Dict[str, Any]) -> bool:
    fact = resolve_path(facts, leaf.fact)
    if fact is MISSING:
        fact = None
    return OPERATORS[leaf.operator](_plain(fact), leaf.value)


def evaluate_conditions(node: Any, facts: Dict[str, Any]) -> bool:
    """`all: []` is vacuously true, `any: []` is false."""
    if isinstance(node, ConditionLeaf):
        return evaluate_leaf(node, facts)
    if isinstance(node, ConditionGroup):
        if node.all is not None:
            return all(evaluate_conditions(child, facts) for child in node.all)
        return any(evaluate_conditions(child, facts) for child in node.any or [])
    raise TypeError(f"Not a condition node: {type(node).__name__}")
