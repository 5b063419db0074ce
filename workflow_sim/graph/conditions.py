"""Edge condition evaluation against graph state.

Conditions are small boolean expressions over ``state.<path>`` references and
literals, for example ``state.status === "success"`` or
``state.count > 5``.  Evaluation is a fixed sequence of single-split pattern
matches rather than a real parser: the first pattern that matches decides how
the text is split, and ``&&``/``||``/``!`` re-enter the evaluator on their
operands.  Saved graphs depend on this exact matching order, so it must not be
replaced with a precedence-aware grammar.
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from workflow_sim.graph.models import UNDEFINED, GraphEdge, StateSchema


LOGGER = logging.getLogger(__name__)

EQUALS_RE = re.compile(r"^(.+?)\s*===?\s*(.+)$")
NOT_EQUALS_RE = re.compile(r"^(.+?)\s*!=\s*(.+)$")
GREATER_RE = re.compile(r"^(.+?)\s*>\s*(.+)$")
LESS_RE = re.compile(r"^(.+?)\s*<\s*(.+)$")
GREATER_EQUAL_RE = re.compile(r"^(.+?)\s*>=\s*(.+)$")
LESS_EQUAL_RE = re.compile(r"^(.+?)\s*<=\s*(.+)$")
IN_RE = re.compile(r"^(.+?)\s+in\s+(.+)$")
AND_RE = re.compile(r"^(.+?)\s*&&\s*(.+)$")
OR_RE = re.compile(r"^(.+?)\s*\|\|\s*(.+)$")
NOT_RE = re.compile(r"^!\s*(.+)$")

STATE_REF_RE = re.compile(r"state\.(\w+(?:\.\w+)*)", re.ASCII)
FIELD_REF_RE = re.compile(r"""state(?:\.(\w+)|\[\s*(['"])(.+?)\2\s*\])""", re.ASCII)

_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$", re.ASCII)
_RADIX_RE = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_RADIX_BASES = {"x": 16, "o": 8, "b": 2}
_INDEX_RE = re.compile(r"^(?:0|[1-9]\d*)$", re.ASCII)
_MAX_SAFE_INTEGER = 2**53


@dataclass(slots=True)
class ConditionValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class EdgeExplanation:
    fired: bool
    explanation: str


def evaluate_condition(condition: str | None, state: Mapping[str, Any]) -> bool:
    """Evaluate ``condition`` against ``state``.

    A missing or blank condition always holds.  Text that matches none of the
    supported forms logs a warning and evaluates to ``False``; this function
    never raises.
    """
    if condition is None or not condition.strip():
        return True

    trimmed = condition.strip()
    for pattern, combine in _RULES:
        match = pattern.match(trimmed)
        if match:
            operands = [part.strip() for part in match.groups()]
            return combine(*operands, state)

    LOGGER.warning("Unsupported condition format: %s", condition)
    return False


def resolve_value(ref: str, state: Mapping[str, Any]) -> Any:
    """Turn one operand token into a value."""
    if ref.startswith("state."):
        return get_nested_value(state, ref[6:])

    if (ref.startswith('"') and ref.endswith('"')) or (ref.startswith("'") and ref.endswith("'")):
        return ref[1:-1]

    if ref.startswith("[") and ref.endswith("]"):
        try:
            return json.loads(ref, parse_constant=_reject_constant)
        except ValueError:
            return []

    number = _string_to_number(ref)
    if not math.isnan(number):
        return _normalize_number(number)

    if ref == "true":
        return True
    if ref == "false":
        return False
    if ref in {"null", "undefined"}:
        return None

    return ref


def get_nested_value(obj: Mapping[str, Any], path: str) -> Any:
    current: Any = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return UNDEFINED
            current = current[key]
        elif isinstance(current, list):
            if key == "length":
                current = len(current)
            elif _INDEX_RE.match(key) and int(key) < len(current):
                current = current[int(key)]
            else:
                return UNDEFINED
        else:
            return UNDEFINED
    return current


def extract_state_references(condition: str) -> list[str]:
    return [match.group(1) for match in STATE_REF_RE.finditer(condition)]


def extract_field_references(condition: str) -> list[str]:
    """Top-level state keys referenced as ``state.f``, ``state['f']`` or ``state["f"]``."""
    keys: list[str] = []
    for match in FIELD_REF_RE.finditer(condition):
        key = match.group(1) or match.group(3)
        if key not in keys:
            keys.append(key)
    return keys


def explain_edge_firing(edge: GraphEdge, state: Mapping[str, Any]) -> EdgeExplanation:
    """Evaluate an edge and describe the outcome, including referenced state values."""
    condition = edge.condition
    if condition is None or not condition.strip():
        return EdgeExplanation(
            fired=True,
            explanation=f'Edge "{edge.display_name}" always fires (no condition)',
        )

    result = evaluate_condition(condition, state)
    state_values = [
        f"{ref} = {to_json_text(get_nested_value(state, ref))}"
        for ref in extract_state_references(condition)
    ]
    state_info = f"\nState: {', '.join(state_values)}" if state_values else ""
    outcome = "true" if result else "false"
    return EdgeExplanation(
        fired=result,
        explanation=f'Condition "{condition}" evaluated to {outcome}{state_info}',
    )


def validate_condition(condition: str, schema: StateSchema) -> ConditionValidationResult:
    schema_keys = schema.keys()
    warnings: list[str] = []
    for ref in extract_state_references(condition):
        top_key = ref.split(".")[0]
        if top_key and top_key not in schema_keys:
            warnings.append(f"Unknown field reference: state.{ref}")
    return ConditionValidationResult(valid=True, errors=[], warnings=warnings)


def validate_field_reference(
    field_key: str,
    schema: StateSchema,
    expected_type: str | None = None,
) -> ConditionValidationResult:
    state_field = schema.get(field_key)
    if state_field is None:
        return ConditionValidationResult(valid=False, errors=[f'Unknown field: "{field_key}"'])

    errors: list[str] = []
    if expected_type and state_field.type != expected_type:
        errors.append(
            f'Field "{field_key}" has type "{state_field.type}", expected "{expected_type}"'
        )
    return ConditionValidationResult(valid=not errors, errors=errors)


def to_json_text(value: Any) -> str:
    """JSON text for a state value, as shown in edge explanations."""
    if value is UNDEFINED:
        return "undefined"
    return json.dumps(_jsonable(value), separators=(",", ":"), ensure_ascii=False, default=str)


def to_number(value: Any) -> float:
    """Numeric coercion used by the ordering comparisons."""
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return _string_to_number(value)
    if isinstance(value, (list, tuple, Mapping)):
        return _string_to_number(_to_primitive(value))
    return math.nan


def loose_equals(left: Any, right: Any) -> bool:
    left_nullish = left is None or left is UNDEFINED
    right_nullish = right is None or right is UNDEFINED
    if left_nullish or right_nullish:
        return left_nullish and right_nullish

    if _is_object(left) and _is_object(right):
        return left is right
    if isinstance(left, bool):
        return loose_equals(to_number(left), right)
    if isinstance(right, bool):
        return loose_equals(left, to_number(right))
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if _is_number(left) and isinstance(right, str):
        return left == to_number(right)
    if isinstance(left, str) and _is_number(right):
        return to_number(left) == right
    if _is_object(left):
        return loose_equals(_to_primitive(left), right)
    if _is_object(right):
        return loose_equals(left, _to_primitive(right))
    return False


def same_value_zero(left: Any, right: Any) -> bool:
    """Identity used for array membership: no coercion, NaN equals NaN."""
    if _is_number(left) and _is_number(right):
        return left == right or (math.isnan(left) and math.isnan(right))
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def _equals(left: str, right: str, state: Mapping[str, Any]) -> bool:
    return loose_equals(resolve_value(left, state), resolve_value(right, state))


def _not_equals(left: str, right: str, state: Mapping[str, Any]) -> bool:
    return not loose_equals(resolve_value(left, state), resolve_value(right, state))


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[str, str, Mapping[str, Any]], bool]:
    def _apply(left: str, right: str, state: Mapping[str, Any]) -> bool:
        return compare(to_number(resolve_value(left, state)), to_number(resolve_value(right, state)))

    return _apply


def _member_of(left: str, right: str, state: Mapping[str, Any]) -> bool:
    needle = resolve_value(left, state)
    haystack = resolve_value(right, state)
    return isinstance(haystack, list) and any(same_value_zero(item, needle) for item in haystack)


def _both(left: str, right: str, state: Mapping[str, Any]) -> bool:
    return evaluate_condition(left, state) and evaluate_condition(right, state)


def _either(left: str, right: str, state: Mapping[str, Any]) -> bool:
    return evaluate_condition(left, state) or evaluate_condition(right, state)


def _negate(operand: str, state: Mapping[str, Any]) -> bool:
    return not evaluate_condition(operand, state)


_RULES: tuple[tuple[re.Pattern[str], Callable[..., bool]], ...] = (
    (EQUALS_RE, _equals),
    (NOT_EQUALS_RE, _not_equals),
    (GREATER_RE, _numeric(lambda a, b: a > b)),
    (LESS_RE, _numeric(lambda a, b: a < b)),
    (GREATER_EQUAL_RE, _numeric(lambda a, b: a >= b)),
    (LESS_EQUAL_RE, _numeric(lambda a, b: a <= b)),
    (IN_RE, _member_of),
    (AND_RE, _both),
    (OR_RE, _either),
    (NOT_RE, _negate),
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_object(value: Any) -> bool:
    return isinstance(value, (list, tuple, Mapping))


def _string_to_number(text: str) -> float:
    stripped = text.strip()
    if not stripped:
        return 0.0
    if _DECIMAL_RE.match(stripped):
        return float(stripped)
    if stripped in {"Infinity", "+Infinity"}:
        return math.inf
    if stripped == "-Infinity":
        return -math.inf
    radix = _RADIX_RE.match(stripped)
    if radix:
        try:
            return float(int(radix.group(2), _RADIX_BASES[radix.group(1).lower()]))
        except ValueError:
            return math.nan
    return math.nan


def _normalize_number(number: float) -> int | float:
    if number.is_integer() and abs(number) < _MAX_SAFE_INTEGER:
        return int(number)
    return number


def _to_primitive(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_text(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None or item is UNDEFINED else _to_primitive(item) for item in value)
    return "[object Object]"


def _number_text(value: int | float) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return str(_normalize_number(value))


def _jsonable(value: Any) -> Any:
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return _normalize_number(value)
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items() if item is not UNDEFINED}
    if isinstance(value, (list, tuple)):
        return [None if item is UNDEFINED else _jsonable(item) for item in value]
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unsupported JSON constant {name}")
