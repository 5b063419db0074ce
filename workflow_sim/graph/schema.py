from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from workflow_sim.graph.models import (
    FIELD_TYPES,
    UNDEFINED,
    GraphDefinition,
    GraphEdge,
    GraphNode,
    GraphState,
    NodeType,
    StateField,
    StateSchema,
)


FIELD_KEY_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
NODE_TYPE_VALUES = {item.value for item in NodeType}

GraphStructureIssueType = Literal["no_start", "no_end", "duplicate_id", "orphaned_edge"]


class GraphLoadError(ValueError):
    """Raised when a graph or state schema payload cannot be turned into models."""


@dataclass(slots=True)
class GraphStructureIssue:
    type: GraphStructureIssueType
    message: str
    related_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FieldValidationError:
    field: str
    message: str


def load_graph_definition(payload: Mapping[str, Any]) -> GraphDefinition:
    """Build a GraphDefinition from its JSON form.

    Both the flat shape (``config``/``label``/``condition`` on the node or edge)
    and the editor's nested ``data`` shape are accepted.  Config dicts are
    copied so later edits to ``payload`` do not leak into the model.
    """
    errors: list[str] = []

    raw_nodes = payload.get("nodes")
    raw_edges = payload.get("edges")
    if not isinstance(raw_nodes, list):
        errors.append("Top-level field 'nodes' must be a list.")
        raw_nodes = []
    if not isinstance(raw_edges, list):
        errors.append("Top-level field 'edges' must be a list.")
        raw_edges = []

    nodes: list[GraphNode] = []
    for index, raw in enumerate(raw_nodes):
        if not isinstance(raw, Mapping):
            errors.append(f"nodes[{index}] must be an object.")
            continue

        node_id = raw.get("id")
        if not isinstance(node_id, str) or not node_id.strip():
            errors.append(f"nodes[{index}].id must be a non-empty string.")
            continue

        node_type = raw.get("type")
        if node_type not in NODE_TYPE_VALUES:
            errors.append(f"nodes[{index}] '{node_id}' has invalid type '{node_type}'.")
            continue

        data = raw.get("data") if isinstance(raw.get("data"), Mapping) else {}
        config = raw.get("config", data.get("config"))
        if config is None:
            config = {}
        if not isinstance(config, Mapping):
            errors.append(f"nodes[{index}] '{node_id}' config must be an object.")
            continue

        label = raw.get("label", data.get("label"))
        nodes.append(
            GraphNode(
                id=node_id,
                type=NodeType(node_type),
                config=copy.deepcopy(dict(config)),
                label=str(label) if label else None,
            )
        )

    edges: list[GraphEdge] = []
    for index, raw in enumerate(raw_edges):
        if not isinstance(raw, Mapping):
            errors.append(f"edges[{index}] must be an object.")
            continue

        missing = [key for key in ("id", "source", "target") if not isinstance(raw.get(key), str)]
        if missing:
            errors.append(f"edges[{index}] requires string field(s): {', '.join(missing)}.")
            continue

        data = raw.get("data") if isinstance(raw.get("data"), Mapping) else {}
        condition = raw.get("condition", data.get("condition"))
        if condition is not None and not isinstance(condition, str):
            errors.append(f"edges[{index}] '{raw['id']}' condition must be a string.")
            continue

        label = raw.get("label", data.get("label"))
        edges.append(
            GraphEdge(
                id=raw["id"],
                source=raw["source"],
                target=raw["target"],
                condition=condition,
                label=str(label) if label else None,
            )
        )

    if errors:
        rendered = "\n".join(f"- {error}" for error in errors)
        raise GraphLoadError(f"Graph payload is invalid:\n{rendered}")

    metadata = payload.get("metadata")
    return GraphDefinition(
        nodes=nodes,
        edges=edges,
        metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
    )


def load_state_schema(payload: Mapping[str, Any]) -> StateSchema:
    raw_fields = payload.get("fields")
    if not isinstance(raw_fields, list):
        raise GraphLoadError("State schema field 'fields' must be a list.")

    errors: list[str] = []
    fields: list[StateField] = []
    for index, raw in enumerate(raw_fields):
        if not isinstance(raw, Mapping):
            errors.append(f"fields[{index}] must be an object.")
            continue

        key = raw.get("key")
        if not isinstance(key, str):
            errors.append(f"fields[{index}].key must be a string.")
            continue

        field_type = raw.get("type")
        if field_type not in FIELD_TYPES:
            errors.append(f"fields[{index}] '{key}' has invalid type '{field_type}'.")
            continue

        enum_values = raw.get("enumValues")
        if enum_values is not None and not isinstance(enum_values, list):
            errors.append(f"fields[{index}] '{key}' enumValues must be a list.")
            continue

        fields.append(
            StateField(
                key=key,
                type=field_type,
                required=bool(raw.get("required", False)),
                default=copy.deepcopy(raw["default"]) if "default" in raw else UNDEFINED,
                description=raw.get("description"),
                enum_values=[str(value) for value in enum_values] if enum_values is not None else None,
            )
        )

    if errors:
        rendered = "\n".join(f"- {error}" for error in errors)
        raise GraphLoadError(f"State schema payload is invalid:\n{rendered}")
    return StateSchema(fields=fields)


def default_state_schema() -> StateSchema:
    return StateSchema(
        fields=[
            StateField(
                key="messages",
                type="array",
                required=True,
                default=[],
                description="Conversation messages",
            ),
            StateField(
                key="input",
                type="string",
                required=True,
                default="",
                description="User input",
            ),
        ]
    )


def validate_graph_structure(graph: GraphDefinition) -> list[GraphStructureIssue]:
    """Structural checks an editor runs on import: ids, Start/End presence, dangling edges."""
    issues: list[GraphStructureIssue] = []
    node_ids = {node.id for node in graph.nodes}

    id_counts: dict[str, int] = {}
    for node in graph.nodes:
        id_counts[node.id] = id_counts.get(node.id, 0) + 1
    for node_id, count in id_counts.items():
        if count > 1:
            issues.append(
                GraphStructureIssue(
                    type="duplicate_id",
                    message=f"Duplicate node ID: {node_id}",
                    related_ids=[node_id],
                )
            )

    if not graph.nodes_of_type(NodeType.START):
        issues.append(
            GraphStructureIssue(type="no_start", message="Graph must have at least one Start node")
        )
    if not graph.nodes_of_type(NodeType.END):
        issues.append(
            GraphStructureIssue(type="no_end", message="Graph must have at least one End node")
        )

    for edge in graph.edges:
        if edge.source not in node_ids:
            issues.append(
                GraphStructureIssue(
                    type="orphaned_edge",
                    message=f"Edge source node not found: {edge.source}",
                    related_ids=[edge.id, edge.source],
                )
            )
        if edge.target not in node_ids:
            issues.append(
                GraphStructureIssue(
                    type="orphaned_edge",
                    message=f"Edge target node not found: {edge.target}",
                    related_ids=[edge.id, edge.target],
                )
            )

    return issues


def validate_state_schema(schema: StateSchema) -> list[FieldValidationError]:
    errors: list[FieldValidationError] = []
    seen_keys: set[str] = set()
    for state_field in schema.fields:
        errors.extend(_validate_field(state_field, seen_keys))
        seen_keys.add(state_field.key)
    return errors


def create_initial_state(schema: StateSchema) -> GraphState:
    state: GraphState = {}
    for state_field in schema.fields:
        if state_field.has_default:
            state[state_field.key] = copy.deepcopy(state_field.default)
        else:
            state[state_field.key] = _type_default(state_field)
    return state


def build_state_defaults(schema: StateSchema, user_state: Mapping[str, Any] | None = None) -> GraphState:
    """Schema defaults overlaid with ``user_state``; user values win."""
    return {**create_initial_state(schema), **dict(user_state or {})}


def _validate_field(state_field: StateField, seen_keys: set[str]) -> list[FieldValidationError]:
    key = state_field.key
    errors: list[FieldValidationError] = []

    if not FIELD_KEY_RE.match(key):
        errors.append(
            FieldValidationError(key, "Invalid identifier: must start with letter or underscore")
        )
    if key in seen_keys:
        errors.append(FieldValidationError(key, "Duplicate field key"))
    if state_field.required and not state_field.has_default:
        errors.append(FieldValidationError(key, "Required fields must have a default value"))
    if state_field.type == "enum" and not state_field.enum_values:
        errors.append(FieldValidationError(key, "Enum fields must have at least one value"))

    if state_field.has_default:
        message = _default_type_error(state_field)
        if message:
            errors.append(FieldValidationError(key, message))

    return errors


def _default_type_error(state_field: StateField) -> str | None:
    value = state_field.default
    field_type = state_field.type
    if field_type == "string" and not isinstance(value, str):
        return "Default must be a string"
    if field_type == "number" and (isinstance(value, bool) or not isinstance(value, (int, float))):
        return "Default must be a number"
    if field_type == "boolean" and not isinstance(value, bool):
        return "Default must be a boolean"
    if field_type == "array" and not isinstance(value, list):
        return "Default must be an array"
    if field_type == "object" and not isinstance(value, dict):
        return "Default must be an object"
    if field_type == "enum" and state_field.enum_values and value not in state_field.enum_values:
        return "Default must be one of the enum values"
    return None


def _type_default(state_field: StateField) -> Any:
    if state_field.type == "string":
        return ""
    if state_field.type == "number":
        return 0
    if state_field.type == "boolean":
        return False
    if state_field.type == "array":
        return []
    if state_field.type == "object":
        return {}
    return state_field.enum_values[0] if state_field.enum_values else ""
