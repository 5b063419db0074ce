from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


GraphState = dict[str, Any]
SimulationErrorType = Literal["no_start", "unreachable", "cycle", "max_steps", "invalid_field_ref"]
FieldType = Literal["string", "number", "boolean", "array", "object", "enum"]

FIELD_TYPES = {"string", "number", "boolean", "array", "object", "enum"}


class _Undefined:
    """Marker for a value that is absent, as opposed to an explicit null."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Undefined:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Undefined:
        return self


UNDEFINED = _Undefined()


class NodeType(str, Enum):
    START = "Start"
    LLM = "LLM"
    TOOL = "Tool"
    ROUTER = "Router"
    REDUCER = "Reducer"
    LOOP_GUARD = "LoopGuard"
    END = "End"


@dataclass(slots=True)
class GraphNode:
    id: str
    type: NodeType
    config: dict[str, Any] = field(default_factory=dict)
    label: str | None = None

    @property
    def display_name(self) -> str:
        return self.label or self.id

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "type": self.type.value, "config": dict(self.config)}
        if self.label:
            payload["label"] = self.label
        return payload


@dataclass(slots=True)
class GraphEdge:
    id: str
    source: str
    target: str
    condition: str | None = None
    label: str | None = None

    @property
    def display_name(self) -> str:
        return self.label or self.id

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "source": self.source, "target": self.target}
        if self.condition is not None:
            payload["condition"] = self.condition
        if self.label is not None:
            payload["label"] = self.label
        return payload


@dataclass(slots=True)
class GraphDefinition:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def nodes_of_type(self, node_type: NodeType) -> list[GraphNode]:
        return [node for node in self.nodes if node.type is node_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": "v1",
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "metadata": dict(self.metadata),
        }


@dataclass(slots=True)
class StateField:
    key: str
    type: FieldType
    required: bool = False
    default: Any = UNDEFINED
    description: str | None = None
    enum_values: list[str] | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not UNDEFINED

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key, "type": self.type, "required": self.required}
        if self.has_default:
            payload["default"] = self.default
        if self.description is not None:
            payload["description"] = self.description
        if self.enum_values is not None:
            payload["enumValues"] = list(self.enum_values)
        return payload


@dataclass(slots=True)
class StateSchema:
    fields: list[StateField] = field(default_factory=list)

    def keys(self) -> set[str]:
        return {item.key for item in self.fields}

    def get(self, key: str) -> StateField | None:
        for item in self.fields:
            if item.key == key:
                return item
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"version": "v1", "fields": [item.to_dict() for item in self.fields]}


@dataclass(slots=True)
class SimulationError:
    type: SimulationErrorType
    message: str
    related_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "relatedIds": list(self.related_ids)}


@dataclass(slots=True)
class StepTrace:
    step: int
    active_node_id: str
    node_type: NodeType
    fired_edge_ids: list[str]
    blocked_edge_ids: list[str]
    state_before: GraphState
    state_after: GraphState
    explanation: str
    # Wall-clock values differ between otherwise identical runs.
    started_at: float = field(default=0.0, compare=False)
    ended_at: float = field(default=0.0, compare=False)
    duration_ms: int = field(default=0, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "activeNodeId": self.active_node_id,
            "nodeType": self.node_type.value,
            "firedEdgeIds": list(self.fired_edge_ids),
            "blockedEdgeIds": list(self.blocked_edge_ids),
            "stateBefore": dict(self.state_before),
            "stateAfter": dict(self.state_after),
            "explanation": self.explanation,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "durationMs": self.duration_ms,
        }


@dataclass(slots=True)
class ExecutionTrace:
    steps: list[StepTrace]
    final_state: GraphState
    terminated: bool
    error: SimulationError | None = None

    @property
    def visited_nodes(self) -> list[str]:
        return [step.active_node_id for step in self.steps]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "steps": [step.to_dict() for step in self.steps],
            "finalState": dict(self.final_state),
            "terminated": self.terminated,
        }
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        return payload
