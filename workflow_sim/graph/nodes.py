from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from workflow_sim.graph.conditions import EdgeExplanation, explain_edge_firing
from workflow_sim.graph.models import GraphEdge, GraphNode, GraphState, NodeType


@dataclass(slots=True)
class EdgeSelection:
    next_node_id: str | None
    fired_edge_ids: list[str] = field(default_factory=list)
    blocked_edge_ids: list[str] = field(default_factory=list)
    explanation: str = ""


class NodeBehavior:
    """Simulated semantics for one node type.

    ``apply`` derives the post-execution state from a snapshot and never
    mutates its input.  ``select_next`` picks the outgoing edge to follow;
    ``outgoing`` is already sorted by edge id.
    """

    node_type: NodeType
    # Deciding nodes may be revisited while looping without resetting the
    # cycle guard, and stop the run when none of their edges fire.
    is_decision: bool = False

    def apply(self, node: GraphNode, state: GraphState) -> GraphState:
        return dict(state)

    def select_next(self, node: GraphNode, outgoing: list[GraphEdge], state: GraphState) -> EdgeSelection:
        if not outgoing:
            return _no_outgoing(node)
        return _first_match(outgoing, state)


class StartBehavior(NodeBehavior):
    node_type = NodeType.START


class LLMBehavior(NodeBehavior):
    node_type = NodeType.LLM

    def apply(self, node: GraphNode, state: GraphState) -> GraphState:
        return {
            **state,
            "llmOutput": f"[Mock LLM response for {node.id}]",
            "_lastLLMNode": node.id,
        }


class ToolBehavior(NodeBehavior):
    node_type = NodeType.TOOL

    def apply(self, node: GraphNode, state: GraphState) -> GraphState:
        tool_name = node.config.get("toolName") or node.id
        return {
            **state,
            "toolOutput": f"[Mock tool result for {tool_name}]",
            "_lastToolNode": node.id,
        }


class ReducerBehavior(NodeBehavior):
    node_type = NodeType.REDUCER

    def apply(self, node: GraphNode, state: GraphState) -> GraphState:
        reduce_key = node.config.get("reduceKey")
        if reduce_key is None:
            reduce_key = "reduced"
        return {
            **state,
            str(reduce_key): True,
            "_lastReducerNode": node.id,
        }


class RouterBehavior(NodeBehavior):
    node_type = NodeType.ROUTER
    is_decision = True

    def select_next(self, node: GraphNode, outgoing: list[GraphEdge], state: GraphState) -> EdgeSelection:
        if not outgoing:
            return _no_outgoing(node)

        selection = _first_match(outgoing, state)
        if selection.fired_edge_ids:
            selection.explanation = f"Router selected path to {selection.next_node_id}: {selection.explanation}"
        else:
            selection.explanation = f"Router: No conditions matched - {selection.explanation}"
        return selection


class LoopGuardBehavior(NodeBehavior):
    node_type = NodeType.LOOP_GUARD
    is_decision = True

    def select_next(self, node: GraphNode, outgoing: list[GraphEdge], state: GraphState) -> EdgeSelection:
        if not outgoing:
            return _no_outgoing(node)

        # Every edge is evaluated so the trace shows the full fired/blocked split.
        results: list[tuple[GraphEdge, EdgeExplanation]] = [
            (edge, explain_edge_firing(edge, state)) for edge in outgoing
        ]
        fired = [edge.id for edge, result in results if result.fired]
        blocked = [edge.id for edge, result in results if not result.fired]

        if fired:
            first_fired = next(edge for edge, result in results if result.fired)
            return EdgeSelection(
                next_node_id=first_fired.target,
                fired_edge_ids=fired,
                blocked_edge_ids=blocked,
                explanation=f"LoopGuard allows execution: {results[0][1].explanation}",
            )

        return EdgeSelection(
            next_node_id=None,
            blocked_edge_ids=blocked,
            explanation=f"LoopGuard blocked: {'; '.join(result.explanation for _, result in results)}",
        )


class EndBehavior(NodeBehavior):
    node_type = NodeType.END

    def select_next(self, node: GraphNode, outgoing: list[GraphEdge], state: GraphState) -> EdgeSelection:
        return EdgeSelection(next_node_id=None, explanation="End node reached - simulation complete")


NODE_BEHAVIORS: dict[NodeType, NodeBehavior] = {
    behavior.node_type: behavior
    for behavior in (
        StartBehavior(),
        LLMBehavior(),
        ToolBehavior(),
        RouterBehavior(),
        ReducerBehavior(),
        LoopGuardBehavior(),
        EndBehavior(),
    )
}

_missing = set(NodeType) - set(NODE_BEHAVIORS)
if _missing:
    raise RuntimeError(f"No behavior registered for node types: {sorted(item.value for item in _missing)}")


def behavior_for(node_type: NodeType) -> NodeBehavior:
    return NODE_BEHAVIORS[node_type]


def _no_outgoing(node: GraphNode) -> EdgeSelection:
    return EdgeSelection(
        next_node_id=None,
        explanation=f"Node {node.display_name} has no outgoing edges",
    )


def _first_match(outgoing: list[GraphEdge], state: GraphState) -> EdgeSelection:
    explanations: list[str] = []
    blocked: list[str] = []
    for edge in outgoing:
        result = explain_edge_firing(edge, state)
        explanations.append(result.explanation)
        if result.fired:
            return EdgeSelection(
                next_node_id=edge.target,
                fired_edge_ids=[edge.id],
                blocked_edge_ids=[other.id for other in outgoing if other.id != edge.id],
                explanation=result.explanation,
            )
        blocked.append(edge.id)

    return EdgeSelection(
        next_node_id=None,
        blocked_edge_ids=blocked,
        explanation="; ".join(explanations) or "No edges fired",
    )


def describe_config(node: GraphNode) -> dict[str, Any]:
    """Config keys that affect simulation for ``node``'s type."""
    relevant = {
        NodeType.TOOL: ("toolName",),
        NodeType.REDUCER: ("reduceKey",),
        NodeType.ROUTER: ("targetField",),
        NodeType.LOOP_GUARD: ("counterField", "maxIterations"),
    }.get(node.type, ())
    return {key: node.config[key] for key in relevant if key in node.config}
