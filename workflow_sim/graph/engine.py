from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from workflow_sim.graph.models import (
    ExecutionTrace,
    GraphDefinition,
    GraphEdge,
    GraphNode,
    GraphState,
    NodeType,
    SimulationError,
    StepTrace,
)
from workflow_sim.graph.nodes import behavior_for


LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1000


class SimulationEngine:
    """Deterministic step-by-step replay of a workflow graph.

    Lookup tables are built once per instance and only read afterwards, so a
    single engine can serve repeated or concurrent ``run()`` calls.  Each run
    keeps its own cursor, snapshots and cycle guard.
    """

    def __init__(
        self,
        graph: GraphDefinition,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        initial_state: Mapping[str, Any] | None = None,
    ) -> None:
        self._graph = graph
        self._max_steps = int(max_steps)
        self._initial_state: GraphState = dict(initial_state or {})
        self._node_map: dict[str, GraphNode] = {node.id: node for node in graph.nodes}
        self._edge_map: dict[str, list[GraphEdge]] = _build_edge_map(graph.edges)

    @property
    def max_steps(self) -> int:
        return self._max_steps

    def outgoing_edges(self, node_id: str) -> list[GraphEdge]:
        return list(self._edge_map.get(node_id, []))

    def run(self) -> ExecutionTrace:
        start_node = next((node for node in self._graph.nodes if node.type is NodeType.START), None)
        if start_node is None:
            return ExecutionTrace(
                steps=[],
                final_state=dict(self._initial_state),
                terminated=False,
                error=SimulationError(
                    type="no_start",
                    message="No Start node found in graph",
                    related_ids=[],
                ),
            )

        steps: list[StepTrace] = []
        step_count = 0
        current_state: GraphState = dict(self._initial_state)
        current_node_id = start_node.id
        terminated = False
        error: SimulationError | None = None
        # Insertion-ordered set of nodes entered since the guard was last cleared.
        visited_in_path: dict[str, None] = {}

        while not terminated and step_count < self._max_steps:
            if current_node_id in visited_in_path:
                error = SimulationError(
                    type="cycle",
                    message=f"Cycle detected at node {current_node_id}",
                    related_ids=list(visited_in_path),
                )
                break

            node = self._node_map.get(current_node_id)
            if node is None:
                LOGGER.warning("Edge target '%s' is not a node in the graph; stopping.", current_node_id)
                terminated = True
                break

            visited_in_path[current_node_id] = None
            behavior = behavior_for(node.type)

            started_at = _now_ms()
            state_before = dict(current_state)
            state_after = behavior.apply(node, dict(state_before))
            ended_at = _now_ms()

            outgoing = self._edge_map.get(node.id, [])
            selection = behavior.select_next(node, outgoing, state_after)

            steps.append(
                StepTrace(
                    step=step_count,
                    active_node_id=node.id,
                    node_type=node.type,
                    fired_edge_ids=selection.fired_edge_ids,
                    blocked_edge_ids=selection.blocked_edge_ids,
                    state_before=state_before,
                    state_after=state_after,
                    explanation=selection.explanation,
                    started_at=started_at,
                    ended_at=ended_at,
                    duration_ms=round(ended_at - started_at),
                )
            )
            LOGGER.debug("Step %d: %s (%s) -> %s", step_count, node.id, node.type.value, selection.next_node_id)

            current_state = state_after
            step_count += 1

            if node.type is NodeType.END:
                terminated = True
                break

            if not selection.next_node_id:
                if not outgoing or behavior.is_decision:
                    terminated = True
                break

            current_node_id = selection.next_node_id
            if not behavior.is_decision:
                visited_in_path.clear()
        else:
            # Only reached when the step budget ran out.
            error = SimulationError(
                type="max_steps",
                message=f"Maximum step limit ({self._max_steps}) exceeded",
                related_ids=[current_node_id],
            )

        LOGGER.debug(
            "Simulation finished after %d step(s); terminated=%s error=%s",
            step_count,
            terminated,
            error.type if error else None,
        )
        return ExecutionTrace(
            steps=steps,
            final_state=current_state,
            terminated=terminated,
            error=error,
        )


def create_simulation_engine(
    graph: GraphDefinition,
    *,
    max_steps: int = DEFAULT_MAX_STEPS,
    initial_state: Mapping[str, Any] | None = None,
) -> SimulationEngine:
    return SimulationEngine(graph, max_steps=max_steps, initial_state=initial_state)


def _build_edge_map(edges: list[GraphEdge]) -> dict[str, list[GraphEdge]]:
    edge_map: dict[str, list[GraphEdge]] = {}
    for edge in edges:
        edge_map.setdefault(edge.source, []).append(edge)
    for items in edge_map.values():
        items.sort(key=lambda item: item.id)
    return edge_map


def _now_ms() -> float:
    return time.perf_counter() * 1000.0
