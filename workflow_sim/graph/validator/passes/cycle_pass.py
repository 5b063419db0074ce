from __future__ import annotations

from collections.abc import Iterator

from workflow_sim.graph.models import GraphDefinition, SimulationError


def run_cycle_pass(graph: GraphDefinition) -> list[SimulationError]:
    diagnostics: list[SimulationError] = []
    for cycle in detect_cycles(graph):
        diagnostics.append(
            SimulationError(
                type="cycle",
                message=(
                    f"Cycle detected: {' → '.join(cycle)}. "
                    "This may cause infinite loops during simulation."
                ),
                related_ids=cycle,
            )
        )
    return diagnostics


def detect_cycles(graph: GraphDefinition) -> list[list[str]]:
    """Depth-first search from every unvisited node, in input order.

    Each root reports at most the first back-edge it meets, as the closed path
    ``[repeated, ..., repeated]``.
    """
    adjacency: dict[str, list[str]] = {node.id: [] for node in graph.nodes}
    for edge in graph.edges:
        if edge.source in adjacency:
            adjacency[edge.source].append(edge.target)

    cycles: list[list[str]] = []
    visited: set[str] = set()
    for node in graph.nodes:
        if node.id in visited:
            continue
        cycle = _visit(node.id, adjacency, visited)
        if cycle is not None:
            cycles.append(cycle)
    return cycles


def _visit(root: str, adjacency: dict[str, list[str]], visited: set[str]) -> list[str] | None:
    # Explicit stack so long chains do not hit the interpreter recursion limit.
    active: set[str] = set()
    path: list[str] = []
    stack: list[tuple[str, Iterator[str]]] = []

    def _enter(node_id: str) -> None:
        visited.add(node_id)
        active.add(node_id)
        path.append(node_id)
        stack.append((node_id, iter(adjacency.get(node_id, []))))

    _enter(root)
    while stack:
        node_id, targets = stack[-1]
        for target in targets:
            if target not in visited:
                _enter(target)
                break
            if target in active:
                return [*path[path.index(target):], target]
        else:
            stack.pop()
            path.pop()
            active.remove(node_id)
    return None
