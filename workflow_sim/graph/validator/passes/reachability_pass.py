from __future__ import annotations

from collections import deque

from workflow_sim.graph.models import GraphDefinition, NodeType, SimulationError


def run_reachability_pass(graph: GraphDefinition) -> list[SimulationError]:
    start_nodes = graph.nodes_of_type(NodeType.START)
    if not start_nodes:
        return []

    start_id = start_nodes[0].id
    reachable = bfs_reachable(graph, start_id)
    unreachable = [node.id for node in graph.nodes if node.id != start_id and node.id not in reachable]
    if not unreachable:
        return []

    return [
        SimulationError(
            type="unreachable",
            message=(
                f"{len(unreachable)} node(s) unreachable from Start. "
                "Connect them to the graph or remove them."
            ),
            related_ids=unreachable,
        )
    ]


def bfs_reachable(graph: GraphDefinition, start_id: str) -> set[str]:
    adjacency: dict[str, list[str]] = {}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)

    visited: set[str] = set()
    queue: deque[str] = deque([start_id])
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for neighbor in adjacency.get(current, []):
            if neighbor not in visited:
                queue.append(neighbor)
    return visited
