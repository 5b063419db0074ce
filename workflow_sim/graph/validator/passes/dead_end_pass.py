from __future__ import annotations

from workflow_sim.graph.models import GraphDefinition, NodeType, SimulationError


def run_dead_end_pass(graph: GraphDefinition) -> list[SimulationError]:
    sources = {edge.source for edge in graph.edges}
    dead_ends = [node.id for node in graph.nodes if node.type is not NodeType.END and node.id not in sources]
    if not dead_ends:
        return []

    return [
        SimulationError(
            type="unreachable",
            message=(
                f"{len(dead_ends)} node(s) have no outgoing edges. "
                "Add edges or make them End nodes."
            ),
            related_ids=dead_ends,
        )
    ]
