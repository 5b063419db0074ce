from __future__ import annotations

from workflow_sim.graph.models import GraphDefinition, NodeType, SimulationError


def run_start_end_pass(graph: GraphDefinition) -> list[SimulationError]:
    diagnostics: list[SimulationError] = []

    start_nodes = graph.nodes_of_type(NodeType.START)
    if not start_nodes:
        diagnostics.append(
            SimulationError(
                type="no_start",
                message="No Start node found. Add a Start node to begin simulation.",
                related_ids=[],
            )
        )
    elif len(start_nodes) > 1:
        diagnostics.append(
            SimulationError(
                type="no_start",
                message="Multiple Start nodes found. Graph should have exactly one Start node.",
                related_ids=[node.id for node in start_nodes],
            )
        )

    if not graph.nodes_of_type(NodeType.END):
        diagnostics.append(
            SimulationError(
                type="unreachable",
                message="No End node found. Add an End node to terminate simulation.",
                related_ids=[],
            )
        )

    return diagnostics
