from __future__ import annotations

from workflow_sim.graph.models import GraphDefinition, SimulationError, StateSchema
from workflow_sim.graph.validator.passes import (
    run_cycle_pass,
    run_dead_end_pass,
    run_field_ref_pass,
    run_reachability_pass,
    run_start_end_pass,
)


class GraphValidator:
    """Advisory pre-run analysis of a graph definition.

    Every pass runs on every call; nothing here blocks a simulation.  Output
    order follows the order of nodes and edges in the input.
    """

    def validate(
        self,
        graph: GraphDefinition,
        schema: StateSchema | None = None,
    ) -> list[SimulationError]:
        diagnostics: list[SimulationError] = []
        diagnostics.extend(run_start_end_pass(graph))
        diagnostics.extend(run_reachability_pass(graph))
        diagnostics.extend(run_cycle_pass(graph))
        diagnostics.extend(run_dead_end_pass(graph))
        if schema is not None:
            diagnostics.extend(run_field_ref_pass(graph, schema))
        return diagnostics


def validate_simulation_graph(
    graph: GraphDefinition,
    schema: StateSchema | None = None,
) -> list[SimulationError]:
    return GraphValidator().validate(graph, schema)
