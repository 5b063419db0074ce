from __future__ import annotations

from workflow_sim.graph.conditions import extract_field_references, validate_field_reference
from workflow_sim.graph.models import GraphDefinition, GraphNode, NodeType, SimulationError, StateSchema


def run_field_ref_pass(graph: GraphDefinition, schema: StateSchema) -> list[SimulationError]:
    diagnostics: list[SimulationError] = []
    schema_keys = schema.keys()

    for edge in graph.edges:
        if not edge.condition:
            continue
        unknown = [key for key in extract_field_references(edge.condition) if key not in schema_keys]
        if unknown:
            diagnostics.append(
                SimulationError(
                    type="invalid_field_ref",
                    message=(
                        f"Edge '{edge.display_name}' condition references unknown state "
                        f"field(s): {', '.join(unknown)}."
                    ),
                    related_ids=[edge.id],
                )
            )

    for node in graph.nodes:
        if node.type is NodeType.ROUTER:
            diagnostics.extend(_config_field_errors(node, "targetField", schema))
        elif node.type is NodeType.LOOP_GUARD:
            diagnostics.extend(_config_field_errors(node, "counterField", schema, expected_type="number"))

    return diagnostics


def _config_field_errors(
    node: GraphNode,
    config_key: str,
    schema: StateSchema,
    expected_type: str | None = None,
) -> list[SimulationError]:
    field_key = node.config.get(config_key)
    if not isinstance(field_key, str) or not field_key:
        return []

    result = validate_field_reference(field_key, schema, expected_type)
    return [
        SimulationError(
            type="invalid_field_ref",
            message=f"Node '{node.display_name}' {config_key}: {error}.",
            related_ids=[node.id],
        )
        for error in result.errors
    ]
