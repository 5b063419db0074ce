from workflow_sim.graph.conditions import (
    ConditionValidationResult,
    EdgeExplanation,
    evaluate_condition,
    explain_edge_firing,
    resolve_value,
    validate_condition,
    validate_field_reference,
)
from workflow_sim.graph.engine import DEFAULT_MAX_STEPS, SimulationEngine, create_simulation_engine
from workflow_sim.graph.io import (
    GraphDocument,
    GraphImportError,
    export_graph_to_string,
    import_graph_from_file,
    import_graph_from_string,
)
from workflow_sim.graph.models import (
    UNDEFINED,
    ExecutionTrace,
    GraphDefinition,
    GraphEdge,
    GraphNode,
    NodeType,
    SimulationError,
    StateField,
    StateSchema,
    StepTrace,
)
from workflow_sim.graph.schema import (
    GraphLoadError,
    build_state_defaults,
    create_initial_state,
    load_graph_definition,
    load_state_schema,
    validate_graph_structure,
    validate_state_schema,
)
from workflow_sim.graph.validator import GraphValidator, validate_simulation_graph

__all__ = [
    "ConditionValidationResult",
    "DEFAULT_MAX_STEPS",
    "EdgeExplanation",
    "ExecutionTrace",
    "GraphDefinition",
    "GraphDocument",
    "GraphEdge",
    "GraphImportError",
    "GraphLoadError",
    "GraphNode",
    "GraphValidator",
    "NodeType",
    "SimulationEngine",
    "SimulationError",
    "StateField",
    "StateSchema",
    "StepTrace",
    "UNDEFINED",
    "build_state_defaults",
    "create_initial_state",
    "create_simulation_engine",
    "evaluate_condition",
    "explain_edge_firing",
    "export_graph_to_string",
    "import_graph_from_file",
    "import_graph_from_string",
    "load_graph_definition",
    "load_state_schema",
    "resolve_value",
    "validate_condition",
    "validate_field_reference",
    "validate_graph_structure",
    "validate_simulation_graph",
    "validate_state_schema",
]
