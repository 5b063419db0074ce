from workflow_sim.graph.validator.diagnostics import (
    get_error_message,
    get_error_severity,
    render_diagnostic,
    render_diagnostics,
)
from workflow_sim.graph.validator.validator import GraphValidator, validate_simulation_graph

__all__ = [
    "GraphValidator",
    "get_error_message",
    "get_error_severity",
    "render_diagnostic",
    "render_diagnostics",
    "validate_simulation_graph",
]
