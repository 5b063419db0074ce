from __future__ import annotations

from typing import Literal

from workflow_sim.graph.models import SimulationError


ErrorSeverity = Literal["error", "warning"]

_TITLES = {
    "cycle": "Cycle Detected",
    "unreachable": "Unreachable Nodes",
    "no_start": "Missing Start Node",
    "max_steps": "Max Steps Exceeded",
    "invalid_field_ref": "Invalid Field Reference",
}
_BLOCKING_TYPES = {"no_start", "cycle", "max_steps"}


def get_error_message(error: SimulationError) -> str:
    title = _TITLES.get(error.type)
    return f"{title}: {error.message}" if title else error.message


def get_error_severity(error: SimulationError) -> ErrorSeverity:
    return "error" if error.type in _BLOCKING_TYPES else "warning"


def render_diagnostic(error: SimulationError) -> str:
    related = f" (related: {', '.join(error.related_ids)})" if error.related_ids else ""
    return f"[{get_error_severity(error).upper()}] {get_error_message(error)}{related}"


def render_diagnostics(errors: list[SimulationError]) -> str:
    if not errors:
        return ""

    order = {"error": 0, "warning": 1}
    sorted_items = sorted(errors, key=lambda item: order[get_error_severity(item)])
    return "\n".join(f"- {render_diagnostic(item)}" for item in sorted_items)
