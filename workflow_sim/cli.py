from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console
from rich.table import Table
from rich.text import Text

from workflow_sim.graph.conditions import to_json_text
from workflow_sim.graph.diff import diff_step
from workflow_sim.graph.engine import SimulationEngine
from workflow_sim.graph.io import (
    GraphDocument,
    GraphImportError,
    export_graph_to_file,
    import_graph_from_file,
)
from workflow_sim.graph.models import ExecutionTrace, GraphNode, StepTrace
from workflow_sim.graph.nodes import describe_config
from workflow_sim.graph.schema import build_state_defaults, validate_graph_structure
from workflow_sim.graph.validator import (
    GraphValidator,
    get_error_message,
    get_error_severity,
    render_diagnostic,
)
from workflow_sim.logging_utils import configure_logging
from workflow_sim.settings import AppSettings, load_settings


LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOAD_ERROR = 2

ReadLine = Callable[[str], str]

app = typer.Typer(
    name="workflow-sim",
    help="Validate and replay workflow graphs deterministically.",
    no_args_is_help=True,
    add_completion=False,
)


class WorkflowSimCLI:
    """Command implementations: validate, run, replay and export graph documents."""

    def __init__(self, settings: AppSettings | None = None, *, console: Console | None = None) -> None:
        self.settings = settings or AppSettings()
        self.console = console or Console(highlight=False, markup=False)
        self._validator = GraphValidator()
        self._nodes: dict[str, GraphNode] = {}

    def validate(self, file: Path) -> int:
        document = self._load(file)
        if document is None:
            return EXIT_LOAD_ERROR

        issues = validate_graph_structure(document.graph)
        diagnostics = self._validator.validate(document.graph, document.state_schema)

        if issues:
            self._print_list("Structure", [f"{issue.type}: {issue.message}" for issue in issues])
        self._print_list("Diagnostics", [render_diagnostic(item) for item in diagnostics])

        has_errors = any(get_error_severity(item) == "error" for item in diagnostics)
        return EXIT_FAILED if has_errors else EXIT_OK

    def run(
        self,
        file: Path,
        *,
        state: str | None = None,
        max_steps: int | None = None,
        as_json: bool = False,
    ) -> int:
        trace = self._load_and_simulate(file, state, max_steps)
        if isinstance(trace, int):
            return trace

        if as_json:
            self.console.print_json(json.dumps(trace.to_dict(), default=str))
        else:
            self._print_trace(trace)
        return EXIT_FAILED if trace.error is not None else EXIT_OK

    def replay(
        self,
        file: Path,
        *,
        read_line: ReadLine,
        state: str | None = None,
        max_steps: int | None = None,
    ) -> int:
        trace = self._load_and_simulate(file, state, max_steps)
        if isinstance(trace, int):
            return trace

        if not trace.steps:
            self._print_outcome(trace)
            return EXIT_FAILED if trace.error is not None else EXIT_OK

        index = 0
        self._print_step(trace.steps[index], len(trace.steps))
        while True:
            try:
                raw = read_line("replay> ").strip().lower()
            except (EOFError, KeyboardInterrupt):
                break

            if raw in {"q", "quit", "exit"}:
                break
            if raw in {"", "n", "next"}:
                index = min(index + 1, len(trace.steps) - 1)
            elif raw in {"p", "prev"}:
                index = max(index - 1, 0)
            elif raw.isdigit() and 1 <= int(raw) <= len(trace.steps):
                index = int(raw) - 1
            else:
                self.console.print("Commands: n(ext), p(rev), <step number>, q(uit)")
                continue
            self._print_step(trace.steps[index], len(trace.steps))

        self._print_outcome(trace)
        return EXIT_FAILED if trace.error is not None else EXIT_OK

    def export(self, file: Path, output: Path) -> int:
        """Re-write a document in canonical v1 form, with its state schema filled in."""
        document = self._load(file)
        if document is None:
            return EXIT_LOAD_ERROR

        try:
            written = export_graph_to_file(output, document.graph, document.state_schema)
        except OSError as exc:
            self.console.print(f"Could not write {output}: {exc}")
            return EXIT_LOAD_ERROR
        self.console.print(f"Wrote {written}")
        return EXIT_OK

    def _load(self, file: Path) -> GraphDocument | None:
        try:
            document = import_graph_from_file(file, max_bytes=self.settings.max_import_bytes)
        except (OSError, GraphImportError) as exc:
            self.console.print(f"Could not load {file}: {exc}")
            return None
        self._nodes = {node.id: node for node in document.graph.nodes}
        return document

    def _load_and_simulate(
        self,
        file: Path,
        state: str | None,
        max_steps: int | None,
    ) -> ExecutionTrace | int:
        document = self._load(file)
        if document is None:
            return EXIT_LOAD_ERROR

        try:
            user_state = _parse_state(state)
        except ValueError as exc:
            self.console.print(f"Invalid --state: {exc}")
            return EXIT_LOAD_ERROR

        budget = max_steps if max_steps is not None else self.settings.max_steps
        return self._simulate(document, user_state, budget)

    def _simulate(self, document: GraphDocument, user_state: dict[str, Any], max_steps: int) -> ExecutionTrace:
        diagnostics = self._validator.validate(document.graph, document.state_schema)
        for item in diagnostics:
            LOGGER.info("Pre-run diagnostic: %s", get_error_message(item))

        initial_state = build_state_defaults(document.state_schema, user_state)
        engine = SimulationEngine(document.graph, max_steps=max_steps, initial_state=initial_state)
        return engine.run()

    def _print_trace(self, trace: ExecutionTrace) -> None:
        table = Table(title="Execution trace")
        table.add_column("#", justify="right")
        table.add_column("Node")
        table.add_column("Type")
        table.add_column("Fired")
        table.add_column("Blocked")
        table.add_column("Explanation")
        for step in trace.steps:
            table.add_row(
                str(step.step),
                Text(step.active_node_id),
                step.node_type.value,
                Text(", ".join(step.fired_edge_ids) or "-"),
                Text(", ".join(step.blocked_edge_ids) or "-"),
                Text(step.explanation),
            )
        self.console.print(table)
        self._print_outcome(trace)

    def _print_step(self, step: StepTrace, total: int) -> None:
        rows = [
            ("node", f"{step.active_node_id} ({step.node_type.value})"),
            ("fired", ", ".join(step.fired_edge_ids) or "-"),
            ("blocked", ", ".join(step.blocked_edge_ids) or "-"),
            ("explanation", step.explanation),
        ]
        node_config = self._node_config(step.active_node_id)
        if node_config:
            rows.append(("config", to_json_text(node_config)))
        for change in diff_step(step):
            rows.append(
                (f"{change.kind} {change.key}", f"{to_json_text(change.before)} -> {to_json_text(change.after)}")
            )
        self._print_kv_lines(f"Step {step.step + 1}/{total}", rows)

    def _print_outcome(self, trace: ExecutionTrace) -> None:
        rows = [
            ("steps", str(len(trace.steps))),
            ("terminated", "yes" if trace.terminated else "no"),
            ("final state", to_json_text(trace.final_state)),
        ]
        if trace.error is not None:
            rows.append(("error", get_error_message(trace.error)))
        self._print_kv_lines("Outcome", rows)

    def _print_kv_lines(self, title: str, rows: list[tuple[str, str]]) -> None:
        self.console.print(title)
        for key, value in rows:
            self.console.print(f"- {key}: {value}")
        self.console.print()

    def _print_list(self, title: str, items: list[str]) -> None:
        self.console.print(title)
        if not items:
            self.console.print("- (none)")
        else:
            for item in items:
                self.console.print(f"- {item}")
        self.console.print()

    def _node_config(self, node_id: str) -> dict[str, Any]:
        node = self._nodes.get(node_id)
        return describe_config(node) if node is not None else {}


@app.callback()
def main_callback(ctx: typer.Context) -> None:
    """Validate and replay workflow graphs deterministically."""
    settings = load_settings()
    configure_logging(settings.log_level)
    ctx.obj = WorkflowSimCLI(settings)


@app.command()
def validate(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Graph document (JSON)."),
) -> None:
    """Report pre-run diagnostics for a graph file."""
    raise typer.Exit(ctx.obj.validate(file))


@app.command()
def run(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Graph document (JSON)."),
    state: str | None = typer.Option(None, "--state", help="Initial state as a JSON object."),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Step budget for the run."),
    as_json: bool = typer.Option(False, "--json", help="Print the trace as JSON."),
) -> None:
    """Simulate a graph and print its execution trace."""
    raise typer.Exit(ctx.obj.run(file, state=state, max_steps=max_steps, as_json=as_json))


@app.command()
def replay(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Graph document (JSON)."),
    state: str | None = typer.Option(None, "--state", help="Initial state as a JSON object."),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Step budget for the run."),
) -> None:
    """Simulate a graph and step through the trace interactively."""
    raise typer.Exit(ctx.obj.replay(file, read_line=_prompt_reader(), state=state, max_steps=max_steps))


@app.command()
def export(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Graph document (JSON)."),
    output: Path = typer.Argument(..., help="Where to write the normalized document."),
) -> None:
    """Write a graph document back out in canonical v1 form."""
    raise typer.Exit(ctx.obj.export(file, output))


def main() -> None:
    app()


def _parse_state(raw: str | None) -> dict[str, Any]:
    if raw is None:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(str(exc)) from exc
    if not isinstance(value, dict):
        raise ValueError("initial state must be a JSON object")
    return value


def _prompt_reader() -> ReadLine:
    session: PromptSession[str] = PromptSession(history=InMemoryHistory())
    return session.prompt
