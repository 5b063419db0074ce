from __future__ import annotations

import unittest

from workflow_sim.graph import GraphValidator, load_graph_definition, validate_simulation_graph
from workflow_sim.graph.models import GraphDefinition, SimulationError, StateField, StateSchema
from workflow_sim.graph.validator import (
    get_error_message,
    get_error_severity,
    render_diagnostic,
    render_diagnostics,
)
from workflow_sim.graph.validator.passes import bfs_reachable, detect_cycles


def make_graph(nodes: list[dict], edges: list[dict]) -> GraphDefinition:
    return load_graph_definition({"nodes": nodes, "edges": edges})


def linear_graph() -> GraphDefinition:
    return make_graph(
        nodes=[
            {"id": "start", "type": "Start"},
            {"id": "llm", "type": "LLM"},
            {"id": "end", "type": "End"},
        ],
        edges=[
            {"id": "e1", "source": "start", "target": "llm"},
            {"id": "e2", "source": "llm", "target": "end"},
        ],
    )


def of_type(diagnostics: list[SimulationError], error_type: str) -> list[SimulationError]:
    return [item for item in diagnostics if item.type == error_type]


class StructurePassTests(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = GraphValidator()

    def test_valid_linear_graph_has_no_diagnostics(self) -> None:
        self.assertEqual(self.validator.validate(linear_graph()), [])

    def test_missing_start(self) -> None:
        graph = make_graph(nodes=[{"id": "end", "type": "End"}], edges=[])
        diagnostics = self.validator.validate(graph)

        self.assertEqual(len(diagnostics), 1)
        self.assertEqual(diagnostics[0].type, "no_start")
        self.assertEqual(diagnostics[0].message, "No Start node found. Add a Start node to begin simulation.")
        self.assertEqual(diagnostics[0].related_ids, [])

    def test_multiple_starts(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "s1", "type": "Start"},
                {"id": "s2", "type": "Start"},
                {"id": "end", "type": "End"},
            ],
            edges=[
                {"id": "e1", "source": "s1", "target": "end"},
                {"id": "e2", "source": "s2", "target": "end"},
            ],
        )
        diagnostics = self.validator.validate(graph)

        starts = of_type(diagnostics, "no_start")
        self.assertEqual(len(starts), 1)
        self.assertTrue(starts[0].message.startswith("Multiple Start nodes found."))
        self.assertEqual(starts[0].related_ids, ["s1", "s2"])
        # Reachability is measured from the first Start only.
        self.assertEqual(of_type(diagnostics, "unreachable")[0].related_ids, ["s2"])

    def test_missing_end_and_dead_end(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "start", "type": "Start"},
                {"id": "a", "type": "LLM"},
            ],
            edges=[{"id": "e1", "source": "start", "target": "a"}],
        )
        diagnostics = self.validator.validate(graph)

        self.assertEqual(
            [item.message for item in diagnostics],
            [
                "No End node found. Add an End node to terminate simulation.",
                "1 node(s) have no outgoing edges. Add edges or make them End nodes.",
            ],
        )
        self.assertEqual(diagnostics[1].related_ids, ["a"])
        self.assertTrue(all(item.type == "unreachable" for item in diagnostics))

    def test_unreachable_nodes(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "start", "type": "Start"},
                {"id": "end", "type": "End"},
                {"id": "island", "type": "Tool"},
            ],
            edges=[
                {"id": "e1", "source": "start", "target": "end"},
                {"id": "e2", "source": "island", "target": "end"},
            ],
        )
        diagnostics = self.validator.validate(graph)

        self.assertEqual(len(diagnostics), 1)
        self.assertEqual(diagnostics[0].type, "unreachable")
        self.assertEqual(
            diagnostics[0].message,
            "1 node(s) unreachable from Start. Connect them to the graph or remove them.",
        )
        self.assertEqual(diagnostics[0].related_ids, ["island"])

    def test_bfs_reachable_includes_dangling_targets(self) -> None:
        graph = make_graph(
            nodes=[{"id": "start", "type": "Start"}],
            edges=[{"id": "e1", "source": "start", "target": "ghost"}],
        )
        self.assertEqual(bfs_reachable(graph, "start"), {"start", "ghost"})


class CyclePassTests(unittest.TestCase):
    def test_single_cycle(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "start", "type": "Start"},
                {"id": "a", "type": "LLM"},
                {"id": "b", "type": "Router"},
                {"id": "end", "type": "End"},
            ],
            edges=[
                {"id": "e1", "source": "start", "target": "a"},
                {"id": "e2", "source": "a", "target": "b"},
                {"id": "e3", "source": "b", "target": "a"},
                {"id": "e4", "source": "b", "target": "end"},
            ],
        )
        diagnostics = validate_simulation_graph(graph)

        self.assertEqual(len(diagnostics), 1)
        self.assertEqual(diagnostics[0].type, "cycle")
        self.assertEqual(diagnostics[0].related_ids, ["a", "b", "a"])
        self.assertEqual(
            diagnostics[0].message,
            "Cycle detected: a → b → a. This may cause infinite loops during simulation.",
        )

    def test_self_loop_and_separate_component(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "start", "type": "Start"},
                {"id": "a", "type": "LoopGuard"},
                {"id": "x", "type": "LLM"},
                {"id": "y", "type": "LLM"},
                {"id": "end", "type": "End"},
            ],
            edges=[
                {"id": "e1", "source": "start", "target": "a"},
                {"id": "e2", "source": "a", "target": "a"},
                {"id": "e3", "source": "a", "target": "end"},
                {"id": "e4", "source": "x", "target": "y"},
                {"id": "e5", "source": "y", "target": "x"},
            ],
        )
        self.assertEqual(detect_cycles(graph), [["a", "a"], ["x", "y", "x"]])

        diagnostics = validate_simulation_graph(graph)
        self.assertEqual([item.related_ids for item in of_type(diagnostics, "cycle")], [["a", "a"], ["x", "y", "x"]])
        self.assertEqual(of_type(diagnostics, "unreachable")[0].related_ids, ["x", "y"])

    def test_acyclic_diamond(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "start", "type": "Start"},
                {"id": "left", "type": "Tool"},
                {"id": "right", "type": "Tool"},
                {"id": "end", "type": "End"},
            ],
            edges=[
                {"id": "e1", "source": "start", "target": "left"},
                {"id": "e2", "source": "start", "target": "right"},
                {"id": "e3", "source": "left", "target": "end"},
                {"id": "e4", "source": "right", "target": "end"},
            ],
        )
        self.assertEqual(detect_cycles(graph), [])

    def test_long_chain_does_not_exhaust_the_stack(self) -> None:
        middle = [f"n{index}" for index in range(1500)]
        ids = ["start", *middle, "end"]
        nodes = [{"id": "start", "type": "Start"}]
        nodes.extend({"id": node_id, "type": "LLM"} for node_id in middle)
        nodes.append({"id": "end", "type": "End"})
        edges = [
            {"id": f"e{index}", "source": source, "target": target}
            for index, (source, target) in enumerate(zip(ids, ids[1:]))
        ]
        graph = make_graph(nodes=nodes, edges=edges)

        self.assertEqual(GraphValidator().validate(graph), [])

        looped = make_graph(
            nodes=nodes,
            edges=[*edges[:-1], {"id": "back", "source": "n1499", "target": "n0"}],
        )
        cycles = detect_cycles(looped)
        self.assertEqual(len(cycles), 1)
        self.assertEqual(cycles[0][0], "n0")
        self.assertEqual(cycles[0][-2:], ["n1499", "n0"])
        self.assertEqual(len(cycles[0]), 1501)

    def test_validation_is_repeatable(self) -> None:
        graph = make_graph(
            nodes=[
                {"id": "start", "type": "Start"},
                {"id": "a", "type": "LLM"},
            ],
            edges=[
                {"id": "e1", "source": "start", "target": "a"},
                {"id": "e2", "source": "a", "target": "start"},
            ],
        )
        validator = GraphValidator()
        self.assertEqual(validator.validate(graph), validator.validate(graph))


class FieldReferencePassTests(unittest.TestCase):
    def setUp(self) -> None:
        self.schema = StateSchema(
            fields=[
                StateField(key="foo", type="number"),
                StateField(key="name", type="string"),
                StateField(key="route", type="string"),
            ]
        )

    def _graph(self, edges: list[dict], extra_nodes: list[dict] | None = None) -> GraphDefinition:
        nodes = [
            {"id": "start", "type": "Start"},
            {"id": "end", "type": "End"},
            *(extra_nodes or []),
        ]
        return make_graph(nodes=nodes, edges=edges)

    def test_unknown_condition_fields(self) -> None:
        graph = self._graph(
            edges=[
                {"id": "ok", "source": "start", "target": "end", "condition": "state['foo'] > 1"},
                {
                    "id": "bad",
                    "source": "start",
                    "target": "end",
                    "condition": 'state["bogus"] == 1 || state.other.deep > 2',
                    "label": "Fallback",
                },
            ]
        )
        errors = of_type(GraphValidator().validate(graph, self.schema), "invalid_field_ref")

        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].related_ids, ["bad"])
        self.assertEqual(
            errors[0].message,
            "Edge 'Fallback' condition references unknown state field(s): bogus, other.",
        )

    def test_router_and_loop_guard_fields(self) -> None:
        graph = self._graph(
            edges=[
                {"id": "e1", "source": "start", "target": "router"},
                {"id": "e2", "source": "router", "target": "guard"},
                {"id": "e3", "source": "guard", "target": "plain"},
                {"id": "e4", "source": "plain", "target": "end"},
            ],
            extra_nodes=[
                {"id": "router", "type": "Router", "config": {"targetField": "missing"}},
                {"id": "guard", "type": "LoopGuard", "label": "Guard", "config": {"counterField": "name"}},
                {"id": "plain", "type": "LoopGuard"},
            ],
        )
        errors = of_type(GraphValidator().validate(graph, self.schema), "invalid_field_ref")

        self.assertEqual(
            [item.message for item in errors],
            [
                "Node 'router' targetField: Unknown field: \"missing\".",
                "Node 'Guard' counterField: Field \"name\" has type \"string\", expected \"number\".",
            ],
        )
        self.assertEqual([item.related_ids for item in errors], [["router"], ["guard"]])

    def test_no_schema_skips_field_checks(self) -> None:
        graph = self._graph(
            edges=[{"id": "e1", "source": "start", "target": "end", "condition": "state.bogus == 1"}]
        )
        self.assertEqual(of_type(GraphValidator().validate(graph), "invalid_field_ref"), [])


class DiagnosticsTests(unittest.TestCase):
    def test_messages_and_severity(self) -> None:
        cycle = SimulationError(type="cycle", message="Cycle detected: a -> a.", related_ids=["a", "a"])
        unreachable = SimulationError(type="unreachable", message="1 node(s) unreachable.", related_ids=["x"])

        self.assertEqual(get_error_message(cycle), "Cycle Detected: Cycle detected: a -> a.")
        self.assertEqual(get_error_severity(cycle), "error")
        self.assertEqual(get_error_severity(unreachable), "warning")
        self.assertEqual(
            render_diagnostic(unreachable),
            "[WARNING] Unreachable Nodes: 1 node(s) unreachable. (related: x)",
        )

    def test_render_diagnostics_puts_errors_first(self) -> None:
        warning = SimulationError(type="invalid_field_ref", message="bad ref")
        error = SimulationError(type="no_start", message="no start")

        rendered = render_diagnostics([warning, error])
        self.assertEqual(
            rendered.splitlines(),
            [
                "- [ERROR] Missing Start Node: no start",
                "- [WARNING] Invalid Field Reference: bad ref",
            ],
        )
        self.assertEqual(render_diagnostics([]), "")


if __name__ == "__main__":
    unittest.main()
