from __future__ import annotations

import unittest

from workflow_sim.graph.models import UNDEFINED, NodeType, StateField, StateSchema
from workflow_sim.graph.schema import (
    GraphLoadError,
    build_state_defaults,
    create_initial_state,
    default_state_schema,
    load_graph_definition,
    load_state_schema,
    validate_graph_structure,
    validate_state_schema,
)


class LoadGraphDefinitionTests(unittest.TestCase):
    def test_accepts_flat_and_nested_shapes(self) -> None:
        payload = {
            "nodes": [
                {"id": "start", "type": "Start", "data": {"label": "Begin"}},
                {"id": "tool", "type": "Tool", "config": {"toolName": "search"}},
                {"id": "router", "type": "Router", "data": {"config": {"targetField": "route"}}},
                {"id": "end", "type": "End"},
            ],
            "edges": [
                {"id": "e1", "source": "start", "target": "tool", "label": "go"},
                {"id": "e2", "source": "tool", "target": "router", "data": {"condition": "state.x > 1"}},
            ],
            "metadata": {"name": "Demo"},
        }
        graph = load_graph_definition(payload)

        self.assertEqual([node.type for node in graph.nodes][:2], [NodeType.START, NodeType.TOOL])
        self.assertEqual(graph.nodes[0].display_name, "Begin")
        self.assertEqual(graph.nodes[1].config, {"toolName": "search"})
        self.assertEqual(graph.nodes[2].config, {"targetField": "route"})
        self.assertEqual(graph.edges[0].display_name, "go")
        self.assertEqual(graph.edges[1].condition, "state.x > 1")
        self.assertEqual(graph.metadata, {"name": "Demo"})

    def test_config_is_copied(self) -> None:
        config = {"toolName": "search", "options": {"limit": 3}}
        graph = load_graph_definition(
            {"nodes": [{"id": "tool", "type": "Tool", "config": config}], "edges": []}
        )
        config["options"]["limit"] = 10
        self.assertEqual(graph.nodes[0].config["options"], {"limit": 3})

    def test_invalid_payload_reports_every_problem(self) -> None:
        payload = {
            "nodes": [
                {"id": "a", "type": "Planner"},
                {"type": "End"},
            ],
            "edges": [{"id": "e1", "source": "a"}],
        }
        with self.assertRaises(GraphLoadError) as ctx:
            load_graph_definition(payload)

        message = str(ctx.exception)
        self.assertTrue(message.startswith("Graph payload is invalid:"))
        self.assertIn("nodes[0] 'a' has invalid type 'Planner'.", message)
        self.assertIn("nodes[1].id must be a non-empty string.", message)
        self.assertIn("edges[0] requires string field(s): target.", message)

    def test_missing_lists(self) -> None:
        with self.assertRaises(GraphLoadError):
            load_graph_definition({"nodes": {}})


class StructureTests(unittest.TestCase):
    def test_reports_duplicates_missing_types_and_orphans(self) -> None:
        graph = load_graph_definition(
            {
                "nodes": [
                    {"id": "a", "type": "LLM"},
                    {"id": "a", "type": "Tool"},
                ],
                "edges": [{"id": "e1", "source": "a", "target": "gone"}],
            }
        )
        issues = validate_graph_structure(graph)

        self.assertEqual(
            [issue.type for issue in issues],
            ["duplicate_id", "no_start", "no_end", "orphaned_edge"],
        )
        self.assertEqual(issues[0].message, "Duplicate node ID: a")
        self.assertEqual(issues[3].message, "Edge target node not found: gone")
        self.assertEqual(issues[3].related_ids, ["e1", "gone"])

    def test_clean_graph(self) -> None:
        graph = load_graph_definition(
            {
                "nodes": [{"id": "s", "type": "Start"}, {"id": "e", "type": "End"}],
                "edges": [{"id": "e1", "source": "s", "target": "e"}],
            }
        )
        self.assertEqual(validate_graph_structure(graph), [])


class StateSchemaTests(unittest.TestCase):
    def test_load_state_schema(self) -> None:
        schema = load_state_schema(
            {
                "fields": [
                    {"key": "count", "type": "number", "default": 0, "required": True},
                    {"key": "mode", "type": "enum", "enumValues": ["fast", "slow"]},
                ]
            }
        )
        self.assertEqual(schema.keys(), {"count", "mode"})
        self.assertEqual(schema.get("mode").enum_values, ["fast", "slow"])
        self.assertIs(schema.get("mode").default, UNDEFINED)
        self.assertIsNone(schema.get("missing"))

    def test_load_rejects_unknown_type(self) -> None:
        with self.assertRaises(GraphLoadError):
            load_state_schema({"fields": [{"key": "x", "type": "date"}]})

    def test_validation_messages(self) -> None:
        schema = StateSchema(
            fields=[
                StateField(key="1bad", type="string", default=""),
                StateField(key="dup", type="number", default=1),
                StateField(key="dup", type="number", default=True),
                StateField(key="needed", type="string", required=True),
                StateField(key="mode", type="enum"),
                StateField(key="level", type="enum", enum_values=["low"], default="high"),
            ]
        )
        errors = [(error.field, error.message) for error in validate_state_schema(schema)]

        self.assertEqual(
            errors,
            [
                ("1bad", "Invalid identifier: must start with letter or underscore"),
                ("dup", "Duplicate field key"),
                ("dup", "Default must be a number"),
                ("needed", "Required fields must have a default value"),
                ("mode", "Enum fields must have at least one value"),
                ("level", "Default must be one of the enum values"),
            ],
        )

    def test_default_schema_is_valid(self) -> None:
        schema = default_state_schema()
        self.assertEqual(validate_state_schema(schema), [])
        self.assertEqual(create_initial_state(schema), {"messages": [], "input": ""})

    def test_initial_state_uses_type_defaults(self) -> None:
        schema = StateSchema(
            fields=[
                StateField(key="s", type="string"),
                StateField(key="n", type="number"),
                StateField(key="b", type="boolean"),
                StateField(key="a", type="array"),
                StateField(key="o", type="object"),
                StateField(key="e", type="enum", enum_values=["x", "y"]),
                StateField(key="d", type="array", default=[1]),
            ]
        )
        state = create_initial_state(schema)
        self.assertEqual(state, {"s": "", "n": 0, "b": False, "a": [], "o": {}, "e": "x", "d": [1]})

        state["d"].append(2)
        self.assertEqual(schema.get("d").default, [1])

    def test_user_state_overrides_defaults(self) -> None:
        state = build_state_defaults(default_state_schema(), {"input": "hi", "extra": 1})
        self.assertEqual(state, {"messages": [], "input": "hi", "extra": 1})


if __name__ == "__main__":
    unittest.main()
