"""JSON import/export of graph documents.

A document is ``{"version": "v1", "nodes": [...], "edges": [...],
"metadata": {...}, "stateSchema": {...}}``.  Structural problems in an
imported graph are logged, not raised, so a half-finished graph can still be
loaded and inspected.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from workflow_sim.graph.models import GraphDefinition, StateSchema
from workflow_sim.graph.schema import (
    GraphLoadError,
    default_state_schema,
    load_graph_definition,
    load_state_schema,
    validate_graph_structure,
    validate_state_schema,
)


LOGGER = logging.getLogger(__name__)

DOCUMENT_VERSION = "v1"
DEFAULT_MAX_IMPORT_BYTES = 5 * 1024 * 1024


class GraphImportError(ValueError):
    """Raised when a graph document is rejected on import."""


@dataclass(slots=True)
class GraphDocument:
    graph: GraphDefinition
    state_schema: StateSchema


def import_graph_from_string(text: str, *, max_bytes: int = DEFAULT_MAX_IMPORT_BYTES) -> GraphDocument:
    if len(text) > max_bytes:
        raise GraphImportError(f"JSON too large (max {_format_megabytes(max_bytes)}MB)")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GraphImportError(f"Invalid JSON: {exc}") from exc
    return import_graph_document(payload)


def import_graph_from_file(path: Path, *, max_bytes: int = DEFAULT_MAX_IMPORT_BYTES) -> GraphDocument:
    size = path.stat().st_size
    if size > max_bytes:
        raise GraphImportError(f"File too large (max {_format_megabytes(max_bytes)}MB)")
    return import_graph_from_string(path.read_text(encoding="utf-8"), max_bytes=max_bytes)


def import_graph_document(payload: Any) -> GraphDocument:
    if not isinstance(payload, dict):
        raise GraphImportError("Invalid graph: not an object")

    version = payload.get("version")
    if version != DOCUMENT_VERSION:
        raise GraphImportError(f"Unsupported graph version: {version}")
    if not isinstance(payload.get("nodes"), list):
        raise GraphImportError("Invalid graph: nodes must be an array")
    if not isinstance(payload.get("edges"), list):
        raise GraphImportError("Invalid graph: edges must be an array")

    try:
        graph = load_graph_definition(payload)
        raw_schema = payload.get("stateSchema")
        schema = load_state_schema(raw_schema) if isinstance(raw_schema, dict) else None
    except GraphLoadError as exc:
        raise GraphImportError(str(exc)) from exc

    issues = validate_graph_structure(graph)
    if issues:
        LOGGER.warning("Graph validation warnings: %s", "; ".join(issue.message for issue in issues))

    if schema is None:
        schema = default_state_schema()
    else:
        schema_errors = validate_state_schema(schema)
        if schema_errors:
            LOGGER.warning(
                "State schema validation errors: %s",
                "; ".join(f"{error.field}: {error.message}" for error in schema_errors),
            )

    if not graph.metadata:
        now = datetime.now(timezone.utc).isoformat()
        graph.metadata = {"name": "Imported Graph", "createdAt": now, "updatedAt": now}

    return GraphDocument(graph=graph, state_schema=schema)


def export_graph_to_string(graph: GraphDefinition, state_schema: StateSchema | None = None) -> str:
    payload = graph.to_dict()
    if state_schema is not None:
        payload["stateSchema"] = state_schema.to_dict()
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_graph_to_file(
    path: Path,
    graph: GraphDefinition,
    state_schema: StateSchema | None = None,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_graph_to_string(graph, state_schema), encoding="utf-8")
    return path


def _format_megabytes(max_bytes: int) -> str:
    megabytes = max_bytes / 1024 / 1024
    return str(int(megabytes)) if megabytes.is_integer() else f"{megabytes:.2f}"
