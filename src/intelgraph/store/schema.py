"""Property schema registry — validates ``properties`` at the write boundary.

Every property map must be JSON-shaped (string keys; string, number,
boolean, null, array, or object values).  Callers may additionally register
a pydantic model per node or edge type to constrain its properties.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, JsonValue, TypeAdapter, ValidationError

from intelgraph.exceptions import PropertySchemaError
from intelgraph.types import EdgeType, NodeType

_JSON_OBJECT: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])


class PropertySchemaRegistry:
    """Per-type pydantic models for node and edge properties."""

    def __init__(self) -> None:
        self._node_models: dict[NodeType, type[BaseModel]] = {}
        self._edge_models: dict[EdgeType, type[BaseModel]] = {}

    def register_node(self, node_type: NodeType | str, model: type[BaseModel]) -> None:
        self._node_models[NodeType(node_type)] = model

    def register_edge(self, edge_type: EdgeType | str, model: type[BaseModel]) -> None:
        self._edge_models[EdgeType(edge_type)] = model

    def validate_node(self, node_type: NodeType, properties: Any) -> dict[str, Any]:
        """Return a validated copy of *properties* for *node_type*."""
        model = self._node_models.get(node_type)
        return _validate(f"node type {node_type.value!r}", model, properties)

    def validate_edge(self, edge_type: EdgeType, properties: Any) -> dict[str, Any]:
        """Return a validated copy of *properties* for *edge_type*."""
        model = self._edge_models.get(edge_type)
        return _validate(f"edge type {edge_type.value!r}", model, properties)


def _validate(what: str, model: type[BaseModel] | None, properties: Any) -> dict[str, Any]:
    if properties is None:
        return {}
    try:
        data = _JSON_OBJECT.validate_python(properties, strict=True)
    except ValidationError as exc:
        msg = f"Properties for {what} are not a JSON object: {_first_error(exc)}"
        raise PropertySchemaError(msg) from exc
    if not _all_finite(data):
        msg = f"Properties for {what} contain a non-finite number"
        raise PropertySchemaError(msg)
    if model is not None:
        try:
            model.model_validate(data)
        except ValidationError as exc:
            msg = f"Properties for {what} do not match {model.__name__}: {_first_error(exc)}"
            raise PropertySchemaError(msg) from exc
    return data


def _all_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_all_finite(v) for v in value.values())
    if isinstance(value, list):
        return all(_all_finite(v) for v in value)
    return True


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err["loc"]) or "<root>"
    return f"{loc}: {err['msg']}"
