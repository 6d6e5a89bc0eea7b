"""Canonical text for embedding nodes and edges.

The same entity state always yields the same text, so its sha256 can be
compared against the stored ``content_hash`` to skip re-embedding.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from intelgraph.utils import sha256_hex

if TYPE_CHECKING:
    from intelgraph.types import Edge, Node


def _textual(properties: dict[str, Any] | Any) -> list[str]:
    """``key: value`` for string and string-list properties, sorted by key."""
    parts: list[str] = []
    for key in sorted(properties):
        value = properties[key]
        if isinstance(value, str) and value.strip():
            parts.append(f"{key}: {value.strip()}")
        elif isinstance(value, list):
            words = [v.strip() for v in value if isinstance(v, str) and v.strip()]
            if words:
                parts.append(f"{key}: {', '.join(words)}")
    return parts


def node_text(node: Node) -> str:
    """``"<label>. Type: <type>. key: value. ..."``"""
    parts = [node.label.strip(), f"Type: {node.node_type.value}"]
    parts.extend(_textual(node.properties))
    return ". ".join(p for p in parts if p)


def edge_text(edge: Edge, source_label: str, target_label: str) -> str:
    """``"Relationship: <type>. <source> -> <target>. key: value. ..."``"""
    parts = [
        f"Relationship: {edge.edge_type.value}",
        f"{source_label.strip()} -> {target_label.strip()}",
    ]
    parts.extend(_textual(edge.properties))
    return ". ".join(parts)


def content_hash(text: str) -> str:
    return sha256_hex(text)
