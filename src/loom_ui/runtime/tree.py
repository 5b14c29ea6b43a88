"""
The result of one rebuild: an ordered list of top-level nodes plus lookups.

Callbacks are never indexed across requests. Each request rebuilds the tree
and finds the target node here by recursive search.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from loom_ui.specs.kinds import INPUT_KINDS, NodeKind
from loom_ui.specs.nodes import Node


@dataclass
class ComponentTree:
    """Top-level nodes produced by ``App.rebuild``."""

    nodes: list[Node] = field(default_factory=list)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def walk(self) -> Iterator[Node]:
        """All nodes in document order (depth first, pre-order)."""
        stack = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_clickable(self, node_id: str) -> Node | None:
        """Clickable node with the given id, including modal footers and menus."""
        for node in self.walk():
            if node.is_clickable and node.node_id == node_id:
                return node
        return None

    def find_bound(self, key: str) -> Node | None:
        """First top-level-bound node for ``key`` in document order."""
        for node in self.walk():
            if node.key == key and node.form is None and node.kind != NodeKind.FORM:
                return node
        return None

    def find_form(self, name: str) -> Node | None:
        for node in self.walk():
            if node.kind == NodeKind.FORM and node.key == name:
                return node
        return None

    def bound_nodes(self) -> list[Node]:
        """Nodes bound to a top-level state key (form fields excluded)."""
        return [node for node in self.walk() if node.key is not None and node.form is None]

    def input_keys(self) -> list[str]:
        """Top-level keys bound to input kinds, plus form names, in document order."""
        keys: list[str] = []
        for node in self.bound_nodes():
            key = node.key
            if key is None or key in keys:
                continue
            if node.kind in INPUT_KINDS or node.kind == NodeKind.FORM:
                keys.append(key)
        return keys

    def signature(self) -> tuple[Any, ...]:
        return tuple(node.signature() for node in self.nodes)
