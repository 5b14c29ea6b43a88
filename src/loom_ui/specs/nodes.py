"""
Component nodes.

A ``Node`` is the unit of UI description. Nodes are created fresh on every
rebuild, filled in by the builder while their scope is open, and discarded
when the request ends. Only the state map survives between requests.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from loom_ui.specs.kinds import CLICKABLE_KINDS, NodeKind
from loom_ui.specs.options import NodeOptions

StateMap = dict[str, Any]

Callback = Callable[..., Any]

OptionsT = TypeVar("OptionsT", bound=NodeOptions)


@dataclass
class Node:
    """One component in a rebuilt tree.

    Attributes:
        kind: Component kind
        options: Declared options for ``kind`` (plus ``extra`` passthrough)
        key: State key the node is bound to, if any
        children: Child nodes in call order
        callbacks: Bound callbacks by slot (``click``, ``change``, ``blur``, ``submit``)
        node_id: Deterministic id for clickable kinds
        form: Name of the enclosing deferred-submission form, if any
    """

    kind: NodeKind
    options: NodeOptions
    key: str | None = None
    children: list[Node] = field(default_factory=list)
    callbacks: dict[str, Callback] = field(default_factory=dict)
    node_id: str | None = None
    form: str | None = None

    @property
    def is_clickable(self) -> bool:
        return self.kind in CLICKABLE_KINDS

    def options_as(self, model: type[OptionsT]) -> OptionsT:
        """Return ``options`` narrowed to the model declared for this kind.

        Raises:
            TypeError: If the node carries options of another model
        """
        if not isinstance(self.options, model):
            raise TypeError(
                f"{self.kind} node carries {type(self.options).__name__}, not {model.__name__}"
            )
        return self.options

    def callback(self, slot: str) -> Callback | None:
        return self.callbacks.get(slot)

    def signature(self) -> tuple[Any, ...]:
        """Structural fingerprint: kind, key, id, form and children, recursively."""
        return (
            str(self.kind),
            self.key,
            self.node_id,
            self.form,
            tuple(child.signature() for child in self.children),
        )
