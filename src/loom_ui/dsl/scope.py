"""
Explicit scope stack for the builder.

Each open container owns a frame holding the children collected so far.
Frames are strictly nested: a scope may only be closed while it is the top
of the stack, and a rebuild may only finish with the stack back at its root.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType

from loom_ui.core.errors import ErrorContext, StructuralError
from loom_ui.specs.kinds import NodeKind
from loom_ui.specs.nodes import Node


@dataclass
class Frame:
    """One open scope: its owning node (None for the root) and its children."""

    node: Node | None
    form: str | None = None
    children: list[Node] = field(default_factory=list)

    @property
    def kind(self) -> NodeKind | None:
        return self.node.kind if self.node is not None else None


class ScopeStack:
    """Stack of open frames, rooted at the top-level accumulator."""

    def __init__(self, app: str | None = None) -> None:
        self.app = app
        self.root = Frame(node=None)
        self._frames: list[Frame] = [self.root]

    @property
    def current(self) -> Frame:
        return self._frames[-1]

    @property
    def depth(self) -> int:
        return len(self._frames) - 1

    @property
    def form(self) -> str | None:
        """Name of the enclosing deferred-submission form, if any."""
        return self.current.form

    def path(self) -> tuple[str, ...]:
        return tuple(str(frame.kind) for frame in self._frames[1:])

    def context(self, operation: str) -> ErrorContext:
        return ErrorContext(operation=operation, scope_path=self.path(), app=self.app)

    def append(self, node: Node) -> None:
        self.current.children.append(node)

    def push(self, node: Node) -> Frame:
        form = self.current.form
        if node.kind == NodeKind.FORM:
            form = node.key
        frame = Frame(node=node, form=form)
        self._frames.append(frame)
        return frame

    def pop(self, frame: Frame) -> None:
        if self.current is not frame:
            raise StructuralError(
                f"Scope {frame.kind} closed while {self.current.kind} is still open",
                self.context(f"close {frame.kind}"),
            )
        self._frames.pop()
        if frame.node is not None:
            frame.node.children = frame.children

    def find(self, kind: NodeKind) -> Frame | None:
        """Nearest open frame of the given kind."""
        for frame in reversed(self._frames):
            if frame.kind == kind:
                return frame
        return None

    def finish(self) -> list[Node]:
        """Return the top-level nodes, requiring every scope to be closed."""
        if self.depth:
            raise StructuralError(
                f"{self.depth} scope(s) still open at end of rebuild",
                self.context("rebuild"),
            )
        return self.root.children


class Scope:
    """Context manager returned by container operations.

    Entering pushes a fresh accumulator; leaving attaches the collected
    children to the node and pops.

    Example::

        with ui.card():
            ui.text("inside the card")
    """

    def __init__(self, stack: ScopeStack, node: Node) -> None:
        self._stack = stack
        self.node = node
        self._frame: Frame | None = None

    def __enter__(self) -> Node:
        if self._frame is not None:
            raise StructuralError(
                f"Scope {self.node.kind} entered twice",
                self._stack.context(str(self.node.kind)),
            )
        self._frame = self._stack.push(self.node)
        return self.node

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        assert self._frame is not None
        self._stack.pop(self._frame)
