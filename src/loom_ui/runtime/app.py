"""
Apps and the rebuild engine.

An ``App`` wraps a UI block, a function ``block(ui, state)`` that declares
the component tree by calling builder methods. ``App.rebuild`` re-runs the
block against a state map and returns a fresh ``ComponentTree``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from loom_ui.core.errors import ConfigError, ErrorContext, StructuralError
from loom_ui.dsl.builder import Builder
from loom_ui.runtime.tree import ComponentTree
from loom_ui.specs.nodes import StateMap
from loom_ui.themes import layout_exists, theme_exists

logger = logging.getLogger(__name__)

Block = Callable[[Builder, StateMap], Any]


class App:
    """A declarative UI bound to a title, theme and layout.

    Args:
        title: Page title, also used to name the app in the service index
        block: UI block; may be set later with the ``page`` decorator
        theme: Default theme name
        layout: Default layout name (``default``, ``wide``, ``full``, ``fluid``)
        persist_exclude: State keys kept live for one request but never persisted
    """

    def __init__(
        self,
        title: str,
        block: Block | None = None,
        *,
        theme: str = "default",
        layout: str = "default",
        persist_exclude: tuple[str, ...] | list[str] = (),
    ) -> None:
        if not theme_exists(theme):
            raise ConfigError(f"Unknown theme {theme!r}")
        if not layout_exists(layout):
            raise ConfigError(f"Unknown layout {layout!r}")
        self.title = title
        self.block = block
        self.theme = theme
        self.layout = layout
        self.persist_exclude = tuple(persist_exclude)

    def __repr__(self) -> str:
        return f"App({self.title!r})"

    def page(self, block: Block) -> Block:
        """Decorator registering ``block`` as this app's UI."""
        self.block = block
        return block

    def rebuild(self, state: StateMap) -> ComponentTree:
        """Re-run the UI block against ``state`` and return the new tree.

        Defaults declared by the block are written into ``state`` when their
        key is absent. Button ids restart from 1 on every call.

        Raises:
            StructuralError: If the block misuses the builder or leaves a
                scope open
        """
        if self.block is None:
            raise StructuralError(
                "App has no UI block", ErrorContext(operation="rebuild", app=self.title)
            )
        ui = Builder(state, app=self.title)
        self.block(ui, state)
        tree = ComponentTree(ui.finish())
        logger.debug("Rebuilt %r: %d top-level nodes", self.title, len(tree))
        return tree


def app(title: str, **options: Any) -> Callable[[Block], App]:
    """Decorator turning a UI block into an ``App``.

    Example::

        @app("Greeter")
        def greeter(ui, state):
            ui.text_field("name")
    """

    def decorator(block: Block) -> App:
        return App(title, block, **options)

    return decorator
