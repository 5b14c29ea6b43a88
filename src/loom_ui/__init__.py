"""
loom-ui: server-rendered reactive UIs declared as plain Python functions.

An app is a block ``block(ui, state)`` that declares components through the
builder. Every interaction merges the browser's values into the session's
state map, runs the triggering callback, rebuilds the whole tree and sends
back an HTML fragment::

    from loom_ui import app, run

    @app("Greeter")
    def greeter(ui, state):
        ui.text_field("name", placeholder="Your name")
        ui.button("Greet", on_click=lambda s: s.update(greeted=True))
        if state.get("greeted"):
            ui.text(f"Hello {state['name']}!")

    run(greeter)
"""

__version__ = "0.1.0"

from typing import Any  # noqa: E402

from loom_ui.core.config import LoomConfig  # noqa: E402
from loom_ui.core.errors import LoomError, StructuralError  # noqa: E402
from loom_ui.runtime.app import App, app  # noqa: E402
from loom_ui.runtime.state import (  # noqa: E402
    active_tab,
    clear_toasts,
    close_modal,
    dismiss_toast,
    is_modal_open,
    open_modal,
    show_toast,
)
from loom_ui.themes import Theme, register_theme  # noqa: E402


def run(loom_app: App, **kwargs: Any) -> None:
    """Serve ``app`` until interrupted. See ``loom_ui.runtime.server.run_app``."""
    from loom_ui.runtime.server import run_app

    run_app(loom_app, **kwargs)


def run_once(loom_app: App, **kwargs: Any) -> dict[str, Any]:
    """Serve ``app`` until the user submits and return the submitted values."""
    from loom_ui.runtime.agentic import run_once as _run_once

    return _run_once(loom_app, **kwargs)


__all__ = [
    "__version__",
    "App",
    "app",
    "run",
    "run_once",
    "LoomConfig",
    "LoomError",
    "StructuralError",
    "Theme",
    "register_theme",
    "show_toast",
    "clear_toasts",
    "dismiss_toast",
    "open_modal",
    "close_modal",
    "is_modal_open",
    "active_tab",
]
