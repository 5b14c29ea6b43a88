"""Rebuild engine, dispatcher, renderer and HTTP runtime."""

from loom_ui.runtime.app import App, app
from loom_ui.runtime.dispatcher import DispatchResult, Dispatcher, ResponseKind
from loom_ui.runtime.registry import AppEntry, AppRegistry
from loom_ui.runtime.renderer import HtmlRenderer
from loom_ui.runtime.session_store import MemorySessionStore, SessionStore, StateCodec
from loom_ui.runtime.tree import ComponentTree

__all__ = [
    "App",
    "app",
    "ComponentTree",
    "Dispatcher",
    "DispatchResult",
    "ResponseKind",
    "HtmlRenderer",
    "AppRegistry",
    "AppEntry",
    "SessionStore",
    "MemorySessionStore",
    "StateCodec",
]
