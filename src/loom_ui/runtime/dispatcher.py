"""
Request dispatch: the state machine behind every endpoint.

Each mutating operation follows the same sequence:

1. ``resolve`` - rebuild against the state as loaded (pre-merge tree)
2. ``apply`` - merge coerced request parameters into the state
3. find the target node in the pre-merge tree and run its callback
4. rebuild against the mutated state and render the fragment

All work happens on a deep copy of the loaded state. The copy is handed
back in ``DispatchResult.state`` only when every step succeeded, so the
caller persists merge and callback effects together or not at all.
"""

from __future__ import annotations

import copy
import logging
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from markupsafe import Markup

from loom_ui.core.logging import get_logger, log_with_context
from loom_ui.runtime.app import App
from loom_ui.runtime.coercion import RawParams, form_values, merge_params
from loom_ui.runtime.renderer import HtmlRenderer
from loom_ui.runtime.state import dismiss_toast
from loom_ui.runtime.template_renderer import render_fragment, render_page
from loom_ui.runtime.tree import ComponentTree
from loom_ui.specs.nodes import StateMap
from loom_ui.themes import css_classes, theme_exists

logger = get_logger("Dispatch")

# Session-level theme override for one app scope.
THEME_KEY = "_theme"

ResultSink = Callable[[StateMap], None]


class ResponseKind(StrEnum):
    """What the client receives."""

    FULL_PAGE = "full_page"
    FRAGMENT = "fragment"
    TERMINAL = "terminal"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class DispatchResult:
    """Outcome of one dispatched request.

    Attributes:
        kind: Response kind
        body: HTML body (or the CSS class string for a theme switch)
        status_code: HTTP status
        state: State to persist, or None when nothing may be committed
    """

    kind: ResponseKind
    body: str = ""
    status_code: int = 200
    state: StateMap | None = None

    @property
    def committed(self) -> bool:
        return self.state is not None


class Dispatcher:
    """
    Runs one app's operations against a state map.

    Args:
        app: App whose block is rebuilt
        renderer: Renderer for fragments (its url prefix scopes htmx endpoints)
        use_cdn: Load htmx and Alpine.js from CDNs in the page shell
        extra_head: Raw HTML appended to ``<head>`` on full page loads
        result_sink: Receives the filtered state on headless submit; when set,
            every render ends with a control posting to ``/submit``
        show_traceback: Include the traceback in diagnostic fragments
    """

    def __init__(
        self,
        app: App,
        renderer: HtmlRenderer | None = None,
        *,
        use_cdn: bool = True,
        extra_head: list[str] | None = None,
        result_sink: ResultSink | None = None,
        show_traceback: bool = True,
    ) -> None:
        self.app = app
        self.renderer = renderer or HtmlRenderer()
        self.use_cdn = use_cdn
        self.extra_head = list(extra_head or [])
        self.result_sink = result_sink
        self.show_traceback = show_traceback

    @property
    def headless(self) -> bool:
        return self.result_sink is not None

    # -------------------------------------------------------------------------
    # Two-phase protocol
    # -------------------------------------------------------------------------

    def resolve(self, state: StateMap) -> ComponentTree:
        """Rebuild the tree for ``state`` (writes declared defaults)."""
        return self.app.rebuild(state)

    def apply(self, tree: ComponentTree, params: RawParams, state: StateMap) -> StateMap:
        """Merge request parameters into ``state`` using ``tree`` for bindings."""
        return merge_params(tree, params, state)

    def container_class(self, state: StateMap) -> str:
        theme = state.get(THEME_KEY)
        if not isinstance(theme, str) or not theme_exists(theme):
            theme = self.app.theme
        return css_classes(theme, self.app.layout)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def load(self, state: StateMap) -> DispatchResult:
        """Initial GET: one rebuild, full page."""

        def run(working: StateMap) -> DispatchResult:
            tree = self.resolve(working)
            body = render_page(
                title=self.app.title,
                content=self._content(tree, working),
                container_class=self.container_class(working),
                use_cdn=self.use_cdn,
                extra_head=self.extra_head,
            )
            return DispatchResult(ResponseKind.FULL_PAGE, body, state=working)

        return self._guard("load", state, run, full_page=True)

    def update(self, state: StateMap, params: RawParams) -> DispatchResult:
        """Field update, checkbox-group toggle, tab switch, modal open/close."""

        def run(working: StateMap) -> DispatchResult:
            self.apply(self.resolve(working), params, working)
            return self._fragment(working)

        return self._guard("update", state, run)

    def action(self, state: StateMap, button_id: str, params: RawParams) -> DispatchResult:
        """Button click: merge, then run the clicked node's callback."""

        def run(working: StateMap) -> DispatchResult:
            tree = self.resolve(working)
            self.apply(tree, params, working)
            node = tree.find_clickable(button_id)
            if node is None:
                logger.debug("No clickable node with id %r", button_id)
            else:
                callback = node.callback("click")
                if callback is not None:
                    callback(working)
            return self._fragment(working)

        return self._guard("action", state, run, target=button_id)

    def event(self, state: StateMap, key: str, params: RawParams) -> DispatchResult:
        """Change/blur event: merge, then run the bound node's callbacks with the new value."""

        def run(working: StateMap) -> DispatchResult:
            tree = self.resolve(working)
            self.apply(tree, params, working)
            node = tree.find_bound(key)
            if node is None:
                logger.debug("No bound node for key %r", key)
            else:
                value = working.get(key)
                for slot in ("change", "blur"):
                    callback = node.callback(slot)
                    if callback is not None:
                        callback(working, value)
            return self._fragment(working)

        return self._guard("event", state, run, target=key)

    def submit_form(self, state: StateMap, form_name: str, params: RawParams) -> DispatchResult:
        """Deferred form submission: replace ``state[form_name]``, then run the submit callback."""

        def run(working: StateMap) -> DispatchResult:
            if self.resolve(working).find_form(form_name) is None:
                logger.debug("No form named %r", form_name)
                return self._fragment(working)
            working[form_name] = form_values(params.get(form_name))
            form = self.resolve(working).find_form(form_name)
            callback = form.callback("submit") if form is not None else None
            if callback is not None:
                callback(working, working[form_name])
            return self._fragment(working)

        return self._guard("submit_form", state, run, target=form_name)

    def dismiss_toast(self, state: StateMap, toast_id: str) -> DispatchResult:
        def run(working: StateMap) -> DispatchResult:
            if not dismiss_toast(working, toast_id):
                logger.debug("No toast with id %r", toast_id)
            return DispatchResult(ResponseKind.EMPTY, status_code=204, state=working)

        return self._guard("dismiss_toast", state, run, target=toast_id)

    def switch_theme(self, state: StateMap, theme_name: str) -> DispatchResult:
        """Store a theme override; the body is the new container class string."""
        if not theme_exists(theme_name):
            return DispatchResult(ResponseKind.ERROR, "Invalid theme", status_code=400)

        def run(working: StateMap) -> DispatchResult:
            working[THEME_KEY] = theme_name
            return DispatchResult(ResponseKind.FRAGMENT, self.container_class(working), state=working)

        return self._guard("switch_theme", state, run, target=theme_name)

    def submit(self, state: StateMap, params: RawParams) -> DispatchResult:
        """Headless submit: publish the values of bound inputs and end the session."""
        if self.result_sink is None:
            logger.debug("Submit for %r without a waiting caller", self.app.title)
            return DispatchResult(ResponseKind.ERROR, "Not found", status_code=404)
        sink = self.result_sink

        def run(working: StateMap) -> DispatchResult:
            self.apply(self.resolve(working), params, working)
            tree = self.resolve(working)
            result = {key: working[key] for key in tree.input_keys() if key in working}
            sink(copy.deepcopy(result))
            body = render_fragment("submitted.html", title=self.app.title, fields=list(result))
            return DispatchResult(ResponseKind.TERMINAL, body, state=working)

        return self._guard("submit", state, run)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _content(self, tree: ComponentTree, working: StateMap) -> Markup:
        content = self.renderer.render_nodes(tree, working)
        if self.headless:
            content += self.renderer.render_agentic_submit()
        return content

    def _fragment(self, working: StateMap) -> DispatchResult:
        body = str(self._content(self.resolve(working), working))
        return DispatchResult(ResponseKind.FRAGMENT, body, state=working)

    def _guard(
        self,
        operation: str,
        state: StateMap,
        run: Callable[[StateMap], DispatchResult],
        *,
        full_page: bool = False,
        target: str | None = None,
    ) -> DispatchResult:
        """Run ``run`` on a copy of ``state``; turn any exception into a diagnostic."""
        log_with_context(logger, logging.DEBUG, f"{operation} {self.app.title!r}", target=target)
        working = copy.deepcopy(state)
        try:
            return run(working)
        except Exception as e:
            logger.exception("%s failed for %r", operation, self.app.title)
            return self._error(e, full_page)

    def _error(self, error: Exception, full_page: bool) -> DispatchResult:
        trace = traceback.format_exc() if self.show_traceback else None
        body = render_fragment(
            "fragments/error.html",
            kind=type(error).__name__,
            message=str(error),
            trace=trace,
        )
        if full_page:
            body = render_page(
                title=self.app.title,
                content=body,
                container_class=css_classes(self.app.theme, self.app.layout),
                use_cdn=self.use_cdn,
                extra_head=self.extra_head,
            )
        return DispatchResult(ResponseKind.ERROR, body, status_code=500)
