"""
The UI builder passed to every app block.

One method per node kind. Leaf methods append a node to the current scope
and return it; container methods append a node and return a ``Scope`` to be
used as a context manager::

    def block(ui, state):
        ui.text_field("name", placeholder="Your name")
        with ui.card():
            ui.text(lambda s: f"Hello {s.get('name') or 'stranger'}")
            ui.button("Greet", on_click=greet)

Builder methods that declare a default write it into the state map only when
the key is absent, so repeated rebuilds never overwrite user input.
"""

from __future__ import annotations

import copy
import re
from typing import Any

from pydantic import ValidationError

from loom_ui.core.errors import ErrorContext, StructuralError
from loom_ui.dsl.scope import Scope, ScopeStack
from loom_ui.specs.kinds import CLICKABLE_KINDS, REQUIRED_PARENT, NodeKind
from loom_ui.specs.nodes import Callback, Node, StateMap
from loom_ui.specs.options import (
    OPTIONS_BY_KIND,
    CheckboxGroupOptions,
    CheckboxOptions,
    NodeOptions,
    RadioGroupOptions,
    SelectOptions,
    TagButtonsOptions,
    TextAreaOptions,
    TextFieldOptions,
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_TERM_MARKER_RE = re.compile(r"(\{[^{}]+\})")


def slugify(label: str) -> str:
    """Lowercase ``label`` and collapse runs of other characters into ``_``."""
    return _SLUG_RE.sub("_", str(label).lower()).strip("_") or "button"


def modal_state_key(key: str) -> str:
    """State key holding a modal's open flag."""
    return f"{key}_open"


class Builder:
    """Collects the component tree for one rebuild.

    Args:
        state: The live state map; defaults are written into it
        app: App title, used in error messages
    """

    def __init__(self, state: StateMap, app: str | None = None) -> None:
        self.state = state
        self._stack = ScopeStack(app=app)
        self._clickables = 0

    # =========================================================================
    # Internals
    # =========================================================================

    def _context(self, operation: str) -> ErrorContext:
        return self._stack.context(operation)

    def _check_placement(self, kind: NodeKind) -> None:
        required = REQUIRED_PARENT.get(kind)
        if required is not None and self._stack.current.kind != required:
            raise StructuralError(
                f"{kind} must be placed directly inside {required}",
                self._context(str(kind)),
            )
        if kind == NodeKind.FORM and self._stack.form is not None:
            raise StructuralError(
                f"form cannot be nested inside form {self._stack.form!r}",
                self._context(str(kind)),
            )

    def _options(self, kind: NodeKind, options: dict[str, Any]) -> NodeOptions:
        try:
            return OPTIONS_BY_KIND[kind].build(**options)
        except ValidationError as e:
            raise StructuralError(
                f"Invalid options for {kind}: {e}", self._context(str(kind))
            ) from e

    def _add(
        self,
        kind: NodeKind,
        *,
        key: str | None = None,
        callbacks: dict[str, Callback | None] | None = None,
        **options: Any,
    ) -> Node:
        self._check_placement(kind)
        node = Node(
            kind=kind,
            options=self._options(kind, options),
            key=key,
            callbacks={slot: cb for slot, cb in (callbacks or {}).items() if cb is not None},
            form=self._stack.form,
        )
        if kind in CLICKABLE_KINDS:
            self._clickables += 1
            label = getattr(node.options, "label", "")
            node.node_id = f"btn_{slugify(label)}_{self._clickables}"
        self._stack.append(node)
        return node

    def _container(self, kind: NodeKind, **kwargs: Any) -> Scope:
        return Scope(self._stack, self._add(kind, **kwargs))

    def _target(self) -> StateMap:
        """The map keys bind into: the enclosing form's nested map, or the top level."""
        form = self._stack.form
        if form is None:
            return self.state
        nested = self.state.get(form)
        if not isinstance(nested, dict):
            raise StructuralError(
                f"state[{form!r}] must be a mapping for form fields, got {type(nested).__name__}",
                self._context("form"),
            )
        return nested

    def _init_default(self, key: str, value: Any, target: StateMap | None = None) -> None:
        target = self._target() if target is None else target
        if key not in target:
            target[key] = copy.deepcopy(value)

    def finish(self) -> list[Node]:
        """Return the top-level nodes; fails if any scope is still open."""
        return self._stack.finish()

    # =========================================================================
    # Inputs
    # =========================================================================

    def text_field(
        self,
        key: str,
        *,
        on_change: Callback | None = None,
        on_blur: Callback | None = None,
        **options: Any,
    ) -> Node:
        node = self._add(
            NodeKind.TEXT_FIELD,
            key=key,
            callbacks={"change": on_change, "blur": on_blur},
            **options,
        )
        default = node.options_as(TextFieldOptions).default
        self._init_default(key, "" if default is None else default)
        return node

    def text_area(
        self,
        key: str,
        *,
        on_change: Callback | None = None,
        on_blur: Callback | None = None,
        **options: Any,
    ) -> Node:
        node = self._add(
            NodeKind.TEXT_AREA,
            key=key,
            callbacks={"change": on_change, "blur": on_blur},
            **options,
        )
        default = node.options_as(TextAreaOptions).default
        self._init_default(key, "" if default is None else default)
        return node

    def checkbox(
        self,
        key: str,
        label: str = "",
        *,
        on_change: Callback | None = None,
        **options: Any,
    ) -> Node:
        node = self._add(
            NodeKind.CHECKBOX,
            key=key,
            callbacks={"change": on_change},
            label=label,
            **options,
        )
        self._init_default(key, bool(node.options_as(CheckboxOptions).default))
        return node

    def select(
        self,
        key: str,
        choices: list[str] | None = None,
        *,
        on_change: Callback | None = None,
        **options: Any,
    ) -> Node:
        node = self._add(
            NodeKind.SELECT,
            key=key,
            callbacks={"change": on_change},
            choices=list(choices or []),
            **options,
        )
        default = node.options_as(SelectOptions).default
        if default is not None:
            self._init_default(key, default)
        return node

    def radio_group(
        self,
        key: str,
        choices: list[str] | None = None,
        *,
        on_change: Callback | None = None,
        **options: Any,
    ) -> Node:
        node = self._add(
            NodeKind.RADIO_GROUP,
            key=key,
            callbacks={"change": on_change},
            choices=list(choices or []),
            **options,
        )
        default = node.options_as(RadioGroupOptions).default
        if default is not None:
            self._init_default(key, default)
        return node

    def checkbox_group(
        self,
        key: str,
        *,
        on_change: Callback | None = None,
        **options: Any,
    ) -> Scope:
        """Multi-select group; selected item values are stored as a list at ``key``."""
        scope = self._container(
            NodeKind.CHECKBOX_GROUP, key=key, callbacks={"change": on_change}, **options
        )
        default = scope.node.options_as(CheckboxGroupOptions).default
        self._init_default(key, [] if default is None else list(default))
        return scope

    def item(self, value: str, label: str | None = None, **options: Any) -> Node:
        """One choice inside a ``checkbox_group``; carries a literal value, not a key."""
        return self._add(NodeKind.ITEM, value=value, label=label, **options)

    def tag_buttons(
        self,
        key: str,
        tags: list[str],
        *,
        on_change: Callback | None = None,
        **options: Any,
    ) -> Node:
        node = self._add(
            NodeKind.TAG_BUTTONS,
            key=key,
            callbacks={"change": on_change},
            tags=list(tags),
            **options,
        )
        default = node.options_as(TagButtonsOptions).default
        if default is not None:
            self._init_default(key, default)
        return node

    # =========================================================================
    # Clickables
    # =========================================================================

    def button(self, label: str, *, on_click: Callback | None = None, **options: Any) -> Node:
        return self._add(NodeKind.BUTTON, callbacks={"click": on_click}, label=label, **options)

    def menu_item(self, label: str, *, on_click: Callback | None = None, **options: Any) -> Node:
        return self._add(NodeKind.MENU_ITEM, callbacks={"click": on_click}, label=label, **options)

    def external_link_button(self, label: str, url: str, **options: Any) -> Node:
        return self._add(NodeKind.EXTERNAL_LINK_BUTTON, label=label, url=url, **options)

    # =========================================================================
    # Display
    # =========================================================================

    def text(self, content: Any, **options: Any) -> Node:
        """Plain text; ``content`` may be a callable taking the state map."""
        return self._add(NodeKind.TEXT, content=content, **options)

    def markdown(self, content: Any, **options: Any) -> Node:
        return self._add(NodeKind.MARKDOWN, content=content, **options)

    def header(self, content: Any, level: int = 2, **options: Any) -> Node:
        return self._add(NodeKind.HEADER, content=content, level=level, **options)

    def header1(self, content: Any, **options: Any) -> Node:
        return self.header(content, level=1, **options)

    def header2(self, content: Any, **options: Any) -> Node:
        return self.header(content, level=2, **options)

    def header3(self, content: Any, **options: Any) -> Node:
        return self.header(content, level=3, **options)

    def header4(self, content: Any, **options: Any) -> Node:
        return self.header(content, level=4, **options)

    def header5(self, content: Any, **options: Any) -> Node:
        return self.header(content, level=5, **options)

    def header6(self, content: Any, **options: Any) -> Node:
        return self.header(content, level=6, **options)

    def alert(self, message: Any = "", **options: Any) -> Scope:
        """Alert box; further content may be nested inside it."""
        return self._container(NodeKind.ALERT, message=message, **options)

    def progress_bar(self, value: float = 0, **options: Any) -> Node:
        return self._add(NodeKind.PROGRESS_BAR, value=value, **options)

    def spinner(self, **options: Any) -> Node:
        return self._add(NodeKind.SPINNER, **options)

    def status_badge(self, status: str, reasoning: str = "", **options: Any) -> Node:
        return self._add(NodeKind.STATUS_BADGE, status=status, reasoning=reasoning, **options)

    def score_table(self, scores: list[dict[str, Any]], **options: Any) -> Node:
        return self._add(NodeKind.SCORE_TABLE, scores=scores, **options)

    def chart(self, chart_type: str, data: list[dict[str, Any]], **options: Any) -> Node:
        return self._add(NodeKind.CHART, chart_type=chart_type, data=data, **options)

    def toast_container(self, **options: Any) -> Node:
        """Placement for toasts queued with ``show_toast``."""
        return self._add(NodeKind.TOAST_CONTAINER, **options)

    def theme_switcher(self, **options: Any) -> Node:
        return self._add(NodeKind.THEME_SWITCHER, **options)

    # =========================================================================
    # Lesson text
    # =========================================================================

    def lesson_text(
        self,
        content: str | None = None,
        *,
        glossary: dict[str, Any] | None = None,
        **options: Any,
    ) -> Scope:
        """Prose whose glossary terms show their definition on hover.

        Either pass ``content`` with ``{term}`` markers::

            ui.lesson_text("Bonds {rally} when rates fall.", glossary=terms)

        or open the scope and add ``phrase``/``term`` children::

            with ui.lesson_text(glossary=terms):
                ui.phrase("Bonds ")
                ui.term("rally")

        With ``content`` the children are added immediately and the returned
        scope is already closed.
        """
        scope = self._container(NodeKind.LESSON_TEXT, glossary=glossary or {}, **options)
        if content is not None:
            with scope:
                for part in _TERM_MARKER_RE.split(content):
                    if part.startswith("{") and part.endswith("}"):
                        self.term(part[1:-1])
                    elif part:
                        self.phrase(part)
        return scope

    def phrase(self, content: str, **options: Any) -> Node:
        return self._add(NodeKind.PHRASE, content=content, **options)

    def term(self, term: str, **options: Any) -> Node:
        """Glossary term; ``display=`` shows other text for the same definition."""
        return self._add(NodeKind.TERM, term=term, **options)

    # =========================================================================
    # Layout
    # =========================================================================

    def div(self, **options: Any) -> Scope:
        return self._container(NodeKind.DIV, **options)

    def card(self, **options: Any) -> Scope:
        return self._container(NodeKind.CARD, **options)

    def card_header(self, content: str | None = None, **options: Any) -> Scope:
        return self._container(NodeKind.CARD_HEADER, content=content, **options)

    def card_body(self, content: str | None = None, **options: Any) -> Scope:
        return self._container(NodeKind.CARD_BODY, content=content, **options)

    def card_footer(self, content: str | None = None, **options: Any) -> Scope:
        return self._container(NodeKind.CARD_FOOTER, content=content, **options)

    def vstack(self, **options: Any) -> Scope:
        return self._container(NodeKind.VSTACK, **options)

    def hstack(self, **options: Any) -> Scope:
        return self._container(NodeKind.HSTACK, **options)

    def grid(self, **options: Any) -> Scope:
        return self._container(NodeKind.GRID, **options)

    def columns(self, **options: Any) -> Scope:
        return self._container(NodeKind.COLUMNS, **options)

    def column(self, **options: Any) -> Scope:
        return self._container(NodeKind.COLUMN, **options)

    def collapsible(self, label: str, **options: Any) -> Scope:
        return self._container(NodeKind.COLLAPSIBLE, label=label, **options)

    # =========================================================================
    # Overlays and navigation
    # =========================================================================

    def modal(self, key: str, **options: Any) -> Scope:
        """Modal dialog; its open flag lives at ``state[f"{key}_open"]``."""
        scope = self._container(NodeKind.MODAL, key=key, **options)
        self._init_default(modal_state_key(key), False, target=self.state)
        return scope

    def modal_footer(self, **options: Any) -> Scope:
        return self._container(NodeKind.MODAL_FOOTER, **options)

    def tabs(self, key: str, **options: Any) -> Scope:
        """Tab set; the active tab index lives at ``state[key]``."""
        scope = self._container(NodeKind.TABS, key=key, **options)
        self._init_default(key, 0, target=self.state)
        return scope

    def tab(self, label: str, **options: Any) -> Scope:
        return self._container(NodeKind.TAB, label=label, **options)

    def breadcrumbs(self, **options: Any) -> Scope:
        return self._container(NodeKind.BREADCRUMBS, **options)

    def crumb(self, label: str, href: str | None = None, **options: Any) -> Node:
        return self._add(NodeKind.CRUMB, label=label, href=href, **options)

    def dropdown(self, **options: Any) -> Scope:
        return self._container(NodeKind.DROPDOWN, **options)

    def trigger(self, **options: Any) -> Scope:
        return self._container(NodeKind.TRIGGER, **options)

    def menu(self, **options: Any) -> Scope:
        return self._container(NodeKind.MENU, **options)

    # =========================================================================
    # Deferred-submission forms
    # =========================================================================

    def form(self, name: str, **options: Any) -> Scope:
        """Form whose fields bind into ``state[name]`` and commit together on submit."""
        scope = self._container(NodeKind.FORM, key=name, **options)
        self._init_default(name, {}, target=self.state)
        return scope

    def _enclosing_form(self, operation: str) -> Node:
        frame = self._stack.find(NodeKind.FORM)
        if frame is None or frame.node is None:
            raise StructuralError(
                f"{operation} must be called inside a form block",
                self._context(operation),
            )
        return frame.node

    def submit(self, label: str = "Submit", *, on_submit: Callback | None = None) -> None:
        """Set the submit label and callback of the enclosing form.

        The callback receives ``(state, values)`` after ``values`` has been
        stored at ``state[form_name]``.
        """
        form = self._enclosing_form("submit")
        form.options = form.options.model_copy(update={"submit_label": label})
        if on_submit is not None:
            form.callbacks["submit"] = on_submit

    def cancel(self, label: str = "Cancel") -> None:
        """Add a cancel control that resets the enclosing form on the client."""
        form = self._enclosing_form("cancel")
        form.options = form.options.model_copy(update={"cancel_label": label})
