"""
HTML renderer for component trees.

``HtmlRenderer`` turns nodes into markup using htmx attributes for server
round-trips and Alpine.js for purely client-side behaviour (dropdowns,
dismissible alerts, toast timers, glossary tooltips). It has one
``render_<kind>`` method per node kind and refuses to construct if any kind
is missing.

Every bound top-level input carries ``data-loom-bound`` and every request
includes all of them, so the server always sees the full set of values and
unchecked checkboxes show up as absent.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Any

from markupsafe import Markup, escape

from loom_ui.core.errors import RenderError
from loom_ui.dsl.builder import modal_state_key
from loom_ui.runtime.markdown import load_markdown
from loom_ui.runtime.state import active_tab, get_toasts
from loom_ui.specs.kinds import NodeKind
from loom_ui.specs.nodes import Node, StateMap
from loom_ui.specs.options import (
    AlertOptions,
    BreadcrumbsOptions,
    ButtonOptions,
    CardSectionOptions,
    ChartOptions,
    CheckboxGroupOptions,
    CheckboxOptions,
    CollapsibleOptions,
    ColumnsOptions,
    CrumbOptions,
    DropdownOptions,
    ExternalLinkButtonOptions,
    FormOptions,
    GridOptions,
    HeaderOptions,
    ItemOptions,
    LessonTextOptions,
    MarkdownOptions,
    MenuItemOptions,
    ModalOptions,
    PhraseOptions,
    ProgressBarOptions,
    RadioGroupOptions,
    ScoreTableOptions,
    SelectOptions,
    SpinnerOptions,
    StackOptions,
    StatusBadgeOptions,
    TabOptions,
    TabsOptions,
    TagButtonsOptions,
    TermOptions,
    TextAreaOptions,
    TextFieldOptions,
    TextOptions,
    ThemeSwitcherOptions,
    ToastContainerOptions,
)
from loom_ui.themes import get_theme, list_themes

APP_CONTAINER_ID = "app-container"
BOUND_SELECTOR = f"#{APP_CONTAINER_ID} [data-loom-bound]"
AGENTIC_SUBMIT_ID = "loom-agentic-submit"

_WS_RE = re.compile(r"\s+")

_STATUS_BADGES = {
    "strong": ("\U0001f7e2", "Strong"),
    "maybe": ("\U0001f7e1", "Maybe"),
    "skip": ("\U0001f534", "Skip"),
}

_ALERT_ICONS = {"info": "ℹ", "success": "✓", "warning": "⚠", "error": "✕"}

# Alpine component shared by every lesson_text block; ``glossary`` is merged in.
_LESSON_SCRIPT = (
    "activeTerm: null, simple: '', detailed: '', showDetailed: false, "
    "show(termId) { const entry = this.glossary[termId]; if (!entry) return; "
    "this.activeTerm = termId; this.simple = entry.simple; this.detailed = entry.detailed; "
    "this.showDetailed = false; }, "
    "hide() { this.activeTerm = null; this.showDetailed = false; }"
)


# =============================================================================
# Markup helpers
# =============================================================================


def _attrs(attrs: dict[str, Any]) -> Markup:
    parts: list[str] = []
    for name, value in attrs.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{escape(str(value))}"')
    return Markup("".join(parts))


def _tag(name: str, attrs: dict[str, Any], content: Any = "") -> Markup:
    return Markup(f"<{name}{_attrs(attrs)}>{escape(content)}</{name}>")


def _void(name: str, attrs: dict[str, Any]) -> Markup:
    return Markup(f"<{name}{_attrs(attrs)}>")


def _join(parts: Iterable[Markup]) -> Markup:
    return Markup("").join(parts)


def _classes(*names: str | None) -> str:
    return " ".join(name for name in names if name)


def _extra_attrs(node: Node) -> dict[str, Any]:
    """Scalar ``extra`` options become HTML attributes (``aria_label`` -> ``aria-label``)."""
    return {
        name.replace("_", "-"): value
        for name, value in node.options.extra.items()
        if isinstance(value, (str, int, float, bool))
    }


def _content(value: Any, state: StateMap) -> str:
    if callable(value):
        value = value(state)
    return "" if value is None else str(value)


def tag_value(tag: str) -> str:
    """State value stored when a tag button is selected."""
    return _WS_RE.sub("_", tag.strip().lower())


def term_id(term: str) -> str:
    """Identifier linking a glossary term to its definition."""
    return _WS_RE.sub("_", term.strip().lower())


def _index_of(node: Node, siblings: list[Node]) -> int:
    return next(i for i, sibling in enumerate(siblings) if sibling is node)


@dataclass(frozen=True)
class RenderContext:
    """Per-call rendering context; the renderer itself holds no request state."""

    state: StateMap
    parent: Node | None = None
    active: bool = True


# =============================================================================
# Renderer
# =============================================================================


class HtmlRenderer:
    """
    Render nodes to HTML fragments.

    Args:
        url_prefix: Path prefix for htmx endpoints (``/apps/<id>`` in the
            multi-app service, empty for a single app)
        markdown: Markdown-to-HTML function

    Raises:
        RenderError: If a node kind has no ``render_<kind>`` method
    """

    def __init__(
        self,
        url_prefix: str = "",
        markdown: Callable[[str], str] = load_markdown,
    ) -> None:
        self.url_prefix = url_prefix.rstrip("/")
        self.markdown = markdown
        missing = [kind.value for kind in NodeKind if not callable(getattr(self, f"render_{kind.value}", None))]
        if missing:
            raise RenderError(f"Renderer has no method for node kinds: {', '.join(missing)}")

    def url(self, path: str) -> str:
        return f"{self.url_prefix}{path}"

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def render(self, node: Node, state: StateMap) -> Markup:
        return self._render(node, RenderContext(state))

    def render_nodes(self, nodes: Iterable[Node], state: StateMap) -> Markup:
        ctx = RenderContext(state)
        return _join(self._render(node, ctx) for node in nodes)

    def render_agentic_submit(self, label: str = "Submit") -> Markup:
        """Control that posts every bound input to ``/submit`` in headless mode."""
        button = _tag(
            "button",
            {
                "type": "button",
                "id": AGENTIC_SUBMIT_ID,
                "class": "loom-btn loom-btn-primary",
                **self._post_attrs("/submit"),
                "hx-swap": "innerHTML",
            },
            label,
        )
        hint = _tag("p", {"class": "loom-agentic-hint"}, "Submit to return these values to the waiting caller.")
        return _tag("div", {"class": "loom-agentic-submit"}, hint + button)

    def _render(self, node: Node, ctx: RenderContext) -> Markup:
        method: Callable[[Node, RenderContext], Markup] = getattr(self, f"render_{node.kind.value}")
        return method(node, ctx)

    def _children(self, node: Node, ctx: RenderContext, children: list[Node] | None = None) -> Markup:
        child_ctx = replace(ctx, parent=node, active=True)
        return _join(self._render(child, child_ctx) for child in (node.children if children is None else children))

    # -------------------------------------------------------------------------
    # Binding helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _name(node: Node, multiple: bool = False) -> str:
        suffix = "[]" if multiple else ""
        if node.form:
            return f"{node.form}[{node.key}]{suffix}"
        return f"{node.key}{suffix}"

    @staticmethod
    def _value(node: Node, ctx: RenderContext) -> Any:
        if node.key is None:
            return None
        if node.form:
            nested = ctx.state.get(node.form)
            return nested.get(node.key) if isinstance(nested, dict) else None
        return ctx.state.get(node.key)

    @staticmethod
    def _field_id(node: Node, suffix: str = "") -> str:
        base = f"{node.form}-{node.key}" if node.form else str(node.key)
        return f"field-{base}{suffix}"

    def _post_attrs(self, path: str, vals: dict[str, Any] | None = None) -> dict[str, Any]:
        return {
            "hx-post": self.url(path),
            "hx-include": BOUND_SELECTOR,
            "hx-target": f"#{APP_CONTAINER_ID}",
            "hx-swap": "innerHTML scroll:false",
            "hx-vals": json.dumps(vals) if vals is not None else None,
        }

    def _sync_attrs(self, node: Node, trigger: str) -> dict[str, Any]:
        """htmx attributes for a bound input; form fields only sync on submit."""
        if node.form:
            return {}
        if "change" in node.callbacks or "blur" in node.callbacks:
            path = f"/event/{node.key}"
        else:
            path = "/update"
        return {"data-loom-bound": True, **self._post_attrs(path), "hx-trigger": trigger}

    @staticmethod
    def _field(label: str | None, field_id: str, control: Markup) -> Markup:
        parts = [Markup('<div class="loom-field">')]
        if label:
            parts.append(_tag("label", {"for": field_id, "class": "loom-label"}, label))
        parts.append(control)
        parts.append(Markup("</div>"))
        return _join(parts)

    # =========================================================================
    # Inputs
    # =========================================================================

    @staticmethod
    def _text_trigger(node: Node, debounce: int | None) -> str:
        triggers: list[str] = []
        if debounce:
            triggers.append(f"keyup changed delay:{debounce}ms")
        triggers.append("blur" if "blur" in node.callbacks else "change")
        return ", ".join(triggers)

    def render_text_field(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(TextFieldOptions)
        field_id = self._field_id(node)
        value = self._value(node, ctx)
        control = _void(
            "input",
            {
                "type": opts.input_type,
                "id": field_id,
                "name": self._name(node),
                "value": "" if value is None else value,
                "placeholder": opts.placeholder,
                "class": _classes("loom-input", opts.css_class),
                **self._sync_attrs(node, self._text_trigger(node, opts.debounce)),
                **_extra_attrs(node),
            },
        )
        return self._field(opts.label, field_id, control)

    def render_text_area(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(TextAreaOptions)
        field_id = self._field_id(node)
        value = self._value(node, ctx)
        control = _tag(
            "textarea",
            {
                "id": field_id,
                "name": self._name(node),
                "rows": opts.rows,
                "placeholder": opts.placeholder,
                "class": _classes("loom-textarea", opts.css_class),
                **self._sync_attrs(node, self._text_trigger(node, opts.debounce)),
                **_extra_attrs(node),
            },
            "" if value is None else value,
        )
        return self._field(opts.label, field_id, control)

    def render_checkbox(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(CheckboxOptions)
        control = _void(
            "input",
            {
                "type": "checkbox",
                "id": self._field_id(node),
                "name": self._name(node),
                "value": "on",
                "checked": self._value(node, ctx) is True,
                **self._sync_attrs(node, "change"),
                **_extra_attrs(node),
            },
        )
        return _tag(
            "label",
            {"class": _classes("loom-checkbox", opts.css_class)},
            control + _tag("span", {}, opts.label),
        )

    def render_select(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(SelectOptions)
        field_id = self._field_id(node)
        current = self._value(node, ctx)
        options: list[Markup] = []
        if opts.placeholder:
            options.append(
                _tag(
                    "option",
                    {"value": "", "disabled": True, "selected": current in (None, "")},
                    opts.placeholder,
                )
            )
        for choice in opts.choices:
            options.append(_tag("option", {"value": choice, "selected": choice == current}, choice))
        control = _tag(
            "select",
            {
                "id": field_id,
                "name": self._name(node),
                "class": _classes("loom-select", opts.css_class),
                **self._sync_attrs(node, "change"),
                **_extra_attrs(node),
            },
            _join(options),
        )
        return self._field(opts.label, field_id, control)

    def render_radio_group(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(RadioGroupOptions)
        current = self._value(node, ctx)
        radios: list[Markup] = []
        for index, choice in enumerate(opts.choices):
            radio = _void(
                "input",
                {
                    "type": "radio",
                    "id": self._field_id(node, f"-{index}"),
                    "name": self._name(node),
                    "value": choice,
                    "checked": choice == current,
                    **self._sync_attrs(node, "change"),
                },
            )
            radios.append(_tag("label", {"class": "loom-radio"}, radio + _tag("span", {}, choice)))
        legend = _tag("legend", {}, opts.label) if opts.label else Markup("")
        return _tag(
            "fieldset",
            {"class": _classes("loom-radio-group", opts.css_class), **_extra_attrs(node)},
            legend + _join(radios),
        )

    def render_checkbox_group(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(CheckboxGroupOptions)
        all_values = [child.options_as(ItemOptions).value for child in node.children if child.kind == NodeKind.ITEM]
        parts: list[Markup] = []
        if opts.label:
            parts.append(_tag("legend", {}, opts.label))
        if opts.select_all or opts.select_none:
            actions = [
                self._group_action(node, label, values)
                for label, values in ((opts.select_all, all_values), (opts.select_none, []))
                if label
            ]
            parts.append(_tag("div", {"class": "loom-checkbox-group-actions"}, _join(actions)))
        parts.append(self._children(node, ctx))
        return _tag(
            "fieldset",
            {
                "class": _classes("loom-checkbox-group", opts.css_class),
                "x-data": "{}" if node.form else None,
                **_extra_attrs(node),
            },
            _join(parts),
        )

    def _group_action(self, group: Node, label: str, values: list[str]) -> Markup:
        attrs: dict[str, Any] = {"type": "button", "class": "loom-btn loom-btn-sm"}
        if group.form:
            checked = "true" if values else "false"
            attrs["@click"] = (
                f"$root.querySelectorAll('input[type=checkbox]').forEach(el => el.checked = {checked})"
            )
        else:
            path = f"/event/{group.key}" if "change" in group.callbacks else "/update"
            attrs.update(self._post_attrs(path, {self._name(group, multiple=True): values}))
        return _tag("button", attrs, label)

    def render_item(self, node: Node, ctx: RenderContext) -> Markup:
        group = ctx.parent
        if group is None or group.kind != NodeKind.CHECKBOX_GROUP:
            raise RenderError("item rendered outside a checkbox_group")
        opts = node.options_as(ItemOptions)
        selected = self._value(group, ctx)
        selected = selected if isinstance(selected, list) else []
        control = _void(
            "input",
            {
                "type": "checkbox",
                "name": self._name(group, multiple=True),
                "value": opts.value,
                "checked": opts.value in selected,
                **self._sync_attrs(group, "change"),
            },
        )
        return _tag(
            "label",
            {"class": _classes("loom-checkbox-item", opts.css_class), **_extra_attrs(node)},
            control + _tag("span", {}, opts.label or opts.value),
        )

    def render_tag_buttons(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(TagButtonsOptions)
        current = self._value(node, ctx)
        buttons: list[Markup] = []
        for tag in opts.tags:
            value = tag_value(tag)
            attrs: dict[str, Any] = {
                "type": "button",
                "class": _classes("loom-tag-btn", "loom-tag-btn-selected" if value == current else None),
            }
            if node.form:
                attrs["@click"] = f"value = {json.dumps(value)}"
                attrs[":class"] = f"{{ 'loom-tag-btn-selected': value === {json.dumps(value)} }}"
            else:
                path = f"/event/{node.key}" if "change" in node.callbacks else "/update"
                attrs.update(self._post_attrs(path, {str(node.key): value}))
            buttons.append(_tag("button", attrs, tag))
        wrapper: dict[str, Any] = {
            "class": _classes("loom-tag-buttons", f"loom-tag-buttons-{opts.style}", opts.css_class),
            **_extra_attrs(node),
        }
        if node.form:
            wrapper["x-data"] = json.dumps({"value": current or ""})
            buttons.insert(0, _void("input", {"type": "hidden", "name": self._name(node), ":value": "value"}))
        return _tag("div", wrapper, _join(buttons))

    # =========================================================================
    # Clickables
    # =========================================================================

    def render_button(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(ButtonOptions)
        attrs: dict[str, Any] = {
            "type": "button",
            "id": node.node_id,
            "class": _classes("loom-btn", f"loom-btn-{opts.style}", opts.css_class),
            "disabled": opts.disabled,
        }
        if opts.submit:
            attrs.update(self._post_attrs(f"/action/{node.node_id}"))
        attrs.update(_extra_attrs(node))
        return _tag("button", attrs, opts.label)

    def render_menu_item(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(MenuItemOptions)
        attrs: dict[str, Any] = {
            "type": "button",
            "role": "menuitem",
            "id": node.node_id,
            "class": _classes("loom-menu-item", f"loom-menu-item-{opts.style}" if opts.style else None, opts.css_class),
            "disabled": opts.disabled,
            "@click": "open = false",
            **self._post_attrs(f"/action/{node.node_id}"),
            **_extra_attrs(node),
        }
        return _tag("button", attrs, opts.label)

    def render_external_link_button(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(ExternalLinkButtonOptions)
        css = _classes("loom-btn", f"loom-btn-{opts.style}", "loom-external-link", opts.css_class)
        if opts.submit:
            attrs = {
                "type": "button",
                "id": node.node_id,
                "class": css,
                **self._post_attrs("/submit"),
                "hx-swap": "innerHTML",
                "@click": f"setTimeout(() => window.open({json.dumps(opts.url)}, '_blank'), 100)",
                **_extra_attrs(node),
            }
            return _tag("button", attrs, opts.label)
        attrs = {
            "href": opts.url,
            "id": node.node_id,
            "target": "_blank",
            "rel": "noopener noreferrer",
            "class": css,
            **_extra_attrs(node),
        }
        return _tag("a", attrs, opts.label)

    # =========================================================================
    # Display
    # =========================================================================

    def render_text(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(TextOptions)
        attrs = {"class": _classes("loom-text", opts.css_class), **_extra_attrs(node)}
        return _tag("p", attrs, _content(opts.content, ctx.state))

    def render_markdown(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(MarkdownOptions)
        source = _content(opts.content, ctx.state)
        attrs = {"class": _classes("loom-markdown", opts.css_class), **_extra_attrs(node)}
        return _tag("div", attrs, Markup(self.markdown(source)))

    def render_header(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(HeaderOptions)
        attrs = {"class": _classes("loom-header", opts.css_class), **_extra_attrs(node)}
        return _tag(f"h{opts.level}", attrs, _content(opts.content, ctx.state))

    def render_alert(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(AlertOptions)
        body: list[Markup] = []
        if opts.title:
            body.append(_tag("strong", {"class": "loom-alert-title"}, opts.title))
        message = _content(opts.message, ctx.state)
        if message:
            body.append(_tag("span", {"class": "loom-alert-message"}, message))
        body.append(self._children(node, ctx))
        parts = [
            _tag("span", {"class": "loom-alert-icon"}, _ALERT_ICONS[opts.variant]),
            _tag("div", {"class": "loom-alert-content"}, _join(body)),
        ]
        attrs: dict[str, Any] = {
            "role": "alert",
            "class": _classes("loom-alert", f"loom-alert-{opts.variant}", opts.css_class),
        }
        if opts.dismissible:
            attrs["x-data"] = "{ dismissed: false }"
            attrs["x-show"] = "!dismissed"
            parts.append(
                _tag(
                    "button",
                    {"type": "button", "class": "loom-alert-dismiss", "@click": "dismissed = true", "aria-label": "Dismiss"},
                    "×",
                )
            )
        attrs.update(_extra_attrs(node))
        return _tag("div", attrs, _join(parts))

    def render_progress_bar(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(ProgressBarOptions)
        value, maximum = opts.value, opts.max
        percentage = round(min(max(value / maximum, 0.0), 1.0) * 100) if maximum > 0 else 0
        parts = [_tag("div", {"class": "loom-progress-bar", "style": f"width: {percentage}%;"})]
        if opts.show_label or opts.label:
            parts.append(_tag("span", {"class": "loom-progress-label"}, opts.label or f"{percentage}%"))
        attrs = {
            "class": _classes(
                "loom-progress",
                f"loom-progress-{opts.variant}",
                "loom-progress-animated" if opts.animated else None,
                opts.css_class,
            ),
            "role": "progressbar",
            "aria-valuenow": value,
            "aria-valuemin": 0,
            "aria-valuemax": maximum,
            **_extra_attrs(node),
        }
        return _tag("div", attrs, _join(parts))

    def render_spinner(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(SpinnerOptions)
        parts = [
            _tag(
                "div",
                {
                    "class": f"loom-spinner loom-spinner-{opts.size}",
                    "role": "status",
                    "aria-label": opts.label or "Loading",
                },
            )
        ]
        if opts.label:
            parts.append(_tag("span", {"class": "loom-spinner-label"}, opts.label))
        attrs = {"class": _classes("loom-spinner-container", opts.css_class), **_extra_attrs(node)}
        return _tag("div", attrs, _join(parts))

    def render_status_badge(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(StatusBadgeOptions)
        icon, label = _STATUS_BADGES[opts.status]
        parts = [
            _tag("span", {"class": "loom-status-badge-icon"}, icon),
            _tag("span", {"class": "loom-status-badge-label"}, label),
        ]
        if opts.reasoning:
            parts.append(_tag("span", {"class": "loom-status-badge-reasoning"}, opts.reasoning))
        attrs = {
            "class": _classes("loom-status-badge", f"loom-status-badge-{opts.status}", opts.css_class),
            **_extra_attrs(node),
        }
        return _tag("span", attrs, _join(parts))

    def render_score_table(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(ScoreTableOptions)
        rows: list[Markup] = []
        for score in opts.scores:
            value = score.get("value") or 0
            maximum = score.get("max") or 10
            ratio = float(value) / float(maximum)
            if ratio >= 0.7:
                color = "loom-score-high"
            elif ratio >= 0.4:
                color = "loom-score-medium"
            else:
                color = "loom-score-low"
            if ratio >= 0.8:
                meaning = "Excellent"
            elif ratio >= 0.7:
                meaning = "Strong"
            elif ratio >= 0.5:
                meaning = "Moderate"
            else:
                meaning = "Weak"
            rows.append(
                _tag(
                    "tr",
                    {},
                    _tag("td", {}, score.get("label", ""))
                    + _tag("td", {"class": f"loom-score-cell {color}"}, value)
                    + _tag("td", {"class": "loom-score-meaning"}, meaning),
                )
            )
        head = _tag("thead", {}, _tag("tr", {}, _join(_tag("th", {}, h) for h in ("Metric", "Score", "Meaning"))))
        attrs = {"class": _classes("loom-score-table", opts.css_class), **_extra_attrs(node)}
        return _tag("table", attrs, head + _tag("tbody", {}, _join(rows)))

    def render_chart(self, node: Node, ctx: RenderContext) -> Markup:
        """Chart figure carrying its data as JSON, with a table fallback."""
        opts = node.options_as(ChartOptions)
        columns = [opts.x, *opts.y]
        head = _tag("tr", {}, _join(_tag("th", {}, column) for column in columns))
        body = _join(
            _tag("tr", {}, _join(_tag("td", {}, row.get(column, "")) for column in columns))
            for row in opts.data
        )
        parts: list[Markup] = []
        if opts.title:
            parts.append(_tag("figcaption", {}, opts.title))
        parts.append(_tag("table", {"class": "loom-chart-data"}, _tag("thead", {}, head) + _tag("tbody", {}, body)))
        attrs = {
            "class": _classes("loom-chart", f"loom-chart-{opts.chart_type}", opts.css_class),
            "data-chart-type": opts.chart_type,
            "data-chart": json.dumps({"x": opts.x, "y": opts.y, "data": opts.data}, default=str),
            "style": f"min-height: {opts.height}px;",
            **_extra_attrs(node),
        }
        return _tag("figure", attrs, _join(parts))

    def render_toast_container(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(ToastContainerOptions)
        toasts: list[Markup] = []
        for toast in get_toasts(ctx.state):
            toast_id = str(toast.get("id", ""))
            variant = str(toast.get("variant", "info"))
            duration = toast.get("duration", opts.duration)
            dismiss_url = self.url(f"/toast/dismiss/{toast_id}")
            attrs: dict[str, Any] = {
                "id": f"toast-{toast_id}",
                "class": f"loom-toast loom-toast-{variant}",
                "role": "status",
                "x-data": (
                    "{ show: true, dismiss() { this.show = false; "
                    f"htmx.ajax('POST', {json.dumps(dismiss_url)}, {{swap: 'none'}}); }} }}"
                ),
                "x-show": "show",
                "x-init": f"setTimeout(() => dismiss(), {int(duration)})" if duration else None,
            }
            content = (
                _tag("span", {"class": "loom-toast-icon"}, _ALERT_ICONS.get(variant, _ALERT_ICONS["info"]))
                + _tag("span", {"class": "loom-toast-message"}, toast.get("message", ""))
                + _tag(
                    "button",
                    {"type": "button", "class": "loom-toast-dismiss", "@click": "dismiss()", "aria-label": "Dismiss"},
                    "×",
                )
            )
            toasts.append(_tag("div", attrs, content))
        position = opts.position.replace("_", "-")
        attrs = {
            "class": _classes("loom-toast-container", f"loom-toast-{position}", opts.css_class),
            "aria-live": "polite",
            **_extra_attrs(node),
        }
        return _tag("div", attrs, _join(toasts))

    def render_theme_switcher(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(ThemeSwitcherOptions)
        if opts.themes is None:
            themes = list_themes()
        else:
            themes = [theme for name in opts.themes if (theme := get_theme(name)) is not None]
        buttons = [
            _tag(
                "button",
                {
                    "type": "button",
                    "class": "loom-theme-switcher-option",
                    "title": theme.description or None,
                    "hx-post": self.url(f"/theme/{theme.name}"),
                    "hx-swap": "none",
                    "hx-on::after-request": (
                        "if (event.detail.successful) "
                        f"document.getElementById('{APP_CONTAINER_ID}').className = event.detail.xhr.responseText"
                    ),
                },
                theme.name.title(),
            )
            for theme in themes
        ]
        label = _tag("span", {"class": "loom-theme-switcher-label"}, "Theme:") if opts.show_label else Markup("")
        attrs = {"class": _classes("loom-theme-switcher", opts.css_class), **_extra_attrs(node)}
        return _tag("div", attrs, label + _join(buttons))

    # =========================================================================
    # Lesson text
    # =========================================================================

    def render_lesson_text(self, node: Node, ctx: RenderContext) -> Markup:
        """Prose with glossary terms; hovering or focusing a term shows its definition.

        Clicking the tooltip toggles the detailed definition, when there is one.
        """
        opts = node.options_as(LessonTextOptions)
        glossary = {
            term_id(term): {
                "term": term,
                "simple": entry.get("simple", ""),
                "detailed": entry.get("detailed", ""),
            }
            for term, entry in opts.glossary.items()
        }
        tooltip = _tag(
            "div",
            {
                "class": "loom-term-tooltip",
                "role": "tooltip",
                "x-show": "activeTerm",
                "x-cloak": True,
                "@click": "showDetailed = detailed ? !showDetailed : false",
            },
            _tag("span", {"class": "loom-term-simple", "x-text": "simple"})
            + _tag("span", {"class": "loom-term-detailed", "x-show": "showDetailed", "x-text": "detailed"}),
        )
        attrs = {
            "class": _classes("loom-lesson-text", opts.css_class),
            "x-data": f"{{ glossary: {json.dumps(glossary)}, {_LESSON_SCRIPT} }}",
            **_extra_attrs(node),
        }
        return _tag("div", attrs, _tag("p", {}, self._children(node, ctx)) + tooltip)

    def render_phrase(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(PhraseOptions)
        return _tag("span", {"class": _classes("loom-phrase", opts.css_class), **_extra_attrs(node)}, opts.content)

    def render_term(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(TermOptions)
        ident = term_id(opts.term)
        attrs = {
            "class": _classes("loom-term", opts.css_class),
            "data-term": ident,
            "tabindex": "0",
            "@mouseenter": f"show({json.dumps(ident)})",
            "@focus": f"show({json.dumps(ident)})",
            "@mouseleave": "hide()",
            "@blur": "hide()",
            **_extra_attrs(node),
        }
        return _tag("span", attrs, opts.display or opts.term)

    # =========================================================================
    # Layout
    # =========================================================================

    def _box(self, node: Node, ctx: RenderContext, css: str, **attrs: Any) -> Markup:
        merged = {"class": _classes(css, node.options.css_class), **attrs, **_extra_attrs(node)}
        return _tag("div", merged, self._children(node, ctx))

    def render_div(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, "loom-div")

    def render_card(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, "loom-card")

    def _card_section(self, node: Node, ctx: RenderContext, css: str) -> Markup:
        opts = node.options_as(CardSectionOptions)
        inner = (_tag("span", {}, opts.content) if opts.content else Markup("")) + self._children(node, ctx)
        return _tag("div", {"class": _classes(css, opts.css_class), **_extra_attrs(node)}, inner)

    def render_card_header(self, node: Node, ctx: RenderContext) -> Markup:
        return self._card_section(node, ctx, "loom-card-header")

    def render_card_body(self, node: Node, ctx: RenderContext) -> Markup:
        return self._card_section(node, ctx, "loom-card-body")

    def render_card_footer(self, node: Node, ctx: RenderContext) -> Markup:
        return self._card_section(node, ctx, "loom-card-footer")

    def _stack(self, node: Node, ctx: RenderContext, direction: str) -> Markup:
        opts = node.options_as(StackOptions)
        css = _classes(
            f"loom-{direction}",
            f"loom-gap-{opts.spacing}",
            f"loom-align-{opts.align}" if opts.align else None,
            f"loom-justify-{opts.justify}" if opts.justify else None,
            "loom-divided" if opts.divider else None,
        )
        return self._box(node, ctx, css)

    def render_vstack(self, node: Node, ctx: RenderContext) -> Markup:
        return self._stack(node, ctx, "vstack")

    def render_hstack(self, node: Node, ctx: RenderContext) -> Markup:
        return self._stack(node, ctx, "hstack")

    def render_grid(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(GridOptions)
        columns = opts.columns
        attrs: dict[str, Any] = {}
        if isinstance(columns, list):
            sm = columns[0] if columns else 1
            md = columns[1] if len(columns) > 1 else sm
            lg = columns[2] if len(columns) > 2 else md
            attrs.update({"data-cols-sm": sm, "data-cols-md": md, "data-cols-lg": lg})
            count = lg
        else:
            count = columns
        attrs["style"] = f"grid-template-columns: repeat({count}, minmax(0, 1fr));"
        return self._box(node, ctx, f"loom-grid loom-gap-{opts.gap}", **attrs)

    def render_columns(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, f"loom-columns loom-gap-{node.options_as(ColumnsOptions).gap}")

    def render_column(self, node: Node, ctx: RenderContext) -> Markup:
        width = None
        parent = ctx.parent
        widths = parent.options_as(ColumnsOptions).widths if parent is not None else None
        if parent is not None and widths:
            index = _index_of(node, parent.children)
            width = widths[index] if index < len(widths) else None
        style = f"flex: 1 1 {width}; min-width: 0;" if width else "flex: 1 1 0; min-width: 0;"
        return self._box(node, ctx, "loom-column", style=style)

    def render_collapsible(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(CollapsibleOptions)
        attrs = {
            "class": _classes("loom-collapsible", opts.css_class),
            "open": opts.expanded,
            **_extra_attrs(node),
        }
        inner = _tag("summary", {}, opts.label) + _tag(
            "div", {"class": "loom-collapsible-content"}, self._children(node, ctx)
        )
        return _tag("details", attrs, inner)

    # =========================================================================
    # Overlays and navigation
    # =========================================================================

    def render_modal(self, node: Node, ctx: RenderContext) -> Markup:
        """Modal whose visibility follows ``state[f"{key}_open"]``.

        Closed modals are still rendered (hidden) so their inputs keep
        posting with every request.
        """
        opts = node.options_as(ModalOptions)
        open_key = modal_state_key(str(node.key))
        is_open = ctx.state.get(open_key) is True
        close = self._post_attrs("/update", {open_key: "false"})
        header: list[Markup] = []
        if opts.title:
            header.append(_tag("h3", {"class": "loom-modal-title"}, opts.title))
        if opts.closable:
            header.append(
                _tag("button", {"type": "button", "class": "loom-modal-close", "aria-label": "Close", **close}, "×")
            )
        body = [child for child in node.children if child.kind != NodeKind.MODAL_FOOTER]
        footers = [child for child in node.children if child.kind == NodeKind.MODAL_FOOTER]
        dialog = (
            _tag("div", {"class": "loom-modal-header"}, _join(header))
            + _tag("div", {"class": "loom-modal-body"}, self._children(node, ctx, body))
            + self._children(node, ctx, footers)
        )
        backdrop = _tag("div", {"class": "loom-modal-backdrop", **(close if opts.closable else {})})
        attrs = {
            "id": f"modal-{node.key}",
            "class": _classes("loom-modal-wrapper", opts.css_class),
            "hidden": not is_open,
            **_extra_attrs(node),
        }
        return _tag(
            "div",
            attrs,
            backdrop
            + _tag(
                "div",
                {"class": f"loom-modal loom-modal-{opts.size}", "role": "dialog", "aria-modal": "true"},
                dialog,
            ),
        )

    def render_modal_footer(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, "loom-modal-footer")

    def render_tabs(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(TabsOptions)
        key = str(node.key)
        active = active_tab(ctx.state, key)
        tabs = [child for child in node.children if child.kind == NodeKind.TAB]
        triggers = _join(
            _tag(
                "button",
                {
                    "type": "button",
                    "role": "tab",
                    "class": _classes("loom-tab-trigger", "loom-tab-active" if index == active else None),
                    "aria-selected": "true" if index == active else "false",
                    **self._post_attrs("/update", {key: index}),
                },
                tab.options_as(TabOptions).label,
            )
            for index, tab in enumerate(tabs)
        )
        panels = _join(
            self._render(tab, replace(ctx, parent=node, active=index == active))
            for index, tab in enumerate(tabs)
        )
        state_input = _void("input", {"type": "hidden", "name": key, "value": active, "data-loom-bound": True})
        attrs = {
            "id": f"tabs-{key}",
            "class": _classes("loom-tabs", f"loom-tabs-{opts.variant}", opts.css_class),
            **_extra_attrs(node),
        }
        return _tag(
            "div",
            attrs,
            state_input + _tag("div", {"class": "loom-tabs-list", "role": "tablist"}, triggers) + panels,
        )

    def render_tab(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, "loom-tab-panel", role="tabpanel", hidden=not ctx.active)

    def render_breadcrumbs(self, node: Node, ctx: RenderContext) -> Markup:
        attrs = {
            "class": _classes("loom-breadcrumbs", node.options.css_class),
            "aria-label": "Breadcrumb",
            **_extra_attrs(node),
        }
        return _tag("nav", attrs, _tag("ol", {"class": "loom-breadcrumbs-list"}, self._children(node, ctx)))

    def render_crumb(self, node: Node, ctx: RenderContext) -> Markup:
        opts = node.options_as(CrumbOptions)
        parent = ctx.parent
        siblings = parent.children if parent is not None else [node]
        index = _index_of(node, siblings)
        is_last = index == len(siblings) - 1
        parts: list[Markup] = []
        if index > 0 and parent is not None:
            separator = parent.options_as(BreadcrumbsOptions).separator
            parts.append(_tag("span", {"class": "loom-breadcrumb-separator", "aria-hidden": "true"}, separator))
        if opts.href and not is_last:
            parts.append(_tag("a", {"href": opts.href, "class": "loom-breadcrumb-link"}, opts.label))
        else:
            parts.append(
                _tag(
                    "span",
                    {"class": "loom-breadcrumb-current", "aria-current": "page" if is_last else None},
                    opts.label,
                )
            )
        return _tag("li", {"class": _classes("loom-breadcrumb-item", opts.css_class)}, _join(parts))

    def render_dropdown(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(
            node,
            ctx,
            f"loom-dropdown loom-dropdown-{node.options_as(DropdownOptions).align}",
            **{
                "x-data": "{ open: false }",
                "@click.outside": "open = false",
                "@keydown.escape.window": "open = false",
            },
        )

    def render_trigger(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, "loom-dropdown-trigger", **{"@click.capture.stop": "open = !open"})

    def render_menu(self, node: Node, ctx: RenderContext) -> Markup:
        return self._box(node, ctx, "loom-dropdown-menu", role="menu", **{"x-show": "open", "x-cloak": True})

    # =========================================================================
    # Forms
    # =========================================================================

    def render_form(self, node: Node, ctx: RenderContext) -> Markup:
        """Deferred-submission form: fields post together to ``/form/<name>``.

        Cancel is a native reset, restoring the values last rendered by the
        server without a round-trip.
        """
        opts = node.options_as(FormOptions)
        name = str(node.key)
        actions: list[Markup] = []
        if opts.submit_label:
            actions.append(_tag("button", {"type": "submit", "class": "loom-btn loom-btn-primary"}, opts.submit_label))
        if opts.cancel_label:
            actions.append(_tag("button", {"type": "reset", "class": "loom-btn loom-btn-secondary"}, opts.cancel_label))
        attrs = {
            "id": f"form-{name}",
            "class": _classes("loom-form", opts.css_class),
            "hx-post": self.url(f"/form/{name}"),
            "hx-target": f"#{APP_CONTAINER_ID}",
            "hx-swap": "innerHTML scroll:false",
            **_extra_attrs(node),
        }
        inner = self._children(node, ctx)
        if actions:
            inner += _tag("div", {"class": "loom-form-actions"}, _join(actions))
        return _tag("form", attrs, inner)
