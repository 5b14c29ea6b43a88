"""Tests for the request dispatcher state machine."""

from __future__ import annotations

import copy
import re
from typing import Any

import pytest

from loom_ui.dsl.builder import Builder
from loom_ui.runtime.app import App
from loom_ui.runtime.dispatcher import THEME_KEY, Dispatcher, ResponseKind
from loom_ui.runtime.renderer import HtmlRenderer
from loom_ui.runtime.state import TOASTS_KEY, open_modal, show_toast
from loom_ui.specs.nodes import StateMap


@pytest.fixture
def dispatcher(greeter_app: App) -> Dispatcher:
    return Dispatcher(greeter_app, use_cdn=False)


class TestLoad:
    def test_full_page_with_defaults(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.load({})
        assert result.kind == ResponseKind.FULL_PAGE
        assert result.status_code == 200
        assert result.state == {"name": ""}
        assert "<!DOCTYPE html>" in result.body
        assert 'id="app-container"' in result.body
        assert "loom-theme-default loom-layout-default" in result.body

    def test_load_does_not_mutate_input(self, dispatcher: Dispatcher) -> None:
        state: StateMap = {}
        dispatcher.load(state)
        assert state == {}


class TestSequenceScenario:
    def test_alice(self, dispatcher: Dispatcher) -> None:
        state = dispatcher.load({}).state
        assert state is not None

        updated = dispatcher.update(state, {"name": "Alice"})
        assert updated.kind == ResponseKind.FRAGMENT
        assert updated.state is not None
        assert updated.state["name"] == "Alice"
        assert "<!DOCTYPE html>" not in updated.body

        acted = dispatcher.action(updated.state, "btn_greet_1", {"name": "Alice"})
        assert acted.state is not None
        assert acted.state["greeted"] is True
        assert acted.state["name"] == "Alice"
        assert "Hello Alice!" in acted.body


class TestAction:
    def test_unknown_button_is_a_noop(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.action({"name": ""}, "btn_missing_9", {"name": "Zed"})
        assert result.kind == ResponseKind.FRAGMENT
        assert result.state == {"name": "Zed"}

    def test_failing_callback_commits_nothing(self, dispatcher: Dispatcher) -> None:
        state: StateMap = {"name": "Alice"}
        before = copy.deepcopy(state)
        result = dispatcher.action(state, "btn_explode_2", {"name": "Mallory"})
        assert result.kind == ResponseKind.ERROR
        assert result.status_code == 500
        assert result.state is None
        assert not result.committed
        assert "RuntimeError" in result.body
        assert "boom" in result.body
        assert state == before

    def test_traceback_can_be_hidden(self, greeter_app: App) -> None:
        quiet = Dispatcher(greeter_app, show_traceback=False)
        result = quiet.action({}, "btn_explode_2", {})
        assert "Traceback" not in result.body

    def test_callback_inside_modal_footer(self) -> None:
        def confirm(state: StateMap) -> None:
            state["confirmed"] = True
            state["confirm_open"] = False

        def block(ui: Builder, state: StateMap) -> None:
            ui.button("Open")
            with ui.modal("confirm"):
                with ui.modal_footer():
                    ui.button("Yes", on_click=confirm)

        state: StateMap = {}
        open_modal(state, "confirm")
        result = Dispatcher(App("Modal", block)).action(state, "btn_yes_2", {})
        assert result.state == {"confirm_open": False, "confirmed": True}


class TestEvent:
    def test_change_and_blur_both_run(self) -> None:
        calls: list[tuple[str, Any]] = []

        def block(ui: Builder, state: StateMap) -> None:
            ui.text_field(
                "query",
                on_change=lambda s, v: calls.append(("change", v)),
                on_blur=lambda s, v: calls.append(("blur", v)),
            )

        result = Dispatcher(App("Search", block)).event({}, "query", {"query": "cats"})
        assert result.state == {"query": "cats"}
        assert calls == [("change", "cats"), ("blur", "cats")]

    def test_callback_sees_coerced_value(self) -> None:
        seen: list[Any] = []

        def block(ui: Builder, state: StateMap) -> None:
            ui.checkbox("agree", on_change=lambda s, v: seen.append(v))

        Dispatcher(App("Agree", block)).event({}, "agree", {"agree": "on"})
        assert seen == [True]

    def test_unknown_key_is_a_noop(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.event({"name": ""}, "nothing", {"name": "Bo"})
        assert result.kind == ResponseKind.FRAGMENT
        assert result.state == {"name": "Bo"}


class TestForms:
    @pytest.fixture
    def form_app(self) -> tuple[App, list[dict[str, Any]]]:
        received: list[dict[str, Any]] = []

        def save(state: StateMap, values: dict[str, Any]) -> None:
            received.append(dict(values))
            state["saved"] = True

        def block(ui: Builder, state: StateMap) -> None:
            ui.text_field("name")
            with ui.form("profile"):
                ui.text_field("name")
                ui.checkbox("subscribe")
                ui.submit("Save", on_submit=save)

        return App("Profile", block), received

    def test_update_does_not_touch_form(self, form_app: tuple[App, list]) -> None:
        app, _ = form_app
        result = Dispatcher(app).update({}, {"name": "Top", "profile": {"name": "Sneaky"}})
        assert result.state is not None
        assert result.state["name"] == "Top"
        assert result.state["profile"] == {"name": "", "subscribe": False}

    def test_submit_replaces_nested_map(self, form_app: tuple[App, list]) -> None:
        app, received = form_app
        state = {"name": "Top", "profile": {"name": "Old", "subscribe": True, "stale": 1}}
        result = Dispatcher(app).submit_form(state, "profile", {"profile": {"name": "Bob", "subscribe": "on"}})
        assert result.state is not None
        assert result.state["profile"] == {"name": "Bob", "subscribe": True}
        assert result.state["name"] == "Top"
        assert result.state["saved"] is True
        assert received == [{"name": "Bob", "subscribe": True}]

    def test_unknown_form_is_a_noop(self, form_app: tuple[App, list]) -> None:
        app, received = form_app
        result = Dispatcher(app).submit_form({}, "missing", {"missing": {"x": "1"}})
        assert result.kind == ResponseKind.FRAGMENT
        assert result.state is not None
        assert "missing" not in result.state
        assert received == []


class TestUpdateMutations:
    def test_checkbox_group_scenario(self) -> None:
        def block(ui: Builder, state: StateMap) -> None:
            with ui.checkbox_group("letters"):
                for letter in "abc":
                    ui.item(letter)

        dispatcher = Dispatcher(App("Letters", block))
        state = dispatcher.update({}, {"letters": ["a", "c"]}).state
        assert state is not None
        assert state["letters"] == ["a", "c"]
        cleared = dispatcher.update(state, {}).state
        assert cleared is not None
        assert cleared["letters"] == []

    def test_tab_switch(self) -> None:
        def block(ui: Builder, state: StateMap) -> None:
            with ui.tabs("section"):
                with ui.tab("One"):
                    ui.text("first")
                with ui.tab("Two"):
                    ui.text("second")

        result = Dispatcher(App("Tabs", block)).update({}, {"section": "1"})
        assert result.state == {"section": "1"}
        assert re.search(r"<button[^>]*loom-tab-active[^>]*>Two</button>", result.body)

    def test_modal_close(self) -> None:
        def block(ui: Builder, state: StateMap) -> None:
            with ui.modal("confirm"):
                ui.text("Sure?")

        result = Dispatcher(App("Modal", block)).update({"confirm_open": True}, {"confirm_open": "false"})
        assert result.state == {"confirm_open": False}


class TestToastsAndThemes:
    def test_dismiss_toast(self, dispatcher: Dispatcher) -> None:
        state: StateMap = {}
        toast_id = show_toast(state, "Saved", "success")
        show_toast(state, "Other")
        result = dispatcher.dismiss_toast(state, toast_id)
        assert result.kind == ResponseKind.EMPTY
        assert result.status_code == 204
        assert result.state is not None
        assert [t["message"] for t in result.state[TOASTS_KEY]] == ["Other"]

    def test_dismiss_unknown_toast(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.dismiss_toast({}, "nope")
        assert result.status_code == 204

    def test_switch_theme(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.switch_theme({}, "dashboard")
        assert result.body == "loom-theme-dashboard loom-layout-default"
        assert result.state == {THEME_KEY: "dashboard"}

    def test_theme_override_applies_on_load(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.load({THEME_KEY: "document"})
        assert "loom-theme-document" in result.body

    def test_invalid_theme(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.switch_theme({}, "neon")
        assert result.status_code == 400
        assert result.state is None


class TestHeadlessSubmit:
    def test_publishes_input_keys_only(self) -> None:
        published: list[StateMap] = []

        def block(ui: Builder, state: StateMap) -> None:
            ui.text_field("name")
            ui.checkbox("agree")
            with ui.modal("help"):
                ui.text("help")
            ui.external_link_button("Done", "https://example.com", submit=True)

        dispatcher = Dispatcher(App("Intake", block), result_sink=published.append)
        state = {"scratch": "x", "_toasts": []}
        result = dispatcher.submit(state, {"name": "Al", "agree": "on"})
        assert result.kind == ResponseKind.TERMINAL
        assert published == [{"name": "Al", "agree": True}]
        assert "Submitted" in result.body

    def test_url_prefix_reaches_fragments(self, greeter_app: App) -> None:
        dispatcher = Dispatcher(greeter_app, HtmlRenderer(url_prefix="/apps/abc123"))
        result = dispatcher.update({}, {})
        assert 'hx-post="/apps/abc123/action/btn_greet_1"' in result.body

    def test_submit_without_sink_is_not_found(self, dispatcher: Dispatcher) -> None:
        result = dispatcher.submit({"name": "Al"}, {"name": "Al"})
        assert result.kind == ResponseKind.ERROR
        assert result.status_code == 404
        assert result.state is None

    def test_headless_renders_submit_control(self, greeter_app: App) -> None:
        dispatcher = Dispatcher(greeter_app, use_cdn=False, result_sink=lambda result: None)
        assert dispatcher.headless
        assert 'hx-post="/submit"' in dispatcher.load({}).body
        assert 'id="loom-agentic-submit"' in dispatcher.update({}, {"name": "Al"}).body

    def test_interactive_renders_no_submit_control(self, dispatcher: Dispatcher) -> None:
        assert not dispatcher.headless
        assert "loom-agentic-submit" not in dispatcher.load({}).body
        assert "loom-agentic-submit" not in dispatcher.update({}, {}).body
