"""Shared pytest fixtures for loom-ui tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from loom_ui.core.config import LoomConfig
from loom_ui.dsl.builder import Builder
from loom_ui.runtime.app import App
from loom_ui.runtime.server import create_app
from loom_ui.runtime.session_store import MemorySessionStore
from loom_ui.specs.nodes import StateMap


def greet(state: StateMap) -> None:
    state["greeted"] = True


def explode(state: StateMap) -> None:
    state["half_done"] = True
    raise RuntimeError("boom")


@pytest.fixture
def greeter_app() -> App:
    """Text field plus a greeting button, and a button whose callback raises."""

    def block(ui: Builder, state: StateMap) -> None:
        ui.text_field("name", placeholder="Your name")
        ui.button("Greet", on_click=greet)
        ui.button("Explode", on_click=explode)
        if state.get("greeted"):
            ui.text(lambda s: f"Hello {s.get('name') or 'stranger'}!")

    return App("Greeter", block)


@pytest.fixture
def config() -> LoomConfig:
    return LoomConfig(cdn=False, secret_key="test-secret")


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def submissions() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def client(
    greeter_app: App,
    config: LoomConfig,
    store: MemorySessionStore,
    submissions: list[dict[str, Any]],
) -> TestClient:
    api = create_app(greeter_app, config=config, store=store, result_sink=submissions.append)
    return TestClient(api)


@pytest.fixture
def app_file(tmp_path: Path) -> Path:
    """A Python file defining one app."""
    path = tmp_path / "hello_app.py"
    path.write_text(
        "from loom_ui import app\n"
        "\n"
        "\n"
        '@app("Hello")\n'
        "def hello(ui, state):\n"
        '    ui.text_field("name")\n'
        '    ui.text(lambda s: f"Hi {s.get(\'name\', \'\')}")\n',
        encoding="utf-8",
    )
    return path
