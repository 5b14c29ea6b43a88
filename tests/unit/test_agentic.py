"""Tests for headless mode: the result hand-off and run_once."""

from __future__ import annotations

import threading
import time
from typing import Any

import pytest

from loom_ui.core.config import LoomConfig
from loom_ui.runtime import agentic
from loom_ui.runtime.agentic import ResultContainer, run_once
from loom_ui.runtime.app import App
from loom_ui.specs.nodes import StateMap


class TestResultContainer:
    def test_wait_returns_published_copy(self) -> None:
        container = ResultContainer()
        payload = {"tags": ["a"]}
        container.publish(payload)
        payload["tags"].append("b")
        assert container.done
        assert container.wait(1.0) == {"tags": ["a"]}

    def test_first_publish_wins(self) -> None:
        container = ResultContainer()
        container.publish({"n": 1})
        container.publish({"n": 2})
        assert container.wait(0) == {"n": 1}

    def test_timeout_returns_empty(self) -> None:
        container = ResultContainer()
        started = time.monotonic()
        assert container.wait(0.2) == {}
        assert time.monotonic() - started >= 0.19
        assert not container.done

    def test_cancel_returns_empty(self) -> None:
        container = ResultContainer()
        container.cancel()
        container.publish({"late": True})
        assert container.wait(1.0) == {}

    def test_publish_from_another_thread(self) -> None:
        container = ResultContainer()
        threading.Timer(0.05, container.publish, args=({"name": "Al"},)).start()
        assert container.wait(5.0) == {"name": "Al"}


class FakeServer:
    """Stands in for ``uvicorn.Server``; optionally submits when run."""

    submission: StateMap | None = None
    instances: list[FakeServer] = []

    def __init__(self, config: Any) -> None:
        self.config = config
        self.should_exit = False
        FakeServer.instances.append(self)

    def run(self) -> None:
        if FakeServer.submission is not None:
            self.config.app.sink(FakeServer.submission)


class FakeApi:
    def __init__(self, sink: Any) -> None:
        self.sink = sink


class FakeUvicornConfig:
    def __init__(self, app: FakeApi, **kwargs: Any) -> None:
        self.app = app
        self.kwargs = kwargs


@pytest.fixture
def fake_server(monkeypatch: pytest.MonkeyPatch) -> type[FakeServer]:
    FakeServer.submission = None
    FakeServer.instances = []
    monkeypatch.setattr(agentic.uvicorn, "Server", FakeServer)
    monkeypatch.setattr(agentic.uvicorn, "Config", FakeUvicornConfig)
    monkeypatch.setattr(agentic, "create_app", lambda app, config, result_sink: FakeApi(result_sink))
    return FakeServer


class TestRunOnce:
    def test_returns_submission(self, fake_server: type[FakeServer], greeter_app: App, config: LoomConfig) -> None:
        fake_server.submission = {"name": "Alice"}
        result = run_once(greeter_app, timeout=5, port=4999, open_browser=False, config=config)
        assert result == {"name": "Alice"}
        server = fake_server.instances[0]
        assert server.should_exit is True
        assert server.config.kwargs["port"] == 4999

    def test_timeout_returns_empty(self, fake_server: type[FakeServer], greeter_app: App, config: LoomConfig) -> None:
        result = run_once(greeter_app, timeout=0.05, open_browser=False, config=config)
        assert result == {}
        assert fake_server.instances[0].should_exit is True

    def test_interrupt_returns_empty(
        self,
        fake_server: type[FakeServer],
        greeter_app: App,
        config: LoomConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def interrupted(self: ResultContainer, timeout: float | None = None) -> StateMap:
            raise KeyboardInterrupt

        monkeypatch.setattr(ResultContainer, "wait", interrupted)
        assert run_once(greeter_app, timeout=5, open_browser=False, config=config) == {}
