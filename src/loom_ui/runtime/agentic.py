"""
Agentic (headless) mode: serve an app once and hand back what the user submitted.

``run_once`` starts a server in a background thread, waits until the page
posts ``/submit`` (or the timeout expires), stops the server and returns the
submitted values. Only keys bound to input nodes, plus form names, are
returned. On timeout or interruption the result is ``{}``.
"""

from __future__ import annotations

import copy
import threading
import webbrowser
from typing import Any

import uvicorn

from loom_ui.core.config import LoomConfig
from loom_ui.core.logging import get_logger
from loom_ui.runtime.app import App
from loom_ui.runtime.server import create_app
from loom_ui.specs.nodes import StateMap

logger = get_logger("Agentic")


class ResultContainer:
    """One-shot hand-off of a submitted result between threads."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._result: StateMap | None = None
        self._cancelled = False

    def publish(self, result: StateMap) -> None:
        """Store the result and wake the waiter. Later publishes are ignored."""
        with self._lock:
            if self._result is None and not self._cancelled:
                self._result = copy.deepcopy(result)
        self._event.set()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
        self._event.set()

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> StateMap:
        """Block until a result arrives; ``{}`` on timeout or cancellation."""
        if not self._event.wait(timeout):
            logger.warning("No submission within %.1f seconds", timeout or 0)
            return {}
        with self._lock:
            if self._cancelled or self._result is None:
                return {}
            return copy.deepcopy(self._result)


def run_once(
    app: App,
    *,
    timeout: float | None = None,
    host: str | None = None,
    port: int | None = None,
    open_browser: bool = True,
    config: LoomConfig | None = None,
) -> dict[str, Any]:
    """
    Serve ``app`` until the user submits, then return the submitted values.

    Args:
        app: App to serve
        timeout: Seconds to wait (defaults to ``config.agentic_timeout``)
        host: Bind address
        port: Bind port
        open_browser: Open the page in the default browser
        config: Runtime configuration

    Returns:
        Submitted values, or ``{}`` on timeout or Ctrl-C
    """
    config = config or LoomConfig.from_env()
    host = host or config.host
    port = port or config.port
    timeout = config.agentic_timeout if timeout is None else timeout

    container = ResultContainer()
    api = create_app(app, config=config, result_sink=container.publish)
    server = uvicorn.Server(uvicorn.Config(api, host=host, port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, name="loom-agentic", daemon=True)
    thread.start()

    url = f"http://{host}:{port}/"
    logger.info("Waiting for submission at %s (timeout %.0fs)", url, timeout)
    if open_browser:
        webbrowser.open(url)

    try:
        result = container.wait(timeout)
    except KeyboardInterrupt:
        logger.info("Interrupted, returning empty result")
        container.cancel()
        result = {}
    finally:
        server.should_exit = True
        thread.join(timeout=5)
    return result
