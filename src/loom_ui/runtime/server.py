"""
FastAPI application factories and the blocking ``run`` helpers.
"""

from __future__ import annotations

import threading
import webbrowser
from collections.abc import Iterable
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from loom_ui.core.config import LoomConfig
from loom_ui.core.logging import get_logger, setup_logging
from loom_ui.runtime.app import App
from loom_ui.runtime.dispatcher import ResultSink
from loom_ui.runtime.registry import AppRegistry
from loom_ui.runtime.routes import create_app_routes, create_service_routes
from loom_ui.runtime.session_store import MemorySessionStore, SessionStore, StateCodec

logger = get_logger("Server")


def default_store(config: LoomConfig) -> MemorySessionStore:
    return MemorySessionStore(StateCodec(config.persist_exclude, config.state_budget_bytes))


def create_app(
    app: App,
    *,
    config: LoomConfig | None = None,
    store: SessionStore | None = None,
    result_sink: ResultSink | None = None,
) -> FastAPI:
    """
    Build a FastAPI application serving one app at ``/``.

    Args:
        app: App to serve
        config: Runtime configuration (defaults to ``LoomConfig.from_env()``)
        store: Session store (defaults to an in-memory store)
        result_sink: Receives the result of a headless submit

    Returns:
        FastAPI application
    """
    config = config or LoomConfig.from_env()
    api = FastAPI(title=app.title, docs_url=None, redoc_url=None, openapi_url=None)
    if store is None:
        store = default_store(config)
    api.include_router(create_app_routes(app, store, config, result_sink))
    return api


def create_service(
    *,
    registry: AppRegistry | None = None,
    config: LoomConfig | None = None,
    store: SessionStore | None = None,
    files: Iterable[str | Path] = (),
) -> FastAPI:
    """
    Build the multi-app service, optionally preloading apps from files.

    Raises:
        AppLoadError: If a preloaded file cannot be loaded
    """
    config = config or LoomConfig.from_env()
    if registry is None:
        registry = AppRegistry()
    for file_path in files:
        registry.load_file(file_path)
    api = FastAPI(title="loom-ui service", docs_url=None, redoc_url=None, openapi_url=None)
    api.state.registry = registry
    if store is None:
        store = default_store(config)
    api.include_router(create_service_routes(registry, store, config))
    return api


def _open_browser_later(url: str, delay: float = 1.0) -> None:
    timer = threading.Timer(delay, webbrowser.open, args=(url,))
    timer.daemon = True
    timer.start()


def run_app(
    app: App,
    *,
    host: str | None = None,
    port: int | None = None,
    open_browser: bool = True,
    config: LoomConfig | None = None,
) -> None:
    """Serve one app until interrupted."""
    config = config or LoomConfig.from_env()
    setup_logging(config.log_level, config.log_dir)
    host = host or config.host
    port = port or config.port
    url = f"http://{host}:{port}/"
    logger.info("Serving %r at %s", app.title, url)
    if open_browser:
        _open_browser_later(url)
    uvicorn.run(create_app(app, config=config), host=host, port=port, log_level="warning")


def run_service(
    files: Iterable[str | Path] = (),
    *,
    host: str | None = None,
    port: int | None = None,
    config: LoomConfig | None = None,
) -> None:
    """Serve the multi-app service until interrupted."""
    config = config or LoomConfig.from_env()
    setup_logging(config.log_level, config.log_dir)
    host = host or config.host
    port = port or config.port
    api = create_service(config=config, files=files)
    logger.info("loom-ui service at http://%s:%d/ (%d app(s) loaded)", host, port, len(api.state.registry))
    uvicorn.run(api, host=host, port=port, log_level="warning")
