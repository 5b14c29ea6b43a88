"""
HTTP routes for single apps and the multi-app service.

Dispatch endpoints (relative to the app prefix, empty for a single app and
``/apps/{app_id}`` in the service):

- GET  /                         - full page
- POST /update                   - field update, toggle, tab switch, modal open/close
- POST /action/{button_id}       - button click
- POST /event/{key}              - on_change / on_blur
- POST /form/{form_name}         - deferred form submission
- POST /submit                   - headless submit
- POST /toast/dismiss/{toast_id} - drop one toast
- POST /theme/{theme_name}       - session theme override

Service management endpoints: GET /, GET /api/status, GET /api/apps,
POST /load-app, DELETE /apps/{app_id}, POST /remove-app, POST /clear-apps.

Each request holds its session's lock from state load to persist, and the
dispatcher itself runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from loom_ui.core.config import LoomConfig
from loom_ui.core.errors import AppLoadError, AppNotFoundError
from loom_ui.core.logging import get_logger
from loom_ui.runtime.app import App
from loom_ui.runtime.coercion import parse_params
from loom_ui.runtime.dispatcher import DispatchResult, Dispatcher, ResultSink
from loom_ui.runtime.htmx import HtmxDetails, dispatch_response
from loom_ui.runtime.registry import AppRegistry
from loom_ui.runtime.renderer import HtmlRenderer
from loom_ui.runtime.session_store import (
    SESSION_MAX_AGE,
    MemorySessionStore,
    SessionStore,
    new_session_id,
    sign_session_id,
    verify_session_id,
)
from loom_ui.runtime.template_renderer import render_fragment
from loom_ui.specs.nodes import StateMap

logger = get_logger("Service")

Operation = Callable[[Dispatcher, StateMap], DispatchResult]


@dataclass
class AppTarget:
    """A dispatcher plus the suffix scoping its state within a session."""

    dispatcher: Dispatcher
    scope: str | None = None

    def storage_id(self, session_id: str) -> str:
        return session_id if self.scope is None else f"{session_id}:{self.scope}"


def make_dispatcher(
    app: App,
    config: LoomConfig,
    url_prefix: str = "",
    result_sink: ResultSink | None = None,
) -> Dispatcher:
    return Dispatcher(
        app,
        HtmlRenderer(url_prefix=url_prefix),
        use_cdn=config.cdn,
        extra_head=config.extra_head,
        result_sink=result_sink,
        show_traceback=not config.is_production,
    )


async def read_params(request: Request) -> dict[str, Any]:
    """Parse the request body (form-encoded or multipart) into parameters."""
    form = await request.form()
    return parse_params(form.multi_items())


class SessionDispatch:
    """Loads, dispatches and persists state for one request."""

    def __init__(self, store: SessionStore, config: LoomConfig) -> None:
        self.store = store
        self.config = config

    def session_id(self, request: Request) -> tuple[str, bool]:
        """Return ``(session_id, is_new)`` from the signed cookie."""
        raw = request.cookies.get(self.config.session_cookie)
        session_id = verify_session_id(raw, self.config.secret_key)
        if session_id is None:
            return new_session_id(), True
        return session_id, False

    def _locked(self, storage_id: str, target: AppTarget, operation: Operation) -> DispatchResult:
        with self.store.lock(storage_id):
            state = self.store.get(storage_id) or {}
            result = operation(target.dispatcher, state)
            if result.state is not None:
                self.store.put(storage_id, result.state, exclude=target.dispatcher.app.persist_exclude)
            return result

    async def __call__(self, request: Request, target: AppTarget, operation: Operation) -> Response:
        session_id, is_new = self.session_id(request)
        storage_id = target.storage_id(session_id)
        htmx = HtmxDetails.from_request(request)
        if htmx.is_htmx:
            logger.debug("%s %s (trigger=%r target=%r)", request.method, request.url.path, htmx.trigger_id, htmx.target)
        else:
            logger.debug("%s %s", request.method, request.url.path)

        result = await asyncio.to_thread(self._locked, storage_id, target, operation)
        response = dispatch_response(result)
        if is_new:
            response.set_cookie(
                self.config.session_cookie,
                sign_session_id(session_id, self.config.secret_key),
                httponly=True,
                samesite="lax",
                max_age=SESSION_MAX_AGE,
            )
        return response


def add_dispatch_routes(
    router: APIRouter,
    prefix: str,
    resolve_target: Callable[[Request], AppTarget | None],
    dispatch: SessionDispatch,
) -> None:
    """Register the dispatch endpoints under ``prefix``.

    ``resolve_target`` returns None for an unknown app, which yields a 404
    before any session state is read or created. ``/submit`` likewise 404s
    unless the dispatcher hands results to a waiting caller.
    """

    def endpoint(
        build: Callable[[Request, dict[str, Any]], Operation],
        with_params: bool = True,
        headless_only: bool = False,
    ) -> Callable[[Request], Awaitable[Response]]:
        async def handler(request: Request) -> Response:
            target = resolve_target(request)
            if target is None:
                return HTMLResponse("App not found", status_code=404)
            if headless_only and not target.dispatcher.headless:
                return HTMLResponse("Not found", status_code=404)
            params = await read_params(request) if with_params else {}
            return await dispatch(request, target, build(request, params))

        return handler

    def path(request: Request, name: str) -> str:
        return str(request.path_params[name])

    page = endpoint(lambda request, params: lambda d, s: d.load(s), with_params=False)
    router.get(f"{prefix}/", response_class=HTMLResponse)(page)
    if prefix:
        router.get(prefix, response_class=HTMLResponse)(page)

    router.post(f"{prefix}/update", response_class=HTMLResponse)(
        endpoint(lambda request, params: lambda d, s: d.update(s, params))
    )
    router.post(f"{prefix}/action/{{button_id}}", response_class=HTMLResponse)(
        endpoint(lambda request, params: lambda d, s: d.action(s, path(request, "button_id"), params))
    )
    router.post(f"{prefix}/event/{{key}}", response_class=HTMLResponse)(
        endpoint(lambda request, params: lambda d, s: d.event(s, path(request, "key"), params))
    )
    router.post(f"{prefix}/form/{{form_name}}", response_class=HTMLResponse)(
        endpoint(lambda request, params: lambda d, s: d.submit_form(s, path(request, "form_name"), params))
    )
    router.post(f"{prefix}/submit", response_class=HTMLResponse)(
        endpoint(lambda request, params: lambda d, s: d.submit(s, params), headless_only=True)
    )
    router.post(f"{prefix}/toast/dismiss/{{toast_id}}")(
        endpoint(
            lambda request, params: lambda d, s: d.dismiss_toast(s, path(request, "toast_id")),
            with_params=False,
        )
    )
    router.post(f"{prefix}/theme/{{theme_name}}", response_class=HTMLResponse)(
        endpoint(
            lambda request, params: lambda d, s: d.switch_theme(s, path(request, "theme_name")),
            with_params=False,
        )
    )


# =============================================================================
# Single app
# =============================================================================


def create_app_routes(
    app: App,
    store: SessionStore,
    config: LoomConfig,
    result_sink: ResultSink | None = None,
) -> APIRouter:
    """Create the routes serving one app at the root path.

    Args:
        app: App to serve
        store: Session store for state maps
        config: Runtime configuration
        result_sink: Receives the result of a headless submit

    Returns:
        FastAPI router with the dispatch endpoints.
    """
    router = APIRouter()
    target = AppTarget(make_dispatcher(app, config, result_sink=result_sink))
    add_dispatch_routes(router, "", lambda request: target, SessionDispatch(store, config))
    return router


# =============================================================================
# Multi-app service
# =============================================================================


def create_service_routes(
    registry: AppRegistry,
    store: SessionStore,
    config: LoomConfig,
) -> APIRouter:
    """Create the service management routes and the per-app dispatch routes.

    Args:
        registry: Registry of loaded apps
        store: Session store; state is keyed ``<session>:<app_id>``
        config: Runtime configuration

    Returns:
        FastAPI router.
    """
    from loom_ui import __version__

    router = APIRouter()
    targets: dict[str, AppTarget] = {}

    def resolve_target(request: Request) -> AppTarget | None:
        app_id = str(request.path_params["app_id"])
        try:
            entry = registry.get(app_id)
        except AppNotFoundError:
            logger.debug("Unknown app id %r", app_id)
            return None
        target = targets.get(app_id)
        if target is None or target.dispatcher.app is not entry.app:
            dispatcher = make_dispatcher(entry.app, config, url_prefix=f"/apps/{app_id}")
            target = AppTarget(dispatcher, scope=app_id)
            targets[app_id] = target
        return target

    def forget(app_id: str) -> None:
        targets.pop(app_id, None)
        if isinstance(store, MemorySessionStore):
            store.delete_suffix(f":{app_id}")

    async def index(request: Request) -> HTMLResponse:
        return HTMLResponse(render_fragment("service_index.html", entries=registry.entries()))

    async def status(request: Request) -> JSONResponse:
        return JSONResponse(
            {"app": "loom-ui", "version": __version__, "port": config.port, "apps": len(registry)}
        )

    async def list_apps(request: Request) -> JSONResponse:
        return JSONResponse({"apps": [entry.to_dict() for entry in registry.entries()]})

    async def load_app(request: Request) -> JSONResponse:
        params = await _read_any(request)
        file_path = params.get("file_path")
        if not file_path:
            return JSONResponse({"success": False, "error": "file_path is required"}, status_code=400)
        try:
            app_id = await asyncio.to_thread(registry.load_file, str(file_path), params.get("name") or None)
        except AppLoadError as e:
            logger.warning("Failed to load %s: %s", file_path, e)
            return JSONResponse({"success": False, "error": str(e)}, status_code=400)
        entry = registry.get(app_id)
        return JSONResponse(
            {"success": True, "app_id": app_id, "name": entry.name, "url": f"/apps/{app_id}/"}
        )

    def _remove(app_id: str) -> JSONResponse:
        if not registry.remove(app_id):
            return JSONResponse({"success": False, "error": "App not found"}, status_code=404)
        forget(app_id)
        return JSONResponse({"success": True, "message": f"App {app_id} removed"})

    async def delete_app(request: Request, app_id: str) -> JSONResponse:
        return _remove(app_id)

    async def remove_app(request: Request) -> JSONResponse:
        params = await _read_any(request)
        return _remove(str(params.get("app_id") or ""))

    async def clear_apps(request: Request) -> JSONResponse:
        ids = registry.ids()
        count = registry.clear()
        for app_id in ids:
            forget(app_id)
        return JSONResponse({"success": True, "message": f"Removed {count} app(s)"})

    router.get("/", response_class=HTMLResponse)(index)
    router.get("/api/status")(status)
    router.get("/api/apps")(list_apps)
    router.post("/load-app")(load_app)
    router.delete("/apps/{app_id}")(delete_app)
    router.post("/remove-app")(remove_app)
    router.post("/clear-apps")(clear_apps)

    add_dispatch_routes(router, "/apps/{app_id}", resolve_target, SessionDispatch(store, config))
    return router


async def _read_any(request: Request) -> dict[str, Any]:
    """Read management parameters from a JSON body or a form body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        data = await request.json()
        return data if isinstance(data, dict) else {}
    return await read_params(request)
