"""
HTMX-aware response utilities.

Turns a ``DispatchResult`` into an HTMLResponse, adding HX-* headers where
the client needs them (the headless confirmation page replaces the whole
body instead of the app container).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from fastapi.responses import HTMLResponse, Response

from loom_ui.runtime.dispatcher import DispatchResult, ResponseKind


@dataclass(frozen=True, slots=True)
class HtmxDetails:
    """Parsed HTMX request headers.

    https://htmx.org/reference/#request_headers
    """

    is_htmx: bool = False
    target: str = ""
    trigger_id: str = ""

    @classmethod
    def from_request(cls, request: Any) -> HtmxDetails:
        """Construct from a Starlette/FastAPI request."""
        if not hasattr(request, "headers"):
            return cls()
        h = request.headers
        return cls(
            is_htmx=h.get("HX-Request") == "true",
            target=h.get("HX-Target", ""),
            trigger_id=h.get("HX-Trigger", ""),
        )


def htmx_response(
    content: str,
    *,
    status_code: int = 200,
    triggers: dict[str, Any] | list[str] | None = None,
    retarget: str | None = None,
    reswap: str | None = None,
) -> HTMLResponse:
    """Create an HTMLResponse with HTMX headers.

    Args:
        content: HTML body content.
        status_code: HTTP status code (default 200).
        triggers: Events to fire on the client via HX-Trigger.
        retarget: CSS selector overriding the triggering element's hx-target.
        reswap: Override the triggering element's hx-swap strategy.

    Returns:
        HTMLResponse with appropriate HX-* headers set.
    """
    headers: dict[str, str] = {}
    if triggers:
        headers["HX-Trigger"] = _encode_trigger(triggers)
    if retarget:
        headers["HX-Retarget"] = retarget
    if reswap:
        headers["HX-Reswap"] = reswap
    return HTMLResponse(content=content, status_code=status_code, headers=headers)


def dispatch_response(result: DispatchResult) -> Response:
    """Build the HTTP response for a dispatch result."""
    if result.kind == ResponseKind.EMPTY:
        return Response(status_code=result.status_code)
    if result.kind == ResponseKind.TERMINAL:
        return htmx_response(result.body, status_code=result.status_code, retarget="body", reswap="innerHTML")
    if result.kind == ResponseKind.ERROR and result.status_code >= 500:
        return htmx_response(
            result.body,
            status_code=result.status_code,
            triggers={"loomError": {"status": result.status_code}},
        )
    return htmx_response(result.body, status_code=result.status_code)


def _encode_trigger(value: dict[str, Any] | list[str]) -> str:
    """Encode trigger value to HX-Trigger header format."""
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return ", ".join(value)
    return json.dumps(value)
