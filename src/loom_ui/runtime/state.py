"""
State map helpers.

The state map is a plain ``dict``. Keys starting with ``_`` are reserved for
the runtime; ``_toasts`` holds the queue of pending toast notifications.
"""

from __future__ import annotations

import uuid
from typing import Any

from loom_ui.dsl.builder import modal_state_key
from loom_ui.specs.nodes import StateMap

TOASTS_KEY = "_toasts"

TOAST_VARIANTS = ("info", "success", "warning", "error")


def show_toast(
    state: StateMap,
    message: str,
    variant: str = "info",
    duration: int | None = None,
) -> str:
    """
    Queue a toast notification.

    Args:
        state: State map to queue into
        message: Toast text
        variant: One of ``info``, ``success``, ``warning``, ``error``
        duration: Auto-dismiss delay in ms; the container default when None

    Returns:
        The new toast's id
    """
    if variant not in TOAST_VARIANTS:
        raise ValueError(f"Unknown toast variant {variant!r}")
    toast_id = uuid.uuid4().hex[:12]
    toast: dict[str, Any] = {"id": toast_id, "message": message, "variant": variant}
    if duration is not None:
        toast["duration"] = duration
    state.setdefault(TOASTS_KEY, []).append(toast)
    return toast_id


def clear_toasts(state: StateMap) -> None:
    state[TOASTS_KEY] = []


def get_toasts(state: StateMap) -> list[dict[str, Any]]:
    toasts = state.get(TOASTS_KEY)
    return list(toasts) if isinstance(toasts, list) else []


def dismiss_toast(state: StateMap, toast_id: str) -> bool:
    """Remove one toast by id. Returns False when no toast has that id."""
    toasts = get_toasts(state)
    remaining = [toast for toast in toasts if toast.get("id") != toast_id]
    if len(remaining) == len(toasts):
        return False
    state[TOASTS_KEY] = remaining
    return True


def open_modal(state: StateMap, key: str) -> None:
    state[modal_state_key(key)] = True


def close_modal(state: StateMap, key: str) -> None:
    state[modal_state_key(key)] = False


def is_modal_open(state: StateMap, key: str) -> bool:
    return state.get(modal_state_key(key)) is True


def active_tab(state: StateMap, key: str) -> int:
    """Active tab index; tab switches arrive as strings and are read leniently."""
    try:
        return int(state.get(key, 0))
    except (TypeError, ValueError):
        return 0
