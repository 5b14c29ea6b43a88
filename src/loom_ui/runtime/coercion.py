"""
Request parameter parsing, coercion, and the merge into the state map.

Browsers send every value as a string and drop unchecked checkboxes
entirely. The rules here turn raw form parameters back into typed state:

- a list stays a list
- ``"on"`` and ``"true"`` become ``True``, ``"false"`` becomes ``False``
- a scalar arriving for a key whose stored value is a list becomes ``[value]``
- anything else is stored as the string it arrived as

After the merge, top-level checkboxes missing from the request are set to
``False`` and checkbox groups missing from the request are set to ``[]``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from loom_ui.runtime.tree import ComponentTree
from loom_ui.specs.kinds import NodeKind
from loom_ui.specs.nodes import StateMap

RawParams = Mapping[str, Any]

# Parameter names that carry routing information rather than state.
RESERVED_PARAMS = frozenset({"app_id", "button_id", "key", "form_name", "toast_id"})

_NESTED_RE = re.compile(r"^(?P<outer>[^\[\]]+)\[(?P<inner>[^\[\]]*)\](?P<list>\[\])?$")


def is_reserved(name: str) -> bool:
    return name in RESERVED_PARAMS or name.startswith("_")


def _collect(target: dict[str, Any], name: str, value: Any, force_list: bool) -> None:
    if not force_list:
        # several nodes bound to one key: last write wins
        target[name] = value
        return
    existing = target.get(name)
    if isinstance(existing, list):
        existing.append(value)
    else:
        target[name] = [value]


def parse_params(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """
    Group raw multi-valued form items into a parameter map.

    Only ``name[]`` yields a list; a plain name that repeats keeps its last
    value. ``outer[inner]`` nests under ``outer`` (used by deferred forms).

    Args:
        items: ``(name, value)`` pairs, e.g. ``FormData.multi_items()``

    Returns:
        Parsed parameters
    """
    params: dict[str, Any] = {}
    for name, value in items:
        match = _NESTED_RE.match(name)
        if match is None:
            _collect(params, name, value, force_list=False)
            continue
        outer, inner = match.group("outer"), match.group("inner")
        if inner == "":
            # name[]
            _collect(params, outer, value, force_list=True)
            continue
        nested = params.get(outer)
        if not isinstance(nested, dict):
            nested = {}
            params[outer] = nested
        _collect(nested, inner, value, force_list=match.group("list") is not None)
    return params


def coerce_param_value(value: Any, current: Any = None) -> Any:
    """Coerce one incoming parameter given the value currently stored for it."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if value in ("on", "true"):
        return True
    if value == "false":
        return False
    if isinstance(current, list):
        return [value]
    return value


def merge_params(tree: ComponentTree, params: RawParams, state: StateMap) -> StateMap:
    """
    Merge request parameters into ``state`` in place.

    Reserved names, nested (form-scoped) parameters and names of deferred
    forms are skipped; forms only change through form submission.

    Args:
        tree: The tree rebuilt from ``state`` before this merge
        params: Parsed request parameters
        state: State map to update

    Returns:
        ``state``
    """
    for name, value in params.items():
        if is_reserved(name) or isinstance(value, dict):
            continue
        if tree.find_form(name) is not None:
            continue
        state[name] = coerce_param_value(value, state.get(name))

    for node in tree.bound_nodes():
        key = node.key
        if key is None or key in params:
            continue
        if node.kind == NodeKind.CHECKBOX:
            state[key] = False
        elif node.kind == NodeKind.CHECKBOX_GROUP:
            state[key] = []
    return state


def form_values(raw: Any) -> dict[str, Any]:
    """Flatten submitted form fields, coercing checkbox strings to booleans."""
    if not isinstance(raw, Mapping):
        return {}
    values: dict[str, Any] = {}
    for name, value in raw.items():
        if isinstance(value, (list, tuple)):
            values[name] = list(value)
        elif value in ("on", "true"):
            values[name] = True
        elif value == "false":
            values[name] = False
        else:
            values[name] = value
    return values
