"""Component node types: kinds, per-kind options, and the node itself."""

from loom_ui.specs.kinds import CLICKABLE_KINDS, INPUT_KINDS, REQUIRED_PARENT, NodeKind
from loom_ui.specs.nodes import Callback, Node, StateMap
from loom_ui.specs.options import OPTIONS_BY_KIND, NodeOptions

__all__ = [
    "NodeKind",
    "INPUT_KINDS",
    "CLICKABLE_KINDS",
    "REQUIRED_PARENT",
    "Node",
    "StateMap",
    "Callback",
    "NodeOptions",
    "OPTIONS_BY_KIND",
]
