"""Builder DSL for declaring component trees."""

from loom_ui.dsl.builder import Builder, modal_state_key, slugify
from loom_ui.dsl.scope import Frame, Scope, ScopeStack

__all__ = ["Builder", "Scope", "ScopeStack", "Frame", "modal_state_key", "slugify"]
