"""Shared configuration, error types, and logging for loom-ui."""

from loom_ui.core.config import LoomConfig
from loom_ui.core.errors import (
    AppLoadError,
    AppNotFoundError,
    ConfigError,
    ErrorContext,
    LoomError,
    RenderError,
    StructuralError,
)

__all__ = [
    "LoomConfig",
    "LoomError",
    "StructuralError",
    "ConfigError",
    "AppLoadError",
    "AppNotFoundError",
    "RenderError",
    "ErrorContext",
]
