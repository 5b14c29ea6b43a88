"""
Error types for loom-ui DSL building, app loading, and rendering.
"""

from dataclasses import dataclass
from typing import Optional


class LoomError(Exception):
    """Base exception for all loom-ui errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class StructuralError(LoomError):
    """
    Raised when a UI block is malformed.

    Examples:
    - ``submit`` or ``cancel`` called outside a ``form`` block
    - ``item`` called outside a ``checkbox_group``
    - A scope left out of order, or still open when the block returns
    - A ``form`` nested inside another ``form``
    """

    pass


class ConfigError(LoomError):
    """
    Raised when runtime configuration is invalid.

    Examples:
    - Missing secret key in production
    - Non-numeric port or budget values
    """

    pass


class AppLoadError(LoomError):
    """
    Raised when an app file cannot be loaded into the registry.

    Examples:
    - File not found
    - File defines no ``App``
    - File raises while being executed
    """

    pass


class AppNotFoundError(LoomError):
    """Raised when an app id is not present in the registry."""

    pass


class RenderError(LoomError):
    """
    Raised when a node cannot be rendered.

    Examples:
    - Renderer missing a method for a node kind
    - Template not found
    """

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error.

    Attributes:
        operation: Builder or dispatcher operation that failed (e.g. ``submit``)
        scope_path: Names of the open scopes at the time of the error,
            outermost first
        app: Optional app title
    """

    operation: str
    scope_path: tuple[str, ...] = ()
    app: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "submit at card > tabs in app 'Survey'"
        """
        location = self.operation
        if self.scope_path:
            location += " at " + " > ".join(self.scope_path)
        else:
            location += " at top level"
        if self.app:
            location += f" in app {self.app!r}"
        return location
