"""
Theme and layout registry.

A theme is a named set of CSS custom properties applied through a class on
the app container. Generating stylesheets is left to the page template; this
module only tracks which themes and layouts exist and what classes they map
to.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

LAYOUTS = ("default", "wide", "full", "fluid")


@dataclass(frozen=True)
class Theme:
    """A named theme and its CSS custom properties."""

    name: str
    description: str = ""
    variables: dict[str, str] = field(default_factory=dict)

    @property
    def css_class(self) -> str:
        return f"loom-theme-{self.name}"


_BUILTIN_THEMES = (
    Theme(
        "default",
        "Neutral light theme",
        {
            "--loom-bg": "#ffffff",
            "--loom-fg": "#1f2937",
            "--loom-accent": "#2563eb",
            "--loom-muted": "#6b7280",
            "--loom-border": "#e5e7eb",
            "--loom-font": "system-ui, sans-serif",
        },
    ),
    Theme(
        "dashboard",
        "Dense dark theme for monitoring views",
        {
            "--loom-bg": "#0f172a",
            "--loom-fg": "#e2e8f0",
            "--loom-accent": "#38bdf8",
            "--loom-muted": "#94a3b8",
            "--loom-border": "#1e293b",
            "--loom-font": "ui-monospace, monospace",
        },
    ),
    Theme(
        "document",
        "Serif reading theme",
        {
            "--loom-bg": "#fdfcf8",
            "--loom-fg": "#292524",
            "--loom-accent": "#b45309",
            "--loom-muted": "#78716c",
            "--loom-border": "#e7e5e4",
            "--loom-font": "Georgia, serif",
        },
    ),
)

_lock = threading.Lock()
_themes: dict[str, Theme] = {theme.name: theme for theme in _BUILTIN_THEMES}


def register_theme(theme: Theme) -> None:
    """Add or replace a theme."""
    with _lock:
        _themes[theme.name] = theme


def get_theme(name: str) -> Theme | None:
    with _lock:
        return _themes.get(name)


def theme_exists(name: str) -> bool:
    return get_theme(name) is not None


def layout_exists(name: str) -> bool:
    return name in LAYOUTS


def list_themes() -> list[Theme]:
    with _lock:
        return list(_themes.values())


def css_classes(theme: str, layout: str = "default") -> str:
    """Class string applied to the app container for a theme and layout."""
    return f"loom-theme-{theme} loom-layout-{layout}"


def generate_theme_css(themes: list[Theme] | None = None) -> str:
    """
    Generate one CSS rule per theme holding its custom properties.

    Args:
        themes: Themes to include (all registered themes when None)

    Returns:
        CSS string with a ``.loom-theme-<name>`` selector per theme
    """
    lines: list[str] = []
    for theme in themes if themes is not None else list_themes():
        lines.append(f"/* {theme.description or theme.name} */")
        lines.append(f".{theme.css_class} {{")
        for name, value in theme.variables.items():
            lines.append(f"  {name}: {value};")
        lines.append("}")
    return "\n".join(lines)
