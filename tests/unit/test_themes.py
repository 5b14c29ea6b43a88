"""Tests for the theme and layout registry."""

from __future__ import annotations

from loom_ui.themes import (
    Theme,
    css_classes,
    generate_theme_css,
    get_theme,
    layout_exists,
    list_themes,
    register_theme,
    theme_exists,
)


class TestBuiltins:
    def test_builtin_themes(self) -> None:
        names = {theme.name for theme in list_themes()}
        assert {"default", "dashboard", "document"} <= names

    def test_layouts(self) -> None:
        assert layout_exists("wide")
        assert not layout_exists("sideways")

    def test_css_classes(self) -> None:
        assert css_classes("document", "full") == "loom-theme-document loom-layout-full"


class TestRegister:
    def test_register_custom_theme(self) -> None:
        register_theme(Theme("ocean_test", "Blue", {"--loom-bg": "#001f3f"}))
        assert theme_exists("ocean_test")
        theme = get_theme("ocean_test")
        assert theme is not None
        assert theme.css_class == "loom-theme-ocean_test"

    def test_unknown_theme(self) -> None:
        assert get_theme("neon") is None


class TestGenerateCss:
    def test_one_rule_per_theme(self) -> None:
        css = generate_theme_css([Theme("a", "", {"--loom-fg": "red"}), Theme("b")])
        assert ".loom-theme-a {" in css
        assert "  --loom-fg: red;" in css
        assert ".loom-theme-b {" in css
