"""
Jinja2 templates for the page shell and non-component pages.

Component markup comes from ``HtmlRenderer``; templates here wrap it in the
full document on first load, and render the service index, the headless
confirmation page, and error diagnostics.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from loom_ui.themes import generate_theme_css

# Template directory
TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

HTMX_CDN = "https://unpkg.com/htmx.org@1.9.12"
ALPINE_CDN = "https://cdn.jsdelivr.net/npm/alpinejs@3.14.1/dist/cdn.min.js"


def create_jinja_env() -> Environment:
    """Create and configure the Jinja2 environment."""
    from loom_ui import __version__

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.globals["_loom_version"] = __version__
    env.globals["_htmx_cdn"] = HTMX_CDN
    env.globals["_alpine_cdn"] = ALPINE_CDN
    return env


# Module-level singleton
_env: Environment | None = None


def get_jinja_env() -> Environment:
    """Get the shared Jinja2 environment (lazy singleton)."""
    global _env
    if _env is None:
        _env = create_jinja_env()
    return _env


def render_page(
    *,
    title: str,
    content: Markup | str,
    container_class: str,
    use_cdn: bool = True,
    extra_head: list[str] | None = None,
) -> str:
    """
    Render the full document shell around an app's content.

    Args:
        title: Page title
        content: Rendered component fragment
        container_class: Theme and layout classes for ``#app-container``
        use_cdn: Load htmx and Alpine.js from their CDNs
        extra_head: Raw HTML snippets appended to ``<head>``

    Returns:
        Rendered HTML document
    """
    template = get_jinja_env().get_template("page.html")
    return template.render(
        title=title,
        content=Markup(content),
        container_class=container_class,
        theme_css=Markup(generate_theme_css()),
        use_cdn=use_cdn,
        extra_head=[Markup(snippet) for snippet in extra_head or []],
    )


def render_fragment(template_name: str, **kwargs: Any) -> str:
    """
    Render an HTML fragment or standalone page from a template.

    Args:
        template_name: Template path relative to templates/.
        **kwargs: Template variables.

    Returns:
        Rendered HTML string.
    """
    template = get_jinja_env().get_template(template_name)
    return template.render(**kwargs)
