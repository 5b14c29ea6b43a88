"""
Markdown rendering for ``markdown`` nodes.

Markdown source comes from app code and is trusted; inline HTML passes
through unchanged.
"""

from __future__ import annotations

import markdown as md

from loom_ui.core.errors import RenderError

MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]


def load_markdown(text: str) -> str:
    """
    Render markdown source to HTML.

    Raises:
        RenderError: If rendering fails
    """
    try:
        return str(md.markdown(text, extensions=MARKDOWN_EXTENSIONS))
    except Exception as e:
        raise RenderError(f"Failed to render markdown: {e}") from e
