"""Renderers for the new items of a run."""

from .interfaces import Renderer
from .text import TextRenderer, html_to_text
from .html import HtmlRenderer

RENDERERS = {
    TextRenderer.name: TextRenderer,
    HtmlRenderer.name: HtmlRenderer,
}


def get_renderers(formats):
    """Instantiate renderers by name. Raises ValueError for unknown names."""
    renderers = []
    for name in formats:
        if name not in RENDERERS:
            raise ValueError(f"Unknown output format: {name}")
        renderers.append(RENDERERS[name]())
    return renderers


__all__ = ["Renderer", "TextRenderer", "HtmlRenderer", "html_to_text", "RENDERERS", "get_renderers"]
