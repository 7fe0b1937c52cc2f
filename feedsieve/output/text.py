"""Plain text renderer."""

import textwrap
from typing import List

from bs4 import BeautifulSoup

from .interfaces import Renderer


def html_to_text(fragment: str) -> str:
    """Flatten an HTML fragment into a single line of text."""
    if not fragment:
        return ""
    text = BeautifulSoup(fragment, "html.parser").get_text(" ")
    return " ".join(text.split())


class TextRenderer(Renderer):
    """Plain text digest, wrapped to a fixed width."""

    name = "text"
    extension = "txt"

    def __init__(self, width: int = 79):
        self.width = width

    def render(self, results: List) -> str:
        lines = []
        for result in self.visible(results):
            title = result.display_title
            lines.append(title)
            lines.append("-" * min(len(title), self.width))
            lines.append(result.feed_id)
            lines.append("")

            for item in result.items:
                lines.append(textwrap.fill(item.title or "(no title)", self.width))
                if item.url:
                    lines.append(f"<{item.url}>")
                if item.author:
                    lines.append(f"By {item.author}")
                if not result.source.summary_only:
                    body = html_to_text(item.summary or item.content)
                    if body:
                        lines.append("")
                        lines.append(textwrap.fill(body, self.width, initial_indent="    ", subsequent_indent="    "))
                lines.append("")

        if not lines:
            return ""
        return "\n".join(lines).rstrip() + "\n"
