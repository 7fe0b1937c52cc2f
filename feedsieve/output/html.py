"""HTML renderer."""

from datetime import datetime, timezone
from html import escape
from typing import List

from .interfaces import Renderer


class HtmlRenderer(Renderer):
    """Single HTML page listing new items per feed."""

    name = "html"
    extension = "html"

    def __init__(self, title: str = "New feed items"):
        self.title = title

    def render(self, results: List) -> str:
        generated = datetime.now(timezone.utc).strftime('%B %d, %Y %H:%M UTC')
        html = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{escape(self.title)}</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, sans-serif; max-width: 760px; margin: 0 auto; padding: 24px; color: #222; }}
        .feed {{ margin-bottom: 32px; }}
        .feed h2 {{ font-size: 18px; border-bottom: 1px solid #ddd; padding-bottom: 4px; }}
        .item {{ margin: 12px 0; }}
        .item a {{ font-weight: 600; color: #1a4e8a; text-decoration: none; }}
        .meta {{ font-size: 12px; color: #777; }}
        .summary {{ font-size: 14px; margin-top: 4px; }}
    </style>
</head>
<body>
    <h1>{escape(self.title)}</h1>
    <div class="meta">{generated}</div>
"""
        for result in self.visible(results):
            html += f'<div class="feed"><h2><a href="{escape(result.feed_id)}">{escape(result.display_title)}</a></h2>'

            for item in result.items:
                html += '<div class="item">'
                title = escape(item.title or "(no title)")
                if item.url:
                    html += f'<a href="{escape(item.url)}">{title}</a>'
                else:
                    html += f'<span>{title}</span>'

                meta = []
                if item.author:
                    meta.append(escape(item.author))
                if item.published_at:
                    meta.append(item.published_at.strftime('%Y-%m-%d %H:%M'))
                if meta:
                    html += f'<div class="meta">{" &middot; ".join(meta)}</div>'

                if not result.source.summary_only and item.summary:
                    # Summaries are feed-supplied HTML; escaped, not sanitized
                    html += f'<div class="summary">{escape(item.summary)}</div>'
                html += '</div>'

            html += '</div>'

        html += '''
</body>
</html>
'''
        return html
